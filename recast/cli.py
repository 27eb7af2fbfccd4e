#!/usr/bin/env python3
"""
RECAST Command-Line Interface

Rewrites expressions from the command line, from script files, from
stdin, or interactively.

Usage:
    recast                                    # Start REPL
    recast script.recast                      # Run script
    recast -e "y ~ cut(x, breaks = 3)"        # Rewrite one expression
    recast -r binning.edits                   # REPL with edits preloaded
    recast -x 'cut$breaks <- c(0, 1, 3)' -e "y ~ cut(x, breaks = 3)"
    echo "y ~ cut(x, breaks = 3)" | recast -r binning.edits   # Filter mode

Script Format (.recast files):
    #!/usr/bin/env recast
    :load binning.edits

    [labels]
    @no-labels: cut$labels <- NULL

    price ~ color + cut(carat, breaks = 5, labels = FALSE)

Edit lines, group lines and :commands configure the session; every
other line is an expression, printed after rewriting.
"""

import argparse
import sys
from pathlib import Path
from typing import Iterable, Optional

from . import __version__
from .engine import EditEngine, find_assignment
from .syntax import deparse, parse_expr

try:
    import readline
    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False


HELP = """RECAST REPL Commands:
  :help              Show this help
  :load FILE         Load edits from file (.edits or .json)
  :edits             List all loaded edits
  :clear             Clear all edits
  :trace on|off      Toggle tracing
  :strict on|off     Toggle ambiguity checking
  :groups            Show all groups
  :enable GROUP      Enable a group
  :disable GROUP     Disable a group
  :quit              Exit

Syntax:
  @name: target$arg <- value            Define an edit
  @name "description": fn$arg <- NULL   Edit that drops an argument
  [groupname]                           Tag the edits that follow
  expression                            Rewrite an expression
"""


def count_parens(text: str) -> int:
    """
    Net count of open parentheses outside quotes and backticks.

    Positive means the input continues on the next line.
    """
    depth = 0
    quote = None
    chars = iter(text)
    for c in chars:
        if c == '\\':
            next(chars, None)
        elif quote:
            if c == quote:
                quote = None
        elif c in '"\'`':
            quote = c
        elif c == '(':
            depth += 1
        elif c == ')':
            depth -= 1
    return depth


def parse_switch(arg: str, current: bool) -> bool:
    """Read on/off style arguments; anything else flips the current value."""
    word = arg.lower()
    if word in ("on", "true", "1"):
        return True
    if word in ("off", "false", "0"):
        return False
    return not current


class CommandError(Exception):
    """A REPL input that failed. The message is shown to the user as-is."""


class Reply:
    """
    The outcome of one input line.

    kind is "command", "edit", "group" or "expression"; ok is False
    when the line failed and text holds the error message.
    """

    __slots__ = ('text', 'kind', 'ok')

    def __init__(self, text: Optional[str], kind: str, ok: bool = True):
        self.text = text
        self.kind = kind
        self.ok = ok

    def __repr__(self) -> str:
        status = "ok" if self.ok else "failed"
        return f"Reply({self.kind}, {status}, {self.text!r})"


class RecastREPL:
    """Interactive session state: the edit engine and display switches."""

    def __init__(self):
        self.engine = EditEngine()
        self.trace = False
        self.strict = False
        self.running = True
        self.current_group: Optional[str] = None
        self.multi_line_buffer = ""
        self.history_file = Path.home() / ".recast_history" if HAS_READLINE else None
        self.commands = {
            "help": lambda arg: HELP,
            "load": self.cmd_load,
            "edits": self.cmd_edits,
            "clear": self.cmd_clear,
            "trace": self.cmd_trace,
            "strict": self.cmd_strict,
            "groups": self.cmd_groups,
            "enable": self.cmd_enable,
            "disable": self.cmd_disable,
            "quit": self.cmd_quit,
            "exit": self.cmd_quit,
            "q": self.cmd_quit,
        }

    # ============================================================
    # Commands
    # ============================================================

    def run_command(self, line: str) -> Optional[str]:
        """Run a ``:command`` line. Raises CommandError when it fails."""
        name, _, arg = line[1:].strip().partition(" ")
        handler = self.commands.get(name.lower())
        if handler is None:
            raise CommandError(f"Unknown command: {name or ':'}. Type :help for help.")
        return handler(arg.strip())

    def handle_command(self, line: str) -> Optional[str]:
        """Run a ``:command`` line and return its message, errors included."""
        try:
            return self.run_command(line)
        except CommandError as e:
            return str(e)

    def cmd_load(self, arg: str) -> str:
        if not arg:
            raise CommandError("Usage: :load FILE")
        before = len(self.engine)
        try:
            self.engine.load_file(Path(arg))
        except Exception as e:
            raise CommandError(f"Error loading {arg}: {e}") from e
        return f"Loaded {len(self.engine) - before} edits from {arg}"

    def cmd_edits(self, arg: str) -> str:
        return "\n".join(self.engine.list_edits()) or "No edits loaded"

    def cmd_clear(self, arg: str) -> str:
        self.engine.clear()
        self.current_group = None
        return "Cleared all edits"

    def cmd_trace(self, arg: str) -> str:
        self.trace = parse_switch(arg, self.trace)
        return f"Tracing {'enabled' if self.trace else 'disabled'}"

    def cmd_strict(self, arg: str) -> str:
        self.strict = parse_switch(arg, self.strict)
        return f"Strict matching {'enabled' if self.strict else 'disabled'}"

    def cmd_groups(self, arg: str) -> str:
        groups = self.engine.groups()
        if not groups:
            return "No groups defined"
        return "Groups: " + ", ".join(sorted(groups))

    def cmd_enable(self, arg: str) -> str:
        if not arg:
            raise CommandError("Usage: :enable GROUP")
        self.engine.enable_group(arg)
        return f"Enabled group: {arg}"

    def cmd_disable(self, arg: str) -> str:
        if not arg:
            raise CommandError("Usage: :disable GROUP")
        self.engine.disable_group(arg)
        return f"Disabled group: {arg}"

    def cmd_quit(self, arg: str) -> None:
        self.running = False
        return None

    # ============================================================
    # Input lines
    # ============================================================

    def add_edits(self, line: str) -> str:
        """Parse edit definitions and add them to the engine. Raises CommandError."""
        if self.current_group:
            line = f"[{self.current_group}]\n{line}"
        before = len(self.engine)
        try:
            self.engine.load_dsl(line)
        except Exception as e:
            raise CommandError(f"Error: {e}") from e
        added = len(self.engine) - before
        if not added:
            raise CommandError("Error: failed to parse edit")
        return f"Added {added} edit(s)"

    def rewrite_line(self, line: str) -> str:
        """Parse, rewrite and deparse one expression. Raises CommandError."""
        try:
            expr = parse_expr(line)
            result, trace = self.engine.apply(expr, trace=True, strict=self.strict)
        except Exception as e:
            raise CommandError(f"Error: {e}") from e
        output = deparse(result)
        if self.trace and trace:
            output += "\n" + trace.format("edits")
        return output

    def evaluate(self, line: str) -> Optional[Reply]:
        """
        Process a single line of input.

        Returns a Reply, or None for blank and comment lines. Lines with
        an unquoted ``<-`` define edits.
        """
        line = line.strip()
        if not line or line.startswith("#"):
            return None
        if line.startswith(":"):
            kind, handler = "command", self.run_command
        elif find_assignment(line) >= 0:
            kind, handler = "edit", self.add_edits
        elif line.startswith("[") and line.endswith("]"):
            self.current_group = line[1:-1].strip() or None
            return Reply(f"Group: {self.current_group}", "group")
        else:
            kind, handler = "expression", self.rewrite_line
        try:
            return Reply(handler(line), kind)
        except CommandError as e:
            return Reply(str(e), kind, ok=False)

    def process_line(self, line: str) -> Optional[str]:
        """Process a single line of input and return the text to show."""
        reply = self.evaluate(line)
        return reply.text if reply is not None else None

    # ============================================================
    # Interactive loop
    # ============================================================

    def load_history(self):
        if self.history_file is not None:
            try:
                readline.read_history_file(self.history_file)
            except OSError:
                pass
            readline.set_history_length(1000)

    def save_history(self):
        if self.history_file is not None:
            try:
                readline.write_history_file(self.history_file)
            except OSError:
                pass

    def read_input(self) -> Optional[str]:
        """
        Read one complete input, continuing while parentheses are open.

        Returns None when the input was discarded.
        """
        prompt = "recast> "
        while True:
            line = input(prompt)
            self.multi_line_buffer = (
                f"{self.multi_line_buffer}\n{line}" if self.multi_line_buffer else line)
            depth = count_parens(self.multi_line_buffer)
            if depth > 0:
                prompt = "...... "
                continue
            text, self.multi_line_buffer = self.multi_line_buffer, ""
            if depth < 0:
                print("Error: Unbalanced parentheses (too many closing)")
                return None
            return text

    def run(self):
        """Run the REPL loop."""
        self.load_history()
        print("RECAST - Rewriting Expression Calls And Sub-Trees")
        print("Type :help for help, :quit to exit")
        print()

        while self.running:
            try:
                text = self.read_input()
            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                if self.multi_line_buffer:
                    print("\nInput cancelled")
                    self.multi_line_buffer = ""
                else:
                    print()
                continue
            if text is None:
                continue
            message = self.process_line(text)
            if message:
                print(message)

        self.save_history()


class ScriptRunner:
    """Runs scripts, single expressions and stdin through a session."""

    def __init__(self):
        self.repl = RecastREPL()

    def run_lines(self, lines: Iterable[str], source: Optional[str] = None,
                  quiet: bool = False, base: Optional[Path] = None) -> int:
        """
        Feed lines to the session, printing rewritten expressions.

        Args:
            lines: Input lines
            source: Name used in error messages
            quiet: If True, don't print expression results
            base: Directory that relative :load paths resolve against

        Returns:
            Exit code: 0 on success, 1 at the first failing line
        """
        for lineno, raw in enumerate(lines, 1):
            line = raw.strip()
            if base is not None and line.startswith(":load "):
                target = Path(line[len(":load "):].strip())
                if not target.is_absolute():
                    line = f":load {base / target}"

            reply = self.repl.evaluate(line)
            if reply is None:
                continue
            if not reply.ok:
                where = f"{source}:{lineno}: " if source else ""
                print(f"{where}{reply.text}", file=sys.stderr)
                return 1
            if reply.kind == "expression" and not quiet:
                print(reply.text)
        return 0

    def run_script(self, path: Path, quiet: bool = False) -> int:
        """Run a script file. :load paths are relative to the script."""
        try:
            lines = path.read_text().splitlines()
        except OSError as e:
            print(f"Error reading {path}: {e}", file=sys.stderr)
            return 1
        return self.run_lines(lines, source=str(path), quiet=quiet, base=path.parent)

    def run_expression(self, expr_str: str) -> int:
        """Rewrite a single expression (or run a single command)."""
        reply = self.repl.evaluate(expr_str)
        if reply is None:
            return 0
        if not reply.ok:
            print(reply.text, file=sys.stderr)
            return 1
        if reply.text:
            print(reply.text)
        return 0

    def run_stdin(self) -> int:
        """Filter mode: one input per line from stdin."""
        return self.run_lines(sys.stdin)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="recast",
        description="RECAST - Rewriting Expression Calls And Sub-Trees",
        epilog="Examples:\n"
               "  recast                                   Start REPL\n"
               "  recast script.recast                     Run script\n"
               "  recast -r binning.edits -e 'y ~ cut(x, breaks = 3)'\n"
               "  recast -x 'cut$breaks <- c(0, 1, 3)' -e 'y ~ cut(x, breaks = 3)'\n"
               "  echo 'y ~ cut(x, 3)' | recast -r binning.edits   Filter mode\n",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("script", nargs="?", help="Script file to run (.recast)")
    parser.add_argument("-r", "--edits", action="append", default=[], metavar="FILE",
                        help="Load edits from a .edits or .json file (repeatable)")
    parser.add_argument("-x", "--edit", action="append", default=[], metavar="EDIT",
                        help="Add an edit such as 'cut$breaks <- c(0, 1, 3)' (repeatable)")
    parser.add_argument("-e", "--expr", help="Rewrite a single expression")
    parser.add_argument("-t", "--trace", action="store_true",
                        help="Show the edits applied to each expression")
    parser.add_argument("--strict", action="store_true",
                        help="Fail when an edit target also names an argument symbol")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Suppress status messages")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main():
    """Main entry point."""
    args = build_parser().parse_args()

    runner = ScriptRunner()
    session = runner.repl
    session.trace = args.trace
    session.strict = args.strict

    for edits_file in args.edits:
        try:
            message = session.cmd_load(edits_file)
        except CommandError as e:
            print(e, file=sys.stderr)
            sys.exit(1)
        if not args.quiet:
            print(message, file=sys.stderr)

    for edit_line in args.edit:
        try:
            session.add_edits(edit_line)
        except CommandError as e:
            print(f"{e} in {edit_line!r}", file=sys.stderr)
            sys.exit(1)

    if args.script:
        sys.exit(runner.run_script(Path(args.script), quiet=args.quiet))
    elif args.expr:
        sys.exit(runner.run_expression(args.expr))
    elif not sys.stdin.isatty():
        sys.exit(runner.run_stdin())
    else:
        session.run()


if __name__ == "__main__":
    main()
