"""
Edit Engine and DSL Loader for RECAST

RECAST - Rewriting Expression Calls And Sub-Trees

This module bundles argument rewrites into named, grouped edits that can
be loaded from external files, supporting both a line DSL and JSON.

DSL Format (.edits files):
    # Comment
    @edit-name: target$arg <- value
    @edit-name "Description text": target$arg <- value

    Examples:
    @coarse-carat "Fewer carat bins": cut$breaks <- c(0, 1, 3, 5)
    @closed-left: cut$right <- FALSE
    @no-labels: cut$labels <- NULL

Target syntax:
    cut            - calls to cut (also base::cut)
    cut|cut2       - calls to either function
    /^cut\\d*$/    - heads matching a regular expression
    *cut*          - heads containing the text (loose)

Value syntax:
    Any expression. NULL removes the argument instead of setting it.

Groups and includes:
    [groupname]            - tag the edits that follow
    :include other.edits   - load another file, relative to this one

JSON Format:
    {
        "name": "binning",
        "description": "Carat binning edits",
        "edits": [
            {"name": "coarse-carat", "target": "cut", "arg": "breaks",
             "value": "c(0, 1, 3, 5)", "tags": ["carat"]},
            or just [target, arg, value]
        ]
    }

Tracing:
    Use EditEngine.apply(expr, trace=True) to see which calls were rewritten.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .expr import Call, ExprType, ParseError, Text, as_expr, check_arg_name
from .matchers import HeadMatcher, TargetType, as_matcher, contains, exact, regex
from .rewriter import PathType, check_unambiguous, find_calls, rewrite_calls
from .syntax import deparse, deparse_symbol, parse_expr

logger = logging.getLogger(__name__)


class _Drop:
    """
    Singleton value meaning "remove the argument".

    Written as NULL in the DSL and null in JSON, following R where
    assigning NULL to a list element deletes it.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "DROP"


# Singleton instance
DROP = _Drop()


# ============================================================
# Edits
# ============================================================

def format_target(matcher: HeadMatcher) -> str:
    """
    Format a matcher in DSL target syntax.

    Raises:
        ValueError: for predicate matchers, which have no text form
    """
    if matcher.kind in ("exact", "contains", "regex"):
        return matcher.description
    raise ValueError(f"Cannot serialize predicate target {matcher.description!r}")


def parse_target(text: str) -> HeadMatcher:
    """
    Parse DSL target syntax into a matcher.

    Examples:
        parse_target("cut")       -> exact("cut")
        parse_target("cut|cut2")  -> exact("cut", "cut2")
        parse_target("/^cut/")    -> regex("^cut")
        parse_target("*cut*")     -> contains("cut")
    """
    text = text.strip()
    if len(text) >= 2 and text.startswith('/') and text.endswith('/'):
        try:
            return regex(text[1:-1])
        except re.error as e:
            raise ParseError(f"Invalid target pattern {text}: {e}") from e
    if len(text) >= 3 and text.startswith('*') and text.endswith('*'):
        return contains(text[1:-1])
    names = [name.strip().strip('`') for name in text.split('|')]
    if not all(names):
        raise ParseError(f"Invalid target: {text!r}")
    return exact(*names)


class Edit:
    """
    One argument rewrite: set (or drop) ``arg`` on calls matching a target.

    Examples:
        edit = Edit("cut", "breaks", [0, 1, 3, 5])
        edit(E("y ~ cut(x, breaks = 3)"))   # => y ~ cut(x, breaks = c(0, 1, 3, 5))

        Edit("cut", "labels")               # drops labels = ... from cut calls
        Edit("cut", "labels", None)         # the same: None is NULL, and NULL drops
    """

    __slots__ = ('matcher', 'arg', 'value')

    def __init__(self, target: TargetType, arg: str, value: Any = DROP):
        if not arg:
            raise ValueError("Edit needs an argument name")
        self.matcher = as_matcher(target)
        self.arg = check_arg_name(arg)
        self.value = DROP if value is None or value is DROP else as_expr(value)

    @property
    def drops(self) -> bool:
        return self.value is DROP

    def transform(self, call: Call) -> Call:
        """Apply this edit to a single matched call."""
        if self.drops:
            return call.without_arg(self.arg)
        return call.with_arg(self.arg, self.value)

    def apply(self, expr: ExprType, on_match=None, strict: bool = False) -> ExprType:
        """Apply this edit to every matching call in expr."""
        if strict:
            check_unambiguous(expr, self.matcher)
        return rewrite_calls(expr, self.matcher, self.transform, on_match)

    def __call__(self, expr: ExprType, **kwargs) -> ExprType:
        return self.apply(expr, **kwargs)

    def to_dsl(self) -> str:
        value = "NULL" if self.drops else deparse(self.value)
        return f"{format_target(self.matcher)}${deparse_symbol(self.arg)} <- {value}"

    def __repr__(self) -> str:
        try:
            return f"Edit<{self.to_dsl()}>"
        except ValueError:
            value = "NULL" if self.drops else deparse(self.value)
            return f"Edit<{self.matcher.description}${self.arg} <- {value}>"


class EditMetadata:
    """Metadata for an edit: name, description and group tags."""

    def __init__(self, name: Optional[str] = None, description: Optional[str] = None,
                 tags: Optional[List[str]] = None):
        self.name = name
        self.description = description
        self.tags = tags or []

    def __repr__(self) -> str:
        if not self.name:
            return "<anonymous>"
        base = f"@{self.name}"
        if self.description:
            base += f" \"{self.description}\""
        return base


def _format_edit_line(edit: Edit, meta: EditMetadata) -> str:
    if meta.name:
        name_part = f"@{meta.name}"
        if meta.description:
            name_part += f" \"{meta.description}\""
        name_part += ": "
    else:
        name_part = ""
    return f"{name_part}{edit.to_dsl()}"


# ============================================================
# DSL Loading
# ============================================================

def find_assignment(line: str) -> int:
    """
    Position of the first ``<-`` outside quotes and backticks, or -1.

    Examples:
        find_assignment("cut$breaks <- 3")   -> 11
        find_assignment('c("<-")')           -> -1
    """
    quote = None
    chars = enumerate(line)
    for i, c in chars:
        if c == '\\':
            next(chars, None)
        elif quote:
            if c == quote:
                quote = None
        elif c in '"\'`':
            quote = c
        elif line.startswith('<-', i):
            return i
    return -1


def parse_edit_line(line: str) -> Optional[Tuple[EditMetadata, Edit]]:
    """
    Parse a single edit line.

    Formats:
        @name: target$arg <- value
        @name "description": target$arg <- value
        target$arg <- value

    Returns: (metadata, edit) or None if the line is not an edit

    Raises:
        ParseError: if the line looks like an edit but is malformed
    """
    line = line.strip()

    # Skip empty lines and comments
    if not line or line.startswith('#'):
        return None

    metadata = EditMetadata()
    if line.startswith('@'):
        match_obj = re.match(r'@([\w.-]+)\s+"([^"]+)":\s*(.+)', line)
        if match_obj:
            metadata.name = match_obj.group(1)
            metadata.description = match_obj.group(2)
            line = match_obj.group(3)
        else:
            match_obj = re.match(r'@([\w.-]+):\s*(.+)', line)
            if match_obj:
                metadata.name = match_obj.group(1)
                line = match_obj.group(2)

    # Must have <- outside any quoted text
    split_at = find_assignment(line)
    if split_at < 0:
        return None

    lhs, value_str = line[:split_at], line[split_at + 2:]
    lhs = lhs.strip()
    if '$' not in lhs:
        raise ParseError(f"Edit target must look like target$arg: {lhs!r}")
    target_str, arg = lhs.rsplit('$', 1)
    arg = arg.strip().strip('`')
    if not arg:
        raise ParseError(f"Edit is missing an argument name: {line!r}")

    matcher = parse_target(target_str)
    value = parse_expr(value_str)
    edit = Edit(matcher, arg, value)
    return (metadata, edit)


def _resolve_include(target: str, base_path: Optional[Path], seen: set) -> Path:
    """Locate an :include target and record it, refusing cycles."""
    path = (base_path / target) if base_path else Path(target)
    key = path.resolve()
    if key in seen:
        raise ValueError(f"Circular include detected: {path}")
    if not path.exists():
        raise FileNotFoundError(f"Include file not found: {path}")
    seen.add(key)
    return path


def load_edits_from_dsl(
    text: str,
    base_path: Optional[Path] = None,
    _included_files: Optional[set] = None
) -> List[Tuple[EditMetadata, Edit]]:
    """
    Load edits from DSL text.

    Besides edit lines, two directives are understood:

        [binning]                 tag the edits that follow with a group
        :include labels.edits     splice in another file's edits

    Include paths resolve against base_path (or the working directory).
    Included edits that carry no group of their own join the group in
    force at the directive.

    Raises:
        ParseError: for a malformed edit line
        FileNotFoundError: for a missing include
        ValueError: for an include cycle
    """
    seen = set() if _included_files is None else _included_files
    edits: List[Tuple[EditMetadata, Edit]] = []
    group: Optional[str] = None

    for raw in text.splitlines():
        line = raw.strip()

        if line.startswith('[') and line.endswith(']'):
            group = line[1:-1].strip() or None
            continue

        directive, _, target = line.partition(' ')
        if directive == ':include':
            target = target.strip()
            if not target:
                continue
            path = _resolve_include(target, base_path, seen)
            logger.debug("including edits from %s", path)
            for meta, edit in load_edits_from_file(path, _included_files=seen):
                if group and not meta.tags:
                    meta.tags.append(group)
                edits.append((meta, edit))
            continue

        parsed = parse_edit_line(line)
        if parsed is None:
            continue
        meta, edit = parsed
        if group and group not in meta.tags:
            meta.tags.append(group)
        edits.append((meta, edit))

    return edits


def load_edits_from_file(
    path: Union[str, Path],
    _included_files: Optional[set] = None
) -> List[Tuple[EditMetadata, Edit]]:
    """
    Load edits from a .edits (DSL) or .json file.

    :include directives in DSL files resolve relative to the
    containing file.
    """
    path = Path(path)
    text = path.read_text()
    seen = {path.resolve()} if _included_files is None else _included_files

    if path.suffix == '.json':
        edits = load_edits_from_json(text)
    else:
        edits = load_edits_from_dsl(text, base_path=path.parent, _included_files=seen)
    logger.debug("loaded %d edit(s) from %s", len(edits), path)
    return edits


def _json_value(value: Any, in_vector: bool = False) -> Any:
    """
    Convert a JSON edit value to an expression.

    Strings are expression text at the top level and string literals
    inside lists; null means DROP.
    """
    if value is None:
        return DROP if not in_vector else None
    if isinstance(value, str):
        if in_vector:
            return Text(value)
        return parse_expr(value)
    if isinstance(value, list):
        return as_expr([_json_value(v, in_vector=True) for v in value])
    if isinstance(value, (bool, int, float)):
        return value
    raise ParseError(f"Unsupported JSON edit value: {value!r}")


def _json_target(target: Any, kind: str) -> HeadMatcher:
    if kind == "exact":
        names = target if isinstance(target, list) else [target]
        return exact(*names)
    if kind == "contains":
        return contains(target)
    if kind == "regex":
        return regex(target)
    raise ParseError(f"Unknown match kind: {kind!r}")


def load_edits_from_json(text: str) -> List[Tuple[EditMetadata, Edit]]:
    """
    Load edits from JSON text.

    Expected format:
        {
            "name": "edit-set-name",
            "description": "optional description",
            "edits": [
                {
                    "name": "edit-name",
                    "description": "...",
                    "target": "cut",            # or ["cut", "cut2"]
                    "match": "exact",           # optional: exact, contains, regex
                    "arg": "breaks",
                    "value": "c(0, 1, 3, 5)",   # text, number, list, or null to drop
                    "tags": ["group1"]          # optional
                },
                or just [target, arg, value]
            ]
        }
    """
    data = json.loads(text)
    edits = []

    for entry in data.get('edits', []):
        if isinstance(entry, dict):
            metadata = EditMetadata(
                name=entry.get('name'),
                description=entry.get('description'),
                tags=entry.get('tags'),
            )
            matcher = _json_target(entry['target'], entry.get('match', 'exact'))
            edit = Edit(matcher, entry['arg'], _json_value(entry.get('value')))
        else:
            metadata = EditMetadata()
            target, arg = entry[0], entry[1]
            value = entry[2] if len(entry) > 2 else None
            edit = Edit(_json_target(target, 'exact'), arg, _json_value(value))
        edits.append((metadata, edit))

    return edits


# ============================================================
# Tracing
# ============================================================

class RewriteStep:
    """A single rewritten call in a trace."""

    def __init__(self, edit_index: int, metadata: EditMetadata, path: PathType,
                 before: ExprType, after: ExprType):
        self.edit_index = edit_index
        self.metadata = metadata
        self.path = path
        self.before = before
        self.after = after

    @property
    def label(self) -> str:
        return self.metadata.name or f"edit[{self.edit_index}]"

    def __repr__(self) -> str:
        return f"{self.label}: {deparse(self.before)} -> {deparse(self.after)}"

    def to_dict(self) -> Dict:
        """Convert step to dictionary for serialization."""
        return {
            "edit_index": self.edit_index,
            "edit_name": self.metadata.name,
            "description": self.metadata.description,
            "path": list(self.path),
            "before": deparse(self.before),
            "after": deparse(self.after),
        }


class RewriteTrace:
    """
    A trace of every call rewritten while applying edits.

    Provides multiple formatting options:
        - Default repr: verbose multi-line format
        - format("compact"): single line showing the edit chain
        - format("edits"): just the edit names applied
        - format("chain"): each rewritten call, before and after
        - to_dict(): JSON-serializable dictionary
    """

    def __init__(self):
        self.steps: List[RewriteStep] = []
        self.initial: ExprType = None
        self.final: ExprType = None

    def add_step(self, step: RewriteStep):
        self.steps.append(step)

    def format(self, style: str = "verbose") -> str:
        """
        Format the trace in different styles.

        Args:
            style: One of "verbose", "compact", "edits", "chain"

        Returns:
            Formatted string representation of the trace.
        """
        if style == "compact":
            labels = [s.label for s in self.steps]
            return f"{deparse(self.initial)} --[{', '.join(labels)}]--> {deparse(self.final)}"

        elif style == "edits":
            labels = self.edits_applied()
            return " -> ".join(labels) if labels else "(no edits applied)"

        elif style == "chain":
            if not self.steps:
                return deparse(self.initial)
            parts = []
            for step in self.steps:
                parts.append(deparse(step.before))
                parts.append(f"  --({step.label})-->")
                parts.append(deparse(step.after))
            return "\n".join(parts)

        else:  # verbose (default)
            return repr(self)

    def __repr__(self) -> str:
        lines = [f"Initial: {deparse(self.initial)}"]
        for i, step in enumerate(self.steps, 1):
            lines.append(f"  {i}. {step}")
        lines.append(f"Final: {deparse(self.final)}")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)

    def __bool__(self) -> bool:
        """True if any call was rewritten."""
        return len(self.steps) > 0

    def to_dict(self) -> Dict:
        """Convert trace to dictionary for JSON serialization."""
        return {
            "initial": deparse(self.initial),
            "final": deparse(self.final),
            "steps": [step.to_dict() for step in self.steps],
            "step_count": len(self.steps),
        }

    def edit_counts(self) -> Dict[str, int]:
        """Count how many calls each edit rewrote."""
        counts: Dict[str, int] = {}
        for step in self.steps:
            counts[step.label] = counts.get(step.label, 0) + 1
        return counts

    def edits_applied(self) -> List[str]:
        """Edit names in order of application, one entry per edit."""
        labels: List[str] = []
        for step in self.steps:
            if not labels or labels[-1] != step.label:
                labels.append(step.label)
        return labels

    def summary(self) -> str:
        if not self.steps:
            return "No rewriting performed"
        counts = self.edit_counts()
        return (f"{len(self.steps)} call(s) rewritten by {len(counts)} edit(s): "
                + ", ".join(f"{name} ({n}x)" for name, n in counts.items()))


# ============================================================
# Edit Engine
# ============================================================

class EditEngine:
    """
    An ordered collection of edits applied to expressions.

    Edits run in the order they were added; each one rewrites the
    whole tree produced by the previous one.

    Example:
        from recast import EditEngine, E

        engine = EditEngine.from_dsl('''
            @coarse "Fewer carat bins": cut$breaks <- c(0, 1, 3, 5)
            @no-labels: cut$labels <- NULL
        ''')
        result = engine(E("price ~ cut(carat, breaks = 5, labels = FALSE)"))
        # => price ~ cut(carat, breaks = c(0, 1, 3, 5))

        result, trace = engine.apply(expr, trace=True)
    """

    def __init__(self):
        self._edits: List[Edit] = []
        self._metadata: List[EditMetadata] = []
        self._edit_names: Dict[str, int] = {}  # Maps name -> index
        self._disabled_groups: set = set()

    def _register(self, metadata: EditMetadata, edit: Edit) -> None:
        self._edits.append(edit)
        self._metadata.append(metadata)
        if metadata.name:
            self._edit_names[metadata.name] = len(self._edits) - 1

    def load_dsl(self, text: str, base_path: Optional[Path] = None) -> 'EditEngine':
        """Load edits from DSL text."""
        for metadata, edit in load_edits_from_dsl(text, base_path=base_path):
            self._register(metadata, edit)
        return self

    def load_json(self, text: str) -> 'EditEngine':
        """Load edits from JSON text, as written by to_json()."""
        for metadata, edit in load_edits_from_json(text):
            self._register(metadata, edit)
        return self

    def load_file(self, path: Union[str, Path]) -> 'EditEngine':
        """Load edits from a file (.edits or .json)."""
        for metadata, edit in load_edits_from_file(path):
            self._register(metadata, edit)
        return self

    def load_edits(self, edits: List[Union[Edit, Tuple]]) -> 'EditEngine':
        """Load edits from Python: Edit objects or (target, arg[, value]) tuples."""
        for edit in edits:
            if not isinstance(edit, Edit):
                edit = Edit(*edit)
            self._register(EditMetadata(), edit)
        return self

    def add_edit(self, target: TargetType, arg: str, value: Any = DROP,
                 name: Optional[str] = None,
                 description: Optional[str] = None,
                 tags: Optional[List[str]] = None) -> 'EditEngine':
        """Add a single edit with optional metadata."""
        self._register(EditMetadata(name=name, description=description, tags=tags),
                       Edit(target, arg, value))
        return self

    def get_edit(self, name: str) -> Optional[Tuple[Edit, EditMetadata]]:
        """Get an edit and its metadata by name."""
        if name in self._edit_names:
            idx = self._edit_names[name]
            return self._edits[idx], self._metadata[idx]
        return None

    def get_metadata(self, index: int) -> EditMetadata:
        return self._metadata[index] if index < len(self._metadata) else EditMetadata()

    # ============================================================
    # Group Management
    # ============================================================

    def disable_group(self, group: str) -> 'EditEngine':
        """Disable all edits in a group."""
        self._disabled_groups.add(group)
        return self

    def enable_group(self, group: str) -> 'EditEngine':
        """Enable all edits in a group."""
        self._disabled_groups.discard(group)
        return self

    def groups(self) -> set:
        """Return all group names used by edits."""
        all_groups = set()
        for meta in self._metadata:
            all_groups.update(meta.tags)
        return all_groups

    def _is_edit_active(self, metadata: EditMetadata, groups: Optional[List[str]] = None) -> bool:
        """Check if an edit should be applied given current group settings.

        Args:
            metadata: The edit's metadata
            groups: If specified, only edits in these groups (and
                    untagged edits) are active. If None, edits in
                    disabled groups are skipped.
        """
        if not metadata.tags:
            return True
        if groups is not None:
            return any(g in groups for g in metadata.tags)
        return not any(g in self._disabled_groups for g in metadata.tags)

    # ============================================================
    # Application
    # ============================================================

    def edits_matching(self, expr: ExprType,
                       groups: Optional[List[str]] = None) -> List[Tuple[EditMetadata, List[Call]]]:
        """
        Find the active edits that would touch an expression.

        Each edit is checked against expr as given, not against the
        output of earlier edits.

        Returns:
            List of (metadata, matched calls) for each edit with a match.
        """
        matching = []
        for edit, metadata in zip(self._edits, self._metadata):
            if not self._is_edit_active(metadata, groups):
                continue
            calls = find_calls(expr, edit.matcher)
            if calls:
                matching.append((metadata, calls))
        return matching

    def apply(
        self,
        expr: ExprType,
        trace: bool = False,
        groups: Optional[List[str]] = None,
        strict: bool = False,
    ):
        """
        Apply every active edit, in order.

        Args:
            expr: Expression to rewrite
            trace: If True, return (result, trace) tuple
            groups: If specified, only use edits from these groups.
                    If None, use all edits except those in disabled groups.
            strict: If True, raise AmbiguousTarget when an edit's target
                    also names an argument symbol

        Returns:
            Rewritten expression, or (expression, trace) if trace=True
        """
        trace_obj = RewriteTrace()
        trace_obj.initial = expr

        current = expr
        for edit_idx, (edit, metadata) in enumerate(zip(self._edits, self._metadata)):
            if not self._is_edit_active(metadata, groups):
                continue

            def on_match(path, before, after, edit_idx=edit_idx, metadata=metadata):
                # Dropping an absent argument leaves the call as it was
                if after is not before:
                    trace_obj.add_step(RewriteStep(edit_idx, metadata, path, before, after))

            before_count = len(trace_obj)
            current = edit.apply(current, on_match=on_match, strict=strict)
            logger.debug("edit %s rewrote %d call(s)",
                         metadata.name or edit_idx, len(trace_obj) - before_count)

        trace_obj.final = current
        if trace:
            return current, trace_obj
        return current

    @property
    def edits(self) -> List[Edit]:
        """Get all loaded edits."""
        return self._edits.copy()

    def clear(self) -> 'EditEngine':
        """Clear all edits."""
        self._edits = []
        self._metadata = []
        self._edit_names = {}
        return self

    # ============================================================
    # Export
    # ============================================================

    def list_edits(self) -> List[str]:
        """List all edits with their metadata in DSL format."""
        return [_format_edit_line(edit, meta)
                for edit, meta in zip(self._edits, self._metadata)]

    def to_dsl(self, name: Optional[str] = None) -> str:
        """
        Export edits to DSL format string, organized by groups.

        Args:
            name: Optional name to include as a comment header
        """
        lines = []
        if name:
            lines.append(f"# {name}")
            lines.append("")

        current_group = None
        for edit, meta in zip(self._edits, self._metadata):
            edit_group = meta.tags[0] if meta.tags else None
            if edit_group != current_group:
                if edit_group:
                    if lines and lines[-1] != "":
                        lines.append("")
                    lines.append(f"[{edit_group}]")
                current_group = edit_group
            lines.append(_format_edit_line(edit, meta))

        return "\n".join(lines)

    def to_dict(self) -> Dict:
        """
        Export edits to a dictionary compatible with load_edits_from_json().
        """
        edits_list = []
        for edit, meta in zip(self._edits, self._metadata):
            matcher = edit.matcher
            if matcher.kind == "exact":
                target = matcher.description.split("|")
                target = target[0] if len(target) == 1 else target
            elif matcher.kind == "contains":
                target = matcher.description[1:-1]
            elif matcher.kind == "regex":
                target = matcher.description[1:-1]
            else:
                raise ValueError(f"Cannot serialize predicate target {matcher.description!r}")

            edit_dict = {
                "target": target,
                "arg": edit.arg,
                "value": None if edit.drops else deparse(edit.value),
            }
            if matcher.kind != "exact":
                edit_dict["match"] = matcher.kind
            if meta.name:
                edit_dict["name"] = meta.name
            if meta.description:
                edit_dict["description"] = meta.description
            if meta.tags:
                edit_dict["tags"] = meta.tags
            edits_list.append(edit_dict)

        return {"edits": edits_list}

    def to_json(self, name: Optional[str] = None, description: Optional[str] = None,
                indent: Optional[int] = 2) -> str:
        """
        Export edits to JSON format string.

        Args:
            name: Optional edit set name
            description: Optional edit set description
            indent: JSON indentation (None for compact)
        """
        result = self.to_dict()
        if name:
            result["name"] = name
        if description:
            result["description"] = description
        return json.dumps(result, indent=indent)

    def __len__(self) -> int:
        return len(self._edits)

    def __repr__(self) -> str:
        return f"EditEngine({len(self._edits)} edits)"

    def __call__(self, expr: ExprType, **kwargs) -> ExprType:
        """Make engine callable: engine(expr) is shorthand for engine.apply(expr)."""
        return self.apply(expr, **kwargs)

    def __iter__(self):
        """Iterate over (edit, metadata) pairs."""
        return iter(zip(self._edits, self._metadata))

    def __contains__(self, name: str) -> bool:
        return name in self._edit_names

    def __getitem__(self, name: str) -> Tuple[Edit, EditMetadata]:
        if name not in self._edit_names:
            raise KeyError(f"No edit named '{name}'")
        idx = self._edit_names[name]
        return self._edits[idx], self._metadata[idx]

    # Class method constructors for fluent creation
    @classmethod
    def from_dsl(cls, text: str) -> 'EditEngine':
        """Create engine from DSL text."""
        return cls().load_dsl(text)

    @classmethod
    def from_json(cls, text: str) -> 'EditEngine':
        return cls().load_json(text)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'EditEngine':
        """Create engine from file."""
        return cls().load_file(path)

    @classmethod
    def from_edits(cls, edits: List[Union[Edit, Tuple]]) -> 'EditEngine':
        """Create engine from Python edits."""
        return cls().load_edits(edits)

    # Combining engines
    def copy(self) -> 'EditEngine':
        new_engine = EditEngine()
        new_engine._edits = self._edits.copy()
        new_engine._metadata = self._metadata.copy()
        new_engine._edit_names = self._edit_names.copy()
        new_engine._disabled_groups = self._disabled_groups.copy()
        return new_engine

    def __or__(self, other: 'EditEngine') -> 'EditEngine':
        """Concatenate two engines: engine1 | engine2 runs engine1's edits first."""
        result = self.copy()
        for edit, meta in other:
            result._register(meta, edit)
        return result

    def __ior__(self, other: 'EditEngine') -> 'EditEngine':
        """In-place concatenation: engine1 |= engine2."""
        for edit, meta in other:
            self._register(meta, edit)
        return self
