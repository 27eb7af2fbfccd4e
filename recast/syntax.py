"""
Surface syntax for RECAST: parsing, deparsing and the expression builder.

RECAST - Rewriting Expression Calls And Sub-Trees

Expressions are written the way a model formula or call is typed at an
R prompt:

    price ~ color + cut(carat, breaks = c(0, 1, 2, 3, 4, 5))
    lm(log(price) ~ stats::poly(carat, 2), data = diamonds)

Operator precedence, lowest first:

    ~            (unary and binary)
    | ||
    & &&
    !            (unary)
    == != < > <= >=
    + -
    * /
    %any% |>
    :
    + -          (unary)
    ^            (right associative)
    $ @
    f() x[] x[[]]
    :: :::

Parentheses are kept in the tree as a call to ``(``, so deparsing a
parsed expression gives back the same layout.
"""

import math
import re
from typing import List, Optional, Tuple, Union

from .expr import (
    Call, Formula, Environment, Text, ExprType, ParseError, InvalidExpression,
    as_expr, check_expr,
)


# ============================================================
# Tokenizer
# ============================================================

# Token kinds
NUM, STR, SYM, OP, EOF = "num", "str", "sym", "op", "eof"

_NUMBER = re.compile(r"0[xX][0-9a-fA-F]+L?|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?L?")
_IDENT = re.compile(r"(?:[A-Za-z]|\.(?![0-9]))[A-Za-z0-9._]*")
_SPECIAL_OP = re.compile(r"%[^%\n]*%")
_PUNCTUATION = [
    "<<-", "->>", "<-", "->",
    ":::", "::", "[[", "|>", "<=", ">=", "==", "!=", "&&", "||",
    "+", "-", "*", "/", "^", "~", "!", "&", "|", "<", ">", "=",
    ":", "$", "@", "(", ")", "[", "]", ",",
]

_KEYWORDS = {
    "TRUE": True,
    "FALSE": False,
    "NULL": None,
    "Inf": math.inf,
    "NaN": math.nan,
}

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0", "\\": "\\", '"': '"', "'": "'", "`": "`"}


class Token:
    """A lexical token with its source position."""

    __slots__ = ('kind', 'value', 'pos')

    def __init__(self, kind: str, value, pos: int):
        self.kind = kind
        self.value = value
        self.pos = pos

    def is_op(self, *ops: str) -> bool:
        return self.kind == OP and self.value in ops

    def __repr__(self) -> str:
        return f"Token({self.kind}, {self.value!r}, {self.pos})"


def _read_quoted(text: str, start: int) -> Tuple[str, int]:
    """Read a quoted string starting at text[start]. Returns (value, end)."""
    quote = text[start]
    i = start + 1
    chars = []
    while i < len(text):
        c = text[i]
        if c == "\\" and i + 1 < len(text):
            chars.append(_ESCAPES.get(text[i + 1], text[i + 1]))
            i += 2
            continue
        if c == quote:
            return "".join(chars), i + 1
        chars.append(c)
        i += 1
    raise ParseError(f"Unterminated string starting at position {start}")


def _number_value(lexeme: str) -> Union[int, float]:
    integer = lexeme.endswith("L")
    if integer:
        lexeme = lexeme[:-1]
    if lexeme[:2].lower() == "0x":
        return int(lexeme, 16)
    if integer or not any(c in lexeme for c in ".eE"):
        return int(float(lexeme)) if integer else int(lexeme)
    return float(lexeme)


def tokenize(text: str) -> List[Token]:
    """
    Split expression text into tokens.

    Examples:
        tokenize("f(x, a = 1)") -> [sym f, op (, sym x, op ,, sym a, op =, num 1, op ), eof]
    """
    tokens = []
    i = 0
    while i < len(text):
        c = text[i]
        if c.isspace():
            i += 1
            continue
        if c == "#":
            # Comment runs to end of line
            while i < len(text) and text[i] != "\n":
                i += 1
            continue
        m = _NUMBER.match(text, i)
        if m and (c.isdigit() or c == "."):
            tokens.append(Token(NUM, _number_value(m.group()), i))
            i = m.end()
            continue
        m = _IDENT.match(text, i)
        if m:
            word = m.group()
            if word in _KEYWORDS:
                tokens.append(Token(NUM, _KEYWORDS[word], i))
            else:
                tokens.append(Token(SYM, word, i))
            i = m.end()
            continue
        if c in "\"'":
            value, end = _read_quoted(text, i)
            tokens.append(Token(STR, value, i))
            i = end
            continue
        if c == "`":
            value, end = _read_quoted(text, i)
            tokens.append(Token(SYM, value, i))
            i = end
            continue
        if c == "%":
            m = _SPECIAL_OP.match(text, i)
            if not m:
                raise ParseError(f"Unterminated %operator% at position {i}")
            tokens.append(Token(OP, m.group(), i))
            i = m.end()
            continue
        for punct in _PUNCTUATION:
            if text.startswith(punct, i):
                tokens.append(Token(OP, punct, i))
                i += len(punct)
                break
        else:
            raise ParseError(f"Unexpected character {c!r} at position {i}")
    tokens.append(Token(EOF, None, len(text)))
    return tokens


# ============================================================
# Parser
# ============================================================

# Binary operators: (left binding power, right binding power)
BINARY_OPS = {
    "~": (10, 11),
    "|": (20, 21), "||": (20, 21),
    "&": (30, 31), "&&": (30, 31),
    "==": (50, 51), "!=": (50, 51), "<": (50, 51),
    ">": (50, 51), "<=": (50, 51), ">=": (50, 51),
    "+": (60, 61), "-": (60, 61),
    "*": (70, 71), "/": (70, 71),
    "|>": (80, 81),
    ":": (90, 91),
    "^": (110, 110),
    "$": (120, 121), "@": (120, 121),
}

# Assignment is a statement, never part of a formula or call
ASSIGNMENT_OPS = {"<-", "<<-", "->", "->>"}

# Prefix operators: right binding power
UNARY_OPS = {"~": 10, "!": 40, "-": 100, "+": 100}

POSTFIX_POWER = 130
RIGHT_ASSOCIATIVE = {"^"}
TIGHT_OPS = {"^", ":", "$", "@", "::", ":::"}


def _binary_powers(op: str) -> Optional[Tuple[int, int]]:
    if op in BINARY_OPS:
        return BINARY_OPS[op]
    if op.startswith("%") and op.endswith("%") and len(op) >= 2:
        return (80, 81)
    return None


class _Parser:
    """Pratt parser over a token list."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.pos = 0

    def peek(self) -> Token:
        return self.tokens[self.pos]

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.kind != EOF:
            self.pos += 1
        return token

    def expect(self, op: str) -> Token:
        token = self.advance()
        if not token.is_op(op):
            raise self.error(token, f"expected '{op}'")
        return token

    def error(self, token: Token, message: str) -> ParseError:
        found = "end of input" if token.kind == EOF else repr(token.value)
        return ParseError(f"{message} but found {found} at position {token.pos} in {self.text!r}")

    def parse(self) -> ExprType:
        if self.peek().kind == EOF:
            raise ParseError("Empty expression")
        expr = self.expression(0)
        token = self.peek()
        if token.kind != EOF:
            raise self.error(token, "expected end of expression")
        return expr

    def expression(self, min_power: int) -> ExprType:
        lhs = self.prefix()
        while True:
            token = self.peek()
            if token.kind != OP:
                break
            if token.value in ASSIGNMENT_OPS:
                raise ParseError(
                    f"Assignment '{token.value}' at position {token.pos} "
                    f"is not allowed in an expression: {self.text!r}")
            if token.value in ("(", "[", "[["):
                if POSTFIX_POWER < min_power:
                    break
                self.advance()
                lhs = self.postfix(lhs, token.value)
                continue
            powers = _binary_powers(token.value)
            if powers is None:
                break
            left, right = powers
            if left < min_power:
                break
            self.advance()
            if token.value in ("$", "@"):
                rhs = self.member_name()
            else:
                rhs = self.expression(right)
            lhs = Call(token.value, [lhs, rhs])
        return lhs

    def prefix(self) -> ExprType:
        token = self.advance()
        if token.kind == NUM:
            return token.value
        if token.kind == STR:
            return Text(token.value)
        if token.kind == SYM:
            return self.maybe_namespaced(token.value)
        if token.is_op("("):
            inner = self.expression(0)
            self.expect(")")
            return Call("(", [inner])
        if token.kind == OP and token.value in UNARY_OPS:
            operand = self.expression(UNARY_OPS[token.value])
            return Call(token.value, [operand])
        raise self.error(token, "expected an expression")

    def maybe_namespaced(self, name: str) -> ExprType:
        token = self.peek()
        if token.is_op("::", ":::"):
            self.advance()
            member = self.advance()
            if member.kind not in (SYM, STR):
                raise self.error(member, f"expected a name after '{token.value}'")
            return Call(token.value, [name, member.value])
        return name

    def member_name(self) -> str:
        token = self.advance()
        if token.kind in (SYM, STR):
            return token.value
        raise self.error(token, "expected a name after '$'")

    def postfix(self, target: ExprType, opener: str) -> Call:
        closer = ")" if opener == "(" else "]"
        names, args = self.arguments(closer)
        if opener == "[[":
            self.expect("]")
        if opener == "(":
            if not isinstance(target, (str, Call)):
                raise ParseError(f"Cannot call a constant: {deparse(target)}")
            return Call(target, args, names)
        return Call(opener, [target] + args, [None] + names)

    def arguments(self, closer: str) -> Tuple[List[Optional[str]], List[ExprType]]:
        names: List[Optional[str]] = []
        args: List[ExprType] = []
        if self.peek().is_op(closer):
            self.advance()
            return names, args
        while True:
            name = None
            token = self.peek()
            if token.kind in (SYM, STR) and self.tokens[self.pos + 1].is_op("="):
                name = token.value
                self.advance()
                self.advance()
            args.append(self.expression(0))
            names.append(name)
            token = self.advance()
            if token.is_op(closer):
                return names, args
            if not token.is_op(","):
                raise self.error(token, f"expected ',' or '{closer}'")


def parse_expr(text: str) -> ExprType:
    """
    Parse expression text into a tree.

    Examples:
        parse_expr("x")              -> "x"
        parse_expr("2L")             -> 2
        parse_expr("f(x, a = 1)")    -> Call("f", ["x", 1], names=[None, "a"])
        parse_expr("y ~ x + z")      -> Call("~", ["y", Call("+", ["x", "z"])])

    Raises:
        ParseError: if the text is not a single well-formed expression
    """
    if not isinstance(text, str):
        raise ParseError(f"Expected expression text, got {type(text).__name__}")
    return _Parser(text).parse()


# ============================================================
# Deparser
# ============================================================

_SYNTACTIC_NAME = re.compile(r"^(?:[A-Za-z]|\.(?![0-9]))[A-Za-z0-9._]*$")
_RESERVED = {
    "if", "else", "repeat", "while", "function", "for", "next", "break",
    "in", "TRUE", "FALSE", "NULL", "Inf", "NaN",
}
_ATOMIC_PRECEDENCE = 1000


def deparse_symbol(name: str) -> str:
    """Format a symbol, quoting it with backticks when it is not syntactic."""
    if _SYNTACTIC_NAME.match(name) and name not in _RESERVED:
        return name
    escaped = name.replace("\\", "\\\\").replace("`", "\\`")
    return f"`{escaped}`"


def _deparse_text(value: str) -> str:
    escaped = (value.replace("\\", "\\\\").replace('"', '\\"')
               .replace("\n", "\\n").replace("\t", "\\t").replace("\r", "\\r"))
    return f'"{escaped}"'


def _deparse_number(value) -> str:
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Inf" if value > 0 else "-Inf"
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def _is_binary(expr) -> bool:
    return (isinstance(expr, Call) and isinstance(expr.head, str)
            and len(expr.args) == 2 and expr.names == (None, None)
            and _binary_powers(expr.head) is not None)


def _is_unary(expr) -> bool:
    return (isinstance(expr, Call) and isinstance(expr.head, str)
            and len(expr.args) == 1 and expr.names == (None,)
            and expr.head in UNARY_OPS)


def _precedence(expr) -> int:
    if _is_binary(expr):
        return _binary_powers(expr.head)[0]
    if _is_unary(expr):
        return UNARY_OPS[expr.head]
    if isinstance(expr, (int, float)) and not isinstance(expr, bool) and expr < 0:
        return UNARY_OPS["-"]
    return _ATOMIC_PRECEDENCE


def _wrap(expr, needs_parens: bool) -> str:
    text = deparse(expr)
    return f"({text})" if needs_parens else text


def _deparse_args(call: Call) -> str:
    parts = []
    for name, arg in zip(call.names, call.args):
        if name is None:
            parts.append(deparse(arg))
        else:
            parts.append(f"{deparse_symbol(name)} = {deparse(arg)}")
    return ", ".join(parts)


def _deparse_call(call: Call) -> str:
    head = call.head
    if isinstance(head, str):
        if head == "(" and len(call.args) == 1 and call.names == (None,):
            return f"({deparse(call.args[0])})"

        if head in ("::", ":::") and len(call.args) == 2 and all(
                isinstance(a, str) for a in call.args):
            return f"{deparse_symbol(call.args[0])}{head}{deparse_symbol(call.args[1])}"

        if _is_binary(call):
            power = _binary_powers(head)[0]
            lhs, rhs = call.args
            lhs_power, rhs_power = _precedence(lhs), _precedence(rhs)
            if head in RIGHT_ASSOCIATIVE:
                left_text = _wrap(lhs, lhs_power <= power)
                right_text = _wrap(rhs, rhs_power < power)
            else:
                left_text = _wrap(lhs, lhs_power < power)
                right_text = _wrap(rhs, rhs_power <= power)
            if head in ("$", "@") and isinstance(rhs, (str, Text)):
                right_text = deparse_symbol(rhs if isinstance(rhs, str) else rhs.value)
            if head in TIGHT_OPS:
                return f"{left_text}{head}{right_text}"
            return f"{left_text} {head} {right_text}"

        if _is_unary(call):
            operand = call.args[0]
            return f"{head}{_wrap(operand, _precedence(operand) < UNARY_OPS[head])}"

        if head in ("[", "[[") and call.args and call.names[0] is None:
            target = call.args[0]
            rest = Call(head, call.args[1:], call.names[1:])
            closer = "]" if head == "[" else "]]"
            return f"{_wrap(target, _precedence(target) < POSTFIX_POWER)}{head}{_deparse_args(rest)}{closer}"

        return f"{deparse_symbol(head)}({_deparse_args(call)})"

    head_text = _wrap(head, _precedence(head) < POSTFIX_POWER)
    return f"{head_text}({_deparse_args(call)})"


def deparse(expr: ExprType) -> str:
    """
    Format an expression as text.

    Examples:
        deparse(Call("f", ["x", 1], names=[None, "a"]))  -> "f(x, a = 1)"
        deparse(parse_expr("y~x+cut(z,breaks=c(0,1))"))  -> "y ~ x + cut(z, breaks = c(0, 1))"
        deparse(Call("+", [Call("+", ["a", "b"]), "c"]))  -> "a + b + c"
        deparse(Call("*", [Call("+", ["a", "b"]), "c"]))  -> "(a + b) * c"

    Raises:
        InvalidExpression: if a node is neither a leaf nor a call
    """
    if expr is None:
        return "NULL"
    if isinstance(expr, str):
        return deparse_symbol(expr)
    if isinstance(expr, Text):
        return _deparse_text(expr.value)
    if isinstance(expr, (bool, int, float)):
        return _deparse_number(expr)
    if isinstance(expr, Call):
        return _deparse_call(expr)
    check_expr(expr)
    raise InvalidExpression(f"Cannot deparse {expr!r}")


# ============================================================
# Formulas
# ============================================================

def formula(source: Union[str, ExprType], env: Optional[Environment] = None) -> Formula:
    """
    Build a Formula with an attached environment.

    Args:
        source: Formula text, a ``~`` call, or an existing Formula
        env: Environment to attach. Defaults to a fresh environment,
            or the formula's own environment when source is a Formula.

    Examples:
        f = formula("price ~ carat", env=Environment("diamonds"))
        f.lhs, f.rhs  # => ("price", "carat")
    """
    expr = parse_expr(source) if isinstance(source, str) else source
    if isinstance(expr, Formula):
        return expr if env is None else expr.with_env(env)
    if env is None:
        env = Environment("formula")
    return Formula.from_call(expr, env=env)


# ============================================================
# Expression Builder
# ============================================================

class _ExprBuilder:
    """
    Expression builder for RECAST.

    Examples:
        from recast import E

        # Parse expression text
        expr = E("price ~ color + cut(carat, breaks = c(0, 1, 2))")

        # Build programmatically
        expr = E.call("cut", "carat", breaks=E.c(0, 1, 2))

        # Symbols and string literals
        carat, color = E.syms("carat", "color")
        E.call("factor", color, levels=E.c(E.text("D"), E.text("E")))

        # Formulas carry an environment
        f = E.formula("price ~ carat", env=Environment("diamonds"))
    """

    def __call__(self, s: str) -> ExprType:
        """
        Parse expression text.

        Examples:
            E("x + 1") -> Call("+", ["x", 1])
        """
        return parse_expr(s)

    def call(self, head, *args, **named) -> Call:
        """
        Build a call with positional then named arguments.

        Lists and tuples among the values become ``c(...)`` vectors.

        Examples:
            E.call("cut", "carat", breaks=[0, 1, 2]) -> cut(carat, breaks = c(0, 1, 2))
        """
        values = [as_expr(a) for a in args] + [as_expr(v) for v in named.values()]
        names = [None] * len(args) + list(named)
        return Call(head, values, names)

    def sym(self, name: str) -> str:
        """Create a symbol. Symbols are plain strings."""
        return name

    def syms(self, *names: str) -> Tuple[str, ...]:
        """Create several symbols for unpacking."""
        return names

    def text(self, value: str) -> Text:
        """Create a string literal."""
        return Text(value)

    def c(self, *values) -> Call:
        """Build an R vector: E.c(0, 1, 3) -> c(0, 1, 3)."""
        return as_expr(list(values))

    def formula(self, source: Union[str, ExprType], env: Optional[Environment] = None) -> Formula:
        """Build a Formula; see formula()."""
        return formula(source, env=env)

    def __repr__(self) -> str:
        return "E (expression builder)"


# Singleton instance
E = _ExprBuilder()
