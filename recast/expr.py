"""
Expression model for RECAST.

RECAST - Rewriting Expression Calls And Sub-Trees

Expressions are unevaluated syntax trees. A node is either a leaf or a
call:

    Leaf:  int, float, bool, None (NULL), str (a symbol), Text (a string literal)
    Call:  Call(head, args, names)

Formulas are calls to ``~`` that additionally carry the environment in
which their variables are meant to be resolved. The environment rides
alongside the tree and is copied whenever a formula node is rebuilt.

All nodes are immutable: every modifying operation returns a new node.
"""

from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union


# ============================================================
# Errors
# ============================================================

class RecastError(Exception):
    """Base class for all RECAST errors."""


class InvalidExpression(RecastError, TypeError):
    """Raised when a value is neither a recognized leaf nor a call."""


class AmbiguousTarget(RecastError, ValueError):
    """Raised when a target also names a symbol used as an argument."""


class ParseError(RecastError, ValueError):
    """Raised for malformed expression text or edit lines."""


# ============================================================
# Leaves
# ============================================================

class Text:
    """
    A string literal leaf.

    Plain Python strings are symbols (variable references), so string
    constants such as ``"left"`` in ``cut(x, labels = "left")`` are
    wrapped in Text to keep the two apart.

    Examples:
        Text("a") == Text("a")   # => True
        Text("a") == "a"         # => False
    """

    __slots__ = ('value',)

    def __init__(self, value: str):
        if not isinstance(value, str):
            raise InvalidExpression(f"Text value must be a str, got {type(value).__name__}")
        self.value = value

    def __eq__(self, other):
        if isinstance(other, Text):
            return self.value == other.value
        return False

    def __hash__(self):
        return hash(('Text', self.value))

    def __repr__(self) -> str:
        return f"Text({self.value!r})"


# Leaf types other than None
LEAF_TYPES = (bool, int, float, str, Text)


# ============================================================
# Calls
# ============================================================

def check_arg_name(name) -> str:
    """Return name if it is a non-empty str, else raise InvalidExpression."""
    if not isinstance(name, str) or not name:
        raise InvalidExpression(f"Argument name must be a non-empty str, got {name!r}")
    return name


class Call:
    """
    A call node: a head applied to ordered, optionally named arguments.

    Arguments can be accessed by position or by name:

        call = Call("cut", ["carat"], names=[None])
        call = call.with_arg("breaks", Call("c", [0, 1, 2]))
        call[0]             # => "carat"
        call["breaks"]      # => Call("c", ...)
        call.get("labels")  # => None
        "breaks" in call    # => True
        len(call)           # => 2

    Only named arguments are addressed by name. Positional arguments
    are never matched by ``call[name]`` even when they happen to be the
    symbol of that name.

    Every argument must itself be a leaf or a call, so a tree that
    could be built is well formed all the way down.
    """

    __slots__ = ('head', 'args', 'names')

    def __init__(self, head, args: Sequence = (), names: Optional[Sequence[Optional[str]]] = None):
        args = tuple(args)
        if names is None:
            names = (None,) * len(args)
        else:
            names = tuple(names)
        if len(names) != len(args):
            raise InvalidExpression(
                f"Call has {len(args)} arguments but {len(names)} names")
        for name in names:
            if name is not None and not isinstance(name, str):
                raise InvalidExpression(f"Argument names must be str or None, got {name!r}")
        if head is None or not (isinstance(head, (str, Call))):
            raise InvalidExpression(f"Call head must be a symbol or a call, got {head!r}")
        for arg in args:
            check_expr(arg)
        self.head = head
        self.args = args
        self.names = names

    # --------------------------------------------------------
    # Construction helpers
    # --------------------------------------------------------

    def _rebuild(self, head, args, names) -> 'Call':
        """Build a node of the same kind. Subclasses carry their metadata."""
        return Call(head, args, names)

    def with_children(self, args: Sequence) -> 'Call':
        """Return a copy with new argument values, keeping head and names."""
        return self._rebuild(self.head, args, self.names)

    def with_arg(self, name: str, value) -> 'Call':
        """
        Return a copy with the named argument set to value.

        Overwrites the first argument of that name if present, otherwise
        appends a new named argument. Other arguments keep their order.
        """
        check_arg_name(name)
        index = self.index_of(name)
        args = list(self.args)
        names = list(self.names)
        if index is None:
            args.append(value)
            names.append(name)
        else:
            args[index] = value
        return self._rebuild(self.head, args, names)

    def without_arg(self, name: str) -> 'Call':
        """Return a copy with every argument of that name removed."""
        check_arg_name(name)
        kept = [(n, a) for n, a in zip(self.names, self.args) if n != name]
        if len(kept) == len(self.args):
            return self
        return self._rebuild(self.head, [a for _, a in kept], [n for n, _ in kept])

    # --------------------------------------------------------
    # Access
    # --------------------------------------------------------

    def index_of(self, name: str) -> Optional[int]:
        """Position of the first argument with this name, or None."""
        for i, arg_name in enumerate(self.names):
            if arg_name == name:
                return i
        return None

    def get(self, name: str, default=None):
        """Get a named argument with optional default."""
        index = self.index_of(name)
        if index is None:
            return default
        return self.args[index]

    def keys(self) -> List[str]:
        """Names of the named arguments, in order."""
        return [n for n in self.names if n is not None]

    def items(self) -> List[Tuple[Optional[str], Any]]:
        """(name, value) pairs for every argument. Positional names are None."""
        return list(zip(self.names, self.args))

    def __getitem__(self, key: Union[int, str]):
        if isinstance(key, str):
            index = self.index_of(key)
            if index is None:
                raise KeyError(f"Call has no argument named '{key}'")
            return self.args[index]
        return self.args[key]

    def __contains__(self, name: str) -> bool:
        return self.index_of(name) is not None

    def __len__(self) -> int:
        return len(self.args)

    def __iter__(self) -> Iterator:
        """Iterate over argument values."""
        return iter(self.args)

    # --------------------------------------------------------
    # Comparison and display
    # --------------------------------------------------------

    def __eq__(self, other):
        if type(other) is not type(self):
            return False
        return (self.head == other.head
                and self.args == other.args
                and self.names == other.names)

    def __hash__(self):
        return hash((self.head, self.args, self.names))

    def __repr__(self) -> str:
        from .syntax import deparse
        return f"Call<{deparse(self)}>"


class Formula(Call):
    """
    A ``~`` call carrying the environment its variables resolve in.

    Two-sided formulas have positional args ``(lhs, rhs)``. One-sided
    formulas have ``(rhs,)`` and ``lhs`` is None. Named arguments added
    by an edit ride along after the sides and the node stays a formula.

    Examples:
        env = Environment("global", {"price": [326, 327]})
        f = Formula("price", Call("+", ["color", "clarity"]), env=env)
        f.lhs  # => "price"
        f.env  # => env

    Two formulas are equal when their trees are equal and they share
    the same environment object.
    """

    __slots__ = ('env',)

    def __init__(self, lhs, rhs, env: Optional['Environment'] = None):
        args = (rhs,) if lhs is None else (lhs, rhs)
        super().__init__("~", args)
        self.env = env

    @classmethod
    def _from_parts(cls, args, names, env) -> 'Formula':
        node = cls.__new__(cls)
        Call.__init__(node, "~", args, names)
        node.env = env
        return node

    @staticmethod
    def has_shape(head, names) -> bool:
        """True for a ``~`` head with one or two unnamed sides."""
        return head == "~" and sum(n is None for n in names) in (1, 2)

    @classmethod
    def carrying(cls, call: Call, env: Optional['Environment']) -> Call:
        """
        Attach env to a ``~`` call, keeping any named arguments.

        Calls of another shape come back unchanged.
        """
        if isinstance(call, Formula) and call.env is env:
            return call
        if not cls.has_shape(call.head, call.names):
            return call
        return cls._from_parts(call.args, call.names, env)

    @classmethod
    def from_call(cls, call: Call, env: Optional['Environment'] = None) -> 'Formula':
        """Attach an environment to a plain ``~`` call."""
        if not isinstance(call, Call) or call.head != "~" or len(call.args) not in (1, 2):
            raise InvalidExpression(f"Not a formula call: {call!r}")
        if any(n is not None for n in call.names):
            raise InvalidExpression("Formula sides cannot be named")
        if len(call.args) == 1:
            return cls(None, call.args[0], env=env)
        return cls(call.args[0], call.args[1], env=env)

    def _sides(self) -> List[Any]:
        return [arg for name, arg in zip(self.names, self.args) if name is None]

    @property
    def lhs(self):
        sides = self._sides()
        return sides[0] if len(sides) == 2 else None

    @property
    def rhs(self):
        return self._sides()[-1]

    def to_call(self) -> Call:
        """The bare ``~`` call, without environment."""
        return Call("~", self.args, self.names)

    def with_env(self, env: Optional['Environment']) -> 'Formula':
        return Formula._from_parts(self.args, self.names, env)

    def _rebuild(self, head, args, names) -> Call:
        if self.has_shape(head, names):
            return Formula._from_parts(args, names, self.env)
        # A new head or no sides left: no longer a formula
        return Call(head, args, names)

    def __eq__(self, other):
        return Call.__eq__(self, other) and self.env is other.env

    def __hash__(self):
        return Call.__hash__(self)

    def __repr__(self) -> str:
        from .syntax import deparse
        env = self.env.name if self.env is not None else None
        return f"Formula<{deparse(self)}, env={env}>"


# ============================================================
# Environments
# ============================================================

class Environment:
    """
    A variable-resolution context attached to formulas.

    Environments form a chain through ``parent``. Lookups walk the
    chain; definitions always go to the environment they are made on.
    Environments compare by identity, like R environments.

    Examples:
        base = Environment("base", {"pi": 3.14159})
        env = base.child("analysis", carat=[0.23, 0.21])
        env.lookup("pi")     # => 3.14159
        "carat" in env       # => True
        env.get("missing")   # => None
    """

    __slots__ = ('name', '_bindings', 'parent')

    def __init__(self, name: str = "anonymous", bindings: Optional[Dict[str, Any]] = None,
                 parent: Optional['Environment'] = None):
        self.name = name
        self._bindings: Dict[str, Any] = dict(bindings or {})
        self.parent = parent

    def lookup(self, symbol: str):
        """Resolve a symbol through the chain. Raises KeyError when unbound."""
        env = self
        while env is not None:
            if symbol in env._bindings:
                return env._bindings[symbol]
            env = env.parent
        raise KeyError(f"Symbol '{symbol}' is not bound in environment '{self.name}'")

    def get(self, symbol: str, default=None):
        try:
            return self.lookup(symbol)
        except KeyError:
            return default

    def define(self, symbol: str, value) -> 'Environment':
        """Bind a symbol in this environment. Returns self for chaining."""
        self._bindings[symbol] = value
        return self

    def child(self, name: str = "anonymous", **bindings) -> 'Environment':
        """Create an environment whose parent is this one."""
        return Environment(name, bindings, parent=self)

    def local_symbols(self) -> List[str]:
        return list(self._bindings)

    def __contains__(self, symbol: str) -> bool:
        env = self
        while env is not None:
            if symbol in env._bindings:
                return True
            env = env.parent
        return False

    def __repr__(self) -> str:
        return f"<Environment '{self.name}' ({len(self._bindings)} bindings)>"


# Type alias for any expression node
ExprType = Union[int, float, bool, None, str, Text, Call]


# ============================================================
# Node predicates and coercion
# ============================================================

def is_leaf(exp: Any) -> bool:
    """Check if a value is a leaf: constant, symbol, string literal or NULL."""
    return exp is None or isinstance(exp, LEAF_TYPES)


def is_call(exp: Any) -> bool:
    """Check if a value is a call node (formulas included)."""
    return isinstance(exp, Call)


def is_symbol(exp: Any) -> bool:
    """Check if a value is a symbol (variable or function name)."""
    return isinstance(exp, str)


def check_expr(exp: Any) -> Any:
    """
    Return exp if it is a leaf or a call, else raise InvalidExpression.

    Only the node itself is checked, not its children.
    """
    if is_leaf(exp) or is_call(exp):
        return exp
    raise InvalidExpression(
        f"Expected a leaf or a call, got {type(exp).__name__}: {exp!r}")


def as_expr(value: Any) -> ExprType:
    """
    Coerce a Python value into an expression.

    Expressions pass through unchanged. Lists and tuples become an R
    vector call ``c(...)`` with each element coerced in turn.

    Examples:
        as_expr(5)             # => 5
        as_expr("carat")       # => "carat" (a symbol)
        as_expr([0, 1, 3, 5])  # => Call("c", [0, 1, 3, 5])

    Raises:
        InvalidExpression: for anything else (dicts, sets, objects)
    """
    if isinstance(value, (list, tuple)):
        return Call("c", [as_expr(v) for v in value])
    return check_expr(value)
