"""
RECAST - Rewriting Expression Calls And Sub-Trees

Rewrite the arguments of calls nested inside model formulas and calls.

Quick Start:
    from recast import formula, rewrite

    f = formula("price ~ color + cut(carat, breaks = c(0, 1, 2, 3, 4, 5))")
    g = rewrite(f, "cut", "breaks", [0, 1, 3, 5])
    # => price ~ color + cut(carat, breaks = c(0, 1, 3, 5))
    g.env is f.env  # => True

Edits can be kept in files and applied in bulk:

    from recast import EditEngine

    engine = EditEngine.from_dsl('''
        @coarse "Fewer carat bins": cut$breaks <- c(0, 1, 3, 5)
        @no-labels: cut$labels <- NULL
    ''')
    g = engine(f)

Target Syntax:
    "cut"               - exact head name (also matches base::cut)
    {"cut", "cut2"}     - any of several names
    re.compile("^cut")  - regular expression over the head
    contains("cut")     - substring of the head (loose)
    callable            - predicate over the head text

Example Edits File (binning.edits):
    # Carat binning
    [carat]
    @coarse "Fewer carat bins": cut$breaks <- c(0, 1, 3, 5)
    @closed-left: cut$right <- FALSE

    [labels]
    @no-labels: cut$labels <- NULL
"""

__version__ = "0.1.0"
__author__ = "spinoza"

# Expression model
from .expr import (
    ExprType,
    Call,
    Formula,
    Text,
    Environment,
    is_leaf,
    is_call,
    check_expr,
    as_expr,
    # Errors
    RecastError,
    InvalidExpression,
    AmbiguousTarget,
    ParseError,
)

# Syntax
from .syntax import (
    E,
    parse_expr,
    deparse,
    formula,
)

# Matchers
from .matchers import (
    HeadMatcher,
    exact,
    contains,
    regex,
    as_matcher,
)

# Core rewriter
from .rewriter import (
    rewrite,
    rewrite_calls,
    find_calls,
    set_arg,
    drop_arg,
    drop_args,
    update_call,
    newbreaks,
    symbols,
    free_in,
    check_unambiguous,
)

# Engine and DSL
from .engine import (
    DROP,
    Edit,
    EditMetadata,
    EditEngine,
    RewriteStep,
    RewriteTrace,
    parse_edit_line,
    load_edits_from_dsl,
    load_edits_from_file,
    load_edits_from_json,
)

# Public API
__all__ = [
    # Version
    "__version__",
    # Expression model
    "ExprType",
    "Call",
    "Formula",
    "Text",
    "Environment",
    "is_leaf",
    "is_call",
    "check_expr",
    "as_expr",
    # Errors
    "RecastError",
    "InvalidExpression",
    "AmbiguousTarget",
    "ParseError",
    # Syntax
    "E",
    "parse_expr",
    "deparse",
    "formula",
    # Matchers
    "HeadMatcher",
    "exact",
    "contains",
    "regex",
    "as_matcher",
    # Core
    "rewrite",
    "rewrite_calls",
    "find_calls",
    "set_arg",
    "drop_arg",
    "drop_args",
    "update_call",
    "newbreaks",
    "symbols",
    "free_in",
    "check_unambiguous",
    # Engine
    "DROP",
    "Edit",
    "EditMetadata",
    "EditEngine",
    "RewriteStep",
    "RewriteTrace",
    "parse_edit_line",
    "load_edits_from_dsl",
    "load_edits_from_file",
    "load_edits_from_json",
]
