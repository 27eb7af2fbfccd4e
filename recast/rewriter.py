"""
Core rewriter module for expression-tree transformation.

RECAST - Rewriting Expression Calls And Sub-Trees

This module walks expression trees and rewrites the arguments of calls
to a chosen function, rebuilding everything else unchanged. Formula
nodes keep their attached environment through every rebuild.

    f = formula("price ~ color + cut(carat, breaks = c(0, 1, 2, 3, 4, 5))")
    rewrite(f, "cut", "breaks", [0, 1, 3, 5])
    # => price ~ color + cut(carat, breaks = c(0, 1, 3, 5)), same environment
"""

import logging
from typing import Any, Callable, List, Optional, Set, Tuple

from .expr import (
    Call, Formula, ExprType, InvalidExpression, AmbiguousTarget,
    is_leaf, is_call, is_symbol, check_expr, check_arg_name, as_expr,
)
from .matchers import HeadMatcher, TargetType, as_matcher
from .syntax import deparse

logger = logging.getLogger(__name__)

PathType = Tuple[int, ...]
CallTransform = Callable[[Call], ExprType]
MatchCallback = Callable[[PathType, Call, ExprType], None]


# ============================================================
# Single-call edits
# ============================================================

def set_arg(call: Call, name: str, value: Any) -> Call:
    """
    Set a named argument on one call.

    The value is coerced with as_expr(), so Python lists become c(...).
    An existing argument is overwritten in place, a missing one is
    appended after the others.

    Examples:
        set_arg(E("f(x, a = 1)"), "a", 2)   -> f(x, a = 2)
        set_arg(E("f(x)"), "a", 5)          -> f(x, a = 5)
    """
    if not is_call(call):
        raise InvalidExpression(f"set_arg needs a call, got {call!r}")
    return call.with_arg(name, as_expr(value))


def drop_arg(call: Call, name: str) -> Call:
    """Remove a named argument from one call (R's ``x$name <- NULL``)."""
    if not is_call(call):
        raise InvalidExpression(f"drop_arg needs a call, got {call!r}")
    return call.without_arg(name)


def update_call(call: Call, **arguments) -> Call:
    """
    Update top-level arguments of a call, typically a model call.

    Each keyword sets that argument; a value of None drops it.

    Examples:
        fit = E("lm(price ~ carat, data = diamonds)")
        update_call(fit, data="small", weights=None)
        # -> lm(price ~ carat, data = small)
    """
    for name, value in arguments.items():
        call = drop_arg(call, name) if value is None else set_arg(call, name, value)
    return call


# ============================================================
# Tree walking
# ============================================================

def _walk(exp: Any, matcher: HeadMatcher, transform: CallTransform,
          on_match: Optional[MatchCallback], path: PathType) -> ExprType:
    check_expr(exp)
    if is_leaf(exp):
        return exp

    if matcher(exp):
        result = check_expr(transform(exp))
        if on_match is not None:
            on_match(path, exp, result)
        return result

    new_args = []
    changed = False
    for i, child in enumerate(exp.args):
        new_child = _walk(child, matcher, transform, on_match, path + (i,))
        new_args.append(new_child)
        if new_child is not child:
            changed = True
    if not changed:
        return exp
    # with_children keeps names, positions and any formula environment
    return exp.with_children(new_args)


def rewrite_calls(
    expr: ExprType,
    target: TargetType,
    transform: CallTransform,
    on_match: Optional[MatchCallback] = None,
) -> ExprType:
    """
    Apply transform to every call whose head matches target.

    The walk is depth-first and decides at each node before visiting its
    children. Matched calls are replaced by transform(call) and their
    children are not visited. Unmatched calls are rebuilt from their
    rewritten children; subtrees without matches are returned as the
    very same objects.

    Args:
        expr: The tree to rewrite
        target: Anything accepted by as_matcher()
        transform: Receives a matched call, returns its replacement
        on_match: Optional callback(path, before, after) for each match,
            where path holds the argument indices leading from the root

    Returns:
        The rewritten tree. When expr is a Formula, its environment is
        attached to the result for as long as that is still a ``~`` call.

    Raises:
        InvalidExpression: if any node reached is not a leaf or call
    """
    matcher = as_matcher(target)
    result = _walk(check_expr(expr), matcher, transform, on_match, ())
    if isinstance(expr, Formula) and is_call(result):
        result = Formula.carrying(result, expr.env)
    return result


def find_calls(expr: ExprType, target: TargetType) -> List[Call]:
    """
    List the calls a rewrite of target would touch, in depth-first order.

    Like rewrite(), the search does not descend into a matched call.
    """
    found: List[Call] = []
    rewrite_calls(expr, target, lambda call: call,
                  on_match=lambda path, before, after: found.append(before))
    return found


def rewrite(
    expr: ExprType,
    target: TargetType,
    name: str,
    value: Any,
    *,
    strict: bool = False,
) -> ExprType:
    """
    Set argument ``name`` to ``value`` on every call matching target.

    Args:
        expr: Root expression, formula or call
        target: Which calls to edit. A string matches the head exactly,
            a collection is an allow-list, a compiled regex is searched
            in the head label, a callable is a predicate over the head
            label, and a HeadMatcher such as contains("cut") is used as-is.
        name: The argument to set (appended when absent)
        value: Expression or literal; lists and tuples become c(...)
        strict: If True, raise AmbiguousTarget when the target also
            names a symbol used as an argument somewhere in expr

    Returns:
        The rewritten tree. Formula nodes keep their environment.

    Examples:
        f = formula("price ~ color + cut(carat, breaks = c(0, 1, 2, 3, 4, 5))")
        rewrite(f, "cut", "breaks", [0, 1, 3, 5])
        # => price ~ color + cut(carat, breaks = c(0, 1, 3, 5))

        rewrite(E("f(x) + f(y, a = 1)"), "f", "a", 2)
        # => f(x, a = 2) + f(y, a = 2)

    Raises:
        InvalidExpression: if expr or value is not a well-formed expression
            or name is not a non-empty string
        AmbiguousTarget: in strict mode, see above
    """
    check_arg_name(name)
    matcher = as_matcher(target)
    new_value = as_expr(value)
    check_expr(expr)
    if strict:
        check_unambiguous(expr, matcher)

    def on_match(path, before, after):
        logger.debug("set %s on %s at %s", name, deparse(before.head), path)

    return rewrite_calls(expr, matcher, lambda call: call.with_arg(name, new_value), on_match)


def drop_args(expr: ExprType, target: TargetType, name: str) -> ExprType:
    """Remove argument ``name`` from every call matching target."""
    check_arg_name(name)
    return rewrite_calls(expr, target, lambda call: call.without_arg(name))


def newbreaks(formula: ExprType, breaks: Any, target: TargetType = "cut") -> ExprType:
    """
    Replace the breaks of every cut() call inside a formula.

    Examples:
        f = formula("price ~ color + cut(carat, breaks = c(0, 1, 2, 3, 4, 5))")
        newbreaks(f, [0, 1, 3, 5])
        # => price ~ color + cut(carat, breaks = c(0, 1, 3, 5))
    """
    return rewrite(formula, target, "breaks", breaks)


# ============================================================
# Symbol queries
# ============================================================

def symbols(expr: ExprType) -> Set[str]:
    """
    Collect symbols used in argument positions.

    Call heads are not included: in ``cut(carat)`` only ``carat`` is an
    argument symbol. Namespace references (``base::cut``) and member
    names (the ``y`` in ``x$y``) are names rather than variables and
    are skipped too.
    """
    found: Set[str] = set()

    def loop(exp):
        if is_symbol(exp):
            found.add(exp)
        elif is_call(exp):
            if exp.head in ("::", ":::"):
                return
            if is_call(exp.head):
                loop(exp.head)
            args = exp.args[:1] if exp.head in ("$", "@") else exp.args
            for arg in args:
                loop(arg)
        else:
            check_expr(exp)

    loop(expr)
    return found


def free_in(var: str, expr: ExprType) -> bool:
    """
    Check if a symbol appears in an argument position of an expression.

    Examples:
        free_in("carat", E("cut(carat, 3)"))  # => True
        free_in("cut", E("cut(carat, 3)"))    # => False
    """
    return var in symbols(expr)


def check_unambiguous(expr: ExprType, target: TargetType) -> None:
    """
    Raise AmbiguousTarget if target also names an argument symbol.

    A model formula on a data set that has both a column called cut and
    calls to cut() is the typical case.
    """
    matcher = as_matcher(target)
    clashes = sorted(s for s in symbols(expr) if matcher.matches_symbol(s))
    if clashes:
        raise AmbiguousTarget(
            f"Target {matcher.description} also matches argument symbol(s) "
            f"{', '.join(clashes)} in {deparse(expr)}")
