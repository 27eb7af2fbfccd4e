"""
Head matchers: deciding which calls a rewrite targets.

A matcher looks at the head of a call, formatted as text (its "head
label"), and says whether the call is one to rewrite:

    exact("cut")          cut(x), base::cut(x)           not cutoff(x)
    exact("cut", "cut2")  either name
    contains("cut")       cut(x), cutoff(x), my_cut(x)
    regex(r"^cut\\d?$")   cut(x), cut2(x)

Plain values are normalized by as_matcher():

    "cut"              -> exact("cut")
    {"cut", "cut2"}    -> exact("cut", "cut2")
    re.compile("cut")  -> regex("cut")
    callable           -> predicate over the head label
"""

import re
from typing import Callable, Collection, Pattern, Union

from .expr import Call
from .syntax import deparse

HeadPredicate = Callable[[str], bool]


class HeadMatcher:
    """
    Callable wrapper around a predicate over head labels.

    Calling the matcher with an expression tells whether it is a call
    whose head satisfies the predicate. matches_symbol() applies the
    same predicate to a bare symbol, which is how strict rewrites find
    arguments that collide with the target name.
    """

    __slots__ = ('predicate', 'description', 'kind')

    def __init__(self, predicate: HeadPredicate, description: str, kind: str = "predicate"):
        self.predicate = predicate
        self.description = description
        self.kind = kind

    def __call__(self, expr) -> bool:
        if not isinstance(expr, Call):
            return False
        return bool(self.predicate(head_label(expr.head)))

    def matches_symbol(self, name: str) -> bool:
        return bool(self.predicate(name))

    def __repr__(self) -> str:
        return f"HeadMatcher({self.description})"


TargetType = Union[str, Collection[str], Pattern, HeadPredicate, HeadMatcher]


def head_label(head) -> str:
    """Format a call head as text: "cut", "stats::cut", "f(x)"."""
    if isinstance(head, str):
        return head
    return deparse(head)


def _bare_name(label: str) -> str:
    """Drop a namespace prefix: "stats::cut" -> "cut"."""
    return label.rsplit("::", 1)[-1].lstrip(":")


# ============================================================
# Matcher Builders
# ============================================================

def exact(*names: str) -> HeadMatcher:
    """
    Match heads equal to one of the names.

    A namespaced head ``pkg::fn`` also matches the bare name ``fn``.

    Examples:
        exact("cut")           # cut(x), base::cut(x)
        exact("cut", "findInterval")
    """
    if not names:
        raise ValueError("exact() needs at least one name")
    allowed = frozenset(names)

    def predicate(label: str) -> bool:
        return label in allowed or _bare_name(label) in allowed

    return HeadMatcher(predicate, "|".join(names), kind="exact")


def contains(fragment: str) -> HeadMatcher:
    """
    Match heads whose label contains fragment anywhere.

    This is the loose test of grepping the deparsed head. It also
    accepts unrelated functions that share the fragment, so it is
    opt-in rather than the default.
    """
    if not fragment:
        raise ValueError("contains() needs a non-empty fragment")

    def predicate(label: str) -> bool:
        return fragment in label

    return HeadMatcher(predicate, f"*{fragment}*", kind="contains")


def regex(pattern: Union[str, Pattern]) -> HeadMatcher:
    """Match heads where re.search(pattern, label) succeeds."""
    compiled = re.compile(pattern) if isinstance(pattern, str) else pattern

    def predicate(label: str) -> bool:
        return compiled.search(label) is not None

    return HeadMatcher(predicate, f"/{compiled.pattern}/", kind="regex")


def as_matcher(target: TargetType) -> HeadMatcher:
    """
    Normalize a target into a HeadMatcher.

    Args:
        target: A HeadMatcher, a name, a collection of names, a compiled
            regex, or a callable taking the head label.

    Raises:
        TypeError: for any other kind of target
    """
    if isinstance(target, HeadMatcher):
        return target
    if isinstance(target, str):
        return exact(target)
    if isinstance(target, re.Pattern):
        return regex(target)
    if isinstance(target, (set, frozenset, list, tuple)):
        if not all(isinstance(name, str) for name in target):
            raise TypeError(f"Target names must be strings: {target!r}")
        return exact(*sorted(target) if isinstance(target, (set, frozenset)) else target)
    if callable(target):
        description = getattr(target, "__name__", "predicate")
        return HeadMatcher(target, description)
    raise TypeError(f"Unsupported target: {target!r}")
