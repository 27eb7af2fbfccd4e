#!/usr/bin/env python3
"""
RECAST Feature Demonstration

This script walks through the main features of the RECAST library
using a price model in the style of the diamonds data.
"""

from pathlib import Path
from recast import (
    EditEngine, E, Environment,
    formula, rewrite, newbreaks, update_call, find_calls,
    contains, deparse, AmbiguousTarget,
)


MODEL = "price ~ color + cut(carat, breaks = c(0, 1, 2, 3, 4, 5))"


def section(title: str):
    """Print a section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def demo_basic_usage():
    """Rewrite the breaks of a cut() call nested in a formula."""
    section("Basic Usage")

    env = Environment("diamonds")
    f = formula(MODEL, env=env)
    g = rewrite(f, "cut", "breaks", [0, 1, 3, 5])

    print(f"  before: {deparse(f)}")
    print(f"  after:  {deparse(g)}")
    print(f"  same environment: {g.env is f.env}")

    h = newbreaks(f, [0, 2, 5])
    print(f"  newbreaks: {deparse(h)}")


def demo_model_calls():
    """Edit arguments of the model call itself."""
    section("Model Calls")

    fit = E(f"lm({MODEL}, data = diamonds, weights = w)")
    print(f"  original: {deparse(fit)}")
    print(f"  updated:  {deparse(update_call(fit, data='small', weights=None))}")
    print(f"  cut calls: {[deparse(c) for c in find_calls(fit, 'cut')]}")


def demo_matching():
    """Compare exact, loose and strict matching."""
    section("Head Matching")

    expr = E("price ~ cut(carat, breaks = 3) + cutoff(depth)")
    print(f"  exact:    {deparse(rewrite(expr, 'cut', 'breaks', 5))}")
    print(f"  contains: {deparse(rewrite(expr, contains('cut'), 'breaks', 5))}")

    clash = E("price ~ cut + cut(carat, breaks = 3)")
    try:
        rewrite(clash, "cut", "breaks", 5, strict=True)
    except AmbiguousTarget as e:
        print(f"  strict:   {e}")


def demo_edits_and_groups():
    """Load edits from a file and switch groups."""
    section("Edit Files and Groups")

    engine = EditEngine.from_file(Path(__file__).parent / "binning.edits")
    print(f"  Loaded {len(engine)} edits, groups: {sorted(engine.groups())}")

    f = formula(MODEL)
    for groups in (["coarse"], ["fine"], ["coarse", "labels"]):
        print(f"  {'+'.join(groups):13} {deparse(engine.apply(f, groups=groups))}")


def demo_tracing():
    """Show which calls each edit rewrote."""
    section("Tracing")

    engine = EditEngine.from_dsl('''
        @coarse: cut$breaks <- c(0, 1, 3, 5)
        @no-labels: cut$labels <- NULL
    ''')
    expr = E("price ~ cut(carat, labels = FALSE) + cut(depth, breaks = 4)")
    result, trace = engine(expr, trace=True)

    print(trace)
    print(f"\n  {trace.summary()}")


def main():
    """Run all demonstrations."""
    print("RECAST - Rewriting Expression Calls And Sub-Trees")
    print("Feature Demonstration")

    demo_basic_usage()
    demo_model_calls()
    demo_matching()
    demo_edits_and_groups()
    demo_tracing()

    print("\n" + "="*60)
    print(" Demo complete!")
    print("="*60)


if __name__ == "__main__":
    main()
