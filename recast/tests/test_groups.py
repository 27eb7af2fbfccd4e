"""Tests for named edit sets (groups)."""

import pytest
from recast import EditEngine, E, deparse


class TestGroupParsing:
    """Tests for parsing edits with group syntax."""

    def test_parse_group_declaration(self):
        """Group declaration assigns tags to subsequent edits."""
        engine = EditEngine.from_dsl('''
            [binning]
            @coarse: cut$breaks <- c(0, 1, 3, 5)
            @closed-left: cut$right <- FALSE
        ''')

        assert "binning" in engine._metadata[0].tags
        assert "binning" in engine._metadata[1].tags

    def test_multiple_groups(self):
        """Multiple group declarations work correctly."""
        engine = EditEngine.from_dsl('''
            [binning]
            @coarse: cut$breaks <- c(0, 1, 3, 5)

            [labels]
            @no-labels: cut$labels <- NULL
        ''')

        assert "binning" in engine._metadata[0].tags
        assert "labels" in engine._metadata[1].tags
        assert "binning" not in engine._metadata[1].tags

    def test_edits_without_group(self):
        """Edits before any group have no group tags."""
        engine = EditEngine.from_dsl('''
            @ungrouped: cut$breaks <- 3

            [grouped]
            @grouped-edit: log$base <- 2
        ''')

        assert engine._metadata[0].tags == []
        assert "grouped" in engine._metadata[1].tags

    def test_groups_method(self):
        """groups() returns all group names."""
        engine = EditEngine.from_dsl('''
            [binning]
            cut$breaks <- 3
            [labels]
            cut$labels <- NULL
        ''')

        assert engine.groups() == {"binning", "labels"}


class TestGroupToggling:
    """Tests for enabling and disabling groups."""

    def setup_method(self):
        self.engine = EditEngine.from_dsl('''
            @always: cut$right <- FALSE

            [binning]
            @coarse: cut$breaks <- c(0, 5)

            [labels]
            @no-labels: cut$labels <- NULL
        ''')
        self.expr = E("cut(x, labels = TRUE)")

    def test_all_enabled(self):
        result = self.engine(self.expr)
        assert deparse(result) == "cut(x, right = FALSE, breaks = c(0, 5))"

    def test_disable_group(self):
        """Disabled groups are skipped."""
        self.engine.disable_group("labels")
        result = self.engine(self.expr)
        assert deparse(result) == "cut(x, labels = TRUE, right = FALSE, breaks = c(0, 5))"

    def test_enable_group(self):
        """Re-enabled groups apply again."""
        self.engine.disable_group("labels")
        self.engine.enable_group("labels")
        assert "labels" not in deparse(self.engine(self.expr))

    def test_fluent_disable_enable(self):
        """Group methods return the engine."""
        engine = self.engine.disable_group("binning").disable_group("labels")
        assert engine is self.engine
        assert deparse(engine(self.expr)) == "cut(x, labels = TRUE, right = FALSE)"

    def test_explicit_groups(self):
        """groups= selects groups; untagged edits stay active."""
        result = self.engine.apply(self.expr, groups=["binning"])
        assert deparse(result) == "cut(x, labels = TRUE, right = FALSE, breaks = c(0, 5))"

    def test_explicit_groups_overrides_disabled(self):
        """Explicit groups take precedence over disabled groups."""
        self.engine.disable_group("binning")
        result = self.engine.apply(self.expr, groups=["binning"])
        assert "breaks" in deparse(result)

    def test_edits_matching_with_groups(self):
        self.engine.disable_group("binning")
        names = [meta.name for meta, _ in self.engine.edits_matching(self.expr)]
        assert names == ["always", "no-labels"]
        names = [meta.name for meta, _ in self.engine.edits_matching(self.expr, groups=["binning"])]
        assert names == ["always", "coarse"]

    def test_trace_shows_only_active_edits(self):
        self.engine.disable_group("labels")
        _, trace = self.engine.apply(self.expr, trace=True)
        assert trace.edits_applied() == ["always", "coarse"]


class TestGroupScenarios:
    """Practical uses of groups."""

    def test_alternative_binnings(self):
        """Groups keep alternative binnings in one file."""
        engine = EditEngine.from_dsl('''
            [coarse]
            cut$breaks <- c(0, 1, 5)
            [fine]
            cut$breaks <- c(0, 0.5, 1, 2, 5)
        ''')
        f = E("price ~ cut(carat, breaks = 3)")
        coarse = engine.apply(f, groups=["coarse"])
        fine = engine.apply(f, groups=["fine"])
        assert deparse(coarse) == "price ~ cut(carat, breaks = c(0, 1, 5))"
        assert deparse(fine) == "price ~ cut(carat, breaks = c(0, 0.5, 1, 2, 5))"
