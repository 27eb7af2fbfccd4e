"""Tests for edits, the DSL and EditEngine methods."""

import json

import pytest

from recast import E, formula, deparse, contains, Environment
from recast.engine import (
    DROP, Edit, EditEngine, EditMetadata,
    parse_edit_line, parse_target, format_target, find_assignment,
    load_edits_from_dsl, load_edits_from_json,
)
from recast.expr import ParseError, AmbiguousTarget


BINNING = '''
    # Carat binning
    @coarse "Fewer carat bins": cut$breaks <- c(0, 1, 3, 5)
    @closed-left: cut$right <- FALSE
    @no-labels: cut$labels <- NULL
'''


class TestEdit:
    """Tests for single Edit objects."""

    def test_set(self):
        edit = Edit("cut", "breaks", [0, 1, 3, 5])
        result = edit(E("y ~ cut(x, breaks = 3)"))
        assert deparse(result) == "y ~ cut(x, breaks = c(0, 1, 3, 5))"

    def test_drop(self):
        edit = Edit("cut", "labels")
        assert edit.drops
        assert edit(E("cut(x, labels = FALSE)")) == E("cut(x)")

    def test_none_drops(self):
        """None is NULL, and a NULL value removes the argument."""
        edit = Edit("cut", "labels", None)
        assert edit.drops
        assert edit(E("cut(x, labels = FALSE)")) == E("cut(x)")

    def test_requires_arg(self):
        with pytest.raises(ValueError):
            Edit("cut", "")

    def test_to_dsl(self):
        assert Edit("cut", "breaks", [0, 1]).to_dsl() == "cut$breaks <- c(0, 1)"
        assert Edit("cut", "labels").to_dsl() == "cut$labels <- NULL"
        assert Edit(contains("cut"), "k", 1).to_dsl() == "*cut*$k <- 1"

    def test_repr(self):
        assert repr(Edit("cut", "k", 1)) == "Edit<cut$k <- 1>"
        assert "Edit<" in repr(Edit(lambda label: True, "k", 1))

    def test_strict(self):
        edit = Edit("cut", "breaks", 2)
        with pytest.raises(AmbiguousTarget):
            edit(E("f(cut) + cut(x)"), strict=True)

    def test_drop_is_falsy(self):
        assert not DROP
        assert repr(DROP) == "DROP"


class TestTargets:
    """Tests for DSL target syntax."""

    def test_exact(self):
        assert parse_target("cut").kind == "exact"
        assert parse_target("cut|cut2").description == "cut|cut2"

    def test_regex(self):
        m = parse_target("/^cut\\d$/")
        assert m.kind == "regex"
        assert m(E("cut2(x)"))

    def test_contains(self):
        m = parse_target("*cut*")
        assert m.kind == "contains"
        assert m(E("cutoff(x)"))

    def test_bad(self):
        with pytest.raises(ParseError):
            parse_target("cut||")
        with pytest.raises(ParseError):
            parse_target("/[/")

    def test_format_predicate(self):
        from recast import as_matcher
        with pytest.raises(ValueError):
            format_target(as_matcher(lambda label: True))


class TestParseEditLine:
    """Tests for parse_edit_line()."""

    def test_full_line(self):
        meta, edit = parse_edit_line('@coarse "Fewer bins": cut$breaks <- c(0, 1, 3)')
        assert meta.name == "coarse"
        assert meta.description == "Fewer bins"
        assert edit.arg == "breaks"
        assert edit.value == E("c(0, 1, 3)")

    def test_name_only(self):
        meta, edit = parse_edit_line("@closed-left: cut$right <- FALSE")
        assert meta.name == "closed-left"
        assert meta.description is None
        assert edit.value is False

    def test_anonymous(self):
        meta, edit = parse_edit_line("cut$breaks <- 3")
        assert meta.name is None
        assert edit.value == 3

    def test_null_drops(self):
        _, edit = parse_edit_line("cut$labels <- NULL")
        assert edit.value is DROP

    def test_regex_target_with_dollar(self):
        """The argument follows the last $."""
        _, edit = parse_edit_line("/^cut$/$breaks <- 3")
        assert edit.matcher.description == "/^cut$/"
        assert edit.arg == "breaks"

    def test_skip_comments_and_blanks(self):
        assert parse_edit_line("# comment") is None
        assert parse_edit_line("   ") is None
        assert parse_edit_line("cut(x)") is None

    def test_arrow_inside_quotes(self):
        """Only an unquoted <- separates target from value."""
        _, edit = parse_edit_line('cut$labels <- c("a <- b", "c")')
        assert edit.value == E('c("a <- b", "c")')
        assert parse_edit_line('c("<-")') is None
        assert find_assignment('c("<-")') == -1
        assert find_assignment("cut$breaks <- 3") == 11

    def test_malformed(self):
        with pytest.raises(ParseError):
            parse_edit_line("cut <- 3")
        with pytest.raises(ParseError):
            parse_edit_line("cut$ <- 3")
        with pytest.raises(ParseError):
            parse_edit_line("cut$breaks <- c(0,")


class TestLoadDSL:
    """Tests for loading DSL text."""

    def test_load(self):
        edits = load_edits_from_dsl(BINNING)
        assert [m.name for m, _ in edits] == ["coarse", "closed-left", "no-labels"]

    def test_engine_from_dsl(self):
        engine = EditEngine.from_dsl(BINNING)
        result = engine(E("price ~ cut(carat, breaks = 5, labels = FALSE)"))
        assert deparse(result) == "price ~ cut(carat, breaks = c(0, 1, 3, 5), right = FALSE)"


class TestLoadJSON:
    """Tests for the JSON format."""

    def test_dict_entries(self):
        text = json.dumps({"edits": [
            {"name": "coarse", "target": "cut", "arg": "breaks",
             "value": "c(0, 1, 3, 5)", "tags": ["carat"]},
            {"target": ["cut", "cut2"], "arg": "labels", "value": None},
            {"target": "cut", "match": "contains", "arg": "right", "value": False},
        ]})
        edits = load_edits_from_json(text)
        assert len(edits) == 3
        meta, edit = edits[0]
        assert meta.name == "coarse"
        assert meta.tags == ["carat"]
        assert edit.value == E("c(0, 1, 3, 5)")
        assert edits[1][1].drops
        assert edits[1][1].matcher.description == "cut|cut2"
        assert edits[2][1].matcher.kind == "contains"
        assert edits[2][1].value is False

    def test_triples(self):
        text = '{"edits": [["cut", "breaks", [0, 2, 4]], ["cut", "labels"]]}'
        edits = load_edits_from_json(text)
        assert edits[0][1].value == E("c(0, 2, 4)")
        assert edits[1][1].drops

    def test_strings_in_lists_are_text(self):
        text = '{"edits": [["factor", "levels", ["D", "E"]]]}'
        _, edit = load_edits_from_json(text)[0]
        assert edit.value == E('c("D", "E")')

    def test_null_string_drops(self):
        text = '{"edits": [["cut", "labels", "NULL"]]}'
        assert load_edits_from_json(text)[0][1].drops

    def test_unknown_match(self):
        text = '{"edits": [{"target": "cut", "match": "fuzzy", "arg": "k", "value": 1}]}'
        with pytest.raises(ParseError):
            load_edits_from_json(text)


class TestEngineMethods:
    """Tests for EditEngine helpers."""

    def setup_method(self):
        self.engine = EditEngine.from_dsl(BINNING)

    def test_len_and_repr(self):
        assert len(self.engine) == 3
        assert repr(self.engine) == "EditEngine(3 edits)"

    def test_lookup(self):
        assert "coarse" in self.engine
        edit, meta = self.engine["coarse"]
        assert edit.arg == "breaks"
        assert meta.description == "Fewer carat bins"
        assert self.engine.get_edit("missing") is None
        with pytest.raises(KeyError):
            self.engine["missing"]

    def test_get_metadata(self):
        assert self.engine.get_metadata(1).name == "closed-left"
        assert self.engine.get_metadata(99).name is None

    def test_iter(self):
        names = [meta.name for edit, meta in self.engine]
        assert names == ["coarse", "closed-left", "no-labels"]

    def test_edits_copy(self):
        edits = self.engine.edits
        edits.clear()
        assert len(self.engine) == 3

    def test_add_edit(self):
        engine = EditEngine().add_edit("cut", "breaks", 3, name="three", tags=["bins"])
        assert "three" in engine
        assert engine.groups() == {"bins"}

    def test_load_edits(self):
        engine = EditEngine.from_edits([Edit("cut", "k", 1), ("cut", "labels")])
        assert engine(E("cut(x, labels = FALSE)")) == E("cut(x, k = 1)")

    def test_clear(self):
        self.engine.clear()
        assert len(self.engine) == 0
        assert "coarse" not in self.engine

    def test_order_matters(self):
        """Later edits see the output of earlier ones."""
        engine = EditEngine.from_dsl('''
            cut$breaks <- 3
            cut$breaks <- 5
        ''')
        assert engine(E("cut(x)")) == E("cut(x, breaks = 5)")

    def test_formula_env_kept(self):
        env = Environment("diamonds")
        f = formula("price ~ cut(carat)", env=env)
        assert self.engine(f).env is env

    def test_edits_matching(self):
        expr = E("price ~ cut(carat) + cut(depth)")
        engine = EditEngine.from_dsl('''
            @a: cut$breaks <- 3
            @b: log$base <- 2
        ''')
        matching = engine.edits_matching(expr)
        assert len(matching) == 1
        meta, calls = matching[0]
        assert meta.name == "a"
        assert calls == [E("cut(carat)"), E("cut(depth)")]

    def test_strict_apply(self):
        with pytest.raises(AmbiguousTarget):
            self.engine(E("price ~ cut + cut(carat)"), strict=True)


class TestExport:
    """Tests for exporting edits."""

    def setup_method(self):
        self.engine = EditEngine.from_dsl('''
            @coarse "Fewer carat bins": cut$breaks <- c(0, 1, 3, 5)

            [labels]
            @no-labels: cut$labels <- NULL
            *cut*$right <- FALSE
        ''')

    def test_list_edits(self):
        assert self.engine.list_edits() == [
            '@coarse "Fewer carat bins": cut$breaks <- c(0, 1, 3, 5)',
            "@no-labels: cut$labels <- NULL",
            "*cut*$right <- FALSE",
        ]

    def test_to_dsl_round_trip(self):
        text = self.engine.to_dsl(name="binning")
        assert text.startswith("# binning")
        assert "[labels]" in text
        again = EditEngine.from_dsl(text)
        assert again.list_edits() == self.engine.list_edits()
        assert again.groups() == {"labels"}

    def test_to_dict(self):
        data = self.engine.to_dict()
        first, second, third = data["edits"]
        assert first == {"target": "cut", "arg": "breaks", "value": "c(0, 1, 3, 5)",
                         "name": "coarse", "description": "Fewer carat bins"}
        assert second["value"] is None
        assert second["tags"] == ["labels"]
        assert third["match"] == "contains"
        assert third["target"] == "cut"

    def test_to_json_round_trip(self):
        text = self.engine.to_json(name="binning")
        assert json.loads(text)["name"] == "binning"
        again = EditEngine()
        for meta, edit in load_edits_from_json(text):
            again.add_edit(edit.matcher, edit.arg, edit.value,
                           name=meta.name, description=meta.description, tags=meta.tags)
        assert again.list_edits() == self.engine.list_edits()

    def test_null_value_round_trip(self):
        """Edits given None behave the same after a DSL or JSON round trip."""
        engine = EditEngine().add_edit("cut", "labels", None)
        engine.load_edits([("cut", "right", None)])
        expr = E("cut(x, labels = FALSE, right = TRUE)")
        assert engine(expr) == E("cut(x)")
        assert EditEngine.from_dsl(engine.to_dsl())(expr) == E("cut(x)")
        assert EditEngine.from_json(engine.to_json())(expr) == E("cut(x)")

    def test_tuple_and_json_triples_agree(self):
        from_tuple = EditEngine().load_edits([("cut", "labels", None)])
        from_json = EditEngine.from_json('{"edits": [["cut", "labels", null]]}')
        expr = E("cut(x, labels = FALSE)")
        assert from_tuple(expr) == from_json(expr) == E("cut(x)")

    def test_predicate_not_exportable(self):
        engine = EditEngine().add_edit(lambda label: True, "k", 1)
        with pytest.raises(ValueError):
            engine.to_dict()


class TestCombining:
    """Tests for copy, | and |=."""

    def test_or(self):
        a = EditEngine.from_dsl("@a: cut$breaks <- 3")
        b = EditEngine.from_dsl("@b: cut$labels <- NULL")
        combined = a | b
        assert len(combined) == 2
        assert len(a) == 1
        assert combined(E("cut(x, labels = FALSE)")) == E("cut(x, breaks = 3)")

    def test_ior(self):
        a = EditEngine.from_dsl("@a: cut$breaks <- 3")
        a |= EditEngine.from_dsl("@b: cut$right <- FALSE")
        assert "b" in a

    def test_copy_independent(self):
        a = EditEngine.from_dsl("[g]\n@a: cut$breaks <- 3")
        b = a.copy()
        b.disable_group("g")
        assert a(E("cut(x)")) == E("cut(x, breaks = 3)")
        assert b(E("cut(x)")) == E("cut(x)")

    def test_metadata_repr(self):
        assert repr(EditMetadata()) == "<anonymous>"
        assert repr(EditMetadata("a", "desc")) == '@a "desc"'


class TestExampleFile:
    """Tests for the edits file shipped in examples/."""

    def test_binning_file(self):
        from pathlib import Path
        path = Path(__file__).resolve().parents[2] / "examples" / "binning.edits"
        engine = EditEngine.from_file(path)
        assert engine.groups() == {"coarse", "fine", "labels"}
        f = formula("price ~ color + cut(carat, breaks = c(0, 1, 2, 3, 4, 5))")
        result = engine.apply(f, groups=["coarse"])
        assert deparse(result) == (
            "price ~ color + cut(carat, breaks = c(0, 1, 3, 5), right = FALSE)")
        assert result.env is f.env
