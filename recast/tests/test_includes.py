"""Tests for :include directive in DSL files."""

import pytest
from pathlib import Path
from recast import EditEngine, E, deparse
from recast.engine import load_edits_from_dsl, load_edits_from_file


class TestIncludeDirective:
    """Tests for :include directive in DSL files."""

    @pytest.fixture
    def temp_dir(self, tmp_path):
        """Create a temporary directory for test files."""
        return tmp_path

    def test_include_basic(self, temp_dir):
        """Basic include of another edits file."""
        (temp_dir / "base.edits").write_text('''
            @coarse: cut$breaks <- c(0, 1, 3, 5)
            @closed-left: cut$right <- FALSE
        ''')

        (temp_dir / "main.edits").write_text('''
            :include base.edits

            @no-labels: cut$labels <- NULL
        ''')

        engine = EditEngine.from_file(temp_dir / "main.edits")

        assert len(engine) == 3
        assert "coarse" in engine
        assert "closed-left" in engine
        assert "no-labels" in engine

    def test_include_order(self, temp_dir):
        """Included edits take the position of the directive."""
        (temp_dir / "first.edits").write_text("@first: cut$breaks <- 3\n")
        (temp_dir / "main.edits").write_text('''
            @before: cut$breaks <- 1
            :include first.edits
            @after: cut$right <- FALSE
        ''')

        engine = EditEngine.from_file(temp_dir / "main.edits")
        assert [meta.name for _, meta in engine] == ["before", "first", "after"]
        assert engine(E("cut(x)")) == E("cut(x, breaks = 3, right = FALSE)")

    def test_include_nested(self, temp_dir):
        """Nested includes (file includes file that includes file)."""
        (temp_dir / "level2.edits").write_text("@level2: f$a <- 2\n")
        (temp_dir / "level1.edits").write_text('''
            :include level2.edits
            @level1: f$b <- 1
        ''')
        (temp_dir / "main.edits").write_text('''
            :include level1.edits
            @main: f$c <- 0
        ''')

        engine = EditEngine.from_file(temp_dir / "main.edits")

        assert len(engine) == 3
        assert all(name in engine for name in ("level2", "level1", "main"))

    def test_include_in_subdirectory(self, temp_dir):
        """Includes resolve relative to the including file."""
        subdir = temp_dir / "edits"
        subdir.mkdir()
        (subdir / "shared.edits").write_text("@shared: cut$labels <- NULL\n")
        (subdir / "bins.edits").write_text('''
            :include shared.edits
            @bins: cut$breaks <- 4
        ''')
        (temp_dir / "main.edits").write_text(":include edits/bins.edits\n")

        engine = EditEngine.from_file(temp_dir / "main.edits")
        assert "shared" in engine
        assert "bins" in engine

    def test_include_with_groups(self, temp_dir):
        """Untagged included edits join the surrounding group."""
        (temp_dir / "labels.edits").write_text("@no-labels: cut$labels <- NULL\n")
        (temp_dir / "main.edits").write_text('''
            [labels]
            :include labels.edits
        ''')

        engine = EditEngine.from_file(temp_dir / "main.edits")
        _, meta = engine["no-labels"]
        assert meta.tags == ["labels"]

    def test_include_preserves_existing_groups(self, temp_dir):
        """Edits already in a group keep it."""
        (temp_dir / "tagged.edits").write_text('''
            [inner]
            @tagged: cut$labels <- NULL
        ''')
        (temp_dir / "main.edits").write_text('''
            [outer]
            :include tagged.edits
        ''')

        engine = EditEngine.from_file(temp_dir / "main.edits")
        _, meta = engine["tagged"]
        assert meta.tags == ["inner"]

    def test_include_circular_detection(self, temp_dir):
        """Circular includes are detected."""
        (temp_dir / "a.edits").write_text(":include b.edits\n@a: f$a <- 1\n")
        (temp_dir / "b.edits").write_text(":include a.edits\n@b: f$b <- 1\n")

        with pytest.raises(ValueError, match="Circular include"):
            load_edits_from_file(temp_dir / "a.edits")

    def test_include_self_detection(self, temp_dir):
        """A file including itself is detected."""
        (temp_dir / "self.edits").write_text(":include self.edits\n")

        with pytest.raises(ValueError, match="Circular include"):
            load_edits_from_file(temp_dir / "self.edits")

    def test_include_file_not_found(self, temp_dir):
        """Missing include raises FileNotFoundError."""
        (temp_dir / "main.edits").write_text(":include missing.edits\n")

        with pytest.raises(FileNotFoundError):
            load_edits_from_file(temp_dir / "main.edits")

    def test_include_empty_path(self, temp_dir):
        """An include without a path is ignored."""
        (temp_dir / "main.edits").write_text(":include \n@a: f$a <- 1\n")

        edits = load_edits_from_file(temp_dir / "main.edits")
        assert len(edits) == 1

    def test_include_json_file(self, temp_dir):
        """DSL files can include JSON edit files."""
        (temp_dir / "bins.json").write_text(
            '{"edits": [{"name": "json-bins", "target": "cut", '
            '"arg": "breaks", "value": [0, 2, 4]}]}')
        (temp_dir / "main.edits").write_text(":include bins.json\n")

        engine = EditEngine.from_file(temp_dir / "main.edits")
        result = engine(E("cut(x)"))
        assert deparse(result) == "cut(x, breaks = c(0, 2, 4))"

    def test_load_dsl_without_base_path(self, temp_dir, monkeypatch):
        """Without a base path, includes resolve against the working directory."""
        (temp_dir / "cwd.edits").write_text("@cwd: f$a <- 1\n")
        monkeypatch.chdir(temp_dir)

        edits = load_edits_from_dsl(":include cwd.edits\n")
        assert edits[0][0].name == "cwd"

    def test_load_dsl_with_base_path(self, temp_dir):
        """load_dsl accepts a base path for includes."""
        (temp_dir / "base.edits").write_text("@base: f$a <- 1\n")

        engine = EditEngine().load_dsl(":include base.edits", base_path=temp_dir)
        assert "base" in engine
