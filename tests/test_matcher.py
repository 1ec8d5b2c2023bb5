"""Tests for the glob matcher."""

import os

import pytest

from filelog.errors import PatternError
from filelog.matcher import GlobMatcher, validate_pattern


@pytest.fixture
def tree(tmp_path):
    files = [
        "one.log",
        "two.log",
        "notes.txt",
        "not_this.log",
        "directory/a.log",
        "directory/nested/b.log",
        "directory/nested/not_b.log",
        "other/directory/c.log",
        "other/directory/deep/d.log",
    ]
    for name in files:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(name + "\n")
    return tmp_path


def _names(base, paths):
    return sorted(os.path.relpath(p, base) for p in paths)


class TestIncludePatterns:
    def test_star(self, tree):
        m = GlobMatcher([str(tree / "*.log")])
        assert _names(tree, m.match()) == ["not_this.log", "one.log", "two.log"]

    def test_double_star_inside_segment_acts_like_star(self, tree):
        m = GlobMatcher([str(tree / "**.log")])
        assert _names(tree, m.match()) == ["not_this.log", "one.log", "two.log"]

    def test_recursive_under_directory(self, tree):
        m = GlobMatcher([str(tree / "directory/**/*.log")])
        assert _names(tree, m.match()) == [
            "directory/a.log",
            "directory/nested/b.log",
            "directory/nested/not_b.log",
        ]

    def test_recursive_both_sides(self, tree):
        m = GlobMatcher([str(tree / "**/directory/**/*.log")])
        assert _names(tree, m.match()) == [
            "directory/a.log",
            "directory/nested/b.log",
            "directory/nested/not_b.log",
            "other/directory/c.log",
            "other/directory/deep/d.log",
        ]

    def test_literal_and_duplicates(self, tree):
        m = GlobMatcher([str(tree / "one.log"), str(tree / "one.log"), str(tree / "o*.log")])
        assert _names(tree, m.match()) == ["one.log"]

    def test_missing_literal(self, tree):
        assert GlobMatcher([str(tree / "aString")]).match() == []

    def test_directories_are_not_matched(self, tree):
        m = GlobMatcher([str(tree / "*")])
        assert _names(tree, m.match()) == ["not_this.log", "notes.txt", "one.log", "two.log"]

    def test_star_matches_dotfiles(self, tmp_path):
        (tmp_path / ".app.log").write_text("hidden\n")
        (tmp_path / "b.log").write_text("visible\n")
        m = GlobMatcher([str(tmp_path / "*.log")])
        assert _names(tmp_path, m.match()) == [".app.log", "b.log"]

    def test_recursive_enters_hidden_directories(self, tmp_path):
        (tmp_path / ".d").mkdir()
        (tmp_path / ".d" / "x.log").write_text("x\n")
        m = GlobMatcher([str(tmp_path / "**/*.log")])
        assert _names(tmp_path, m.match()) == [".d/x.log"]


class TestExcludePatterns:
    def test_exclude_literal(self, tree):
        m = GlobMatcher([str(tree / "*.log")], [str(tree / "one.log")])
        assert _names(tree, m.match()) == ["not_this.log", "two.log"]

    def test_exclude_star(self, tree):
        m = GlobMatcher([str(tree / "*.log")], [str(tree / "not*.log")])
        assert _names(tree, m.match()) == ["one.log", "two.log"]

    def test_exclude_recursive(self, tree):
        m = GlobMatcher(
            [str(tree / "**/directory/**/*.log")],
            [str(tree / "directory/**/not*.log")],
        )
        assert _names(tree, m.match()) == [
            "directory/a.log",
            "directory/nested/b.log",
            "other/directory/c.log",
            "other/directory/deep/d.log",
        ]

    def test_exclude_nonexistent(self, tree):
        m = GlobMatcher([str(tree / "*.log")], [str(tree / "aString")])
        assert _names(tree, m.match()) == ["not_this.log", "one.log", "two.log"]

    def test_result_is_deterministic(self, tree):
        m = GlobMatcher([str(tree / "**/*.log")], [str(tree / "two.log")])
        assert m.match() == m.match()
        assert m.match() == sorted(m.match())


class TestPatternValidation:
    @pytest.mark.parametrize("pattern", ["[", "logs/[a-z.log", "", "[!"])
    def test_invalid(self, pattern):
        with pytest.raises(PatternError):
            validate_pattern(pattern)

    @pytest.mark.parametrize("pattern", ["*.log", "[abc].log", "[]].log", "[!x]*", "**/a?.log"])
    def test_valid(self, pattern):
        validate_pattern(pattern)

    def test_bad_include_fails_construction(self):
        with pytest.raises(PatternError):
            GlobMatcher(["["])

    def test_bad_exclude_fails_construction(self):
        with pytest.raises(PatternError):
            GlobMatcher(["*.log"], ["["])
