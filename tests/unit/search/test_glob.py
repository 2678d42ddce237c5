"""Tests for path glob matching."""

from __future__ import annotations

import pytest

from reposcope.search.glob import glob_match, glob_to_regex


@pytest.mark.parametrize(
    "path",
    ["src/a/b/c.ts", "src/c.ts", "src/services/user.ts"],
)
def test_double_star_matches_any_depth(path):
    assert glob_match("src/**/*.ts", path)


@pytest.mark.parametrize("path", ["lib/a.ts", "src/a.js", "xsrc/a.ts"])
def test_double_star_respects_literals(path):
    assert not glob_match("src/**/*.ts", path)


def test_single_star_stays_in_segment():
    assert glob_match("src/*.ts", "src/a.ts")
    assert not glob_match("src/*.ts", "src/a/b.ts")


def test_trailing_double_star():
    assert glob_match("src/services/**", "src/services/deep/x.py")
    assert not glob_match("src/services/**", "src/other/x.py")


def test_regex_metacharacters_are_literal():
    assert glob_match("src/app.(old).ts", "src/app.(old).ts")
    assert not glob_match("src/app.ts", "src/appxts")


def test_pattern_is_anchored():
    regex = glob_to_regex("*.py")
    assert regex.match("setup.py")
    assert not regex.match("pkg/setup.py")
    assert not regex.match("setup.pyc")


def test_leading_double_star_segment_matches_root():
    assert glob_match("**/*.py", "setup.py")
    assert glob_match("**/*.py", "pkg/sub/setup.py")


def test_double_star_inside_segment_needs_separator():
    assert glob_match("a**/b", "ax/b")
    assert glob_match("a**/b", "ax/y/b")
    assert not glob_match("a**/b", "ab")
