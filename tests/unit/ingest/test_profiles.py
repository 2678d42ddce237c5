"""Tests for language profiles and extension detection."""

from __future__ import annotations

import pytest

from reposcope.ingest.profiles import (
    EXTENSION_TO_LANGUAGE,
    LANGUAGE_PROFILES,
    detect_language,
    get_profile,
)


@pytest.mark.parametrize("path,expected", [
    ("src/app/main.ts", "typescript"),
    ("src/App.TSX", "tsx"),
    ("lib/index.mjs", "javascript"),
    ("scripts/build.py", "python"),
    ("cmd/server/main.go", "go"),
    ("README", None),
    ("notes.unknownext", None),
])
def test_detect_language(path, expected):
    assert detect_language(path) == expected


def test_profiled_languages_are_detectable():
    assert set(LANGUAGE_PROFILES) <= set(EXTENSION_TO_LANGUAGE.values())


def test_get_profile_unknown_is_none():
    assert get_profile("rust") is None


def test_python_has_no_export_wrappers():
    assert get_profile("python").wrapper_types == frozenset()
    assert "export_statement" in get_profile("typescript").wrapper_types


def test_profiles_are_read_only():
    with pytest.raises(TypeError):
        LANGUAGE_PROFILES["ruby"] = LANGUAGE_PROFILES["python"]  # type: ignore[index]
