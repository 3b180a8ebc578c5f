"""Tests for language detection."""

from pathlib import Path

import pytest

from codeweave.core.languages import (
    FALLBACK_LANGUAGE,
    detect_language,
    get_all_indexable_extensions,
    is_indent_scoped,
    is_structured,
)


class TestDetectLanguage:
    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("src/app.ts", "typescript"),
            ("src/App.TSX", "typescript"),
            ("lib/util.js", "javascript"),
            ("pkg/mod.py", "python"),
            ("Main.java", "java"),
            ("engine.cpp", "cpp"),
            ("Program.cs", "csharp"),
            ("main.go", "go"),
            ("Makefile", "make"),
            ("docker/Dockerfile", "docker"),
        ],
    )
    def test_known_paths(self, path: str, expected: str) -> None:
        assert detect_language(path) == expected

    def test_accepts_path_objects(self) -> None:
        assert detect_language(Path("a/b/c.py")) == "python"

    def test_unknown_suffix_falls_back(self) -> None:
        assert detect_language("notes.unknownext") == FALLBACK_LANGUAGE

    def test_no_suffix_falls_back(self) -> None:
        assert detect_language("LICENSE") == FALLBACK_LANGUAGE


class TestLanguageTraits:
    def test_structured_languages(self) -> None:
        for lang in ("javascript", "typescript", "python", "java", "cpp", "csharp"):
            assert is_structured(lang)
        assert not is_structured("go")
        assert not is_structured("text")

    def test_only_python_is_indent_scoped(self) -> None:
        assert is_indent_scoped("python")
        assert not is_indent_scoped("typescript")
        assert not is_indent_scoped("nonexistent")

    def test_indexable_extensions_are_lowercase_with_dot(self) -> None:
        exts = get_all_indexable_extensions()
        assert ".py" in exts
        assert all(e.startswith(".") and e == e.lower() for e in exts)
