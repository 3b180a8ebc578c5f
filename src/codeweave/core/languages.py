"""Canonical language definitions.

This module defines the authoritative mapping of:
- File extensions → language tags
- Filenames → language tags
- Which languages the structure detector understands

Design decisions:
1. One tag per extension. JS and TS are kept apart (unlike a family
   grouping) because the detector and extractors treat them identically
   but search reports the language the user wrote.
2. ``.h`` maps to ``c``; C++ headers should use ``.hpp``.
3. Unknown extensions fall back to ``text`` so every indexed file gets
   a file-level chunk.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

FALLBACK_LANGUAGE = "text"


@dataclass(frozen=True, slots=True)
class Language:
    """Canonical definition for a language tag.

    Attributes:
        name: Unique identifier (lowercase, e.g., "python", "typescript")
        extensions: File extensions including dot (e.g., ".py", ".ts")
        filenames: Special filenames to detect (lowercase, EXACT match only)
        structured: True if class/function boundaries can be detected
        indent_scoped: True if blocks are delimited by indentation, not braces
    """

    name: str
    extensions: frozenset[str]
    filenames: frozenset[str] = field(default_factory=frozenset)
    structured: bool = False
    indent_scoped: bool = False


ALL_LANGUAGES: tuple[Language, ...] = (
    # =========================================================================
    # Structured: class/function detection supported
    # =========================================================================
    Language(
        name="javascript",
        extensions=frozenset({".js", ".jsx", ".mjs", ".cjs", ".vue", ".svelte"}),
        structured=True,
    ),
    Language(
        name="typescript",
        extensions=frozenset({".ts", ".tsx", ".mts", ".cts"}),
        structured=True,
    ),
    Language(
        name="python",
        extensions=frozenset({".py", ".pyi", ".pyw"}),
        structured=True,
        indent_scoped=True,
    ),
    Language(name="java", extensions=frozenset({".java"}), structured=True),
    Language(
        name="cpp",
        extensions=frozenset({".cpp", ".cc", ".cxx", ".hpp", ".hh"}),
        structured=True,
    ),
    Language(name="csharp", extensions=frozenset({".cs"}), structured=True),
    # =========================================================================
    # Unstructured: file chunk + generic symbols only
    # =========================================================================
    Language(name="c", extensions=frozenset({".c", ".h"})),
    Language(name="go", extensions=frozenset({".go"})),
    Language(name="rust", extensions=frozenset({".rs"})),
    Language(name="php", extensions=frozenset({".php"})),
    Language(name="ruby", extensions=frozenset({".rb"}), filenames=frozenset({"gemfile", "rakefile"})),
    Language(name="swift", extensions=frozenset({".swift"})),
    Language(name="kotlin", extensions=frozenset({".kt", ".kts"})),
    Language(name="scala", extensions=frozenset({".scala"})),
    Language(name="css", extensions=frozenset({".css", ".scss", ".sass", ".less"})),
    Language(name="html", extensions=frozenset({".html", ".htm", ".xml", ".svg"})),
    Language(name="json", extensions=frozenset({".json"})),
    Language(name="yaml", extensions=frozenset({".yaml", ".yml"})),
    Language(name="toml", extensions=frozenset({".toml", ".ini"})),
    Language(name="markdown", extensions=frozenset({".md", ".mdx", ".rst"})),
    Language(name="sql", extensions=frozenset({".sql"})),
    Language(name="graphql", extensions=frozenset({".graphql", ".gql"})),
    Language(name="protobuf", extensions=frozenset({".proto"})),
    Language(
        name="shell",
        extensions=frozenset({".sh", ".bash", ".zsh", ".fish", ".ps1"}),
    ),
    Language(
        name="docker",
        extensions=frozenset({".dockerfile"}),
        filenames=frozenset({"dockerfile"}),
    ),
    Language(
        name="make",
        extensions=frozenset({".mk"}),
        filenames=frozenset({"makefile"}),
    ),
)


def _build_extension_map() -> dict[str, str]:
    result: dict[str, str] = {}
    for lang in ALL_LANGUAGES:
        for ext in lang.extensions:
            result.setdefault(ext.lower(), lang.name)
    return result


def _build_filename_map() -> dict[str, str]:
    result: dict[str, str] = {}
    for lang in ALL_LANGUAGES:
        for filename in lang.filenames:
            result.setdefault(filename.lower(), lang.name)
    return result


EXTENSION_TO_NAME: dict[str, str] = _build_extension_map()
FILENAME_TO_NAME: dict[str, str] = _build_filename_map()
LANGUAGES_BY_NAME: dict[str, Language] = {lang.name: lang for lang in ALL_LANGUAGES}

# Languages whose class/function boundaries the structure detector recognizes
STRUCTURED_NAMES: frozenset[str] = frozenset(lang.name for lang in ALL_LANGUAGES if lang.structured)


def detect_language(path: str | Path) -> str:
    """Detect the language tag for a file path.

    Detection order:
    1. Exact filename match (e.g., "Makefile", "Dockerfile")
    2. Suffix match (e.g., ".py")
    3. ``text`` fallback
    """
    p = Path(path) if isinstance(path, str) else path
    if name := FILENAME_TO_NAME.get(p.name.lower()):
        return name
    return EXTENSION_TO_NAME.get(p.suffix.lower(), FALLBACK_LANGUAGE)


def is_structured(language: str) -> bool:
    """True if the structure detector has patterns for this language."""
    return language in STRUCTURED_NAMES


def is_indent_scoped(language: str) -> bool:
    """True if blocks in this language end by dedent rather than closing brace."""
    lang = LANGUAGES_BY_NAME.get(language)
    return lang is not None and lang.indent_scoped


def get_all_indexable_extensions() -> set[str]:
    return set(EXTENSION_TO_NAME)
