"""Heuristic chunk annotations: symbols, concepts, complexity, importance.

Every function here is pure and total over arbitrary text. Nothing is
parsed; regex families per language pick out identifier-like tokens and
a fixed dictionary maps text to domain concepts.

Scores:
- complexity = 1 + 0.5·control + 0.1·calls + 0.3·max_nesting + 0.05·operators, capped at 10
- importance = 1 + 0.2·symbols + 0.3·concepts + 0.1·complexity
  (+0.5 per main/init symbol), capped at 5
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from codeweave.index._internal.chunking.extractors import extract_exports, extract_imports
from codeweave.index.models import ImportEntry

# ===================================================================
# Constants
# ===================================================================

COMPLEXITY_CAP = 10.0
IMPORTANCE_CAP = 5.0

CONCEPT_KEYWORDS: tuple[str, ...] = (
    "authentication",
    "authorization",
    "validation",
    "error handling",
    "database",
    "api",
    "service",
    "controller",
    "model",
    "view",
    "component",
    "module",
    "utility",
    "helper",
    "configuration",
    "middleware",
    "router",
    "handler",
    "processor",
    "manager",
    "factory",
    "builder",
    "observer",
    "singleton",
    "strategy",
    "repository",
    "adapter",
    "facade",
    "proxy",
    "decorator",
    "cache",
    "session",
    "cookie",
    "token",
    "encryption",
    "logging",
    "monitoring",
    "testing",
    "deployment",
    "security",
)

# Substring → concept, applied after the dictionary pass
CONCEPT_HINTS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("auth",), "authentication"),
    (("user",), "user management"),
    (("admin",), "administration"),
    (("api",), "api"),
    (("db", "database"), "database"),
    (("test",), "testing"),
    (("util",), "utility"),
)

# Reserved words that the loose patterns below would otherwise report
_KEYWORDS = frozenset(
    {
        "if",
        "else",
        "for",
        "while",
        "do",
        "switch",
        "case",
        "catch",
        "try",
        "finally",
        "return",
        "function",
        "new",
        "throw",
        "typeof",
        "await",
        "yield",
        "super",
        "this",
        "self",
        "with",
        "elif",
        "not",
        "and",
        "or",
        "in",
        "is",
        "def",
        "class",
        "const",
        "let",
        "var",
        "async",
        "import",
        "from",
        "export",
        "print",
        "sizeof",
    }
)

_JS_FUNCTION = re.compile(
    r"function\s*\*?\s+(\w+)|(\w+)\s*[:=]\s*(?:async\b|function\b|\()|const\s+(\w+)\s*="
)
_JS_VARIABLE = re.compile(r"\b(?:const|let|var)\s+(\w+)")
_JS_METHOD = re.compile(r"(\w+)\s*\([^)]*\)\s*\{")
_CLASS = re.compile(r"\bclass\s+(\w+)")

_PY_FUNCTION = re.compile(r"\bdef\s+(\w+)")
_PY_ASSIGN = re.compile(r"^(\w+)\s*=(?!=)", re.MULTILINE)

_JAVA_METHOD = re.compile(r"(?:public|private|protected)?\s*(?:static)?\s*\w+\s+(\w+)\s*\(")
_JAVA_FIELD = re.compile(r"(?:public|private|protected)?\s*(?:static)?\s*\w+\s+(\w+)\s*[;=]")

_GENERIC_CALL = re.compile(r"(\w+)\(")
_PASCAL_WORD = re.compile(r"\b[A-Z][a-z]+(?:[A-Z][a-z]+)*\b")

_CONTROL = re.compile(r"\b(?:if|else|for|while|switch|case|try|catch|finally)\b")
_CALL = re.compile(r"\w+\(")
_OPERATOR = re.compile(r"[+\-*/%=<>!&|]")
_LEADING_WS = re.compile(r"^\s*")


# ===================================================================
# Result type
# ===================================================================


@dataclass(frozen=True, slots=True)
class EnhancedMetadata:
    """Annotations derived from one chunk's content."""

    symbols: list[str] = field(default_factory=list)
    concepts: list[str] = field(default_factory=list)
    complexity: float = 1.0
    importance: float = 1.0
    dependencies: list[str] = field(default_factory=list)
    exports: list[str] = field(default_factory=list)


# ===================================================================
# Symbols
# ===================================================================


def _groups(pattern: re.Pattern[str], content: str) -> list[str]:
    found: list[str] = []
    for m in pattern.finditer(content):
        name = next((g for g in m.groups() if g), None) if m.groups() else m.group(0)
        if name:
            found.append(name)
    return found


def _js_symbols(content: str) -> list[str]:
    return (
        _groups(_JS_FUNCTION, content)
        + _groups(_CLASS, content)
        + _groups(_JS_VARIABLE, content)
        + _groups(_JS_METHOD, content)
    )


def _python_symbols(content: str) -> list[str]:
    return _groups(_PY_FUNCTION, content) + _groups(_CLASS, content) + _groups(_PY_ASSIGN, content)


def _java_symbols(content: str) -> list[str]:
    return _groups(_JAVA_METHOD, content) + _groups(_CLASS, content) + _groups(_JAVA_FIELD, content)


def _generic_symbols(content: str) -> list[str]:
    return _groups(_GENERIC_CALL, content) + [m.group(0) for m in _PASCAL_WORD.finditer(content)]


_SYMBOL_EXTRACTORS = {
    "javascript": _js_symbols,
    "typescript": _js_symbols,
    "python": _python_symbols,
    "java": _java_symbols,
    "csharp": _java_symbols,
}


def extract_symbols(content: str, language: str) -> list[str]:
    """Identifier-like names defined or used in ``content``.

    De-duplicated in first-seen order; single characters and reserved
    words are dropped.
    """
    extractor = _SYMBOL_EXTRACTORS.get(language, _generic_symbols)
    seen: dict[str, None] = {}
    for name in extractor(content):
        if len(name) > 1 and name not in _KEYWORDS and not name.isdigit():
            seen.setdefault(name, None)
    return list(seen)


# ===================================================================
# Concepts
# ===================================================================


def extract_concepts(content: str) -> list[str]:
    """Domain tags found in ``content`` by case-insensitive substring lookup."""
    lowered = content.lower()
    seen: dict[str, None] = {}
    for concept in CONCEPT_KEYWORDS:
        if concept in lowered:
            seen.setdefault(concept, None)
    for needles, concept in CONCEPT_HINTS:
        if any(n in lowered for n in needles):
            seen.setdefault(concept, None)
    return list(seen)


# ===================================================================
# Scores
# ===================================================================


def calculate_complexity(content: str) -> float:
    """Branching/nesting score in [1, 10]."""
    complexity = 1.0
    complexity += len(_CONTROL.findall(content)) * 0.5
    complexity += len(_CALL.findall(content)) * 0.1

    max_nesting = 0
    for line in content.split("\n"):
        leading = _LEADING_WS.match(line)
        depth = len(leading.group(0)) // 2 if leading else 0
        max_nesting = max(max_nesting, depth)
    complexity += max_nesting * 0.3

    complexity += len(_OPERATOR.findall(content)) * 0.05
    return min(complexity, COMPLEXITY_CAP)


def calculate_importance(symbols: list[str], concepts: list[str], complexity: float) -> float:
    """Composite score in [1, 5], non-decreasing in each input."""
    importance = 1.0
    importance += len(symbols) * 0.2
    importance += len(concepts) * 0.3
    importance += max(complexity, 0.0) * 0.1
    for symbol in symbols:
        lowered = symbol.lower()
        if "main" in lowered or "init" in lowered:
            importance += 0.5
    return min(importance, IMPORTANCE_CAP)


# ===================================================================
# Entry point
# ===================================================================


def dependency_sources(imports: list[ImportEntry]) -> list[str]:
    seen: dict[str, None] = {}
    for entry in imports:
        seen.setdefault(entry.source, None)
    return list(seen)


def enhance_metadata(content: str, language: str, *, with_exports: bool = True) -> EnhancedMetadata:
    """Annotate a chunk's content. Pure and total."""
    symbols = extract_symbols(content, language)
    concepts = extract_concepts(content)
    complexity = calculate_complexity(content)
    exports: list[str] = []
    if with_exports:
        seen: dict[str, None] = {}
        for entry in extract_exports(content, language):
            seen.setdefault(entry.name, None)
        exports = list(seen)
    return EnhancedMetadata(
        symbols=symbols,
        concepts=concepts,
        complexity=complexity,
        importance=calculate_importance(symbols, concepts, complexity),
        dependencies=dependency_sources(extract_imports(content, language)),
        exports=exports,
    )
