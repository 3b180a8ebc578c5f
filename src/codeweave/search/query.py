"""Query analysis: intent, entities, keywords and expansions.

Intent is chosen by regex families. Each family's confidence is the
fraction of its patterns that match the lowercased query; the first
family (in declaration order) to reach the highest confidence wins, and
nothing beats the ``general`` default unless it scores above 0.1.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class QueryIntent(str, Enum):
    GENERAL = "general"
    FUNCTION_SEARCH = "function_search"
    CLASS_SEARCH = "class_search"
    DEBUG_SEARCH = "debug_search"
    IMPLEMENTATION_SEARCH = "implementation_search"
    CONCEPT_SEARCH = "concept_search"


GENERAL_CONFIDENCE = 0.1
MAX_KEYWORDS = 10
MAX_EXPANSIONS = 10

# Declaration order is the tie-break order
INTENT_PATTERNS: dict[QueryIntent, tuple[re.Pattern[str], ...]] = {
    QueryIntent.FUNCTION_SEARCH: (
        re.compile(r"\b(function|method|func|def)\b"),
        re.compile(r"\b(how to|implement|create)\b.*\b(function|method)\b"),
        re.compile(r"\b\w+\(\)"),
        re.compile(r"\b(call|invoke|execute)\b"),
    ),
    QueryIntent.CLASS_SEARCH: (
        re.compile(r"\b(class|interface|struct|type)\b"),
        re.compile(r"\b(extends|implements|inherits)\b"),
        re.compile(r"\bclass\s+\w+"),
    ),
    QueryIntent.DEBUG_SEARCH: (
        re.compile(r"\b(error|bug|issue|problem|fix|debug)\b"),
        re.compile(r"\b(why|what's wrong|not working)\b"),
        re.compile(r"\b(exception|crash|fail)\b"),
    ),
    QueryIntent.IMPLEMENTATION_SEARCH: (
        re.compile(r"\b(how to|how do|implement|create|build|make)\b"),
        re.compile(r"\b(example|sample|demo)\b"),
        re.compile(r"\b(pattern|approach|solution)\b"),
    ),
    QueryIntent.CONCEPT_SEARCH: (
        re.compile(r"\b(what is|explain|understand|concept)\b"),
        re.compile(r"\b(architecture|design|pattern)\b"),
        re.compile(r"\b(overview|summary)\b"),
    ),
}

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
        "with", "by", "is", "are", "was", "were", "be", "been", "being", "have",
        "has", "had", "do", "does", "did", "will", "would", "could", "should",
        "may", "might", "can", "this", "that", "these", "those",
    }
)  # fmt: skip

SYNONYMS: dict[str, tuple[str, ...]] = {
    "function": ("method", "func", "procedure", "routine"),
    "class": ("interface", "type", "struct", "object"),
    "variable": ("var", "field", "property", "attribute"),
    "error": ("exception", "bug", "issue", "problem"),
    "create": ("make", "build", "generate", "construct"),
    "get": ("fetch", "retrieve", "obtain", "acquire"),
    "set": ("assign", "update", "modify", "change"),
    "delete": ("remove", "destroy", "clear", "erase"),
}

RELATED_CONCEPTS: dict[str, tuple[str, ...]] = {
    "authentication": ("login", "auth", "security", "user verification", "credentials"),
    "database": ("db", "storage", "persistence", "data layer", "repository"),
    "api": ("endpoint", "service", "interface", "rest", "graphql"),
    "component": ("widget", "element", "module", "part", "piece"),
    "state": ("data", "store", "model", "context", "memory"),
}

INTENT_SUFFIXES: dict[QueryIntent, tuple[str, ...]] = {
    QueryIntent.FUNCTION_SEARCH: ("function", "method", "implementation"),
    QueryIntent.CLASS_SEARCH: ("class", "interface", "type"),
    QueryIntent.DEBUG_SEARCH: ("error", "fix", "solution"),
}

LANGUAGE_HINTS: dict[str, re.Pattern[str]] = {
    "javascript": re.compile(r"\b(js|javascript|node|npm|react|vue|angular)\b", re.IGNORECASE),
    "typescript": re.compile(r"\b(ts|typescript|tsx)\b", re.IGNORECASE),
    "python": re.compile(r"\b(py|python|django|flask|pandas)\b", re.IGNORECASE),
    "java": re.compile(r"\b(java|spring|maven|gradle)\b", re.IGNORECASE),
    "cpp": re.compile(r"(?<!\w)(c\+\+|cpp|cmake)\b", re.IGNORECASE),
}

_PASCAL = re.compile(r"\b[A-Z][a-z]+(?:[A-Z][a-z]+)*\b")
_SNAKE = re.compile(r"\b[a-z]+(?:_[a-z]+)+\b")
_CALL = re.compile(r"\b(\w+)\(\)")


@dataclass(frozen=True, slots=True)
class ProcessedQuery:
    """Analyzed form of a raw query string."""

    original: str
    normalized: str
    intent: QueryIntent = QueryIntent.GENERAL
    confidence: float = GENERAL_CONFIDENCE
    keywords: tuple[str, ...] = ()
    entities: tuple[str, ...] = ()
    expanded_queries: tuple[str, ...] = ()
    context: tuple[str, ...] = ()

    @property
    def languages(self) -> tuple[str, ...]:
        """Programming languages the query names."""
        return self.context

    def embedding_text(self, max_expansions: int = 3) -> str:
        """Single string sent to both embedding spaces.

        Order: original, up to ``max_expansions`` expansions, entities,
        keywords. ``expanded_queries`` starts with the original, which is
        skipped when picking expansions, so the original appears once and
        a full three distinct rewrites follow it. Slicing the first three
        of ``expanded_queries`` would instead repeat the original and keep
        only two rewrites.
        """
        expansions = [q for q in self.expanded_queries if q != self.original][:max_expansions]
        parts = [self.original, *expansions, *self.entities, *self.keywords]
        return " ".join(p for p in parts if p)

    def terms(self) -> frozenset[str]:
        """Lowercased words a chunk symbol may match exactly."""
        words: set[str] = set(self.keywords)
        words.update(e.lower() for e in self.entities)
        for query in self.expanded_queries:
            words.update(w.lower() for w in query.split())
        return frozenset(w for w in words if len(w) > 2 and w not in STOP_WORDS)


def extract_keywords(query: str) -> list[str]:
    return [w for w in query.lower().split() if len(w) > 2 and w not in STOP_WORDS][:MAX_KEYWORDS]


def extract_entities(query: str) -> list[str]:
    found: dict[str, None] = {}
    for match in _PASCAL.findall(query):
        found.setdefault(match, None)
    for match in _SNAKE.findall(query):
        found.setdefault(match, None)
    for match in _CALL.findall(query):
        found.setdefault(match, None)
    return list(found)


def extract_context(query: str) -> list[str]:
    return [lang for lang, pattern in LANGUAGE_HINTS.items() if pattern.search(query)]


def classify_intent(query: str) -> tuple[QueryIntent, float]:
    lowered = query.lower()
    best, best_confidence = QueryIntent.GENERAL, GENERAL_CONFIDENCE
    for intent, patterns in INTENT_PATTERNS.items():
        matches = sum(1 for p in patterns if p.search(lowered))
        confidence = matches / len(patterns)
        if confidence > best_confidence:
            best, best_confidence = intent, confidence
    return best, best_confidence


def expand_query(
    query: str,
    intent: QueryIntent,
    keywords: list[str],
    entities: list[str],
) -> list[str]:
    """Up to ``MAX_EXPANSIONS`` distinct variants, the original first."""
    expansions = [query]

    for keyword in keywords:
        for synonym in SYNONYMS.get(keyword, ()):
            expansions.append(query.replace(keyword, synonym))

    lowered = query.lower()
    for concept, related in RELATED_CONCEPTS.items():
        if concept in lowered:
            expansions.extend(related)

    for entity in entities:
        expansions.extend((entity, f"{entity} implementation", f"{entity} usage"))

    for suffix in INTENT_SUFFIXES.get(intent, ()):
        expansions.append(f"{query} {suffix}")

    unique = list(dict.fromkeys(expansions))
    return unique[:MAX_EXPANSIONS]


class QueryAnalyzer:
    """Stateless; one instance can serve concurrent searches."""

    def analyze(self, query: str) -> ProcessedQuery:
        original = query.strip()
        intent, confidence = classify_intent(original)
        keywords = extract_keywords(original)
        entities = extract_entities(original)
        expansions = expand_query(original, intent, keywords, entities)
        return ProcessedQuery(
            original=original,
            normalized=" ".join(original.lower().split()),
            intent=intent,
            confidence=confidence,
            keywords=tuple(keywords),
            entities=tuple(entities),
            expanded_queries=tuple(expansions),
            context=tuple(extract_context(original)),
        )
