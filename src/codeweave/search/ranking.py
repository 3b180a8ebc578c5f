"""Lexical relevance boosts layered over fused vector results.

Only ``relevance`` is multiplied; ``score`` and ``distance`` keep the raw
cosine figures.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from codeweave.config.models import SearchConfig
from codeweave.index._internal.chunking.words import word_split
from codeweave.search.query import ProcessedQuery
from codeweave.search.vector import SearchResult, sort_results


def symbol_matches(symbols: Iterable[str], terms: frozenset[str]) -> bool:
    """True if a symbol, or one of its split words, equals a query term."""
    for symbol in symbols:
        if symbol.lower() in terms:
            return True
        if any(word in terms for word in word_split(symbol)):
            return True
    return False


def boost_factor(
    result: SearchResult,
    query: ProcessedQuery,
    config: SearchConfig,
    terms: frozenset[str] | None = None,
) -> float:
    meta = result.chunk.metadata
    factor = 1.0
    if symbol_matches(meta.symbols, query.terms() if terms is None else terms):
        factor *= config.symbol_boost
    path = meta.file_path.lower()
    if any(keyword in path for keyword in query.keywords):
        factor *= config.path_boost
    languages = query.languages or tuple(config.preferred_languages)
    if meta.language in languages:
        factor *= config.language_boost
    return factor


def apply_relevance_boosts(
    results: Sequence[SearchResult],
    query: ProcessedQuery,
    config: SearchConfig | None = None,
) -> list[SearchResult]:
    """Multiply each result's relevance by its boosts and re-sort.

    Symbol match x1.5, keyword in file path x1.2, language bonus x1.1
    (factors configurable). The language bonus applies to languages the
    query names, or to the preferred languages when it names none.
    """
    cfg = config or SearchConfig()
    terms = query.terms()
    for result in results:
        result.relevance *= boost_factor(result, query, cfg, terms)
    return sort_results(results)
