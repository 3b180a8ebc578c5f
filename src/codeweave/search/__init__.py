"""Query analysis, vector search and relevance ranking."""

from codeweave.search.query import ProcessedQuery, QueryAnalyzer, QueryIntent
from codeweave.search.ranking import apply_relevance_boosts
from codeweave.search.vector import SearchResult, VectorSearchEngine, cosine_similarity

__all__ = [
    "ProcessedQuery",
    "QueryAnalyzer",
    "QueryIntent",
    "SearchResult",
    "VectorSearchEngine",
    "apply_relevance_boosts",
    "cosine_similarity",
]
