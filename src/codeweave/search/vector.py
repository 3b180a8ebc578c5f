"""Dual-space vector search with max-fusion.

Search flow:
1. Analyze the query (intent, entities, keywords, expansions)
2. Build one embedding string: original + 3 expansions + entities + keywords
3. Embed it once per space (code, concept); vectors are cached per string
4. Rank every stored vector per space by cosine similarity and keep
   floor(top_k * code_weight) code hits and floor(top_k * concept_weight)
   concept hits
5. Fuse by chunk id: relevance is the max of the weighted similarities,
   score the max raw similarity; sort by (relevance desc, chunk id)

A missing or failing embedding service degrades to an empty result list
with a warning, never an exception.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np
import structlog

from codeweave.config.constants import SEARCH_MAX_TOP_K
from codeweave.config.models import SearchConfig
from codeweave.index.models import Chunk, EmbeddingPair
from codeweave.search.query import ProcessedQuery, QueryAnalyzer

if TYPE_CHECKING:
    from codeweave.cache.manager import CacheManager
    from codeweave.index._internal.indexing.embedding import EmbeddingOrchestrator

log = structlog.get_logger(__name__)


def cosine_similarity(a: Any, b: Any) -> float:
    """Cosine of the angle between ``a`` and ``b``.

    0.0 when either vector is all zeros or the shapes differ.
    """
    va = np.asarray(a, dtype=np.float64).ravel()
    vb = np.asarray(b, dtype=np.float64).ravel()
    if va.shape != vb.shape:
        return 0.0
    denom = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


@dataclass(slots=True)
class SearchResult:
    """One ranked hit.

    ``score`` is the raw cosine similarity and ``distance`` is
    ``1 - score``. ``relevance`` is the fused value that later boosts
    multiply.
    """

    chunk: Chunk
    score: float
    distance: float
    relevance: float

    @property
    def chunk_id(self) -> str:
        return self.chunk.id

    def to_dict(self, include_content: bool = True) -> dict[str, Any]:
        meta = self.chunk.metadata
        record: dict[str, Any] = {
            "chunkId": self.chunk.id,
            "level": self.chunk.level.value,
            "filePath": meta.file_path,
            "startLine": meta.start_line,
            "endLine": meta.end_line,
            "language": meta.language,
            "symbols": list(meta.symbols),
            "score": self.score,
            "distance": self.distance,
            "relevance": self.relevance,
        }
        if include_content:
            record["content"] = self.chunk.content
        return record


def sort_results(results: Iterable[SearchResult]) -> list[SearchResult]:
    """Relevance descending, chunk id ascending on ties."""
    return sorted(results, key=lambda r: (-r.relevance, r.chunk.id))


def rank_space(
    query_vec: np.ndarray,
    vectors: Mapping[str, np.ndarray],
    limit: int,
) -> list[tuple[str, float]]:
    """Top ``limit`` (chunk id, similarity) pairs, similarity descending.

    Stored vectors whose dimension differs from the query's are skipped.
    Ties are ordered by chunk id.
    """
    if limit <= 0 or not vectors:
        return []
    q = np.asarray(query_vec, dtype=np.float32).ravel()
    dim = q.shape[0]
    ids = [cid for cid, vec in vectors.items() if vec.shape == (dim,)]
    if not ids:
        return []

    matrix = np.stack([vectors[cid] for cid in ids]).astype(np.float32)
    q_norm = float(np.linalg.norm(q))
    if q_norm == 0.0:
        sims = np.zeros(len(ids), dtype=np.float32)
    else:
        norms = np.linalg.norm(matrix, axis=1)
        dots = matrix @ q
        sims = np.where(norms > 0, dots / np.maximum(norms * q_norm, 1e-10), 0.0)

    ranked = sorted(zip(ids, (float(s) for s in sims), strict=True), key=lambda item: (-item[1], item[0]))
    return ranked[:limit]


def fuse(
    hits: Iterable[tuple[list[tuple[str, float]], float]],
    chunks: Mapping[str, Chunk],
) -> dict[str, SearchResult]:
    """Merge per-space hit lists keyed by chunk id.

    Each element of ``hits`` is ``(ranked hits, weight)``. A chunk found
    in several spaces keeps the max weighted relevance and the max raw
    similarity. Hits whose chunk is not in ``chunks`` are dropped.
    """
    fused: dict[str, SearchResult] = {}
    for ranked, weight in hits:
        for chunk_id, similarity in ranked:
            chunk = chunks.get(chunk_id)
            if chunk is None:
                continue
            relevance = similarity * weight
            existing = fused.get(chunk_id)
            if existing is None:
                fused[chunk_id] = SearchResult(
                    chunk=chunk,
                    score=similarity,
                    distance=1.0 - similarity,
                    relevance=relevance,
                )
                continue
            existing.relevance = max(existing.relevance, relevance)
            if similarity > existing.score:
                existing.score = similarity
                existing.distance = 1.0 - similarity
    return fused


class VectorSearchEngine:
    """Nearest-neighbour search over the stored embedding pairs.

    Read-only over the pair store: each search works on one
    ``snapshot()``, so it may run concurrently with other searches and
    with indexing without observing a half-written pair.
    """

    def __init__(
        self,
        orchestrator: EmbeddingOrchestrator | None,
        chunks: Mapping[str, Chunk],
        *,
        analyzer: QueryAnalyzer | None = None,
        config: SearchConfig | None = None,
        cache: CacheManager[Any] | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._chunks = chunks
        self._analyzer = analyzer or QueryAnalyzer()
        self._config = config or SearchConfig()
        self._cache = cache

    @property
    def analyzer(self) -> QueryAnalyzer:
        return self._analyzer

    def _resolve_top_k(self, top_k: int | None) -> int:
        k = self._config.default_top_k if top_k is None else top_k
        return min(k, SEARCH_MAX_TOP_K)

    def _query_pair(self, text: str, timeout: float | None) -> EmbeddingPair | None:
        key = f"query:{text}"
        if self._cache is not None:
            cached = self._cache.get(key)
            if cached is not None:
                code, concept = cached
                return EmbeddingPair(
                    code=np.asarray(code, dtype=np.float32),
                    concept=np.asarray(concept, dtype=np.float32),
                )

        if self._orchestrator is None:
            return None
        pair = self._orchestrator.embed_query(text, timeout=timeout)
        if pair is not None and self._cache is not None:
            self._cache.set(key, (pair.code, pair.concept))
        return pair

    def search(
        self,
        query: str | ProcessedQuery,
        top_k: int | None = None,
        *,
        timeout: float | None = None,
    ) -> list[SearchResult]:
        """Fused results, at most ``top_k`` of them.

        Returns an empty list (with a warning) when no embedding service is
        configured or the query cannot be embedded, and an empty list when
        the index holds no vectors.
        """
        k = self._resolve_top_k(top_k)
        if k <= 0:
            return []
        processed = self._analyzer.analyze(query) if isinstance(query, str) else query

        if self._orchestrator is None or not self._orchestrator.ready:
            log.warning("search.embedding_unavailable", query=processed.original)
            return []

        pairs = self._orchestrator.store.snapshot()
        if not pairs:
            log.info("search.empty_index", query=processed.original)
            return []

        start = time.monotonic()
        query_pair = self._query_pair(processed.embedding_text(), timeout)
        if query_pair is None:
            log.warning("search.embedding_unavailable", query=processed.original)
            return []

        code_weight = self._config.code_weight
        concept_weight = self._config.concept_weight
        code_hits = rank_space(
            query_pair.code,
            {cid: pair.code for cid, pair in pairs.items()},
            math.floor(k * code_weight),
        )
        concept_hits = rank_space(
            query_pair.concept,
            {cid: pair.concept for cid, pair in pairs.items()},
            math.floor(k * concept_weight),
        )

        fused = fuse([(code_hits, code_weight), (concept_hits, concept_weight)], self._chunks)
        results = sort_results(fused.values())[:k]
        log.debug(
            "search.completed",
            query=processed.original,
            intent=processed.intent.value,
            code_hits=len(code_hits),
            concept_hits=len(concept_hits),
            results=len(results),
            elapsed_ms=round((time.monotonic() - start) * 1000),
        )
        return results

    def search_with_filter(
        self,
        query: str | ProcessedQuery,
        predicate: Callable[[Chunk], bool],
        top_k: int | None = None,
    ) -> list[SearchResult]:
        """Over-fetch 2x, keep results whose chunk passes ``predicate``."""
        k = self._resolve_top_k(top_k)
        results = self.search(query, k * 2)
        return [r for r in results if predicate(r.chunk)][:k]

    def search_with_boost(
        self,
        query: str | ProcessedQuery,
        boost: Callable[[Chunk], float],
        top_k: int | None = None,
    ) -> list[SearchResult]:
        """Over-fetch 2x, multiply relevance and score by ``boost(chunk)``, re-sort."""
        k = self._resolve_top_k(top_k)
        results = self.search(query, k * 2)
        for result in results:
            factor = boost(result.chunk)
            result.relevance *= factor
            result.score *= factor
        return sort_results(results)[:k]
