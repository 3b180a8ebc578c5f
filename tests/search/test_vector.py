"""Tests for dual-space vector search."""

from __future__ import annotations

import math

import numpy as np
import pytest

from codeweave.cache.manager import CacheManager
from codeweave.config.models import EmbeddingConfig
from codeweave.index._internal.indexing import EmbeddingOrchestrator
from codeweave.index.models import EmbeddingPair
from codeweave.search.query import QueryAnalyzer
from codeweave.search.vector import (
    SearchResult,
    VectorSearchEngine,
    cosine_similarity,
    fuse,
    rank_space,
    sort_results,
)
from fakes import FakeEmbeddingService, make_chunk, token_vector

DIM = 256

CORPUS = {
    "login": ("login user session token", "typescript"),
    "chart": ("render chart axis legend", "python"),
    "query": ("database query builder rows", "python"),
    "cache": ("cache eviction ttl entries", "typescript"),
}


def _vec(*values: float) -> np.ndarray:
    return np.asarray(values, dtype=np.float32)


@pytest.fixture
def cache() -> CacheManager:
    return CacheManager()


@pytest.fixture
def engine(cache: CacheManager) -> VectorSearchEngine:
    """Engine whose stored vectors are bag-of-token embeddings of each chunk text."""
    service = FakeEmbeddingService(dim=DIM)
    orchestrator = EmbeddingOrchestrator(service, config=EmbeddingConfig(timeout_sec=None))
    chunks = {}
    for cid, (text, language) in CORPUS.items():
        ext = "ts" if language == "typescript" else "py"
        chunks[cid] = make_chunk(cid, text, language=language, file_path=f"src/{cid}.{ext}")
        vec = token_vector(text, DIM)
        orchestrator.store.put(cid, EmbeddingPair(code=vec, concept=vec))
    return VectorSearchEngine(orchestrator, chunks, cache=cache)


class TestCosineSimilarity:
    def test_identical(self) -> None:
        assert cosine_similarity([1, 2, 3], [1, 2, 3]) == pytest.approx(1.0)

    def test_orthogonal_and_opposite(self) -> None:
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
        assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)

    def test_scale_invariant(self) -> None:
        assert cosine_similarity([1, 2], [10, 20]) == pytest.approx(1.0)

    @pytest.mark.parametrize(("a", "b"), [([0, 0], [1, 1]), ([1, 2], [1, 2, 3])])
    def test_degenerate_inputs(self, a: list[int], b: list[int]) -> None:
        assert cosine_similarity(a, b) == 0.0


class TestRankSpace:
    def test_orders_by_similarity_and_limits(self) -> None:
        vectors = {"a": _vec(1, 0), "b": _vec(0.9, 0.1), "c": _vec(0, 1)}
        ranked = rank_space(_vec(1, 0), vectors, 2)
        assert [cid for cid, _ in ranked] == ["a", "b"]
        assert ranked[0][1] == pytest.approx(1.0)

    def test_ties_ordered_by_id(self) -> None:
        vectors = {"z": _vec(1, 0), "a": _vec(2, 0)}
        assert [cid for cid, _ in rank_space(_vec(1, 0), vectors, 5)] == ["a", "z"]

    def test_skips_other_dimensions(self) -> None:
        vectors = {"a": _vec(1, 0), "b": _vec(1, 0, 0)}
        assert [cid for cid, _ in rank_space(_vec(1, 0), vectors, 5)] == ["a"]

    def test_zero_limit(self) -> None:
        assert rank_space(_vec(1, 0), {"a": _vec(1, 0)}, 0) == []

    def test_zero_query(self) -> None:
        ranked = rank_space(_vec(0, 0), {"a": _vec(1, 0)}, 1)
        assert ranked == [("a", 0.0)]


class TestFuse:
    def test_keeps_max_weighted_relevance_and_max_score(self) -> None:
        chunks = {"a": make_chunk("a"), "b": make_chunk("b")}

        fused = fuse([([("a", 0.5), ("b", 0.2)], 0.6), ([("a", 0.9)], 0.4)], chunks)

        assert fused["a"].relevance == pytest.approx(max(0.5 * 0.6, 0.9 * 0.4))
        assert fused["a"].score == pytest.approx(0.9)
        assert fused["a"].distance == pytest.approx(0.1)
        assert fused["b"].relevance == pytest.approx(0.2 * 0.6)

    def test_drops_unknown_chunks(self) -> None:
        fused = fuse([([("ghost", 0.9)], 1.0)], {})
        assert fused == {}

    def test_sort_breaks_ties_by_id(self) -> None:
        results = [
            SearchResult(make_chunk(cid), score=0.5, distance=0.5, relevance=0.3) for cid in ("b", "c", "a")
        ]
        assert [r.chunk_id for r in sort_results(results)] == ["a", "b", "c"]


class TestVectorSearchEngine:
    def test_best_match_first(self, engine: VectorSearchEngine) -> None:
        results = engine.search("login user", top_k=5)
        assert results[0].chunk_id == "login"

    def test_result_count_follows_space_shares(self, engine: VectorSearchEngine) -> None:
        """top_k=5 asks for 3 code and 2 concept hits; identical spaces overlap fully."""
        results = engine.search("login user", top_k=5)
        assert len(results) == 3

    def test_top_k_one_returns_nothing(self, engine: VectorSearchEngine) -> None:
        assert math.floor(1 * 0.6) == 0
        assert engine.search("login user", top_k=1) == []

    def test_top_k_zero(self, engine: VectorSearchEngine) -> None:
        assert engine.search("login", top_k=0) == []

    def test_accepts_processed_query(self, engine: VectorSearchEngine) -> None:
        processed = QueryAnalyzer().analyze("render chart")
        assert engine.search(processed, top_k=5)[0].chunk_id == "chart"

    def test_query_vector_cached_under_query_key(self, engine: VectorSearchEngine, cache: CacheManager) -> None:
        engine.search("render chart", top_k=5)
        text = engine.analyzer.analyze("render chart").embedding_text()
        assert cache.has(f"query:{text}")

    def test_without_orchestrator(self) -> None:
        assert VectorSearchEngine(None, {}).search("anything") == []

    def test_without_service(self) -> None:
        assert VectorSearchEngine(EmbeddingOrchestrator(None), {}).search("anything") == []

    def test_failing_service(self) -> None:
        orchestrator = EmbeddingOrchestrator(FakeEmbeddingService(fail_on=range(10)))
        orchestrator.store.put("a", EmbeddingPair(code=_vec(1, 0), concept=_vec(1, 0)))
        assert VectorSearchEngine(orchestrator, {"a": make_chunk("a")}).search("anything") == []


class TestFilterAndBoost:
    def test_filter_keeps_matching_chunks(self, engine: VectorSearchEngine) -> None:
        results = engine.search_with_filter("login user", lambda c: c.metadata.language == "python", top_k=5)
        assert results
        assert all(r.chunk.metadata.language == "python" for r in results)

    def test_boost_multiplies_relevance_and_score(self, engine: VectorSearchEngine) -> None:
        plain = {r.chunk_id: r for r in engine.search("login user", top_k=10)}

        boosted = engine.search_with_boost("login user", lambda c: 2.0 if c.id == "login" else 1.0, top_k=5)

        top = boosted[0]
        assert top.chunk_id == "login"
        assert top.relevance == pytest.approx(plain["login"].relevance * 2)
        assert top.score == pytest.approx(plain["login"].score * 2)

    def test_boost_can_demote(self, engine: VectorSearchEngine) -> None:
        results = engine.search_with_boost("login user", lambda c: 0.0 if c.id == "login" else 1.0, top_k=5)
        login = next(r for r in results if r.chunk_id == "login")
        assert login.relevance == 0.0
