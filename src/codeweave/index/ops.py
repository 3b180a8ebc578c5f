"""High-level orchestration of the chunk index.

This module implements the IndexCoordinator, the entry point for all
index operations. Serialization invariants:

- _index_lock: only ONE indexing run at a time
- _state_lock: chunk table, per-file chunk ids, file hashes and the
  symbol/concept index change together, under one lock
- embedding pairs live in an EmbeddingStore with its own lock; a pair is
  inserted and removed as a unit

Pipeline per run:
    discovery -> size gate -> hash gate -> chunking (thread pool)
    -> commit (stale chunks out, new chunks in) -> relationships
    -> embedding (serialized batches) -> save
"""

from __future__ import annotations

import threading
import time
from collections import Counter
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import structlog

from codeweave.cache.manager import CacheManager, CacheStats
from codeweave.config.loader import get_index_dir
from codeweave.config.models import CodeWeaveConfig
from codeweave.core.languages import detect_language
from codeweave.index._internal.chunking import ChunkBuilder, SymbolConceptIndex, build_relationships
from codeweave.index._internal.discovery import file_size, list_files, read_file
from codeweave.index._internal.ignore import IgnoreChecker
from codeweave.index._internal.indexing import (
    EmbeddingOrchestrator,
    EmbeddingService,
    EmbeddingStore,
    IndexSnapshot,
    IndexStore,
    JsonIndexStore,
    Manifest,
    build_services,
)
from codeweave.index.models import Chunk, Relationship
from codeweave.search.query import QueryAnalyzer
from codeweave.search.ranking import apply_relevance_boosts
from codeweave.search.vector import SearchResult, VectorSearchEngine

log = structlog.get_logger(__name__)

ProgressCallback = Callable[[str, int, int], None]
"""Called as ``(phase, done, total)``; phases are ``chunking`` and ``embedding``."""


class FileStatus(str, Enum):
    INDEXED = "indexed"
    UNCHANGED = "unchanged"
    OVERSIZE = "oversize"
    UNREADABLE = "unreadable"
    FAILED = "failed"


@dataclass
class FileOutcome:
    """Result of the per-file pipeline for one path."""

    path: str
    status: FileStatus
    content_hash: str | None = None
    chunks: list[Chunk] = field(default_factory=list)
    error: str | None = None


@dataclass
class IndexStats:
    """Statistics from an indexing operation."""

    files_scanned: int = 0
    files_indexed: int = 0
    files_unchanged: int = 0
    files_skipped: int = 0
    files_removed: int = 0
    chunks_added: int = 0
    chunks_removed: int = 0
    embeddings_added: int = 0
    failed_batches: int = 0
    relationships: int = 0
    relationships_by_kind: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    cancelled: bool = False
    timed_out: bool = False
    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "files_scanned": self.files_scanned,
            "files_indexed": self.files_indexed,
            "files_unchanged": self.files_unchanged,
            "files_skipped": self.files_skipped,
            "files_removed": self.files_removed,
            "chunks_added": self.chunks_added,
            "chunks_removed": self.chunks_removed,
            "embeddings_added": self.embeddings_added,
            "failed_batches": self.failed_batches,
            "relationships": self.relationships,
            "relationships_by_kind": dict(self.relationships_by_kind),
            "errors": list(self.errors),
            "cancelled": self.cancelled,
            "timed_out": self.timed_out,
            "duration_seconds": round(self.duration_seconds, 3),
        }


@dataclass
class IndexStatus:
    """Snapshot of what the coordinator currently holds."""

    repo_root: str
    index_dir: str | None
    files: int
    chunks: int
    embeddings: int
    chunks_by_level: dict[str, int]
    languages: dict[str, int]
    symbols: int
    concepts: int
    updated_at: float | None
    cache: CacheStats

    def to_dict(self) -> dict[str, Any]:
        return {
            "repo_root": self.repo_root,
            "index_dir": self.index_dir,
            "files": self.files,
            "chunks": self.chunks,
            "embeddings": self.embeddings,
            "chunks_by_level": dict(self.chunks_by_level),
            "languages": dict(self.languages),
            "symbols": self.symbols,
            "concepts": self.concepts,
            "updated_at": self.updated_at,
            "cache": self.cache.to_dict(),
        }


class IndexCoordinator:
    """Owns the chunk table, embedding store, cache and search engine.

    Usage::

        coordinator = IndexCoordinator(repo_root, config)
        coordinator.load()
        stats = coordinator.index_repository()
        results = coordinator.search("authentication flow", top_k=5)

    Args:
        repo_root: Repository to index.
        config: Resolved configuration. Defaults to built-in defaults.
        store: Persistence collaborator. Defaults to a ``JsonIndexStore``
            in the configured index directory.
        services: ``(code, concept)`` embedding services. Defaults to
            fastembed services built from ``config.embedding``.
        cache: Shared text-vector and query-vector cache. When omitted, one
            is built from ``config.cache`` and its expiry sweeper runs
            until ``close()``.
    """

    def __init__(
        self,
        repo_root: Path,
        config: CodeWeaveConfig | None = None,
        *,
        store: IndexStore | None = None,
        services: tuple[EmbeddingService | None, EmbeddingService | None] | None = None,
        cache: CacheManager[Any] | None = None,
    ) -> None:
        self._root = repo_root.resolve()
        self._config = config or CodeWeaveConfig()
        self._index_dir: Path | None = None
        if store is None:
            self._index_dir = get_index_dir(self._root, self._config)
            store = JsonIndexStore(self._index_dir)
        self._store = store

        self._owns_cache = cache is None
        self._cache: CacheManager[Any] = cache if cache is not None else CacheManager.from_config(self._config.cache)
        if self._owns_cache:
            self._cache.start_sweeper()
        code_service, concept_service = services if services is not None else build_services(self._config.embedding)
        self._orchestrator = EmbeddingOrchestrator(
            code_service,
            concept_service,
            EmbeddingStore(),
            self._config.embedding,
            cache=self._cache,
        )

        self._builder = ChunkBuilder(self._config.chunking)
        self._analyzer = QueryAnalyzer()

        self._index_lock = threading.Lock()
        self._state_lock = threading.RLock()
        self._chunks: dict[str, Chunk] = {}
        self._file_chunks: dict[str, list[str]] = {}
        self._file_hashes: dict[str, str] = {}
        self._symbols = SymbolConceptIndex()
        self._updated_at: float | None = None

        self._engine = VectorSearchEngine(
            self._orchestrator,
            self._chunks,
            analyzer=self._analyzer,
            config=self._config.search,
            cache=self._cache,
        )

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def repo_root(self) -> Path:
        return self._root

    @property
    def config(self) -> CodeWeaveConfig:
        return self._config

    @property
    def embeddings(self) -> EmbeddingStore:
        return self._orchestrator.store

    @property
    def engine(self) -> VectorSearchEngine:
        return self._engine

    @property
    def engine_ready(self) -> bool:
        """True when both embedding spaces have a service configured."""
        return self._orchestrator.ready

    @property
    def cache(self) -> CacheManager[Any]:
        return self._cache

    def get_chunk(self, chunk_id: str) -> Chunk | None:
        with self._state_lock:
            return self._chunks.get(chunk_id)

    def chunks(self) -> list[Chunk]:
        with self._state_lock:
            return list(self._chunks.values())

    def chunks_for_file(self, path: str) -> list[Chunk]:
        with self._state_lock:
            return [self._chunks[cid] for cid in self._file_chunks.get(path, []) if cid in self._chunks]

    def indexed_files(self) -> list[str]:
        with self._state_lock:
            return sorted(self._file_chunks)

    # =========================================================================
    # Indexing
    # =========================================================================

    def index_repository(
        self,
        paths: Iterable[str | Path] | None = None,
        *,
        full: bool = False,
        on_progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
        timeout: float | None = None,
    ) -> IndexStats:
        """Index the repository, or only ``paths`` when given.

        Unchanged files (same content hash as the last run) are skipped
        unless ``full``. Files that vanished are removed when the whole
        repository is scanned, or when a given path no longer exists.

        Per-file and per-batch failures are logged, counted in
        ``IndexStats.errors`` and skipped. Cancellation and timeout keep
        every chunk and embedding committed so far.

        Raises:
            StorageError: The index cannot be written.
        """
        with self._index_lock:
            return self._index(paths, full=full, on_progress=on_progress, cancel=cancel, timeout=timeout)

    def _index(
        self,
        paths: Iterable[str | Path] | None,
        *,
        full: bool,
        on_progress: ProgressCallback | None,
        cancel: threading.Event | None,
        timeout: float | None,
    ) -> IndexStats:
        start = time.monotonic()
        deadline = start + timeout if timeout is not None else None
        stats = IndexStats()
        index_cfg = self._config.index

        checker = IgnoreChecker(self._root, extra_patterns=index_cfg.ignore_patterns)
        listed = list_files(self._root, index_cfg.extensions, checker=checker)

        if paths is None:
            candidates = listed
            with self._state_lock:
                vanished = sorted(set(self._file_chunks) - set(listed))
        else:
            listed_set = set(listed)
            requested = sorted({self._relative(p) for p in paths})
            candidates = [p for p in requested if p in listed_set]
            vanished = [p for p in requested if p not in listed_set and not (self._root / p).is_file()]

        for path in vanished:
            stats.chunks_removed += self.remove_file(path)
            stats.files_removed += 1

        stats.files_scanned = len(candidates)
        with self._state_lock:
            known_hashes = {} if full else dict(self._file_hashes)

        outcomes = self._run_file_pipeline(candidates, known_hashes, stats, on_progress, cancel, deadline)

        new_chunks: list[Chunk] = []
        committed_hashes: dict[str, str] = {}
        for outcome in sorted(outcomes, key=lambda o: o.path):
            if outcome.status is FileStatus.UNCHANGED:
                stats.files_unchanged += 1
                continue
            if outcome.status is FileStatus.INDEXED:
                stats.chunks_removed += self._commit_file(outcome.path, outcome.chunks)
                new_chunks.extend(outcome.chunks)
                stats.chunks_added += len(outcome.chunks)
                stats.files_indexed += 1
                if outcome.content_hash is not None:
                    committed_hashes[outcome.path] = outcome.content_hash
                continue
            stats.files_skipped += 1
            if outcome.status is FileStatus.OVERSIZE:
                stats.chunks_removed += self.remove_file(outcome.path)
            if outcome.error:
                stats.errors.append(f"{outcome.path}: {outcome.error}")

        relationships = self._relationships(new_chunks)
        stats.relationships = len(relationships)
        stats.relationships_by_kind = dict(Counter(r.kind.value for r in relationships))

        if new_chunks and self._config.embedding.enabled:
            self._embed(new_chunks, committed_hashes, stats, on_progress, cancel, deadline)

        with self._state_lock:
            self._file_hashes.update(committed_hashes)
            self._updated_at = time.time()

        self.save()
        stats.duration_seconds = time.monotonic() - start
        log.info("index.run_complete", **{k: v for k, v in stats.to_dict().items() if k != "errors"})
        return stats

    def _relative(self, path: str | Path) -> str:
        p = Path(path)
        if p.is_absolute():
            try:
                p = p.resolve().relative_to(self._root)
            except ValueError:
                return p.as_posix()
        return p.as_posix()

    def _run_file_pipeline(
        self,
        candidates: list[str],
        known_hashes: dict[str, str],
        stats: IndexStats,
        on_progress: ProgressCallback | None,
        cancel: threading.Event | None,
        deadline: float | None,
    ) -> list[FileOutcome]:
        outcomes: list[FileOutcome] = []
        if not candidates:
            return outcomes

        total = len(candidates)
        executor = ThreadPoolExecutor(
            max_workers=self._config.indexer.max_workers,
            thread_name_prefix="codeweave-chunk",
        )
        try:
            futures: list[Future[FileOutcome]] = [
                executor.submit(self._process_file, path, known_hashes.get(path)) for path in candidates
            ]
            remaining = None if deadline is None else max(deadline - time.monotonic(), 0.0)
            try:
                for future in as_completed(futures, timeout=remaining):
                    outcomes.append(future.result())
                    if on_progress is not None:
                        on_progress("chunking", len(outcomes), total)
                    if cancel is not None and cancel.is_set():
                        stats.cancelled = True
                        log.info("index.cancelled", done=len(outcomes), total=total)
                        break
            except FutureTimeoutError:
                stats.timed_out = True
                log.warning("index.chunking_timeout", done=len(outcomes), total=total)
        finally:
            executor.shutdown(wait=True, cancel_futures=True)
        return outcomes

    def _process_file(self, rel_path: str, known_hash: str | None) -> FileOutcome:
        """Read, gate and chunk one file. Never raises."""
        abs_path = self._root / rel_path
        size = file_size(abs_path)
        if size is None:
            return FileOutcome(rel_path, FileStatus.UNREADABLE, error="cannot stat file")
        if size > self._config.index.max_file_size_bytes:
            log.debug("index.file_oversize", path=rel_path, size=size)
            return FileOutcome(rel_path, FileStatus.OVERSIZE)

        file = read_file(abs_path, rel_path)
        if file is None:
            return FileOutcome(rel_path, FileStatus.UNREADABLE, error="unreadable or not UTF-8")

        digest = file.content_hash
        if known_hash is not None and digest == known_hash:
            return FileOutcome(rel_path, FileStatus.UNCHANGED, content_hash=digest)

        try:
            chunks = self._builder.build(rel_path, file.content, detect_language(rel_path))
        except Exception as exc:
            log.warning("index.chunking_failed", path=rel_path, exc_info=True)
            return FileOutcome(rel_path, FileStatus.FAILED, error=str(exc))
        return FileOutcome(rel_path, FileStatus.INDEXED, content_hash=digest, chunks=chunks)

    def _commit_file(self, path: str, chunks: list[Chunk]) -> int:
        """Swap a file's chunks. Returns the number of stale chunks removed."""
        with self._state_lock:
            removed = self._drop_file_state(path)
            self._file_chunks[path] = [c.id for c in chunks]
            for chunk in chunks:
                self._chunks[chunk.id] = chunk
            self._symbols.add(chunks)
        return removed

    def _drop_file_state(self, path: str) -> int:
        old_ids = self._file_chunks.pop(path, [])
        for cid in old_ids:
            self._chunks.pop(cid, None)
        self._symbols.remove(old_ids)
        self._orchestrator.store.remove(old_ids)
        return len(old_ids)

    def _relationships(self, new_chunks: list[Chunk]) -> list[Relationship]:
        if not new_chunks:
            return []
        with self._state_lock:
            relationships = build_relationships(new_chunks, self._symbols)
        log.debug("index.relationships", count=len(relationships))
        return relationships

    def _embed(
        self,
        new_chunks: list[Chunk],
        committed_hashes: dict[str, str],
        stats: IndexStats,
        on_progress: ProgressCallback | None,
        cancel: threading.Event | None,
        deadline: float | None,
    ) -> None:
        if stats.cancelled or (cancel is not None and cancel.is_set()):
            stats.cancelled = True
            committed_hashes.clear()
            return
        remaining = None if deadline is None else deadline - time.monotonic()
        if remaining is not None and remaining <= 0:
            stats.timed_out = True
            committed_hashes.clear()
            return

        def _progress(done: int, total: int) -> None:
            if on_progress is not None:
                on_progress("embedding", done, total)

        result = self._orchestrator.embed_chunks(
            new_chunks,
            cancel=cancel,
            on_progress=_progress,
            timeout=remaining,
        )
        stats.embeddings_added = result.embedded
        stats.failed_batches = result.failed_batches
        stats.cancelled = stats.cancelled or result.cancelled
        stats.timed_out = stats.timed_out or result.timed_out
        if result.failed_batches:
            stats.errors.append(f"{result.failed_batches} embedding batch(es) failed")

        self._cache.optimize()

        if not result.complete and self._orchestrator.ready:
            # Files with unembedded chunks are retried on the next run
            store = self._orchestrator.store
            for path in {c.file_path for c in new_chunks if c.id not in store}:
                committed_hashes.pop(path, None)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def remove_file(self, path: str | Path) -> int:
        """Remove a file's chunks and embeddings. Returns chunks removed."""
        rel = self._relative(path)
        with self._state_lock:
            removed = self._drop_file_state(rel)
            self._file_hashes.pop(rel, None)
        if removed:
            log.debug("index.file_removed", path=rel, chunks=removed)
        return removed

    def clear(self) -> None:
        """Drop everything in memory and on disk."""
        with self._index_lock, self._state_lock:
            self._chunks.clear()
            self._file_chunks.clear()
            self._file_hashes.clear()
            self._symbols.clear()
            self._orchestrator.store.clear()
            self._updated_at = None
            self._cache.clear()
            self._store.clear()
        log.info("index.cleared", root=str(self._root))

    def load(self) -> bool:
        """Load the persisted index. Returns False when none exists.

        Raises:
            StorageError: The index exists but cannot be read.
        """
        snapshot = self._store.load()
        if snapshot is None:
            return False
        with self._state_lock:
            self._chunks.clear()
            self._chunks.update(snapshot.chunks)
            self._file_chunks.clear()
            for chunk in snapshot.chunks.values():
                self._file_chunks.setdefault(chunk.file_path, []).append(chunk.id)
            self._symbols.clear()
            self._symbols.add(snapshot.chunks.values())
            self._file_hashes = {
                path: digest for path, digest in snapshot.manifest.files.items() if path in self._file_chunks
            }
            self._updated_at = snapshot.manifest.updated_at or None
            self._orchestrator.store.replace_all(snapshot.embeddings)
        return True

    def save(self) -> None:
        """Persist chunks, embeddings and the manifest.

        Raises:
            StorageError: The index directory or a document cannot be written.
        """
        with self._state_lock:
            snapshot = IndexSnapshot(
                chunks=dict(self._chunks),
                embeddings=self._orchestrator.store.snapshot(),
                manifest=Manifest(files=dict(self._file_hashes)),
            )
        self._store.save(snapshot)

    def stats(self) -> IndexStatus:
        with self._state_lock:
            levels = Counter(c.level.value for c in self._chunks.values())
            languages = Counter(
                self._chunks[ids[0]].metadata.language for ids in self._file_chunks.values() if ids
            )
            return IndexStatus(
                repo_root=str(self._root),
                index_dir=str(self._index_dir) if self._index_dir is not None else None,
                files=len(self._file_chunks),
                chunks=len(self._chunks),
                embeddings=len(self._orchestrator.store),
                chunks_by_level=dict(levels),
                languages=dict(languages),
                symbols=self._symbols.symbol_count,
                concepts=self._symbols.concept_count,
                updated_at=self._updated_at,
                cache=self._cache.stats(),
            )

    def close(self) -> None:
        """Stop the cache sweeper and release the embedding worker."""
        self._orchestrator.close()
        if self._owns_cache:
            self._cache.close()

    # =========================================================================
    # Search
    # =========================================================================

    def search(
        self,
        query: str,
        top_k: int | None = None,
        *,
        boost: bool = True,
        timeout: float | None = None,
    ) -> list[SearchResult]:
        """Vector search with lexical relevance boosts.

        Returns an empty list when the index is empty or embeddings are
        unavailable.
        """
        processed = self._analyzer.analyze(query)
        results = self._engine.search(processed, top_k, timeout=timeout)
        if boost and results:
            results = apply_relevance_boosts(results, processed, self._config.search)
        return results
