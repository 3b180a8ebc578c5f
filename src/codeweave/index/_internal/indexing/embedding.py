"""Dual-space chunk embedding: services, pair store and orchestrator.

Every chunk gets two vectors:
- code space: the chunk text plus file/language/symbol trailer lines
- concept space: a natural-language rendering (path phrase, split
  identifier words, concept tags, dependencies, then the head of the text)

The embedding model is an external collaborator behind the
``EmbeddingService`` protocol (``embed(texts) -> vectors`` in input
order). ``FastEmbedService`` is the fastembed-backed implementation.

Batching:
  Texts are grouped into fixed-size batches (default 500). Each batch is
  submitted under one lock to a single service worker, so concurrent
  callers never interleave at the service boundary and a timed-out call
  still holds the worker until it returns. A batch that raises, times
  out or returns the wrong number of vectors is logged and skipped; the
  run continues with the next batch. An index may therefore hold fewer
  pairs than chunks.

Atomicity:
  ``EmbeddingStore`` holds chunk id -> ``EmbeddingPair``. A batch's pairs
  are published with one locked update, and removals likewise, so a
  reader never sees a code vector without its concept twin.
"""

from __future__ import annotations

import hashlib
import os
import threading
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

import numpy as np
import structlog

from codeweave.config.models import EmbeddingConfig
from codeweave.core.errors import CodeWeaveError, EmbeddingError, ErrorCode
from codeweave.index._internal.chunking.words import path_to_phrase, word_split
from codeweave.index.models import Chunk, EmbeddingPair

if TYPE_CHECKING:
    from codeweave.cache.manager import CacheManager

log = structlog.get_logger(__name__)

CODE_SPACE = "code"
CONCEPT_SPACE = "concept"

# Symbols listed in the code-space trailer
_TRAILER_SYMBOLS_MAX = 20


# ===================================================================
# Service protocol + fastembed implementation
# ===================================================================


class EmbeddingService(Protocol):
    """External embedding model: one vector per input text, in order."""

    def embed(self, texts: Sequence[str]) -> list[np.ndarray]: ...


def _detect_providers() -> list[str]:
    """Detect ONNX Runtime execution providers (GPU-aware)."""
    try:
        import onnxruntime as ort

        available = ort.get_available_providers()
        if "CUDAExecutionProvider" in available:
            return ["CUDAExecutionProvider", "CPUExecutionProvider"]
    except ImportError:
        pass
    return ["CPUExecutionProvider"]


def l2_normalize(matrix: np.ndarray) -> np.ndarray:
    """Row-wise L2 normalization. Zero rows stay zero."""
    matrix = np.asarray(matrix, dtype=np.float32)
    if matrix.ndim == 1:
        norm = float(np.linalg.norm(matrix))
        return matrix / norm if norm > 0 else matrix
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    return matrix / np.maximum(norms, 1e-10)


class FastEmbedService:
    """fastembed ``TextEmbedding`` wrapper with lazy model loading.

    The model is loaded on first use. If fastembed is missing or the model
    fails to load, the service disables itself and every ``embed`` call
    raises ``EmbeddingError.unavailable``.
    """

    def __init__(self, model_name: str, space: str = CODE_SPACE, batch_size: int = 32) -> None:
        self._model_name = model_name
        self._space = space
        self._batch_size = batch_size
        self._model: Any = None
        self._disabled = False
        self._load_lock = threading.Lock()

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def available(self) -> bool:
        self._ensure_model()
        return self._model is not None

    def embed(self, texts: Sequence[str]) -> list[np.ndarray]:
        self._ensure_model()
        if self._model is None:
            raise EmbeddingError.unavailable(self._space, f"model '{self._model_name}' could not be loaded")
        if not texts:
            return []
        vectors = list(self._model.embed(list(texts), batch_size=self._batch_size))
        matrix = l2_normalize(np.array(vectors, dtype=np.float32))
        return list(matrix)

    def _ensure_model(self) -> None:
        """Lazy-load fastembed TextEmbedding model with GPU auto-detect."""
        if self._model is not None or self._disabled:
            return
        with self._load_lock:
            if self._model is not None or self._disabled:
                return
            try:
                from fastembed import TextEmbedding

                providers = _detect_providers()
                threads = max(1, (os.cpu_count() or 4) // 2)
                start = time.monotonic()
                self._model = TextEmbedding(
                    model_name=self._model_name,
                    providers=providers,
                    threads=threads,
                )
                log.info(
                    "embedding.model_loaded",
                    model=self._model_name,
                    space=self._space,
                    providers=providers,
                    threads=threads,
                    elapsed_s=round(time.monotonic() - start, 2),
                )
            except ImportError:
                log.warning("embedding.fastembed_not_installed", hint="pip install fastembed")
                self._disabled = True
            except Exception:
                log.warning("embedding.model_load_failed", model=self._model_name, exc_info=True)
                self._disabled = True


# ===================================================================
# Pair store
# ===================================================================


class EmbeddingStore:
    """Thread-safe chunk id -> ``EmbeddingPair`` map.

    Writers replace whole pairs under the lock. ``snapshot()`` returns an
    independent dict, so searches iterate without holding the lock and
    never observe a half-applied batch.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pairs: dict[str, EmbeddingPair] = {}
        self._version = 0

    def put_many(self, pairs: Mapping[str, EmbeddingPair]) -> None:
        if not pairs:
            return
        with self._lock:
            self._pairs.update(pairs)
            self._version += 1

    def put(self, chunk_id: str, pair: EmbeddingPair) -> None:
        self.put_many({chunk_id: pair})

    def remove(self, chunk_ids: Iterable[str]) -> int:
        with self._lock:
            removed = 0
            for cid in chunk_ids:
                if self._pairs.pop(cid, None) is not None:
                    removed += 1
            if removed:
                self._version += 1
            return removed

    def get(self, chunk_id: str) -> EmbeddingPair | None:
        with self._lock:
            return self._pairs.get(chunk_id)

    def snapshot(self) -> dict[str, EmbeddingPair]:
        with self._lock:
            return dict(self._pairs)

    def replace_all(self, pairs: Mapping[str, EmbeddingPair]) -> None:
        with self._lock:
            self._pairs = dict(pairs)
            self._version += 1

    def clear(self) -> None:
        with self._lock:
            self._pairs.clear()
            self._version += 1

    @property
    def version(self) -> int:
        """Incremented on every mutation."""
        return self._version

    def __contains__(self, chunk_id: object) -> bool:
        with self._lock:
            return chunk_id in self._pairs

    def __len__(self) -> int:
        with self._lock:
            return len(self._pairs)


# ===================================================================
# Text preparation
# ===================================================================


def prepare_code_text(chunk: Chunk, max_chars: int = 2000) -> str:
    """Chunk text followed by ``// File:``, ``// Language:`` and ``// Symbols:`` lines."""
    meta = chunk.metadata
    trailer = f"\n// File: {meta.file_path}\n// Language: {meta.language}"
    if meta.symbols:
        trailer += f"\n// Symbols: {', '.join(meta.symbols[:_TRAILER_SYMBOLS_MAX])}"
    budget = max(0, max_chars - len(trailer))
    return chunk.content[:budget] + trailer


def prepare_concept_text(chunk: Chunk, max_chars: int = 1200) -> str:
    """Natural-language rendering of a chunk for the concept space."""
    meta = chunk.metadata
    lines = [f"{chunk.level.value} in {path_to_phrase(meta.file_path)}"]

    words: dict[str, None] = {}
    for symbol in meta.symbols:
        for word in word_split(symbol):
            words.setdefault(word, None)
    if words:
        lines.append("names " + " ".join(words))
    if meta.concepts:
        lines.append("concepts " + ", ".join(meta.concepts))
    if meta.dependencies:
        lines.append("uses " + ", ".join(path_to_phrase(d) or d for d in meta.dependencies))

    header = "\n".join(lines)
    remaining = max_chars - len(header) - 1
    if remaining > 0:
        header += "\n" + chunk.content[:remaining]
    return header[:max_chars]


def _text_key(space: str, model: str, text: str) -> str:
    digest = hashlib.sha256(text.encode("utf-8", errors="surrogatepass")).hexdigest()
    return f"emb:{space}:{model}:{digest}"


# ===================================================================
# Orchestrator
# ===================================================================


@dataclass(slots=True)
class EmbedResult:
    """Outcome of one ``embed_chunks`` run."""

    requested: int = 0
    embedded: int = 0
    failed_batches: int = 0
    skipped: int = 0
    cancelled: bool = False
    timed_out: bool = False

    @property
    def complete(self) -> bool:
        return self.embedded == self.requested


ProgressCallback = Callable[[int, int], None]


class EmbeddingOrchestrator:
    """Batches chunk texts through both embedding spaces into the store.

    Args:
        code_service: Service for the code-literal space.
        concept_service: Service for the concept space. Defaults to
            ``code_service``.
        store: Destination for finished pairs.
        config: Batch size, per-batch timeout and text budgets.
        cache: Optional text-vector cache shared across runs.
    """

    def __init__(
        self,
        code_service: EmbeddingService | None,
        concept_service: EmbeddingService | None = None,
        store: EmbeddingStore | None = None,
        config: EmbeddingConfig | None = None,
        cache: CacheManager[np.ndarray] | None = None,
    ) -> None:
        self._code = code_service
        self._concept = concept_service if concept_service is not None else code_service
        self.store = store if store is not None else EmbeddingStore()
        self._config = config or EmbeddingConfig()
        self._cache = cache
        self._batch_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="codeweave-embed")

    @property
    def ready(self) -> bool:
        return self._code is not None and self._concept is not None

    def close(self) -> None:
        """Release the service worker. Pending calls are cancelled."""
        self._executor.shutdown(wait=False, cancel_futures=True)

    @property
    def batch_size(self) -> int:
        return self._config.batch_size

    # --- Indexing ---

    def embed_chunks(
        self,
        chunks: Sequence[Chunk],
        *,
        cancel: threading.Event | None = None,
        on_progress: ProgressCallback | None = None,
        timeout: float | None = None,
        strict: bool = False,
    ) -> EmbedResult:
        """Embed ``chunks`` in batches and publish pairs to the store.

        Each finished batch is committed before the next starts, so a
        cancelled or timed-out run keeps everything embedded so far.

        Args:
            cancel: Checked between batches.
            on_progress: Called as ``(chunks_done, total)`` after each batch.
            timeout: Overall budget in seconds for the run.
            strict: Raise instead of returning an empty result when no
                service is configured.

        Raises:
            EmbeddingError: ``strict`` and a service is missing or unavailable.
        """
        result = EmbedResult(requested=len(chunks))
        if not chunks:
            return result

        if not self.ready:
            if strict:
                raise EmbeddingError.unavailable(CODE_SPACE if self._code is None else CONCEPT_SPACE)
            log.warning("embedding.no_service", chunks=len(chunks))
            result.skipped = len(chunks)
            return result

        deadline = time.monotonic() + timeout if timeout is not None else None
        batch_size = self._config.batch_size
        total = len(chunks)
        batch_count = (total + batch_size - 1) // batch_size

        for batch_no, start in enumerate(range(0, total, batch_size), start=1):
            batch = chunks[start : start + batch_size]

            if cancel is not None and cancel.is_set():
                log.info("embedding.cancelled", done=start, total=total)
                result.cancelled = True
                result.skipped += total - start
                break
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                log.warning("embedding.run_timeout", done=start, total=total, timeout=timeout)
                result.timed_out = True
                result.skipped += total - start
                break

            try:
                pairs = self._embed_batch(batch, remaining)
            except EmbeddingError as exc:
                if exc.code == ErrorCode.EMBEDDING_UNAVAILABLE:
                    if strict:
                        raise
                    log.warning("embedding.unavailable", error=exc.message, remaining=total - start)
                    result.skipped += total - start
                    break
                log.warning(
                    "embedding.batch_failed",
                    batch=batch_no,
                    batches=batch_count,
                    error=exc.message,
                )
                result.failed_batches += 1
                result.skipped += len(batch)
                continue
            except Exception:
                log.warning("embedding.batch_failed", batch=batch_no, batches=batch_count, exc_info=True)
                result.failed_batches += 1
                result.skipped += len(batch)
                continue

            self.store.put_many(pairs)
            result.embedded += len(pairs)
            log.debug("embedding.batch_done", batch=batch_no, batches=batch_count, size=len(batch))
            if on_progress is not None:
                on_progress(min(start + len(batch), total), total)

        log.info(
            "embedding.run_complete",
            requested=result.requested,
            embedded=result.embedded,
            failed_batches=result.failed_batches,
            skipped=result.skipped,
        )
        return result

    def _embed_batch(self, batch: Sequence[Chunk], timeout: float | None) -> dict[str, EmbeddingPair]:
        cfg = self._config
        code_texts = [prepare_code_text(c, cfg.code_max_chars) for c in batch]
        concept_texts = [prepare_concept_text(c, cfg.concept_max_chars) for c in batch]

        with self._batch_lock:
            code_vecs = self._vectors(CODE_SPACE, self._code, cfg.code_model, code_texts, timeout)
            concept_vecs = self._vectors(CONCEPT_SPACE, self._concept, cfg.concept_model, concept_texts, timeout)

        return {
            chunk.id: EmbeddingPair(code=code, concept=concept)
            for chunk, code, concept in zip(batch, code_vecs, concept_vecs, strict=True)
        }

    def _vectors(
        self,
        space: str,
        service: EmbeddingService | None,
        model: str,
        texts: list[str],
        timeout: float | None,
    ) -> list[np.ndarray]:
        """Vectors for ``texts``, consulting the cache before the service."""
        if service is None:
            raise EmbeddingError.unavailable(space)

        found: dict[int, np.ndarray] = {}
        missing: list[int] = []
        for i, text in enumerate(texts):
            cached = self._cache.get(_text_key(space, model, text)) if self._cache is not None else None
            if cached is not None:
                found[i] = cached
            else:
                missing.append(i)

        if missing:
            fresh = self._call(space, service, [texts[i] for i in missing], timeout)
            for i, vec in zip(missing, fresh, strict=True):
                found[i] = vec
                if self._cache is not None:
                    self._cache.set(_text_key(space, model, texts[i]), vec)

        return [found[i] for i in range(len(texts))]

    def _call(
        self,
        space: str,
        service: EmbeddingService,
        texts: list[str],
        timeout: float | None,
    ) -> list[np.ndarray]:
        limit = self._config.timeout_sec
        if timeout is not None:
            limit = timeout if limit is None else min(limit, timeout)

        # A timed-out call keeps running on the worker; later calls queue behind it
        future = self._executor.submit(service.embed, texts)
        try:
            vectors = future.result(timeout=None if limit is None else max(limit, 0.0))
        except FutureTimeoutError as exc:
            future.cancel()
            raise EmbeddingError.timeout(space, limit) from exc

        vectors = list(vectors)
        if len(vectors) != len(texts):
            raise EmbeddingError.shape_mismatch(space, len(texts), len(vectors))
        return [np.asarray(v, dtype=np.float32) for v in vectors]

    # --- Query time ---

    def embed_query(self, text: str, timeout: float | None = None) -> EmbeddingPair | None:
        """Embed one query string in both spaces.

        Returns None (logged) when a service is missing, unavailable,
        times out or fails.
        """
        if not self.ready:
            log.warning("embedding.query_no_service")
            return None
        try:
            with self._batch_lock:
                code = self._call(CODE_SPACE, self._code, [text], timeout)[0]  # type: ignore[arg-type]
                concept = self._call(CONCEPT_SPACE, self._concept, [text], timeout)[0]  # type: ignore[arg-type]
        except CodeWeaveError as exc:
            log.warning("embedding.query_failed", error=exc.message, code=exc.error_name)
            return None
        except Exception:
            log.warning("embedding.query_failed", exc_info=True)
            return None
        return EmbeddingPair(code=code, concept=concept)


def build_services(config: EmbeddingConfig) -> tuple[FastEmbedService | None, FastEmbedService | None]:
    """fastembed services for both spaces. One model instance when names match."""
    if not config.enabled:
        return None, None
    code = FastEmbedService(config.code_model, space=CODE_SPACE)
    if config.concept_model == config.code_model:
        return code, code
    return code, FastEmbedService(config.concept_model, space=CONCEPT_SPACE)
