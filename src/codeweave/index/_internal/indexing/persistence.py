"""On-disk index documents.

Storage: <index_dir>/
  - embeddings.json   [{chunkId, embedding, conceptEmbedding}, ...]
  - metadata.json     [Chunk record, ...]
  - manifest.json     {version, files: {path: sha256}, counts, updatedAt}

Each document is a whole-file overwrite: written to a temp file in the
same directory, then ``os.replace``d over the old one. The loader keeps
the two chunk-id sets in lockstep (embedding rows whose chunk is gone
are dropped) and accepts a vector stored either as a plain array or as a
field-keyed map such as ``{"0": 0.1, "1": 0.2}``.
"""

from __future__ import annotations

import json
import os
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import numpy as np
import structlog

from codeweave.config.constants import (
    EMBEDDINGS_FILE,
    INDEX_FORMAT_VERSION,
    MANIFEST_FILE,
    METADATA_FILE,
)
from codeweave.core.errors import StorageError
from codeweave.index.models import Chunk, EmbeddingPair

log = structlog.get_logger(__name__)


@dataclass(slots=True)
class Manifest:
    """Per-file content hashes from the last indexing run."""

    version: int = INDEX_FORMAT_VERSION
    files: dict[str, str] = field(default_factory=dict)
    chunk_count: int = 0
    embedding_count: int = 0
    updated_at: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "files": dict(sorted(self.files.items())),
            "chunkCount": self.chunk_count,
            "embeddingCount": self.embedding_count,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Manifest:
        return cls(
            version=int(data.get("version", 0)),
            files=dict(data.get("files") or {}),
            chunk_count=int(data.get("chunkCount", 0)),
            embedding_count=int(data.get("embeddingCount", 0)),
            updated_at=float(data.get("updatedAt", 0.0)),
        )


@dataclass(slots=True)
class IndexSnapshot:
    """Everything persisted for one repository."""

    chunks: dict[str, Chunk] = field(default_factory=dict)
    embeddings: dict[str, EmbeddingPair] = field(default_factory=dict)
    manifest: Manifest = field(default_factory=Manifest)


class IndexStore(Protocol):
    """Persistence collaborator for the index coordinator."""

    def load(self) -> IndexSnapshot | None: ...

    def save(self, snapshot: IndexSnapshot) -> None: ...

    def clear(self) -> None: ...


# ===================================================================
# Vector decoding
# ===================================================================


def decode_vector(value: Any) -> np.ndarray | None:
    """Normalize a stored vector (array or field-keyed map) to float32.

    Map keys that are all digits are ordered numerically; otherwise the
    map's own order is kept. Returns None for anything else.
    """
    if isinstance(value, dict):
        keys = list(value)
        if keys and all(str(k).isdigit() for k in keys):
            keys.sort(key=lambda k: int(k))
        value = [value[k] for k in keys]
    if not isinstance(value, list):
        return None
    try:
        return np.asarray(value, dtype=np.float32)
    except (TypeError, ValueError):
        return None


def _vector_list(vec: np.ndarray) -> list[float]:
    return [float(x) for x in np.asarray(vec, dtype=np.float32)]


# ===================================================================
# JSON store
# ===================================================================


class JsonIndexStore:
    """Three JSON documents in one directory."""

    def __init__(self, index_dir: Path) -> None:
        self._dir = index_dir

    @property
    def index_dir(self) -> Path:
        return self._dir

    @property
    def embeddings_path(self) -> Path:
        return self._dir / EMBEDDINGS_FILE

    @property
    def metadata_path(self) -> Path:
        return self._dir / METADATA_FILE

    @property
    def manifest_path(self) -> Path:
        return self._dir / MANIFEST_FILE

    def exists(self) -> bool:
        return self.metadata_path.exists()

    # --- Load ---

    def load(self) -> IndexSnapshot | None:
        """Read the index, or None when nothing has been saved yet.

        Raises:
            StorageError: A document exists but cannot be read or parsed.
        """
        if not self.metadata_path.exists():
            return None

        metadata_doc = self._read_json(self.metadata_path)
        if not isinstance(metadata_doc, list):
            raise StorageError.read_failed(str(self.metadata_path), "expected a JSON array of chunks")

        chunks: dict[str, Chunk] = {}
        for record in metadata_doc:
            try:
                chunk = Chunk.from_dict(record)
            except (KeyError, TypeError, ValueError):
                log.warning("store.bad_chunk_record", path=str(self.metadata_path), exc_info=True)
                continue
            chunks[chunk.id] = chunk

        embeddings: dict[str, EmbeddingPair] = {}
        if self.embeddings_path.exists():
            embeddings_doc = self._read_json(self.embeddings_path)
            if not isinstance(embeddings_doc, list):
                raise StorageError.read_failed(str(self.embeddings_path), "expected a JSON array of embeddings")
            embeddings = self._decode_embeddings(embeddings_doc, chunks)

        manifest = Manifest()
        if self.manifest_path.exists():
            manifest_doc = self._read_json(self.manifest_path)
            if isinstance(manifest_doc, dict):
                manifest = Manifest.from_dict(manifest_doc)
            if manifest.version != INDEX_FORMAT_VERSION:
                log.warning(
                    "store.version_mismatch",
                    expected=INDEX_FORMAT_VERSION,
                    found=manifest.version,
                )
                manifest = Manifest()

        log.info("store.loaded", chunks=len(chunks), embeddings=len(embeddings), path=str(self._dir))
        return IndexSnapshot(chunks=chunks, embeddings=embeddings, manifest=manifest)

    def _read_json(self, path: Path) -> Any:
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise StorageError.read_failed(str(path), str(exc)) from exc

    def _decode_embeddings(self, rows: list[Any], chunks: dict[str, Chunk]) -> dict[str, EmbeddingPair]:
        embeddings: dict[str, EmbeddingPair] = {}
        orphans = 0
        for row in rows:
            if not isinstance(row, dict) or "chunkId" not in row:
                log.warning("store.bad_embedding_record")
                continue
            chunk_id = row["chunkId"]
            if chunk_id not in chunks:
                orphans += 1
                continue
            code = decode_vector(row.get("embedding"))
            if code is None:
                log.warning("store.bad_embedding_vector", chunk_id=chunk_id)
                continue
            concept = decode_vector(row.get("conceptEmbedding"))
            embeddings[chunk_id] = EmbeddingPair(code=code, concept=code if concept is None else concept)
        if orphans:
            log.info("store.orphan_embeddings_dropped", count=orphans)
        return embeddings

    # --- Save ---

    def save(self, snapshot: IndexSnapshot) -> None:
        """Overwrite all three documents.

        Embedding rows are written only for chunks present in the
        snapshot.

        Raises:
            StorageError: The directory cannot be created or a file
                cannot be written.
        """
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError.directory_failed(str(self._dir), str(exc)) from exc

        metadata_doc = [chunk.to_dict() for chunk in snapshot.chunks.values()]
        embeddings_doc = [
            {
                "chunkId": chunk_id,
                "embedding": _vector_list(pair.code),
                "conceptEmbedding": _vector_list(pair.concept),
            }
            for chunk_id, pair in snapshot.embeddings.items()
            if chunk_id in snapshot.chunks
        ]
        manifest = snapshot.manifest
        manifest.version = INDEX_FORMAT_VERSION
        manifest.chunk_count = len(metadata_doc)
        manifest.embedding_count = len(embeddings_doc)
        manifest.updated_at = time.time()

        self._write_json(self.embeddings_path, embeddings_doc)
        self._write_json(self.metadata_path, metadata_doc)
        self._write_json(self.manifest_path, manifest.to_dict())
        log.info(
            "store.saved",
            chunks=manifest.chunk_count,
            embeddings=manifest.embedding_count,
            path=str(self._dir),
        )

    def _write_json(self, path: Path, doc: Any) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self._dir, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(doc, f, separators=(",", ":"))
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise StorageError.write_failed(str(path), str(exc)) from exc

    def clear(self) -> None:
        """Delete all index documents. Missing files are fine."""
        for path in (self.embeddings_path, self.metadata_path, self.manifest_path):
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                raise StorageError.write_failed(str(path), str(exc)) from exc
        log.info("store.cleared", path=str(self._dir))


class NotImplementedIndexStore:
    """Placeholder persistence that refuses every operation.

    Useful for in-memory-only coordinators: nothing is loaded or saved,
    and any attempt to do so fails loudly instead of silently succeeding.
    """

    def load(self) -> IndexSnapshot | None:
        raise StorageError.not_implemented("load")

    def save(self, snapshot: IndexSnapshot) -> None:
        raise StorageError.not_implemented("save")

    def clear(self) -> None:
        raise StorageError.not_implemented("clear")
