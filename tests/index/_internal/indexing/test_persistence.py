"""Tests for the JSON index documents."""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest

from codeweave.config.constants import INDEX_FORMAT_VERSION
from codeweave.core.errors import ErrorCode, StorageError
from codeweave.index._internal.indexing import (
    IndexSnapshot,
    JsonIndexStore,
    Manifest,
    NotImplementedIndexStore,
    decode_vector,
)
from codeweave.index.models import EmbeddingPair
from fakes import make_chunk


def _pair(*values: float) -> EmbeddingPair:
    vec = np.asarray(values, dtype=np.float32)
    return EmbeddingPair(code=vec, concept=vec[::-1].copy())


def _snapshot() -> IndexSnapshot:
    a = make_chunk("a", "def a(): pass", symbols=["a1"])
    b = make_chunk("b", "def b(): pass")
    b.parent_id = "a"
    a.add_child("b")
    return IndexSnapshot(
        chunks={"a": a, "b": b},
        embeddings={"a": _pair(1.0, 2.0), "b": _pair(3.0, 4.0)},
        manifest=Manifest(files={"src/app.py": "abc123"}),
    )


class TestDecodeVector:
    def test_plain_array(self) -> None:
        np.testing.assert_array_equal(decode_vector([0.5, 1.5]), np.asarray([0.5, 1.5], dtype=np.float32))

    def test_digit_keyed_map_is_ordered_numerically(self) -> None:
        vec = decode_vector({"10": 3.0, "2": 2.0, "0": 1.0})
        np.testing.assert_array_equal(vec, np.asarray([1.0, 2.0, 3.0], dtype=np.float32))

    def test_named_map_keeps_insertion_order(self) -> None:
        vec = decode_vector({"x": 1.0, "y": 2.0})
        np.testing.assert_array_equal(vec, np.asarray([1.0, 2.0], dtype=np.float32))

    @pytest.mark.parametrize("value", [None, "0.1,0.2", 3.0, ["a", "b"]])
    def test_rejects_other_shapes(self, value: object) -> None:
        assert decode_vector(value) is None


class TestJsonIndexStoreRoundTrip:
    def test_load_before_save_returns_none(self, tmp_path: Path) -> None:
        store = JsonIndexStore(tmp_path / "index")
        assert store.load() is None
        assert not store.exists()

    def test_save_then_load(self, tmp_path: Path) -> None:
        store = JsonIndexStore(tmp_path / "index")
        store.save(_snapshot())

        loaded = store.load()

        assert loaded is not None
        assert set(loaded.chunks) == {"a", "b"}
        assert loaded.chunks["b"].parent_id == "a"
        assert loaded.chunks["a"].child_ids == ["b"]
        np.testing.assert_allclose(loaded.embeddings["a"].code, [1.0, 2.0])
        np.testing.assert_allclose(loaded.embeddings["a"].concept, [2.0, 1.0])
        assert loaded.manifest.files == {"src/app.py": "abc123"}
        assert loaded.manifest.chunk_count == 2
        assert loaded.manifest.embedding_count == 2

    def test_document_shapes(self, tmp_path: Path) -> None:
        store = JsonIndexStore(tmp_path / "index")
        store.save(_snapshot())

        embeddings = json.loads(store.embeddings_path.read_text())
        metadata = json.loads(store.metadata_path.read_text())
        manifest = json.loads(store.manifest_path.read_text())

        assert embeddings[0].keys() == {"chunkId", "embedding", "conceptEmbedding"}
        assert {r["id"] for r in metadata} == {"a", "b"}
        assert manifest["version"] == INDEX_FORMAT_VERSION
        assert manifest["files"] == {"src/app.py": "abc123"}

    def test_save_skips_embeddings_without_chunk(self, tmp_path: Path) -> None:
        snapshot = _snapshot()
        snapshot.embeddings["ghost"] = _pair(9.0, 9.0)
        store = JsonIndexStore(tmp_path / "index")

        store.save(snapshot)

        ids = {row["chunkId"] for row in json.loads(store.embeddings_path.read_text())}
        assert ids == {"a", "b"}

    def test_no_temp_files_left_behind(self, tmp_path: Path) -> None:
        store = JsonIndexStore(tmp_path / "index")
        store.save(_snapshot())
        store.save(_snapshot())
        assert sorted(p.name for p in (tmp_path / "index").iterdir()) == [
            "embeddings.json",
            "manifest.json",
            "metadata.json",
        ]


class TestJsonIndexStoreLoading:
    def _write(self, index_dir: Path, metadata: object, embeddings: object | None = None) -> JsonIndexStore:
        index_dir.mkdir(parents=True)
        (index_dir / "metadata.json").write_text(json.dumps(metadata))
        if embeddings is not None:
            (index_dir / "embeddings.json").write_text(json.dumps(embeddings))
        return JsonIndexStore(index_dir)

    def test_accepts_field_keyed_vectors(self, tmp_path: Path) -> None:
        store = self._write(
            tmp_path / "index",
            [make_chunk("a").to_dict()],
            [{"chunkId": "a", "embedding": {"0": 0.1, "1": 0.2}, "conceptEmbedding": {"1": 0.4, "0": 0.3}}],
        )

        loaded = store.load()

        assert loaded is not None
        np.testing.assert_allclose(loaded.embeddings["a"].code, [0.1, 0.2], rtol=1e-6)
        np.testing.assert_allclose(loaded.embeddings["a"].concept, [0.3, 0.4], rtol=1e-6)

    def test_missing_concept_vector_falls_back_to_code(self, tmp_path: Path) -> None:
        store = self._write(tmp_path / "index", [make_chunk("a").to_dict()], [{"chunkId": "a", "embedding": [1, 2]}])
        loaded = store.load()
        assert loaded is not None
        np.testing.assert_array_equal(loaded.embeddings["a"].concept, loaded.embeddings["a"].code)

    def test_orphan_embeddings_are_dropped(self, tmp_path: Path) -> None:
        store = self._write(
            tmp_path / "index",
            [make_chunk("a").to_dict()],
            [{"chunkId": "a", "embedding": [1]}, {"chunkId": "gone", "embedding": [2]}],
        )
        loaded = store.load()
        assert loaded is not None
        assert set(loaded.embeddings) == {"a"}

    def test_bad_records_are_skipped(self, tmp_path: Path) -> None:
        store = self._write(
            tmp_path / "index",
            [make_chunk("a").to_dict(), {"id": "broken"}],
            [{"embedding": [1]}, {"chunkId": "a", "embedding": "nope"}],
        )
        loaded = store.load()
        assert loaded is not None
        assert set(loaded.chunks) == {"a"}
        assert loaded.embeddings == {}

    def test_corrupt_json_raises(self, tmp_path: Path) -> None:
        index_dir = tmp_path / "index"
        index_dir.mkdir()
        (index_dir / "metadata.json").write_text("{not json")

        with pytest.raises(StorageError) as exc_info:
            JsonIndexStore(index_dir).load()
        assert exc_info.value.code == ErrorCode.STORE_READ_FAILED

    def test_wrong_document_type_raises(self, tmp_path: Path) -> None:
        store = self._write(tmp_path / "index", {"chunks": []})
        with pytest.raises(StorageError):
            store.load()

    def test_version_mismatch_resets_manifest(self, tmp_path: Path) -> None:
        store = self._write(tmp_path / "index", [make_chunk("a").to_dict()])
        (tmp_path / "index" / "manifest.json").write_text(
            json.dumps({"version": INDEX_FORMAT_VERSION + 1, "files": {"a.py": "h"}})
        )
        loaded = store.load()
        assert loaded is not None
        assert loaded.manifest.files == {}


class TestJsonIndexStoreFailures:
    def test_unwritable_directory_raises(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file.txt"
        blocker.write_text("not a directory")

        with pytest.raises(StorageError) as exc_info:
            JsonIndexStore(blocker / "index").save(_snapshot())
        assert exc_info.value.code == ErrorCode.STORE_DIRECTORY_FAILED

    def test_clear_removes_documents(self, tmp_path: Path) -> None:
        store = JsonIndexStore(tmp_path / "index")
        store.save(_snapshot())
        store.clear()
        assert store.load() is None
        store.clear()


class TestNotImplementedIndexStore:
    @pytest.mark.parametrize("operation", ["load", "clear"])
    def test_refuses(self, operation: str) -> None:
        with pytest.raises(StorageError) as exc_info:
            getattr(NotImplementedIndexStore(), operation)()
        assert exc_info.value.code == ErrorCode.STORE_NOT_IMPLEMENTED

    def test_save_refuses(self) -> None:
        with pytest.raises(StorageError) as exc_info:
            NotImplementedIndexStore().save(IndexSnapshot())
        assert exc_info.value.details == {"operation": "save"}
