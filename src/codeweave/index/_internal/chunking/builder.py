"""Hierarchical chunk construction.

Turns one file's text into a forest rooted at a file chunk:

    file ─┬─ class ── function (method) ── block ...
          └─ function ── block ...

Ids are deterministic: ``file_<h(path)>`` for the root,
``<kind>_<h(path, name, start_line)>`` for detected structures and
``block_<h(function_id, offset)>`` for windows, so re-chunking unchanged
content reproduces the same ids in the same order.
"""

from __future__ import annotations

import hashlib

from codeweave.config.constants import ELLIPSIS_MARKER
from codeweave.config.models import ChunkingConfig
from codeweave.index._internal.chunking.metadata import EnhancedMetadata, enhance_metadata
from codeweave.index._internal.chunking.structure import StructureDetector
from codeweave.index.models import Chunk, ChunkLevel, ChunkMetadata, Structure, StructureKind


def stable_id(*parts: object) -> str:
    """Short hex digest of the parts, stable across runs and platforms."""
    hasher = hashlib.sha256()
    for part in parts:
        hasher.update(str(part).encode("utf-8", errors="surrogatepass"))
        hasher.update(b"\x00")
    return hasher.hexdigest()[:16]


def file_chunk_id(file_path: str) -> str:
    return f"file_{stable_id(file_path)}"


def structure_chunk_id(file_path: str, kind: StructureKind, name: str, start_line: int) -> str:
    return f"{kind.value}_{stable_id(file_path, name, start_line)}"


def _metadata(
    file_path: str,
    start_line: int,
    end_line: int,
    language: str,
    enhanced: EnhancedMetadata,
) -> ChunkMetadata:
    return ChunkMetadata(
        file_path=file_path,
        start_line=start_line,
        end_line=end_line,
        language=language,
        symbols=list(enhanced.symbols),
        concepts=list(enhanced.concepts),
        complexity=enhanced.complexity,
        importance=enhanced.importance,
        dependencies=list(enhanced.dependencies),
        exports=list(enhanced.exports),
    )


class ChunkBuilder:
    """Builds the chunk forest for one file at a time.

    Stateless between calls, so one instance can be shared by worker
    threads.
    """

    def __init__(
        self,
        config: ChunkingConfig | None = None,
        detector: StructureDetector | None = None,
    ) -> None:
        self._config = config or ChunkingConfig()
        self._detector = detector or StructureDetector()

    def build(self, file_path: str, content: str, language: str) -> list[Chunk]:
        """Chunk one file. Total over arbitrary text.

        Returns the file chunk first, then structure chunks in detection
        order, then block chunks grouped by parent function.
        """
        lines = content.split("\n")
        root = self._file_chunk(file_path, content, language, len(lines))
        chunks: list[Chunk] = [root]
        by_id: dict[str, Chunk] = {root.id: root}
        class_ids: dict[tuple[str, int], str] = {}

        for structure in self._detector.detect(lines, language):
            chunk = self._structure_chunk(file_path, language, structure)
            if chunk.id in by_id:
                continue

            parent = root
            if structure.parent_name is not None and structure.parent_start is not None:
                parent_id = class_ids.get((structure.parent_name, structure.parent_start))
                if parent_id is not None:
                    parent = by_id[parent_id]
            chunk.parent_id = parent.id
            parent.add_child(chunk.id)

            if structure.kind is StructureKind.CLASS:
                class_ids[(structure.name, structure.start_line)] = chunk.id
            chunks.append(chunk)
            by_id[chunk.id] = chunk

        blocks: list[Chunk] = []
        for chunk in chunks:
            if chunk.level is ChunkLevel.FUNCTION and len(chunk.content) > self._config.block_threshold_chars:
                blocks.extend(self._block_chunks(chunk))
        chunks.extend(blocks)
        return chunks

    def _file_chunk(self, file_path: str, content: str, language: str, line_count: int) -> Chunk:
        limit = self._config.file_preview_chars
        preview = content[:limit] + ELLIPSIS_MARKER if len(content) > limit else content
        return Chunk(
            id=file_chunk_id(file_path),
            content=preview,
            level=ChunkLevel.FILE,
            metadata=_metadata(file_path, 1, line_count, language, enhance_metadata(content, language)),
        )

    def _structure_chunk(self, file_path: str, language: str, structure: Structure) -> Chunk:
        enhanced = enhance_metadata(structure.content, language)
        return Chunk(
            id=structure_chunk_id(file_path, structure.kind, structure.name, structure.start_line),
            content=structure.content,
            level=structure.kind.level,
            metadata=_metadata(file_path, structure.start_line, structure.end_line, language, enhanced),
        )

    def _block_chunks(self, function: Chunk) -> list[Chunk]:
        """Split an oversized function into fixed line windows.

        Windows with less than ``block_min_chars`` of trimmed content are
        dropped. Line numbers are absolute (function start + offset).
        """
        window = self._config.block_lines
        min_chars = self._config.block_min_chars
        meta = function.metadata
        lines = function.content.split("\n")
        blocks: list[Chunk] = []

        for offset in range(0, len(lines), window):
            block_lines = lines[offset : offset + window]
            block_content = "\n".join(block_lines)
            if len(block_content.strip()) < min_chars:
                continue

            start_line = meta.start_line + offset
            end_line = min(start_line + len(block_lines) - 1, meta.end_line)
            enhanced = enhance_metadata(block_content, meta.language, with_exports=False)
            block = Chunk(
                id=f"block_{stable_id(function.id, offset)}",
                content=block_content,
                level=ChunkLevel.BLOCK,
                parent_id=function.id,
                metadata=_metadata(meta.file_path, start_line, end_line, meta.language, enhanced),
            )
            function.add_child(block.id)
            blocks.append(block)
        return blocks
