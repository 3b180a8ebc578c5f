"""Data model for the hierarchical chunk index.

Single source of truth for the shapes that flow between the chunker,
the embedding layer, persistence and search.

Architecture:
- Chunk: one indexed span of source text (file, class, function or block)
  with heuristic metadata and parent/child links
- Structure: raw detection output, before ids and links are assigned
- EmbeddingPair: the two vectors (code-literal, concept) owned per chunk

Chunks serialize to camelCase JSON records (``to_dict``/``from_dict``);
that record shape is the on-disk metadata document format.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np

# ============================================================================
# ENUMS
# ============================================================================


class ChunkLevel(str, Enum):
    """Hierarchy level of a chunk. Methods are stored as FUNCTION."""

    FILE = "file"
    CLASS = "class"
    FUNCTION = "function"
    BLOCK = "block"


class StructureKind(str, Enum):
    """Kind reported by the structure detector."""

    CLASS = "class"
    FUNCTION = "function"
    METHOD = "method"
    BLOCK = "block"

    @property
    def level(self) -> ChunkLevel:
        if self is StructureKind.CLASS:
            return ChunkLevel.CLASS
        if self is StructureKind.BLOCK:
            return ChunkLevel.BLOCK
        return ChunkLevel.FUNCTION


class ExportKind(str, Enum):
    DEFAULT = "default"
    NAMED = "named"
    FUNCTION = "function"
    CLASS = "class"
    INTERFACE = "interface"
    TYPE = "type"
    VARIABLE = "variable"


class RelationshipKind(str, Enum):
    CALLS = "calls"
    IMPORTS = "imports"
    SIMILAR = "similar"


# ============================================================================
# DETECTION OUTPUT
# ============================================================================


@dataclass(frozen=True, slots=True)
class Structure:
    """A class/function/method span found by the structure detector.

    Lines are 1-indexed and inclusive. ``parent_name`` and ``parent_start``
    identify the enclosing class for methods.
    """

    kind: StructureKind
    name: str
    start_line: int
    end_line: int
    content: str
    symbols: tuple[str, ...] = ()
    parent_name: str | None = None
    parent_start: int | None = None


@dataclass(frozen=True, slots=True)
class ImportEntry:
    source: str
    items: tuple[str, ...] = ()
    is_default: bool = False


@dataclass(frozen=True, slots=True)
class ExportEntry:
    name: str
    kind: ExportKind


@dataclass(frozen=True, slots=True)
class Relationship:
    source: str
    target: str
    kind: RelationshipKind
    strength: float
    context: str = ""


# ============================================================================
# CHUNKS
# ============================================================================


@dataclass(slots=True)
class ChunkMetadata:
    """Per-chunk annotations. Lines are 1-indexed and inclusive."""

    file_path: str
    start_line: int
    end_line: int
    language: str
    symbols: list[str] = field(default_factory=list)
    concepts: list[str] = field(default_factory=list)
    complexity: float = 0.0
    importance: float = 1.0
    dependencies: list[str] = field(default_factory=list)
    exports: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "filePath": self.file_path,
            "startLine": self.start_line,
            "endLine": self.end_line,
            "language": self.language,
            "symbols": list(self.symbols),
            "concepts": list(self.concepts),
            "complexity": self.complexity,
            "importance": self.importance,
            "dependencies": list(self.dependencies),
            "exports": list(self.exports),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChunkMetadata:
        return cls(
            file_path=data["filePath"],
            start_line=int(data["startLine"]),
            end_line=int(data["endLine"]),
            language=data.get("language", "text"),
            symbols=list(data.get("symbols") or []),
            concepts=list(data.get("concepts") or []),
            complexity=float(data.get("complexity", 0.0)),
            importance=float(data.get("importance", 1.0)),
            dependencies=list(data.get("dependencies") or []),
            exports=list(data.get("exports") or []),
        )


@dataclass(slots=True)
class Chunk:
    """One indexed unit of code text with metadata and hierarchy links.

    ``child_ids`` is append-only while the builder runs; use ``add_child``
    so an id is never recorded twice.
    """

    id: str
    content: str
    level: ChunkLevel
    metadata: ChunkMetadata
    parent_id: str | None = None
    child_ids: list[str] = field(default_factory=list)

    @property
    def file_path(self) -> str:
        return self.metadata.file_path

    def add_child(self, child_id: str) -> None:
        if child_id not in self.child_ids:
            self.child_ids.append(child_id)

    def to_dict(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": self.id,
            "content": self.content,
            "level": self.level.value,
            "childIds": list(self.child_ids),
            "metadata": self.metadata.to_dict(),
        }
        if self.parent_id is not None:
            record["parentId"] = self.parent_id
        return record

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Chunk:
        return cls(
            id=data["id"],
            content=data.get("content", ""),
            level=ChunkLevel(data["level"]),
            metadata=ChunkMetadata.from_dict(data["metadata"]),
            parent_id=data.get("parentId"),
            child_ids=list(data.get("childIds") or []),
        )


# ============================================================================
# EMBEDDINGS
# ============================================================================


@dataclass(frozen=True, slots=True)
class EmbeddingPair:
    """Code-literal and concept vectors for one chunk.

    The two spaces may have different dimensionality. A pair is always
    stored and removed as a unit.
    """

    code: np.ndarray
    concept: np.ndarray

    def to_dict(self) -> dict[str, list[float]]:
        return {
            "code": [float(x) for x in self.code],
            "concept": [float(x) for x in self.concept],
        }
