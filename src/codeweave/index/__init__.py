"""Index module - hierarchical chunk index with dual-space embeddings.

This module provides:
- Chunking: heuristic structure detection, file/class/function/block chunks
- Metadata: symbols, concepts, complexity, importance, imports/exports
- Embedding: code-literal and concept vectors per chunk, batched
- Persistence: embeddings/metadata/manifest JSON documents

Public API is in `codeweave.index.ops`:
- IndexCoordinator: High-level orchestration
- IndexStats, IndexStatus: Result types

Internal implementations are in `codeweave.index._internal/`.
"""

from codeweave.index.models import (
    Chunk,
    ChunkLevel,
    ChunkMetadata,
    EmbeddingPair,
    ExportEntry,
    ExportKind,
    ImportEntry,
    Relationship,
    RelationshipKind,
    Structure,
    StructureKind,
)

__all__ = [
    "Chunk",
    "ChunkLevel",
    "ChunkMetadata",
    "EmbeddingPair",
    "ExportEntry",
    "ExportKind",
    "ImportEntry",
    "Relationship",
    "RelationshipKind",
    "Structure",
    "StructureKind",
]
