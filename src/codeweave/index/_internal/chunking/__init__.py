"""Chunking: structure detection, hierarchical chunks, metadata, relationships."""

from codeweave.index._internal.chunking.builder import ChunkBuilder, file_chunk_id, stable_id
from codeweave.index._internal.chunking.extractors import extract_exports, extract_imports
from codeweave.index._internal.chunking.metadata import (
    EnhancedMetadata,
    calculate_complexity,
    calculate_importance,
    enhance_metadata,
    extract_concepts,
    extract_symbols,
)
from codeweave.index._internal.chunking.relationships import SymbolConceptIndex, build_relationships
from codeweave.index._internal.chunking.structure import StructureDetector

__all__ = [
    "ChunkBuilder",
    "EnhancedMetadata",
    "StructureDetector",
    "SymbolConceptIndex",
    "build_relationships",
    "calculate_complexity",
    "calculate_importance",
    "enhance_metadata",
    "extract_concepts",
    "extract_exports",
    "extract_imports",
    "extract_symbols",
    "file_chunk_id",
    "stable_id",
]
