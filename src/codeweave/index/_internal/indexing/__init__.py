"""Embedding and persistence for the chunk index."""

from codeweave.index._internal.indexing.embedding import (
    CODE_SPACE,
    CONCEPT_SPACE,
    EmbeddingOrchestrator,
    EmbeddingService,
    EmbeddingStore,
    EmbedResult,
    FastEmbedService,
    build_services,
    l2_normalize,
    prepare_code_text,
    prepare_concept_text,
)
from codeweave.index._internal.indexing.persistence import (
    IndexSnapshot,
    IndexStore,
    JsonIndexStore,
    Manifest,
    NotImplementedIndexStore,
    decode_vector,
)

__all__ = [
    "CODE_SPACE",
    "CONCEPT_SPACE",
    "EmbeddingOrchestrator",
    "EmbeddingService",
    "EmbeddingStore",
    "EmbedResult",
    "FastEmbedService",
    "build_services",
    "l2_normalize",
    "prepare_code_text",
    "prepare_concept_text",
    "IndexSnapshot",
    "IndexStore",
    "JsonIndexStore",
    "Manifest",
    "NotImplementedIndexStore",
    "decode_vector",
]
