"""Config module exports."""

from codeweave.config.loader import CodeWeaveSettings, get_index_dir, load_config
from codeweave.config.models import (
    CacheConfig,
    ChunkingConfig,
    CodeWeaveConfig,
    EmbeddingConfig,
    IndexConfig,
    IndexerConfig,
    LoggingConfig,
    SearchConfig,
)

__all__ = [
    "load_config",
    "get_index_dir",
    "CodeWeaveConfig",
    "CodeWeaveSettings",
    "CacheConfig",
    "ChunkingConfig",
    "EmbeddingConfig",
    "IndexConfig",
    "IndexerConfig",
    "LoggingConfig",
    "SearchConfig",
]
