"""Core module exports."""

from codeweave.core.errors import (
    CacheError,
    CodeWeaveError,
    ConfigError,
    EmbeddingError,
    ErrorCode,
    InternalError,
    StorageError,
)
from codeweave.core.languages import detect_language
from codeweave.core.logging import (
    clear_request_id,
    configure_logging,
    get_logger,
    get_request_id,
    set_request_id,
)

__all__ = [
    # Errors
    "CacheError",
    "CodeWeaveError",
    "ConfigError",
    "EmbeddingError",
    "ErrorCode",
    "InternalError",
    "StorageError",
    # Languages
    "detect_language",
    # Logging
    "clear_request_id",
    "configure_logging",
    "get_logger",
    "get_request_id",
    "set_request_id",
]
