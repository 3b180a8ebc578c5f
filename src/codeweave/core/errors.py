"""CodeWeave error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Index storage
- 4xxx: Embedding
- 5xxx: Cache
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_MISSING_REQUIRED = 2003
    CONFIG_FILE_NOT_FOUND = 2004

    # Index storage (3xxx)
    STORE_DIRECTORY_FAILED = 3001
    STORE_WRITE_FAILED = 3002
    STORE_READ_FAILED = 3003
    STORE_NOT_IMPLEMENTED = 3004

    # Embedding (4xxx)
    EMBEDDING_UNAVAILABLE = 4001
    EMBEDDING_SHAPE_MISMATCH = 4002
    EMBEDDING_TIMEOUT = 4003

    # Cache (5xxx)
    CACHE_INVALID_CAPACITY = 5001
    CACHE_IMPORT_FAILED = 5002

    # Internal (9xxx)
    INTERNAL_ERROR = 9001
    INTERNAL_TIMEOUT = 9002


@dataclass(frozen=True, slots=True)
class CodeWeaveError(Exception):
    """Base error with structured context."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'CONFIG_PARSE_ERROR')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(CodeWeaveError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def missing_required(cls, field: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_MISSING_REQUIRED,
            message=f"Missing required config field: {field}",
            details={"field": field},
        )


class StorageError(CodeWeaveError):
    """Index persistence errors. Always fatal to the calling operation."""

    @classmethod
    def directory_failed(cls, path: str, reason: str) -> "StorageError":
        return cls(
            code=ErrorCode.STORE_DIRECTORY_FAILED,
            message=f"Cannot create index directory {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def write_failed(cls, path: str, reason: str) -> "StorageError":
        return cls(
            code=ErrorCode.STORE_WRITE_FAILED,
            message=f"Failed to write {path}: {reason}",
            retryable=True,
            details={"path": path, "reason": reason},
        )

    @classmethod
    def read_failed(cls, path: str, reason: str) -> "StorageError":
        return cls(
            code=ErrorCode.STORE_READ_FAILED,
            message=f"Failed to read {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def not_implemented(cls, operation: str) -> "StorageError":
        return cls(
            code=ErrorCode.STORE_NOT_IMPLEMENTED,
            message=f"Index store does not implement '{operation}'",
            details={"operation": operation},
        )


class EmbeddingError(CodeWeaveError):
    """Embedding service errors."""

    @classmethod
    def unavailable(cls, space: str, reason: str = "service not initialized") -> "EmbeddingError":
        return cls(
            code=ErrorCode.EMBEDDING_UNAVAILABLE,
            message=f"Embedding service for '{space}' space unavailable: {reason}",
            retryable=True,
            details={"space": space, "reason": reason},
        )

    @classmethod
    def shape_mismatch(cls, space: str, expected: int, got: int) -> "EmbeddingError":
        return cls(
            code=ErrorCode.EMBEDDING_SHAPE_MISMATCH,
            message=f"Embedding service for '{space}' returned {got} vectors for {expected} texts",
            details={"space": space, "expected": expected, "got": got},
        )

    @classmethod
    def timeout(cls, space: str, timeout_sec: float) -> "EmbeddingError":
        return cls(
            code=ErrorCode.EMBEDDING_TIMEOUT,
            message=f"Embedding call for '{space}' exceeded {timeout_sec:.2f}s",
            retryable=True,
            details={"space": space, "timeout_sec": timeout_sec},
        )


class CacheError(CodeWeaveError):
    """Cache configuration and import errors."""

    @classmethod
    def invalid_capacity(cls, field: str, value: int) -> "CacheError":
        return cls(
            code=ErrorCode.CACHE_INVALID_CAPACITY,
            message=f"Cache {field} must be positive, got {value}",
            details={"field": field, "value": value},
        )

    @classmethod
    def import_failed(cls, reason: str) -> "CacheError":
        return cls(
            code=ErrorCode.CACHE_IMPORT_FAILED,
            message=f"Failed to import cache data: {reason}",
            details={"reason": reason},
        )


class InternalError(CodeWeaveError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
