"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (CODEWEAVE__SECTION__KEY)
3. Repo YAML (.codeweave/config.yaml)
4. Global YAML (~/.config/codeweave/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    CODEWEAVE__<SECTION>__<KEY>=<VALUE>

Examples:
    CODEWEAVE__LOGGING__LEVEL=DEBUG
    CODEWEAVE__INDEX__MAX_FILE_SIZE_MB=4
    CODEWEAVE__EMBEDDING__BATCH_SIZE=250
    CODEWEAVE__CACHE__MAX_ENTRIES=5000
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

DEFAULT_EXTENSIONS: list[str] = [
    ".js",
    ".jsx",
    ".ts",
    ".tsx",
    ".vue",
    ".svelte",
    ".py",
    ".java",
    ".c",
    ".cpp",
    ".h",
    ".hpp",
    ".cs",
    ".php",
    ".rb",
    ".go",
    ".rs",
    ".swift",
    ".kt",
    ".scala",
    ".css",
    ".scss",
    ".html",
    ".json",
    ".yaml",
    ".yml",
    ".md",
    ".sql",
    ".graphql",
    ".sh",
]

DEFAULT_IGNORE_PATTERNS: list[str] = [
    "node_modules/**",
    "dist/**",
    "build/**",
    "coverage/**",
    "*.min.js",
    "*.min.css",
    "*.map",
    "*.lock",
    "package-lock.json",
]


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        CODEWEAVE__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every embedding batch and eviction.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class IndexConfig(BaseModel):
    """Index configuration.

    Env vars:
        CODEWEAVE__INDEX__MAX_FILE_SIZE_MB: Skip files larger than this
        CODEWEAVE__INDEX__INDEX_PATH: Override index storage location
    """

    max_file_size_mb: float = Field(
        default=2.0,
        description="Skip files larger than this (MB). Oversize files contribute no chunks.",
    )
    extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXTENSIONS),
        description="Extension allowlist. Files with other suffixes are never read.",
    )
    ignore_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_IGNORE_PATTERNS),
        description="Gitignore-style patterns, relative to the repository root.",
    )
    index_path: str | None = Field(
        default=None,
        description="Override index storage location. Default: .codeweave/index in repo.",
    )

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.max_file_size_mb * 1024 * 1024)

    @field_validator("extensions")
    @classmethod
    def normalize_extensions(cls, v: list[str]) -> list[str]:
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in v]


class ChunkingConfig(BaseModel):
    """Chunk builder thresholds.

    Env vars:
        CODEWEAVE__CHUNKING__BLOCK_THRESHOLD_CHARS: Function size that triggers block split
        CODEWEAVE__CHUNKING__BLOCK_LINES: Lines per block window
    """

    file_preview_chars: int = Field(
        default=2000,
        description="File-level chunk content is truncated here and marked with an ellipsis.",
    )
    block_threshold_chars: int = Field(
        default=1000,
        description="Functions longer than this are split into block chunks.",
    )
    block_lines: int = Field(
        default=20,
        description="Lines per block window.",
    )
    block_min_chars: int = Field(
        default=50,
        description="Block windows with less trimmed content are dropped.",
    )

    @field_validator("file_preview_chars", "block_threshold_chars", "block_lines")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"must be positive, got {v}")
        return v


class EmbeddingConfig(BaseModel):
    """Embedding model configuration.

    Env vars:
        CODEWEAVE__EMBEDDING__CODE_MODEL: Model for the code-literal space
        CODEWEAVE__EMBEDDING__CONCEPT_MODEL: Model for the concept space
        CODEWEAVE__EMBEDDING__BATCH_SIZE: Texts per embedding call
        CODEWEAVE__EMBEDDING__TIMEOUT_SEC: Per-batch timeout
    """

    enabled: bool = Field(
        default=True,
        description="Disable to index chunks without vectors (search then returns nothing).",
    )
    code_model: str = Field(
        default="BAAI/bge-small-en-v1.5",
        description="fastembed model for the code-literal space.",
    )
    concept_model: str = Field(
        default="BAAI/bge-small-en-v1.5",
        description="fastembed model for the concept space.",
    )
    batch_size: int = Field(
        default=500,
        description="Texts per embedding call. Bounds peak memory during indexing.",
    )
    timeout_sec: float | None = Field(
        default=120.0,
        description="Per-batch timeout. Timed-out batches are skipped, not retried.",
    )
    code_max_chars: int = Field(
        default=2000,
        description="Character budget for code-space input text.",
    )
    concept_max_chars: int = Field(
        default=1200,
        description="Character budget for concept-space input text.",
    )

    @field_validator("batch_size")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"batch_size must be positive, got {v}")
        return v


class CacheConfig(BaseModel):
    """Cache manager limits.

    Env vars:
        CODEWEAVE__CACHE__MAX_SIZE_MB: Total estimated size budget
        CODEWEAVE__CACHE__MAX_ENTRIES: Entry count budget
        CODEWEAVE__CACHE__DEFAULT_TTL_SEC: Entry lifetime
    """

    max_size_mb: float = Field(
        default=100.0,
        description="Estimated total size budget. Least recently used entries are evicted above it.",
    )
    max_entries: int = Field(
        default=10000,
        description="Entry count budget.",
    )
    default_ttl_sec: float = Field(
        default=24 * 60 * 60,
        description="Entry lifetime when set() is called without a ttl.",
    )
    sweep_interval_sec: float = Field(
        default=60.0,
        description="Background expiry sweep interval.",
    )

    @property
    def max_size_bytes(self) -> int:
        return int(self.max_size_mb * 1024 * 1024)


class SearchConfig(BaseModel):
    """Search ranking configuration.

    Env vars:
        CODEWEAVE__SEARCH__DEFAULT_TOP_K: Results when -k is not given
    """

    default_top_k: int = Field(
        default=10,
        description="Default result count.",
    )
    code_weight: float = Field(
        default=0.6,
        description="Share of top-K and relevance weight for the code-literal space.",
    )
    concept_weight: float = Field(
        default=0.4,
        description="Share of top-K and relevance weight for the concept space.",
    )
    symbol_boost: float = Field(default=1.5, description="Symbol matches a query term.")
    path_boost: float = Field(default=1.2, description="Query keyword occurs in the file path.")
    language_boost: float = Field(default=1.1, description="Chunk language is preferred.")
    preferred_languages: list[str] = Field(
        default_factory=lambda: ["typescript", "javascript"],
        description="Languages boosted when the query names none.",
    )


class IndexerConfig(BaseModel):
    """Indexing pipeline configuration.

    Env vars:
        CODEWEAVE__INDEXER__MAX_WORKERS: Parallel per-file workers
    """

    max_workers: int = Field(
        default=4,
        description="Threads for structure detection and metadata. Embedding is always serialized.",
    )

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_workers must be >= 1, got {v}")
        return v


class CodeWeaveConfig(BaseModel):
    """Root configuration for CodeWeave.

    All settings can be configured via:
    1. Environment variables: CODEWEAVE__SECTION__KEY
    2. YAML config files (repo or global)
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    indexer: IndexerConfig = Field(default_factory=IndexerConfig)
