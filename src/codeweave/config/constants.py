"""Configuration constants.

This module contains truly constant values that should NOT be user-configurable.
These are on-disk format names and API stability limits.

For configurable values, see models.py.
"""

# =============================================================================
# On-disk layout
# =============================================================================

DATA_DIR_NAME = ".codeweave"
"""Per-repository data directory (config + default index location)."""

CONFIG_FILE_NAME = "config.yaml"

INDEX_DIR_NAME = "index"

EMBEDDINGS_FILE = "embeddings.json"
"""List of {chunkId, embedding, conceptEmbedding} records."""

METADATA_FILE = "metadata.json"
"""List of full chunk records."""

MANIFEST_FILE = "manifest.json"
"""File hashes and counts from the last indexing run."""

INDEX_FORMAT_VERSION = 1
"""Bumped when the document shapes change incompatibly."""

# =============================================================================
# Search
# =============================================================================

SEARCH_MAX_TOP_K = 200
"""Hard cap on requested result count."""

ELLIPSIS_MARKER = "..."
"""Appended to truncated file-level chunk content."""
