"""Shared fixtures for index tests."""

from __future__ import annotations

import pytest

from codeweave.config.models import ChunkingConfig
from codeweave.index._internal.chunking import ChunkBuilder


@pytest.fixture
def builder() -> ChunkBuilder:
    return ChunkBuilder(ChunkingConfig())
