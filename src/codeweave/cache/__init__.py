"""Bounded TTL cache shared by embedding and search."""

from codeweave.cache.manager import CacheEntry, CacheManager, CacheStats, estimate_size

__all__ = ["CacheEntry", "CacheManager", "CacheStats", "estimate_size"]
