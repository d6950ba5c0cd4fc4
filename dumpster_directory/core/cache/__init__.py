"""In-memory directory cache."""

from .business_cache import BusinessCache, CacheSnapshot, build_snapshot

__all__ = ["BusinessCache", "CacheSnapshot", "build_snapshot"]
