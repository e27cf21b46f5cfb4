"""Bounded in-process response cache."""

from skillswap.cache.response_cache import CachedResponse, ResponseCache, ttl_for_path

__all__ = ["CachedResponse", "ResponseCache", "ttl_for_path"]
