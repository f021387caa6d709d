"""Read cache implementations."""

from medequip_transfers.infrastructure.cache.query_cache import CacheKey, QueryCache

__all__ = ["CacheKey", "QueryCache"]
