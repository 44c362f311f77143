"""Result caching with TTL, LRU eviction and optional persistence."""

from .grammar import GRAMMAR_CACHE_CONFIG, GrammarResultCache, grammar_cache_key
from .persistence import CacheRecord, CacheStore, JSONFileStore
from .store import CacheConfig, CacheEntry, CacheMetricSink, CacheStats, ResultCache

__all__ = [
    "GRAMMAR_CACHE_CONFIG",
    "CacheConfig",
    "CacheEntry",
    "CacheMetricSink",
    "CacheRecord",
    "CacheStats",
    "CacheStore",
    "GrammarResultCache",
    "JSONFileStore",
    "ResultCache",
    "grammar_cache_key",
]
