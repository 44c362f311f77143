"""TTL + LRU key/value cache with compression and optional persistence.

Entries live in an `OrderedDict` kept in recency order: reads and writes
move an entry to the end, so the least recently used entry is always first
and eviction is O(1). Values must be JSON-serialisable; their encoded size
drives both the size statistics and the compression decision.

Persistence is write-through and best effort. A failing store is logged and
otherwise ignored, leaving the in-memory cache fully functional.
"""

from __future__ import annotations

import asyncio
import base64
from collections import OrderedDict
from collections.abc import Callable
import dataclasses
import hashlib
import json
import logging
import time
from typing import Any, Literal, Protocol, Self
import zlib

from hybrid_grammar import constants

from .persistence import CacheRecord, CacheStore

logger = logging.getLogger(__name__)

type CacheAction = Literal["hit", "miss", "set", "delete", "clear", "evict", "expire"]


class CacheMetricSink(Protocol):
    """Receiver for per-operation cache metrics."""

    def record_cache_metric(
        self,
        *,
        action: CacheAction,
        cache_type: str,
        key_hash: str,
        data_size: int = 0,
        ttl_ms: float | None = None,
        hit_rate: float = 0.0,
        size: int = 0,
        max_size: int = 0,
    ) -> None: ...


@dataclasses.dataclass(frozen=True, slots=True)
class CacheConfig:
    """Tunables for a `ResultCache` instance."""

    max_size: int = constants.CACHE_MAX_SIZE
    ttl_seconds: float = constants.CACHE_TTL_SECONDS
    key_prefix: str = constants.CACHE_KEY_PREFIX
    compression_threshold: int = constants.CACHE_COMPRESSION_THRESHOLD
    enable_compression: bool = True
    sweep_interval_seconds: float = constants.CACHE_SWEEP_INTERVAL_SECONDS
    persist: bool = False

    def __post_init__(self) -> None:
        """Reject non-positive limits."""
        if self.max_size < 1:
            raise ValueError("max_size must be at least 1")
        if self.ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if self.sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be positive")


@dataclasses.dataclass(slots=True)
class CacheEntry:
    """A stored value plus its bookkeeping; `value` holds zlib bytes when compressed."""

    value: Any
    created_at: float
    expires_at: float
    access_count: int
    last_accessed_at: float
    size_bytes: int
    compressed: bool

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def to_record(self) -> CacheRecord:
        value = (
            base64.b64encode(self.value).decode("ascii") if self.compressed else self.value
        )
        return {
            "value": value,
            "created_at": self.created_at,
            "expires_at": self.expires_at,
            "access_count": self.access_count,
            "last_accessed_at": self.last_accessed_at,
            "size_bytes": self.size_bytes,
            "compressed": self.compressed,
        }

    @classmethod
    def from_record(cls, record: CacheRecord) -> CacheEntry:
        compressed = bool(record.get("compressed", False))
        value = record["value"]
        if compressed:
            value = base64.b64decode(value)
        return cls(
            value=value,
            created_at=float(record["created_at"]),
            expires_at=float(record["expires_at"]),
            access_count=int(record.get("access_count", 0)),
            last_accessed_at=float(record.get("last_accessed_at", record["created_at"])),
            size_bytes=int(record.get("size_bytes", 0)),
            compressed=compressed,
        )


@dataclasses.dataclass(frozen=True, slots=True)
class CacheStats:
    size: int
    max_size: int
    hit_count: int
    miss_count: int
    hit_rate: float  # percent
    total_size_bytes: int
    oldest_entry: float | None
    newest_entry: float | None
    average_access_count: float


def _encode(value: Any) -> bytes:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _key_hash(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]


class ResultCache[T]:
    """Namespaced TTL/LRU cache.

    Args:
        config: Cache tunables.
        store: Optional persistence backend, used when `config.persist` is set.
        metrics: Optional sink receiving one metric per cache operation.
        clock: Wall-clock source in seconds; injectable for tests.
        cache_type: Label attached to emitted metrics.
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        *,
        store: CacheStore | None = None,
        metrics: CacheMetricSink | None = None,
        clock: Callable[[], float] = time.time,
        cache_type: str = "generic",
    ) -> None:
        self._config = config or CacheConfig()
        self._store = store
        self._metrics = metrics
        self._clock = clock
        self._cache_type = cache_type
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._sweep_task: asyncio.Task[None] | None = None

    @property
    def config(self) -> CacheConfig:
        return self._config

    def __len__(self) -> int:
        return len(self._entries)

    # --- Core operations ---

    def get(self, key: str) -> T | None:
        """Return the live value for `key`, updating its recency.

        Values come back in their JSON form (tuples as lists) whatever their
        size. Uncompressed values are shared between reads, so treat them as
        read-only.
        """
        full_key = self._full_key(key)
        entry = self._entries.get(full_key)
        now = self._clock()
        if entry is None or entry.is_expired(now):
            if entry is not None:
                del self._entries[full_key]
                self._emit("expire", full_key)
            self._misses += 1
            self._emit("miss", full_key)
            return None

        entry.access_count += 1
        entry.last_accessed_at = now
        self._entries.move_to_end(full_key)
        self._hits += 1
        self._emit("hit", full_key, data_size=entry.size_bytes)
        return self._decode(entry)

    def has(self, key: str) -> bool:
        """Whether a live entry exists; does not count as an access."""
        entry = self._entries.get(self._full_key(key))
        return entry is not None and not entry.is_expired(self._clock())

    async def set(self, key: str, value: T, *, ttl_seconds: float | None = None) -> None:
        full_key = self._full_key(key)
        now = self._clock()
        ttl = ttl_seconds if ttl_seconds is not None else self._config.ttl_seconds
        payload = _encode(value)
        compressed = (
            self._config.enable_compression
            and len(payload) > self._config.compression_threshold
        )
        entry = CacheEntry(
            value=zlib.compress(payload) if compressed else json.loads(payload),
            created_at=now,
            expires_at=now + ttl,
            access_count=0,
            last_accessed_at=now,
            size_bytes=len(payload),
            compressed=compressed,
        )

        if full_key in self._entries:
            self._entries.move_to_end(full_key)
        else:
            while len(self._entries) >= self._config.max_size:
                await self._evict_lru()
        self._entries[full_key] = entry
        self._emit("set", full_key, data_size=entry.size_bytes, ttl_ms=ttl * 1000)
        await self._persist_save(full_key, entry)

    async def delete(self, key: str) -> bool:
        full_key = self._full_key(key)
        entry = self._entries.pop(full_key, None)
        if entry is None:
            return False
        self._emit("delete", full_key)
        await self._persist_remove(full_key)
        return True

    async def clear(self) -> None:
        """Drop every entry and reset hit/miss counters."""
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        self._emit("clear", self._config.key_prefix)
        if self._persistent:
            try:
                await self._store.clear(self._config.key_prefix)  # type: ignore[union-attr]
            except Exception as e:
                logger.warning("Cache persistence clear failed: %s", e)

    def sweep_expired(self) -> int:
        """Remove expired entries; returns how many were removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for full_key in expired:
            del self._entries[full_key]
            self._emit("expire", full_key)
        if expired:
            logger.debug("Swept %d expired %s cache entries", len(expired), self._cache_type)
        return len(expired)

    def get_stats(self) -> CacheStats:
        entries = list(self._entries.values())
        lookups = self._hits + self._misses
        return CacheStats(
            size=len(entries),
            max_size=self._config.max_size,
            hit_count=self._hits,
            miss_count=self._misses,
            hit_rate=(self._hits / lookups * 100) if lookups else 0.0,
            total_size_bytes=sum(e.size_bytes for e in entries),
            oldest_entry=min((e.created_at for e in entries), default=None),
            newest_entry=max((e.created_at for e in entries), default=None),
            average_access_count=(
                sum(e.access_count for e in entries) / len(entries) if entries else 0.0
            ),
        )

    async def update_config(self, **changes: Any) -> CacheConfig:
        """Apply config changes; a smaller `max_size` evicts LRU entries to fit."""
        interval_changed = (
            "sweep_interval_seconds" in changes
            and changes["sweep_interval_seconds"] != self._config.sweep_interval_seconds
        )
        self._config = dataclasses.replace(self._config, **changes)
        while len(self._entries) > self._config.max_size:
            await self._evict_lru()
        if interval_changed and self.running:
            await self.aclose()
            self.start()
        return self._config

    # --- Persistence ---

    async def load_from_store(self) -> int:
        """Populate from the store, skipping expired records. Returns the count loaded."""
        if not self._persistent:
            return 0
        try:
            records = await self._store.load(self._config.key_prefix)  # type: ignore[union-attr]
        except Exception as e:
            logger.warning("Cache persistence load failed: %s", e)
            return 0

        now = self._clock()
        live: list[tuple[str, CacheEntry]] = []
        for full_key, record in records.items():
            try:
                entry = CacheEntry.from_record(record)
            except (KeyError, TypeError, ValueError) as e:
                logger.debug("Skipping malformed cache record %s: %s", full_key, e)
                continue
            if not entry.is_expired(now):
                live.append((full_key, entry))
        live.sort(key=lambda item: item[1].last_accessed_at)
        for full_key, entry in live[-self._config.max_size :]:
            self._entries[full_key] = entry
            self._entries.move_to_end(full_key)
        logger.info("Loaded %d %s cache entries from store", len(self._entries), self._cache_type)
        return len(self._entries)

    # --- Background sweep ---

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    def start(self) -> None:
        """Start the periodic expiry sweep on the running event loop."""
        if self.running:
            return
        self._sweep_task = asyncio.get_running_loop().create_task(
            self._sweep_loop(), name=f"{self._config.key_prefix}-cache-sweep"
        )

    async def aclose(self) -> None:
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def __aenter__(self) -> Self:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.sweep_interval_seconds)
            self.sweep_expired()

    # --- Internals ---

    @property
    def _persistent(self) -> bool:
        return self._store is not None and self._config.persist

    def _full_key(self, key: str) -> str:
        return f"{self._config.key_prefix}:{key}"

    def _decode(self, entry: CacheEntry) -> T:
        if entry.compressed:
            return json.loads(zlib.decompress(entry.value).decode("utf-8"))
        return entry.value

    async def _evict_lru(self) -> None:
        full_key, entry = self._entries.popitem(last=False)
        logger.debug("Evicted LRU cache entry %s", _key_hash(full_key))
        self._emit("evict", full_key, data_size=entry.size_bytes)
        await self._persist_remove(full_key)

    async def _persist_save(self, full_key: str, entry: CacheEntry) -> None:
        if not self._persistent:
            return
        try:
            await self._store.save(self._config.key_prefix, full_key, entry.to_record())  # type: ignore[union-attr]
        except Exception as e:
            logger.warning("Cache persistence save failed: %s", e)

    async def _persist_remove(self, full_key: str) -> None:
        if not self._persistent:
            return
        try:
            await self._store.remove(self._config.key_prefix, full_key)  # type: ignore[union-attr]
        except Exception as e:
            logger.warning("Cache persistence remove failed: %s", e)

    def _emit(self, action: CacheAction, full_key: str, **fields: Any) -> None:
        if self._metrics is None:
            return
        lookups = self._hits + self._misses
        try:
            self._metrics.record_cache_metric(
                action=action,
                cache_type=self._cache_type,
                key_hash=_key_hash(full_key),
                hit_rate=(self._hits / lookups * 100) if lookups else 0.0,
                size=len(self._entries),
                max_size=self._config.max_size,
                **fields,
            )
        except Exception as e:
            logger.error("Cache metric sink failed: %s", e, exc_info=True)
