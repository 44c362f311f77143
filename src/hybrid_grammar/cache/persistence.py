"""Persistence backends for `ResultCache`.

Stores hold plain JSON records grouped by cache namespace (the key prefix).
The JSON file store rewrites the whole file on every change using
copy-on-write (write a temp file, then rename), so a crash never leaves a
half-written file behind.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from hybrid_grammar.exceptions import CacheError

if TYPE_CHECKING:
    import os

logger = logging.getLogger(__name__)

type CacheRecord = dict[str, Any]


@runtime_checkable
class CacheStore(Protocol):
    async def load(self, namespace: str) -> dict[str, CacheRecord]: ...

    async def save(self, namespace: str, key: str, record: CacheRecord) -> None: ...

    async def remove(self, namespace: str, key: str) -> None: ...

    async def clear(self, namespace: str) -> None: ...


class JSONFileStore:
    """Single JSON file mapping ``namespace -> {key: record}``.

    File I/O runs in a worker thread and is serialised by a lock so
    concurrent writers cannot lose each other's updates.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def load(self, namespace: str) -> dict[str, CacheRecord]:
        data = await asyncio.to_thread(self._read_all)
        section = data.get(namespace, {})
        return dict(section) if isinstance(section, dict) else {}

    async def save(self, namespace: str, key: str, record: CacheRecord) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read_all)
            data.setdefault(namespace, {})[key] = record
            await asyncio.to_thread(self._write_all, data)

    async def remove(self, namespace: str, key: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read_all)
            section = data.get(namespace)
            if not isinstance(section, dict) or key not in section:
                return
            del section[key]
            await asyncio.to_thread(self._write_all, data)

    async def clear(self, namespace: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read_all)
            if data.pop(namespace, None) is not None:
                await asyncio.to_thread(self._write_all, data)

    def _read_all(self) -> dict[str, dict[str, CacheRecord]]:
        if not self._path.exists():
            return {}
        try:
            result = json.loads(self._path.read_text(encoding="utf-8"))
        except OSError as e:
            raise CacheError(f"Failed to read cache file {self._path}: {e}") from e
        except json.JSONDecodeError as e:
            logger.warning("Ignoring corrupt cache file %s: %s", self._path, e)
            return {}
        return result if isinstance(result, dict) else {}

    def _write_all(self, data: dict[str, dict[str, CacheRecord]]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp.write_text(json.dumps(data), encoding="utf-8")
            Path.replace(tmp, self._path)
        except OSError as e:
            raise CacheError(f"Failed to write cache file {self._path}: {e}") from e
