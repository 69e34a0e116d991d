"""Build caches for Perseus.

A Cache is a named key/value store used to skip recomputation across renders
(and, with the disk cache enabled, across builds). Caches with the same name
share one in-memory store for the lifetime of the process.

The cache directory is process-wide state. ``Site`` configures it whenever its
configuration is assigned.
"""

from __future__ import annotations

import hashlib
import logging
import pickle
from collections.abc import Callable
from pathlib import Path
from typing import Any, ClassVar, TypeVar

from .paths import resolve

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Cache:
    """Named memo store with optional pickle persistence.

    Attributes:
        name: Namespace shared by every Cache with the same name.
    """

    cache_dir: ClassVar[Path | None] = None
    disk_cache_enabled: ClassVar[bool] = True
    _stores: ClassVar[dict[str, dict[str, Any]]] = {}

    def __init__(self, name: str):
        self.name = name
        self._store = Cache._stores.setdefault(name, {})

    @classmethod
    def configure(cls, cache_dir: Path | None, disable_disk_cache: bool = False) -> None:
        """Point every cache at a directory and toggle disk persistence.

        Args:
            cache_dir: Directory for pickled entries, or None for memory only.
            disable_disk_cache: Keep entries in memory even when a directory is set.
        """
        cls.cache_dir = cache_dir
        cls.disk_cache_enabled = not disable_disk_cache
        logger.debug(
            "Cache configured at %s (disk cache %s)",
            cache_dir,
            "enabled" if cls.disk_cache_enabled else "disabled",
        )

    @classmethod
    def clear_all(cls) -> None:
        """Drop every in-memory store."""
        cls._stores.clear()

    @staticmethod
    def digest(*parts: str) -> str:
        hasher = hashlib.sha1()
        for part in parts:
            hasher.update(part.encode("utf-8"))
            hasher.update(b"\0")
        return hasher.hexdigest()

    def __contains__(self, key: str) -> bool:
        if key in self._store:
            return True
        path = self._disk_path(key)
        return path is not None and path.exists()

    def clear(self) -> None:
        self._store.clear()

    def getset(self, key: str, compute: Callable[[], T]) -> T:
        """Return the cached value for key, computing and storing it on a miss.

        Args:
            key: Cache key.
            compute: Called with no arguments on a miss.

        Returns:
            The cached or freshly computed value.
        """
        if key in self._store:
            return self._store[key]
        value = self._read_disk(key)
        if value is None:
            value = compute()
            self._write_disk(key, value)
        self._store[key] = value
        return value

    def _disk_path(self, key: str) -> Path | None:
        if not self.disk_cache_enabled or Cache.cache_dir is None:
            return None
        hashed = self.digest(key)
        return resolve(Cache.cache_dir, "Perseus", self.name, hashed[:2], hashed[2:])

    def _read_disk(self, key: str) -> Any:
        path = self._disk_path(key)
        if path is None or not path.exists():
            return None
        try:
            with open(path, "rb") as f:
                return pickle.load(f)
        except (OSError, pickle.UnpicklingError, EOFError) as exc:
            logger.warning("Ignoring unreadable cache entry %s: %s", path, exc)
            return None

    def _write_disk(self, key: str, value: Any) -> None:
        path = self._disk_path(key)
        if path is None:
            return
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as f:
                pickle.dump(value, f)
        except (OSError, pickle.PicklingError) as exc:
            logger.warning("Could not persist cache entry %s: %s", path, exc)
