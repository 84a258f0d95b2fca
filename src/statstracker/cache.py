"""Local key/value cache with TTL and lazy expiry.

The file-backed implementation stores each entry as a small JSON envelope::

    {"data": <value>, "created_at": "...", "expires_at": "..." | null}

at ``<base>/<sha256(key)[:2]>/<sha256(key)[2:]>.json``. Sharding on the first
two hex characters bounds directory fan-out. Expired entries are removed the
next time they are read; there is no background sweep.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from .errors import CacheError, CacheMiss
from .models import format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

APP_NAME = "statstracker"

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """A cached value plus its creation and optional expiry timestamps."""

    data: Any
    created_at: datetime
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        if self.expires_at is None:
            return False
        return now > self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": self.data,
            "created_at": format_timestamp(self.created_at),
            "expires_at": format_timestamp(self.expires_at),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> CacheEntry:
        return cls(
            data=payload.get("data"),
            created_at=parse_timestamp(payload["created_at"]),
            expires_at=parse_timestamp(payload.get("expires_at")),
        )


class Cache(ABC):
    """Interface shared by all cache implementations."""

    @abstractmethod
    def get(self, key: str) -> Any:
        """Return the cached value for ``key``.

        Raises:
            CacheMiss: If the key is absent or its entry has expired.
            CacheError: If the entry exists but cannot be read or decoded.
        """

    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[timedelta] = None) -> None:
        """Store ``value``; a ``ttl`` of ``None`` or ``<= 0`` never expires."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``; deleting an absent key is not an error."""

    @abstractmethod
    def close(self) -> None:
        """Release any resources held by the cache."""


class FileCache(Cache):
    """Cache implementation that keeps one JSON file per key on disk."""

    def __init__(self, base_dir: Union[str, Path], clock: Optional[Clock] = None) -> None:
        """Create the cache, making ``base_dir`` if needed.

        Args:
            base_dir: Root directory for cache shards.
            clock: Callable returning the current UTC time, used for expiry.

        Raises:
            CacheError: If the base directory cannot be created.
        """
        self._base_dir = Path(base_dir)
        self._clock = clock or _utc_now
        try:
            self._base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheError(f"Failed to create cache directory {self._base_dir}") from exc

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def path_for(self, key: str) -> Path:
        """Map a key to its sharded file path."""
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._base_dir / digest[:2] / f"{digest[2:]}.json"

    def get(self, key: str) -> Any:
        path = self.path_for(key)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise CacheMiss(key) from None
        except OSError as exc:
            raise CacheError(f"Failed to read cache file {path}") from exc

        try:
            entry = CacheEntry.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise CacheError(f"Failed to decode cache entry {path}") from exc

        if entry.is_expired(self._clock()):
            logger.debug("Cache entry expired", extra={"cache_key": key})
            self.delete(key)
            raise CacheMiss(key)

        return entry.data

    def set(self, key: str, value: Any, ttl: Optional[timedelta] = None) -> None:
        now = self._clock()
        expires_at = None
        if ttl is not None and ttl > timedelta(0):
            expires_at = now + ttl

        entry = CacheEntry(data=value, created_at=now, expires_at=expires_at)
        try:
            payload = json.dumps(entry.to_dict())
        except (TypeError, ValueError) as exc:
            raise CacheError(f"Failed to encode cache value for key {key}") from exc

        path = self.path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(payload, encoding="utf-8")
        except OSError as exc:
            raise CacheError(f"Failed to write cache file {path}") from exc

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise CacheError(f"Failed to delete cache file {path}") from exc

    def close(self) -> None:
        # Nothing is held open between calls.
        return None


def default_cache_dir(app_name: str = APP_NAME) -> Path:
    """Return the per-user cache directory for ``app_name``."""
    if sys.platform == "win32":
        root = os.getenv("LOCALAPPDATA") or str(Path.home() / "AppData" / "Local")
    elif sys.platform == "darwin":
        root = str(Path.home() / "Library" / "Caches")
    else:
        root = os.getenv("XDG_CACHE_HOME") or str(Path.home() / ".cache")
    return Path(root) / app_name


def new_default_cache() -> FileCache:
    """Create the file cache in the user cache directory."""
    return FileCache(default_cache_dir())
