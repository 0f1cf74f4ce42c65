"""
CountyStats - Region Cache

Key/value storage for county statistics records. Values are JSON objects
of the record's sections stored under "<prefix>:<county>".

There is no TTL and no eviction: the cache holds one entry per county
and entries are only ever overwritten. Concurrent writers are not
coordinated, the last write wins.

Note: redis-py's type stubs use a generic ResponseT that supports both sync
and async interfaces. We use the synchronous interface only.
"""

import json
import logging
import threading
from typing import Any, Dict, Optional

import redis

from countystats.exceptions import CacheUnavailableError
from countystats.models import RegionRecord

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "county"


class RegionCache:
    """
    Base class for county record caches.

    Subclasses implement the raw string operations; serialization and key
    naming live here so every backend stores the same format.
    """

    def __init__(self, key_prefix: str = DEFAULT_KEY_PREFIX):
        self.key_prefix = key_prefix

    def cache_key(self, key: str) -> str:
        """Namespaced cache key for a county."""
        return f"{self.key_prefix}:{key}"

    def _serialize(self, record: RegionRecord) -> str:
        return json.dumps(record.to_dict())

    def _deserialize(self, data: Optional[str]) -> Optional[RegionRecord]:
        if data is None:
            return None
        sections = json.loads(data)
        if not isinstance(sections, dict):
            raise TypeError(f"expected a JSON object, got {type(sections).__name__}")
        return RegionRecord.from_dict(sections)

    def get(self, key: str) -> Optional[RegionRecord]:
        """
        Retrieve the cached record for a county.

        Returns:
            RegionRecord, or None if absent

        Raises:
            CacheUnavailableError: If the backend cannot be reached or the
                stored value does not decode to a record
        """
        data = self._get_raw(self.cache_key(key), key)
        try:
            return self._deserialize(data)
        except (ValueError, TypeError) as error:
            logger.warning(f"[WARN] Undecodable cache value for {self.cache_key(key)}: {error}")
            raise CacheUnavailableError("get", key, f"undecodable value: {error}") from error

    def set(self, key: str, record: RegionRecord) -> bool:
        """
        Store a record for a county, overwriting any existing entry.

        Raises:
            CacheUnavailableError: If the backend cannot be reached
        """
        self._set_raw(self.cache_key(key), self._serialize(record), key)
        logger.debug(f"Cached county:{key} ({len(record.sections)} sections)")
        return True

    def exists(self, key: str) -> bool:
        """True if an entry exists for the county."""
        return self._exists_raw(self.cache_key(key), key)

    def is_connected(self) -> bool:
        return True

    def _get_raw(self, full_key: str, key: str) -> Optional[str]:
        raise NotImplementedError

    def _set_raw(self, full_key: str, value: str, key: str) -> None:
        raise NotImplementedError

    def _exists_raw(self, full_key: str, key: str) -> bool:
        raise NotImplementedError


class RedisRegionCache(RegionCache):
    """
    Redis-backed county record cache.

    PERSISTENCE NOTE:
    -----------------
    Entries outlive this process but survive Redis restarts ONLY if
    persistence is enabled, e.g.:

       docker run -d --name redis -p 6379:6379 \\
           -v redis-data:/data \\
           redis:alpine redis-server --appendonly yes
    """

    def __init__(self, redis_url: str = "redis://localhost:6379", key_prefix: str = DEFAULT_KEY_PREFIX):
        """
        Initialize the Redis client.

        The client connects lazily; an unreachable server surfaces as
        CacheUnavailableError on the first operation, not here.

        Args:
            redis_url: Redis connection URL
            key_prefix: Namespace prefix for county keys
        """
        super().__init__(key_prefix)
        self.redis_url = redis_url
        self.client: Any = redis.from_url(self.redis_url, decode_responses=True)
        logger.info(f"[OK] Redis cache configured at {self._safe_url()} (prefix: {key_prefix})")

    def _safe_url(self) -> str:
        """Return URL with password masked for logging."""
        if "@" in self.redis_url:
            parts = self.redis_url.split("@")
            return f"***@{parts[-1]}"
        return self.redis_url

    def is_connected(self) -> bool:
        """Check if Redis connection is alive."""
        try:
            self.client.ping()
            return True
        except redis.RedisError:
            return False

    def _get_raw(self, full_key: str, key: str) -> Optional[str]:
        try:
            return self.client.get(full_key)
        except redis.RedisError as error:
            raise CacheUnavailableError("get", key, str(error)) from error
        except UnicodeDecodeError as error:
            raise CacheUnavailableError("get", key, f"undecodable value: {error}") from error

    def _set_raw(self, full_key: str, value: str, key: str) -> None:
        try:
            self.client.set(full_key, value)
        except redis.RedisError as error:
            raise CacheUnavailableError("set", key, str(error)) from error

    def _exists_raw(self, full_key: str, key: str) -> bool:
        try:
            return bool(self.client.exists(full_key))
        except redis.RedisError as error:
            raise CacheUnavailableError("exists", key, str(error)) from error


class InMemoryRegionCache(RegionCache):
    """
    Process-local county record cache.

    Stores the same serialized form as Redis, so records read back are
    fresh copies. The lock only keeps the dict consistent across threads.
    """

    def __init__(self, key_prefix: str = DEFAULT_KEY_PREFIX):
        super().__init__(key_prefix)
        self._entries: Dict[str, str] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self):
        with self._lock:
            return list(self._entries)

    def _get_raw(self, full_key: str, key: str) -> Optional[str]:
        with self._lock:
            return self._entries.get(full_key)

    def _set_raw(self, full_key: str, value: str, key: str) -> None:
        with self._lock:
            self._entries[full_key] = value

    def _exists_raw(self, full_key: str, key: str) -> bool:
        with self._lock:
            return full_key in self._entries
