"""Cache store backends and the cache keyspace.

Both backends hold JSON-serialized values with a per-key expiry. Any failure
(transport, timeout, (de)serialization) is raised as ``CacheFault`` so callers
can tell "the cache is broken" apart from "the cache has no entry".
"""

from __future__ import annotations

import json
import re
import threading
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

import redis
import structlog

from .errors import CacheFault

logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 30
MEMORY_URL = "memory://"


def board_key(board_id: str) -> str:
    return f"board:{board_id}"


def task_list_key(board_id: str) -> str:
    return f"tasks:board:{board_id}"


def board_keys(board_id: str) -> Tuple[str, str]:
    """Every key derived from a board id, in invalidation order."""
    return task_list_key(board_id), board_key(board_id)


class CacheStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...
    def set(self, key: str, value: Any, ttl_seconds: int) -> None: ...
    def delete(self, key: str) -> None: ...
    def delete_by_prefix(self, prefix: str) -> int: ...
    def close(self) -> None: ...


def _dumps(operation: str, key: str, value: Any) -> str:
    try:
        return json.dumps(value, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise CacheFault(operation, key) from exc


def _loads(key: str, raw: str | bytes) -> Any:
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise CacheFault("get", key) from exc


_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def glob_escape(prefix: str) -> str:
    return _GLOB_SPECIAL.sub(r"\\\1", prefix)


class RedisCacheStore:
    """Cache store backed by a shared, thread-safe Redis client."""

    def __init__(self, client: redis.Redis, scan_batch: int = 500) -> None:
        self.client = client
        self.scan_batch = scan_batch

    @classmethod
    def from_url(cls, url: str, socket_timeout: float = 0.5) -> RedisCacheStore:
        client = redis.Redis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            health_check_interval=30,
        )
        return cls(client)

    def get(self, key: str) -> Optional[Any]:
        try:
            raw = self.client.get(key)
        except redis.RedisError as exc:
            raise CacheFault("get", key) from exc
        if raw is None:
            return None
        return _loads(key, raw)

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        payload = _dumps("set", key, value)
        try:
            self.client.set(key, payload, ex=ttl_seconds)
        except redis.RedisError as exc:
            raise CacheFault("set", key) from exc

    def delete(self, key: str) -> None:
        try:
            self.client.delete(key)
        except redis.RedisError as exc:
            raise CacheFault("delete", key) from exc

    def delete_by_prefix(self, prefix: str) -> int:
        """Best-effort SCAN + DEL; entries may be observed until their batch is reached."""
        if not prefix:
            raise ValueError("prefix must not be empty")
        deleted = 0
        batch: list = []
        try:
            for key in self.client.scan_iter(match=glob_escape(prefix) + "*", count=self.scan_batch):
                batch.append(key)
                if len(batch) >= self.scan_batch:
                    deleted += self.client.delete(*batch)
                    batch = []
            if batch:
                deleted += self.client.delete(*batch)
        except redis.RedisError as exc:
            raise CacheFault("delete_by_prefix", prefix) from exc
        return deleted

    def close(self) -> None:
        self.client.close()


class InMemoryCacheStore:
    """Process-local cache store with the same TTL semantics as Redis."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            raw, expires_at = entry
            if self.clock() >= expires_at:
                del self._entries[key]
                return None
        return _loads(key, raw)

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        payload = _dumps("set", key, value)
        with self._lock:
            self._entries[key] = (payload, self.clock() + ttl_seconds)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def delete_by_prefix(self, prefix: str) -> int:
        if not prefix:
            raise ValueError("prefix must not be empty")
        with self._lock:
            doomed = [k for k in self._entries if k.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def raw(self, key: str) -> Optional[str]:
        """Serialized payload of a live entry, for inspection."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or self.clock() >= entry[1]:
                return None
            return entry[0]

    def close(self) -> None:
        with self._lock:
            self._entries.clear()


def create_cache_store(url: str, socket_timeout: float = 0.5) -> CacheStore:
    if url == MEMORY_URL:
        logger.info("Using in-memory cache store")
        return InMemoryCacheStore()
    logger.info("Using Redis cache store", socket_timeout=socket_timeout)
    return RedisCacheStore.from_url(url, socket_timeout=socket_timeout)
