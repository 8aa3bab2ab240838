from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Any, Optional, Protocol

import redis

from app.core.config import settings

_LOG = logging.getLogger("app.list_cache")


class ListCache(Protocol):
    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any, *, ttl_seconds: int) -> None:
        ...

    def invalidate_prefix(self, prefix: str) -> None:
        ...


class InMemoryListCache:
    def __init__(self):
        self._data: dict[str, tuple[str, datetime]] = {}
        self._lock = Lock()

    def get(self, key: str) -> Optional[Any]:
        now = datetime.now(timezone.utc)
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            payload, expires_at = entry
            if expires_at <= now:
                self._data.pop(key, None)
                return None
        return json.loads(payload)

    def set(self, key: str, value: Any, *, ttl_seconds: int) -> None:
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=max(int(ttl_seconds), 1))
        payload = json.dumps(value, default=str)
        with self._lock:
            self._data[key] = (payload, expires_at)

    def invalidate_prefix(self, prefix: str) -> None:
        with self._lock:
            for key in [k for k in self._data if k.startswith(prefix)]:
                self._data.pop(key, None)


class RedisListCache:
    def __init__(self, client: redis.Redis):
        self.client = client

    def get(self, key: str) -> Optional[Any]:
        raw = self.client.get(key)
        return json.loads(raw) if raw else None

    def set(self, key: str, value: Any, *, ttl_seconds: int) -> None:
        self.client.set(key, json.dumps(value, default=str), ex=int(max(ttl_seconds, 1)))

    def invalidate_prefix(self, prefix: str) -> None:
        keys = list(self.client.scan_iter(match=f"{prefix}*"))
        if keys:
            self.client.delete(*keys)


_cached_cache: ListCache | None = None


def _build_cache() -> ListCache:
    if not settings.REDIS_URL:
        return InMemoryListCache()
    try:
        client = redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=0.4,
            socket_connect_timeout=0.4,
        )
        client.ping()
        return RedisListCache(client)
    except redis.RedisError:
        _LOG.warning("Redis list cache unavailable; fallback to in-memory cache")
        return InMemoryListCache()


def get_list_cache() -> ListCache:
    global _cached_cache
    if _cached_cache is None:
        _cached_cache = _build_cache()
    return _cached_cache


def cache_key(prefix: str, query: dict) -> str:
    return f"{prefix}:{json.dumps(query, sort_keys=True, default=str)}"


HYMN_CACHE_PREFIX = "hymns:list"


def invalidate_hymn_lists() -> None:
    """Drop cached hymn lists; they embed category and lyric data too."""
    get_list_cache().invalidate_prefix(HYMN_CACHE_PREFIX)


def reset_list_cache_for_tests() -> None:
    global _cached_cache
    _cached_cache = None
