from __future__ import annotations

import copy
import json
import logging
import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Iterable, Protocol

import redis

_LOG = logging.getLogger("datakit.cache")


def _check_tags(tags: Iterable[str]) -> list[str]:
    checked = list(tags or ())
    for tag in checked:
        if not isinstance(tag, str):
            raise ValueError(f"Cache tags must be strings, got {type(tag).__name__}")
    return checked


@dataclass
class CacheItem:
    key: str
    value: Any
    expires_at: float | None = None
    tags: list[str] = field(default_factory=list)

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and self.expires_at <= now


class CacheProvider(Protocol):
    def get(self, key: str) -> Any | None:
        ...

    def set(self, key: str, value: Any, ttl: int | None = None, tags: Iterable[str] = ()) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def delete_by_tags(self, tags: Iterable[str]) -> None:
        ...

    def clear(self) -> None:
        ...


class InMemoryCacheProvider:
    def __init__(self, clock: Callable[[], float] | None = None):
        self._clock = clock or time.monotonic
        self._items: dict[str, CacheItem] = {}
        self._tags: dict[str, set[str]] = {}
        self._lock = Lock()

    # Callers hold the lock.
    def _drop(self, key: str) -> None:
        item = self._items.pop(key, None)
        if item is None:
            return
        for tag in item.tags:
            keys = self._tags.get(tag)
            if keys is None:
                continue
            keys.discard(key)
            if not keys:
                del self._tags[tag]

    def _prune(self, now: float) -> None:
        for key in [key for key, item in self._items.items() if item.is_expired(now)]:
            self._drop(key)

    def get(self, key: str) -> Any | None:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            if item.is_expired(self._clock()):
                self._drop(key)
                return None
            return copy.deepcopy(item.value)

    def set(self, key: str, value: Any, ttl: int | None = None, tags: Iterable[str] = ()) -> None:
        checked = _check_tags(tags)
        now = self._clock()
        expires_at = now + ttl if ttl is not None and ttl > 0 else None
        with self._lock:
            self._prune(now)
            self._drop(key)
            self._items[key] = CacheItem(key=key, value=copy.deepcopy(value), expires_at=expires_at, tags=checked)
            for tag in checked:
                self._tags.setdefault(tag, set()).add(key)

    def delete(self, key: str) -> None:
        with self._lock:
            self._drop(key)

    def delete_by_tags(self, tags: Iterable[str]) -> None:
        checked = _check_tags(tags)
        with self._lock:
            for tag in checked:
                for key in list(self._tags.get(tag, ())):
                    self._drop(key)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
            self._tags.clear()


class RedisCacheProvider:
    """Values are JSON encoded; every tag is a redis set of the keys carrying it."""

    def __init__(self, client: redis.Redis, prefix: str = "datakit"):
        self.client = client
        self.prefix = prefix

    def _item_key(self, key: str) -> str:
        return f"{self.prefix}:item:{key}"

    def _tag_key(self, tag: str) -> str:
        return f"{self.prefix}:tag:{tag}"

    def get(self, key: str) -> Any | None:
        raw = self.client.get(self._item_key(key))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            _LOG.warning("Dropping undecodable cache item key=%s", key)
            self.client.delete(self._item_key(key))
            return None

    def set(self, key: str, value: Any, ttl: int | None = None, tags: Iterable[str] = ()) -> None:
        checked = _check_tags(tags)
        encoded = json.dumps(value, default=str, ensure_ascii=False)
        item_key = self._item_key(key)
        pipe = self.client.pipeline()
        if ttl is not None and ttl > 0:
            pipe.set(item_key, encoded, ex=int(ttl))
        else:
            pipe.set(item_key, encoded)
        for tag in checked:
            pipe.sadd(self._tag_key(tag), item_key)
        pipe.execute()

    def delete(self, key: str) -> None:
        self.client.delete(self._item_key(key))

    def delete_by_tags(self, tags: Iterable[str]) -> None:
        for tag in _check_tags(tags):
            tag_key = self._tag_key(tag)
            keys = list(self.client.smembers(tag_key) or ())
            if keys:
                self.client.delete(*keys)
            self.client.delete(tag_key)

    def clear(self) -> None:
        batch: list[str] = []
        for key in self.client.scan_iter(match=f"{self.prefix}:*", count=500):
            batch.append(key)
            if len(batch) >= 500:
                self.client.delete(*batch)
                batch = []
        if batch:
            self.client.delete(*batch)


def build_cache_provider(settings) -> CacheProvider:
    backend = str(settings.CACHE_BACKEND or "memory").strip().lower()
    if backend == "memory":
        return InMemoryCacheProvider()
    if backend != "redis":
        raise ValueError(f"Unknown CACHE_BACKEND: {settings.CACHE_BACKEND}")
    try:
        client = redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=0.4,
            socket_connect_timeout=0.4,
        )
        client.ping()
        return RedisCacheProvider(client, prefix=settings.CACHE_PREFIX)
    except redis.RedisError:
        _LOG.warning("Redis cache unavailable; fallback to in-memory cache")
        return InMemoryCacheProvider()
