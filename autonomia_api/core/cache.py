from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from threading import Lock
from typing import Any

import redis

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300


class CacheBackend(ABC):
    """JSON cache. Every failure is logged and reported as a miss."""

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Retorna o valor desserializado ou None."""

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        """Armazena o valor serializado em JSON."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove a chave."""


class InMemoryCache(CacheBackend):
    def __init__(self, *, default_ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        self.default_ttl_seconds = default_ttl_seconds
        self._store: dict[str, tuple[float | None, str]] = {}
        self._lock = Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            expires_at, raw = entry
            if expires_at is not None and expires_at <= time.monotonic():
                self._store.pop(key, None)
                return None
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        now = time.monotonic()
        expires_at = now + ttl if ttl > 0 else None
        raw = json.dumps(value, default=str)
        with self._lock:
            self._prune_expired(now)
            self._store[key] = (expires_at, raw)
        return True

    def _prune_expired(self, now: float) -> None:
        expired = [
            key for key, (expires_at, _) in self._store.items() if expires_at is not None and expires_at <= now
        ]
        for key in expired:
            del self._store[key]

    def delete(self, key: str) -> bool:
        with self._lock:
            self._store.pop(key, None)
        return True


class RedisCache(CacheBackend):
    def __init__(
        self,
        url: str,
        *,
        default_ttl_seconds: int = DEFAULT_TTL_SECONDS,
        socket_timeout_seconds: float = 5.0,
    ) -> None:
        self.default_ttl_seconds = default_ttl_seconds
        self._client = redis.Redis.from_url(
            url,
            socket_timeout=socket_timeout_seconds,
            socket_connect_timeout=socket_timeout_seconds,
            decode_responses=True,
        )

    def get(self, key: str) -> Any | None:
        try:
            raw = self._client.get(key)
        except redis.RedisError:
            logger.exception("cache get failed key=%s", key)
            return None
        if raw is None:
            return None
        logger.debug("cache hit key=%s", key)
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("cache entry is not valid JSON key=%s", key)
            return None

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        raw = json.dumps(value, default=str)
        try:
            if ttl > 0:
                self._client.setex(key, ttl, raw)
            else:
                self._client.set(key, raw)
        except redis.RedisError:
            logger.exception("cache set failed key=%s", key)
            return False
        return True

    def delete(self, key: str) -> bool:
        try:
            self._client.delete(key)
        except redis.RedisError:
            logger.exception("cache delete failed key=%s", key)
            return False
        return True

    def close(self) -> None:
        self._client.close()


def build_cache(redis_url: str, *, default_ttl_seconds: int = DEFAULT_TTL_SECONDS) -> CacheBackend:
    if not redis_url:
        logger.info("REDIS_URL not configured; using in-memory cache")
        return InMemoryCache(default_ttl_seconds=default_ttl_seconds)
    return RedisCache(redis_url, default_ttl_seconds=default_ttl_seconds)
