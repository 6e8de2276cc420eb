"""Единая точка настройки aiocache для ответов провайдеров."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

from aiocache import SimpleMemoryCache, caches
from aiocache.base import BaseCache

try:
    from aiocache import RedisCache
except (ImportError, AttributeError):  # pragma: no cover - optional dependency
    RedisCache = None  # type: ignore[assignment]

from config.settings import AppSettings

PROVIDER_CACHE_ALIAS = "providers"


def configure_cache(settings: AppSettings) -> None:
    """Настраивает aiocache в зависимости от backend (memory/redis)."""

    ttl = settings.providers.response_ttl_seconds
    if settings.cache.backend == "redis":
        if RedisCache is None:
            raise RuntimeError(
                "Для использования RedisCache установите пакет 'redis' и aiocache[redis]"
            )
        config = _build_redis_config(settings.cache.redis_dsn)
        # в кеше лежат dataclass-снапшоты, JSON их не переживёт
        cache_config: dict[str, Any] = {
            "cache": RedisCache,
            **config,
            "serializer": {"class": "aiocache.serializers.PickleSerializer"},
            "ttl": ttl,
            "namespace": "market_cache",
        }
    else:
        cache_config = {"cache": SimpleMemoryCache, "ttl": ttl}
    caches.set_config({"default": {"cache": SimpleMemoryCache}, PROVIDER_CACHE_ALIAS: cache_config})


def get_cache(settings: AppSettings, alias: str = PROVIDER_CACHE_ALIAS) -> BaseCache:
    """Настраивает aiocache и возвращает новый экземпляр кеша по алиасу."""

    configure_cache(settings)
    return caches.create(alias)


def _build_redis_config(dsn: str | None) -> dict[str, Any]:
    if not dsn:
        raise RuntimeError("CACHE__BACKEND=redis, но redis_dsn не указан")
    parsed = urlparse(dsn)
    if parsed.scheme != "redis":
        raise ValueError(f"Неподдерживаемая схема Redis DSN: {parsed.scheme}")
    db = 0
    if parsed.path and parsed.path != "/":
        try:
            db = int(parsed.path.lstrip("/"))
        except ValueError:
            db = 0
    return {
        "endpoint": parsed.hostname or "localhost",
        "port": parsed.port or 6379,
        "password": parsed.password,
        "db": db,
    }


__all__ = ["PROVIDER_CACHE_ALIAS", "configure_cache", "get_cache"]
