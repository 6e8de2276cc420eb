"""Сборка сервисов market-cache (явно, без модульных синглтонов)."""

from __future__ import annotations

from dataclasses import dataclass

import aiohttp
from aiocache.base import BaseCache
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine

from config.settings import AppSettings, get_settings
from .db import create_engine, create_session_maker
from .providers import build_holder_adapters, build_market_adapters
from .providers.http import create_session
from .services import (
    DatabaseProjectSource,
    HolderResolver,
    MarketDataResolver,
    ProjectCache,
    ProjectSource,
    RefreshScheduler,
    StaticProjectSource,
)
from .utils.cache import get_cache


@dataclass(slots=True)
class MarketServices:
    settings: AppSettings
    http: aiohttp.ClientSession
    provider_cache: BaseCache
    source: ProjectSource
    market_resolver: MarketDataResolver
    holder_resolver: HolderResolver
    cache: ProjectCache
    scheduler: RefreshScheduler
    engine: AsyncEngine | None = None

    async def close(self) -> None:
        await self.scheduler.stop()
        await self.cache.aclose()
        await self.http.close()
        await self.provider_cache.close()
        if self.engine is not None:
            await self.engine.dispose()
        logger.info("Сервисы market-cache остановлены")


def build_source(settings: AppSettings) -> tuple[ProjectSource, AsyncEngine | None]:
    """БД, если задан DSN, иначе список проектов из настроек."""

    currency = settings.market.currency
    if settings.database.dsn:
        engine = create_engine(settings.database)
        return DatabaseProjectSource(create_session_maker(engine), currency), engine
    return StaticProjectSource.from_settings(settings.projects, currency), None


async def build_services(settings: AppSettings | None = None) -> MarketServices:
    settings = settings or get_settings()
    http = create_session(settings.providers.request_timeout, settings.providers.user_agent)
    provider_cache = get_cache(settings)
    source, engine = build_source(settings)

    market_resolver = MarketDataResolver(
        build_market_adapters(http, settings, provider_cache),
        timeout=settings.providers.request_timeout,
    )
    holder_resolver = HolderResolver(
        build_holder_adapters(http, settings, provider_cache),
        timeout=settings.providers.request_timeout,
        top_n=settings.holders.top_n,
        labels=settings.holders.labels,
    )
    cache = ProjectCache(
        source,
        market_resolver,
        holder_resolver,
        stale_after_sec=settings.scheduler.stale_after_sec,
    )
    for project in await source.list_projects():
        cache.track(project)

    scheduler = RefreshScheduler(
        cache,
        source,
        interval_sec=settings.scheduler.interval_sec,
        max_concurrency=settings.scheduler.max_concurrency,
        run_on_startup=settings.scheduler.run_on_startup,
    )
    logger.info(
        "Сервисы собраны: market={market}, holders={holders}, проектов={count}",
        market=[adapter.name for adapter in market_resolver.adapters],
        holders=[adapter.name for adapter in holder_resolver.adapters],
        count=len(cache),
    )
    return MarketServices(
        settings=settings,
        http=http,
        provider_cache=provider_cache,
        source=source,
        market_resolver=market_resolver,
        holder_resolver=holder_resolver,
        cache=cache,
        scheduler=scheduler,
        engine=engine,
    )


__all__ = ["MarketServices", "build_services", "build_source"]
