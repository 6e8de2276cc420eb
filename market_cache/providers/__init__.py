"""Адаптеры внешних источников и сборка цепочек по настройкам."""

from __future__ import annotations

from typing import Any, Callable

import aiohttp
from aiocache.base import BaseCache
from loguru import logger

from config.settings import AppSettings
from .base import (
    AllProvidersExhausted,
    BaseAdapter,
    Holder,
    HolderAdapter,
    MarketDataAdapter,
    MarketSnapshot,
    ProviderFailure,
    ProviderResult,
    ProviderSuccess,
    normalize_address,
)
from .covalent import CovalentHoldersAdapter
from .dexscreener import DexScreenerAdapter
from .geckoterminal import GeckoTerminalAdapter
from .polygonscan import PolygonscanApiHoldersAdapter, PolygonscanHtmlHoldersAdapter

AdapterFactory = Callable[[aiohttp.ClientSession, AppSettings, dict[str, Any]], Any]


def _geckoterminal(session, settings: AppSettings, cache_opts):
    return GeckoTerminalAdapter(
        session,
        base_url=str(settings.geckoterminal.base_url),
        network=settings.geckoterminal.network,
        web_url=str(settings.geckoterminal.web_url) if settings.geckoterminal.scrape_market_cap else None,
        currency=settings.market.currency,
        **cache_opts,
    )


def _dexscreener(session, settings: AppSettings, cache_opts):
    return DexScreenerAdapter(
        session,
        base_url=str(settings.dexscreener.base_url),
        chain=settings.dexscreener.chain,
        currency=settings.market.currency,
        **cache_opts,
    )


def _covalent(session, settings: AppSettings, cache_opts):
    if settings.covalent.api_key is None:
        return None
    return CovalentHoldersAdapter(
        session,
        base_url=str(settings.covalent.base_url),
        chain_id=settings.covalent.chain_id,
        api_key=settings.covalent.api_key.get_secret_value(),
        page_size=settings.holders.top_n,
        **cache_opts,
    )


def _polygonscan_api(session, settings: AppSettings, cache_opts):
    if settings.polygonscan.api_key is None:
        return None
    return PolygonscanApiHoldersAdapter(
        session,
        api_url=str(settings.polygonscan.api_url),
        api_key=settings.polygonscan.api_key.get_secret_value(),
        page_size=settings.holders.top_n,
        **cache_opts,
    )


def _polygonscan_html(session, settings: AppSettings, cache_opts):
    return PolygonscanHtmlHoldersAdapter(
        session,
        web_url=str(settings.polygonscan.web_url),
        **cache_opts,
    )


MARKET_ADAPTERS: dict[str, AdapterFactory] = {
    "geckoterminal": _geckoterminal,
    "dexscreener": _dexscreener,
}

HOLDER_ADAPTERS: dict[str, AdapterFactory] = {
    "covalent": _covalent,
    "polygonscan_api": _polygonscan_api,
    "polygonscan_html": _polygonscan_html,
}


def build_market_adapters(
    session: aiohttp.ClientSession,
    settings: AppSettings,
    cache: BaseCache | None = None,
) -> list[MarketDataAdapter]:
    """Адаптеры цены в порядке приоритета из settings.market.providers."""

    return _build(MARKET_ADAPTERS, settings.market.providers, session, settings, cache)


def build_holder_adapters(
    session: aiohttp.ClientSession,
    settings: AppSettings,
    cache: BaseCache | None = None,
) -> list[HolderAdapter]:
    """Адаптеры держателей в порядке приоритета из settings.holders.providers."""

    return _build(HOLDER_ADAPTERS, settings.holders.providers, session, settings, cache)


def _build(registry, names, session, settings: AppSettings, cache) -> list:
    cache_opts = {"cache": cache, "cache_ttl": settings.providers.response_ttl_seconds}
    adapters = []
    for name in names:
        factory = registry.get(name)
        if factory is None:
            raise ValueError(f"Неизвестный провайдер {name!r}, доступны: {', '.join(registry)}")
        adapter = factory(session, settings, cache_opts)
        if adapter is None:
            logger.warning("Провайдер {name} пропущен: не задан API-ключ", name=name)
            continue
        adapters.append(adapter)
    logger.debug("Цепочка провайдеров: {chain}", chain=" -> ".join(a.name for a in adapters) or "пусто")
    return adapters


__all__ = [
    "AllProvidersExhausted",
    "BaseAdapter",
    "CovalentHoldersAdapter",
    "DexScreenerAdapter",
    "GeckoTerminalAdapter",
    "Holder",
    "HolderAdapter",
    "MarketDataAdapter",
    "MarketSnapshot",
    "PolygonscanApiHoldersAdapter",
    "PolygonscanHtmlHoldersAdapter",
    "ProviderFailure",
    "ProviderResult",
    "ProviderSuccess",
    "build_holder_adapters",
    "build_market_adapters",
    "normalize_address",
]
