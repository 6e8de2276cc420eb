"""GeckoTerminal: аналитика DEX-пула (основной источник цены).

Капитализацию API отдаёт не для всех токенов, поэтому при заданном web_url
она сначала берётся со страницы пула. Скрейп мягкий: любая его неудача
оставляет значение из API (market_cap_usd, затем fdv_usd).
"""

from __future__ import annotations

import re
from dataclasses import replace
from typing import Any

import aiohttp
from bs4 import BeautifulSoup
from loguru import logger

from market_cache.errors import ProviderError, ProviderMalformedResponse, ProviderNotFound
from .base import BaseAdapter, MarketSnapshot, ProviderResult, to_float
from .http import fetch_json, fetch_text

_MARKET_CAP = re.compile(r"Market\s+Cap[^$]*\$\s*([0-9][0-9.,]*)([KMB])?", re.IGNORECASE)
_SUFFIXES = {"K": 1e3, "M": 1e6, "B": 1e9}


class GeckoTerminalAdapter(BaseAdapter):
    name = "geckoterminal"

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        base_url: str,
        network: str,
        currency: str = "USD",
        web_url: str | None = None,
        **cache_opts: Any,
    ) -> None:
        super().__init__(**cache_opts)
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._network = network
        self._currency = currency
        self._web_url = web_url.rstrip("/") if web_url else None

    async def fetch_market_data(self, pool_address: str) -> ProviderResult[MarketSnapshot]:
        return await self._run("market", pool_address, self._request)

    async def _request(self, pool_address: str) -> MarketSnapshot:
        url = f"{self._base_url}/networks/{self._network}/pools/{pool_address}"
        payload = await fetch_json(self._session, url)
        snapshot = parse_pool(payload, currency=self._currency)
        if self._web_url is None:
            return snapshot
        market_cap = await self._web_market_cap(pool_address)
        if market_cap is None:
            return snapshot
        return replace(snapshot, market_cap=market_cap)

    async def _web_market_cap(self, pool_address: str) -> float | None:
        url = f"{self._web_url}/{self._network}/pools/{pool_address}"
        try:
            html = await fetch_text(self._session, url, headers={"Accept": "text/html"})
        except ProviderError as exc:
            logger.debug("Страница пула {pool} недоступна, капитализация из API: {error}", pool=pool_address, error=exc)
            return None
        market_cap = parse_web_market_cap(html)
        if market_cap is None:
            logger.debug("Капитализация на странице пула {pool} не найдена", pool=pool_address)
        return market_cap


def parse_pool(payload: Any, *, currency: str = "USD") -> MarketSnapshot:
    """Разбирает ответ /networks/{network}/pools/{pool}."""

    if not isinstance(payload, dict):
        raise ProviderMalformedResponse("ответ GeckoTerminal не объект")
    if payload.get("errors") and not payload.get("data"):
        raise ProviderNotFound(f"GeckoTerminal: {payload['errors']}")
    data = payload.get("data")
    attributes = data.get("attributes") if isinstance(data, dict) else None
    if not isinstance(attributes, dict):
        raise ProviderMalformedResponse("нет data.attributes в ответе GeckoTerminal")

    price = to_float(attributes.get("base_token_price_usd"))
    if price is None:
        raise ProviderMalformedResponse("нет base_token_price_usd")
    changes = attributes.get("price_change_percentage")
    volumes = attributes.get("volume_usd")
    if not isinstance(changes, dict) or not isinstance(volumes, dict):
        raise ProviderMalformedResponse("нет price_change_percentage / volume_usd")

    market_cap = to_float(attributes.get("market_cap_usd"))
    if market_cap is None:
        # у части токенов market_cap_usd = null, тогда берём fdv
        market_cap = to_float(attributes.get("fdv_usd"))
    return MarketSnapshot(
        price=price,
        change_24h=to_float(changes.get("h24")) or 0.0,
        volume_24h=to_float(volumes.get("h24")) or 0.0,
        market_cap=market_cap,
        currency=currency,
    )


def parse_web_market_cap(html: str) -> float | None:
    """Ищет «Market Cap ... $467.17K» в тексте страницы пула; K/M/B — множители."""

    text = BeautifulSoup(html, "html.parser").get_text(" ", strip=True)
    match = _MARKET_CAP.search(text)
    if match is None:
        return None
    value = to_float(match.group(1).replace(",", ""))
    if value is None or value <= 0:
        return None
    return value * _SUFFIXES.get((match.group(2) or "").upper(), 1.0)


__all__ = ["GeckoTerminalAdapter", "parse_pool", "parse_web_market_cap"]
