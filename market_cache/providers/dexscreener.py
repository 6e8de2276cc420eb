"""DexScreener: резервный источник цены по адресу пары."""

from __future__ import annotations

from typing import Any

import aiohttp

from market_cache.errors import ProviderMalformedResponse, ProviderNotFound
from .base import BaseAdapter, MarketSnapshot, ProviderResult, to_float
from .http import fetch_json


class DexScreenerAdapter(BaseAdapter):
    name = "dexscreener"

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        base_url: str,
        chain: str,
        currency: str = "USD",
        **cache_opts: Any,
    ) -> None:
        super().__init__(**cache_opts)
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._chain = chain
        self._currency = currency

    async def fetch_market_data(self, pool_address: str) -> ProviderResult[MarketSnapshot]:
        return await self._run("market", pool_address, self._request)

    async def _request(self, pool_address: str) -> MarketSnapshot:
        url = f"{self._base_url}/pairs/{self._chain}/{pool_address}"
        payload = await fetch_json(self._session, url)
        return parse_pairs(payload, currency=self._currency)


def parse_pairs(payload: Any, *, currency: str = "USD") -> MarketSnapshot:
    """Разбирает ответ /pairs/{chain}/{pair}: берём первую пару."""

    if not isinstance(payload, dict):
        raise ProviderMalformedResponse("ответ DexScreener не объект")
    pairs = payload.get("pairs")
    if pairs is None and isinstance(payload.get("pair"), dict):
        pairs = [payload["pair"]]
    if not pairs:
        raise ProviderNotFound("DexScreener не знает эту пару")
    if not isinstance(pairs, list) or not isinstance(pairs[0], dict):
        raise ProviderMalformedResponse("pairs в ответе DexScreener не список объектов")

    pair = pairs[0]
    price = to_float(pair.get("priceUsd"))
    if price is None:
        raise ProviderMalformedResponse("нет priceUsd")
    market_cap = to_float(pair.get("marketCap"))
    if market_cap is None:
        market_cap = to_float(pair.get("fdv"))
    return MarketSnapshot(
        price=price,
        change_24h=to_float((pair.get("priceChange") or {}).get("h24")) or 0.0,
        volume_24h=to_float((pair.get("volume") or {}).get("h24")) or 0.0,
        market_cap=market_cap,
        currency=currency,
    )


__all__ = ["DexScreenerAdapter", "parse_pairs"]
