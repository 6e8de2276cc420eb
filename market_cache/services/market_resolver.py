"""Резолвер рыночных данных по адресу пула/пары."""

from __future__ import annotations

from dataclasses import replace
from typing import Sequence

from market_cache.providers.base import (
    AllProvidersExhausted,
    MarketDataAdapter,
    MarketSnapshot,
    ProviderSuccess,
)
from .fallback import first_success

MarketResolution = ProviderSuccess[MarketSnapshot] | AllProvidersExhausted


class MarketDataResolver:
    """DEX-аналитика -> агрегатор, цена читается с торговой пары (не с токена)."""

    def __init__(self, adapters: Sequence[MarketDataAdapter], *, timeout: float) -> None:
        self._adapters = tuple(adapters)
        self._timeout = timeout

    @property
    def adapters(self) -> tuple[MarketDataAdapter, ...]:
        return self._adapters

    async def resolve(
        self,
        pool_address: str | None,
        *,
        circulating_supply: float | None = None,
    ) -> MarketResolution:
        """Капитализация = price × circulating_supply, если предложение известно,
        иначе берётся то, что сообщил провайдер."""

        if not pool_address:
            return AllProvidersExhausted()
        result = await first_success(
            self._adapters,
            lambda adapter: adapter.fetch_market_data(pool_address),
            timeout=self._timeout,
            what=f"market {pool_address.lower()}",
        )
        if isinstance(result, AllProvidersExhausted) or not circulating_supply:
            return result
        snapshot = replace(result.value, market_cap=result.value.price * circulating_supply)
        return ProviderSuccess(result.provider, snapshot)


__all__ = ["MarketDataResolver", "MarketResolution"]
