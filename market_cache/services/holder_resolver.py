"""Резолвер топ-держателей токена."""

from __future__ import annotations

from dataclasses import replace
from typing import Mapping, Sequence

from market_cache.providers.base import (
    AllProvidersExhausted,
    Holder,
    HolderAdapter,
    ProviderSuccess,
)
from .fallback import first_success

HolderResolution = ProviderSuccess[tuple[Holder, ...]] | AllProvidersExhausted


class HolderResolver:
    """Основной индексатор -> скрейп; первый успех выигрывает.

    Успех с пустым списком — валидный ответ «держателей нет» и заменяет кеш.
    AllProvidersExhausted означает «ничего не узнали», кеш его не трогает.
    """

    def __init__(
        self,
        adapters: Sequence[HolderAdapter],
        *,
        timeout: float,
        top_n: int = 10,
        labels: Mapping[str, str] | None = None,
    ) -> None:
        self._adapters = tuple(adapters)
        self._timeout = timeout
        self._top_n = top_n
        self._labels = {address.lower(): label for address, label in (labels or {}).items()}

    @property
    def adapters(self) -> tuple[HolderAdapter, ...]:
        return self._adapters

    async def resolve(self, token_address: str | None) -> HolderResolution:
        if not token_address:
            return AllProvidersExhausted()
        result = await first_success(
            self._adapters,
            lambda adapter: adapter.fetch_holders(token_address),
            timeout=self._timeout,
            what=f"holders {token_address.lower()}",
        )
        if isinstance(result, AllProvidersExhausted):
            return result
        holders = tuple(self._label(holder) for holder in list(result.value)[: self._top_n])
        return ProviderSuccess(result.provider, holders)

    def _label(self, holder: Holder) -> Holder:
        if holder.label or holder.address not in self._labels:
            return holder
        return replace(holder, label=self._labels[holder.address])


__all__ = ["HolderResolution", "HolderResolver"]
