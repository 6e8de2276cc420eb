"""Общий контракт адаптеров внешних источников данных.

Каждый адаптер умеет ровно одно: собрать запрос, разобрать ответ своего
провайдера и перевести его ошибки в единый тег ProviderFailure. Исключения
наружу не выходят, поэтому резолвер делает fallback без try/except.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, ClassVar, Generic, Protocol, Sequence, TypeVar, Union

from aiocache.base import BaseCache
from loguru import logger

from market_cache.errors import FailureKind, ProviderError

T = TypeVar("T")

_HEX_ADDRESS = re.compile(r"^0x[0-9a-f]+$")


def normalize_address(address: str) -> str:
    """Приводит адрес к каноничному виду (lowercase hex)."""

    normalized = address.strip().lower()
    if not _HEX_ADDRESS.match(normalized):
        raise ValueError(f"Некорректный адрес: {address!r}")
    return normalized


def to_float(value: Any) -> float | None:
    """Мягкое приведение числа из JSON (строки, null, пустые строки)."""

    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(slots=True, frozen=True)
class MarketSnapshot:
    """Текущие рыночные данные пары."""

    price: float
    change_24h: float
    volume_24h: float
    market_cap: float | None = None
    currency: str = "USD"

    def as_dict(self) -> dict[str, Any]:
        return {
            "price": self.price,
            "change24h": self.change_24h,
            "marketCap": self.market_cap,
            "volume24h": self.volume_24h,
            "currency": self.currency,
        }


@dataclass(slots=True, frozen=True)
class Holder:
    """Держатель токена и его доля от эмиссии (0–100, без округления)."""

    address: str
    percentage: float
    balance: str | None = None
    label: str | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"address": self.address, "percentage": self.percentage}
        if self.balance is not None:
            payload["balance"] = self.balance
        if self.label:
            payload["label"] = self.label
        return payload


@dataclass(slots=True, frozen=True)
class ProviderSuccess(Generic[T]):
    provider: str
    value: T


@dataclass(slots=True, frozen=True)
class ProviderFailure:
    provider: str
    kind: FailureKind
    detail: str = ""


@dataclass(slots=True, frozen=True)
class AllProvidersExhausted:
    """Ни один адаптер не ответил. Кеш в этом случае оставляет старые данные."""

    failures: tuple[ProviderFailure, ...] = field(default_factory=tuple)

    def describe(self) -> str:
        if not self.failures:
            return "нет доступных провайдеров"
        return ", ".join(f"{f.provider}={f.kind.value}" for f in self.failures)


ProviderResult = Union[ProviderSuccess[T], ProviderFailure]


class MarketDataAdapter(Protocol):
    name: str

    async def fetch_market_data(self, pool_address: str) -> ProviderResult[MarketSnapshot]:
        ...


class HolderAdapter(Protocol):
    name: str

    async def fetch_holders(self, token_address: str) -> ProviderResult[Sequence[Holder]]:
        ...


class BaseAdapter:
    """Общая обвязка: нормализация адреса, кеш успешных ответов, теги ошибок."""

    name: ClassVar[str] = "base"

    def __init__(self, *, cache: BaseCache | None = None, cache_ttl: int = 0) -> None:
        self._cache = cache if cache_ttl > 0 else None
        self._cache_ttl = cache_ttl

    async def _run(
        self,
        capability: str,
        address: str,
        call: Callable[[str], Awaitable[T]],
    ) -> ProviderResult[T]:
        try:
            normalized = normalize_address(address)
        except ValueError as exc:
            return ProviderFailure(self.name, FailureKind.NOT_FOUND, str(exc))

        key = f"{self.name}:{capability}:{normalized}"
        if self._cache is not None:
            cached = await self._cache.get(key)
            if cached is not None:
                logger.debug("{provider}: ответ из кеша для {key}", provider=self.name, key=key)
                return ProviderSuccess(self.name, cached)

        try:
            value = await call(normalized)
        except ProviderError as exc:
            logger.warning(
                "{provider} {capability} {address}: {kind} ({detail})",
                provider=self.name,
                capability=capability,
                address=normalized,
                kind=exc.kind.value,
                detail=exc,
            )
            return ProviderFailure(self.name, exc.kind, str(exc))
        except (KeyError, TypeError, AttributeError, ValueError) as exc:
            # форма ответа поменялась, а парсер этого не заметил
            logger.warning(
                "{provider} {capability} {address}: неожиданная форма ответа ({error!r})",
                provider=self.name,
                capability=capability,
                address=normalized,
                error=exc,
            )
            return ProviderFailure(self.name, FailureKind.MALFORMED, f"{type(exc).__name__}: {exc}")

        if self._cache is not None:
            await self._cache.set(key, value, ttl=self._cache_ttl)
        return ProviderSuccess(self.name, value)


__all__ = [
    "AllProvidersExhausted",
    "BaseAdapter",
    "Holder",
    "HolderAdapter",
    "MarketDataAdapter",
    "MarketSnapshot",
    "ProviderFailure",
    "ProviderResult",
    "ProviderSuccess",
    "normalize_address",
    "to_float",
]
