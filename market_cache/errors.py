"""Таксономия отказов провайдеров рыночных данных."""

from __future__ import annotations

from enum import Enum


class FailureKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    MALFORMED = "malformed"
    UNREACHABLE = "unreachable"


class ProviderError(RuntimeError):
    """Базовое исключение слоя адаптеров.

    Наружу из адаптера не выходит: адаптер превращает его в ProviderFailure.
    """

    kind: FailureKind = FailureKind.UNREACHABLE


class ProviderRateLimited(ProviderError):
    kind = FailureKind.RATE_LIMITED


class ProviderNotFound(ProviderError):
    """Контракт/пул не проиндексирован этим провайдером."""

    kind = FailureKind.NOT_FOUND


class ProviderMalformedResponse(ProviderError):
    kind = FailureKind.MALFORMED


class ProviderUnreachable(ProviderError):
    """Сеть, таймаут или 5xx."""

    kind = FailureKind.UNREACHABLE


__all__ = [
    "FailureKind",
    "ProviderError",
    "ProviderMalformedResponse",
    "ProviderNotFound",
    "ProviderRateLimited",
    "ProviderUnreachable",
]
