"""Последовательный обход адаптеров до первого успеха."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence, TypeVar

from loguru import logger

from market_cache.errors import FailureKind
from market_cache.providers.base import (
    AllProvidersExhausted,
    ProviderFailure,
    ProviderResult,
    ProviderSuccess,
)

A = TypeVar("A")
T = TypeVar("T")


async def first_success(
    adapters: Sequence[A],
    call: Callable[[A], Awaitable[ProviderResult[T]]],
    *,
    timeout: float,
    what: str,
) -> ProviderSuccess[T] | AllProvidersExhausted:
    """Пробует адаптеры строго по порядку, без параллельного веера.

    Каждый вызов ограничен timeout: зависший провайдер превращается в
    UNREACHABLE и не держит ожидающих обновления проекта.
    """

    failures: list[ProviderFailure] = []
    for adapter in adapters:
        name = getattr(adapter, "name", type(adapter).__name__)
        try:
            result = await asyncio.wait_for(call(adapter), timeout=timeout)
        except asyncio.TimeoutError:
            result = ProviderFailure(name, FailureKind.UNREACHABLE, f"таймаут {timeout:.1f} c")
        if isinstance(result, ProviderSuccess):
            if failures:
                logger.info(
                    "{what}: получено от {provider} после отказов ({failed})",
                    what=what,
                    provider=result.provider,
                    failed=", ".join(f.provider for f in failures),
                )
            return result
        logger.debug("{what}: {provider} -> {kind}", what=what, provider=name, kind=result.kind.value)
        failures.append(result)

    exhausted = AllProvidersExhausted(tuple(failures))
    logger.warning("{what}: все провайдеры недоступны ({reasons})", what=what, reasons=exhausted.describe())
    return exhausted


__all__ = ["first_success"]
