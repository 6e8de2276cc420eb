"""
Pytest fixtures for market-cache tests
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from market_cache.errors import FailureKind
from market_cache.providers.base import Holder, MarketSnapshot, ProviderFailure, ProviderSuccess
from market_cache.services import (
    HolderResolver,
    MarketDataResolver,
    ProjectCache,
    StaticProjectSource,
    TrackedProject,
)

TOKEN_ADDRESS = "0xc530b75465ce3c6286e718110a7b2e2b64bdc860"
POOL_ADDRESS = "0x1f7ae6d0f2bd6c0e3e4a6b1e6d3b5a5f1c2d3e4f"


def _queued(results, delay):
    """side_effect: отдаёт результаты по очереди, последний повторяется."""
    queue = list(results)

    async def _call(address):
        if delay:
            await asyncio.sleep(delay)
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(result, BaseException):
            raise result
        return result

    return _call


def market_adapter(name, *results, delay=0.0):
    """Mock market adapter with fetch_market_data AsyncMock"""
    adapter = MagicMock()
    adapter.name = name
    adapter.fetch_market_data = AsyncMock(side_effect=_queued(results, delay))
    return adapter


def holder_adapter(name, *results, delay=0.0):
    """Mock holder adapter with fetch_holders AsyncMock"""
    adapter = MagicMock()
    adapter.name = name
    adapter.fetch_holders = AsyncMock(side_effect=_queued(results, delay))
    return adapter


def http_session(status=200, body="", error=None):
    """Mock aiohttp.ClientSession: session.get(...) как async context manager"""
    response = MagicMock()
    response.status = status
    response.text = AsyncMock(return_value=body)
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=response)
    ctx.__aexit__ = AsyncMock(return_value=False)
    session = MagicMock()
    if error is not None:
        session.get = MagicMock(side_effect=error)
    else:
        session.get = MagicMock(return_value=ctx)
    return session


@pytest.fixture
def make_market_adapter():
    return market_adapter


@pytest.fixture
def make_holder_adapter():
    return holder_adapter


@pytest.fixture
def make_session():
    return http_session


@pytest.fixture
def sample_snapshot():
    """Sample market snapshot"""
    return MarketSnapshot(price=0.042, change_24h=-3.5, volume_24h=12500.0, market_cap=420000.0)


@pytest.fixture
def sample_holders():
    """Sample holders in provider order"""
    return [
        Holder(address="0x" + "a" * 40, percentage=12.5),
        Holder(address="0x" + "b" * 40, percentage=7.25),
        Holder(address="0x" + "c" * 40, percentage=3.0),
    ]


@pytest.fixture
def not_found():
    def _failure(provider):
        return ProviderFailure(provider, FailureKind.NOT_FOUND, "not indexed")
    return _failure


@pytest.fixture
def listed_project():
    return TrackedProject(
        project_id=1,
        token_symbol="MKT",
        token_address=TOKEN_ADDRESS,
        pool_address=POOL_ADDRESS,
    )


@pytest.fixture
def build_cache():
    """Фабрика ProjectCache поверх StaticProjectSource и mock-адаптеров"""

    def _build(projects, market_adapters=(), holder_adapters=(), timeout=1.0, **kwargs):
        source = StaticProjectSource(projects)
        cache = ProjectCache(
            source,
            MarketDataResolver(list(market_adapters), timeout=timeout),
            HolderResolver(list(holder_adapters), timeout=timeout),
            **kwargs,
        )
        return cache, source

    return _build


@pytest.fixture
def success():
    def _success(provider, value):
        return ProviderSuccess(provider, value)
    return _success
