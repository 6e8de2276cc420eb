"""
Тесты ProjectCache: значения по умолчанию, serve-stale, склейка обновлений
"""
import asyncio
from dataclasses import replace
from datetime import timedelta

import pytest

from market_cache.errors import FailureKind
from market_cache.providers.base import Holder, MarketSnapshot, ProviderFailure
from market_cache.services import TrackedProject
from market_cache.services import project_cache as project_cache_module


def unreachable(provider):
    return ProviderFailure(provider, FailureKind.UNREACHABLE, "down")


def test_never_refreshed_project_has_empty_entry(build_cache):
    """Тест: до первого обновления — пустая запись, apiSuccess=false"""
    cache, _ = build_cache([])
    entry = cache.get(42)

    assert entry.api_success is False
    assert entry.token_holders == ()
    assert entry.market_data is None
    assert entry.last_updated is None
    assert entry.as_dict()["tokenHolders"] == []
    assert 42 in cache.dump()


@pytest.mark.asyncio
async def test_refresh_populates_entry(
    build_cache, listed_project, make_market_adapter, make_holder_adapter, success, sample_snapshot, sample_holders
):
    """Тест: успешное обновление заполняет рынок и держателей"""
    cache, _ = build_cache(
        [listed_project],
        [make_market_adapter("geckoterminal", success("geckoterminal", sample_snapshot))],
        [make_holder_adapter("covalent", success("covalent", sample_holders))],
    )

    entry = await cache.refresh(1)

    assert entry.market_data == sample_snapshot
    assert list(entry.token_holders) == sample_holders
    assert entry.api_success is True
    assert entry.last_updated is not None
    assert cache.get(1) is entry


@pytest.mark.asyncio
async def test_end_to_end_primary_holder_api(build_cache, listed_project, make_holder_adapter, success):
    """Тест: projectId=1, индексатор вернул одного держателя -> он же в кеше"""
    holder = Holder(address="0x" + "a" * 40, percentage=12.5)
    cache, _ = build_cache([listed_project], [], [make_holder_adapter("covalent", success("covalent", [holder]))])

    await cache.refresh(1)

    payload = cache.get(1).as_dict()
    assert payload["tokenHolders"] == [{"address": "0x" + "a" * 40, "percentage": 12.5}]
    assert payload["apiSuccess"] is True


@pytest.mark.asyncio
async def test_new_project_makes_no_provider_calls(
    build_cache, make_market_adapter, make_holder_adapter, success, sample_snapshot, sample_holders
):
    """Тест: isNew — резолверы не вызываются, заглушка из карточки не трогается"""
    placeholder = MarketSnapshot(price=0.01, change_24h=0.0, volume_24h=0.0, market_cap=100000.0)
    project = TrackedProject(
        project_id=7,
        token_symbol="NEW",
        token_address="0x" + "d" * 40,
        pool_address="0x" + "e" * 40,
        is_new=True,
        placeholder=placeholder,
    )
    market = make_market_adapter("geckoterminal", success("geckoterminal", sample_snapshot))
    holders = make_holder_adapter("covalent", success("covalent", sample_holders))
    cache, _ = build_cache([project], [market], [holders])
    cache.track(project)

    entry = await cache.refresh(7)

    market.fetch_market_data.assert_not_called()
    holders.fetch_holders.assert_not_called()
    assert entry.market_data == placeholder
    assert entry.is_new is True
    assert entry.api_success is False
    assert entry.last_updated is not None


@pytest.mark.asyncio
async def test_refresh_is_idempotent(
    build_cache, listed_project, make_market_adapter, make_holder_adapter, success, sample_snapshot, sample_holders
):
    """Тест: повторное обновление с теми же ответами меняет только lastUpdated"""
    cache, _ = build_cache(
        [listed_project],
        [make_market_adapter("geckoterminal", success("geckoterminal", sample_snapshot))],
        [make_holder_adapter("covalent", success("covalent", sample_holders))],
    )

    first = await cache.refresh(1)
    second = await cache.refresh(1)

    assert first.as_dict()["marketData"] == second.as_dict()["marketData"]
    assert first.as_dict()["tokenHolders"] == second.as_dict()["tokenHolders"]
    assert second.last_updated >= first.last_updated


@pytest.mark.asyncio
async def test_failed_refresh_serves_stale_data(
    build_cache, listed_project, make_market_adapter, make_holder_adapter, success, sample_snapshot, sample_holders
):
    """Тест: AllProvidersExhausted не затирает прежние данные"""
    cache, _ = build_cache(
        [listed_project],
        [make_market_adapter("geckoterminal", success("geckoterminal", sample_snapshot), unreachable("geckoterminal"))],
        [make_holder_adapter("covalent", success("covalent", sample_holders), unreachable("covalent"))],
    )
    good = await cache.refresh(1)

    stale = await cache.refresh(1)

    assert stale.market_data == good.market_data
    assert stale.token_holders == good.token_holders
    assert stale.api_success is False
    assert stale.last_updated >= good.last_updated


@pytest.mark.asyncio
async def test_resolver_crash_is_contained(build_cache, listed_project, make_market_adapter, make_holder_adapter, success, sample_holders):
    """Тест: неожиданное исключение адаптера не роняет обновление"""
    cache, _ = build_cache(
        [listed_project],
        [make_market_adapter("geckoterminal", RuntimeError("boom"))],
        [make_holder_adapter("covalent", success("covalent", sample_holders))],
    )

    entry = await cache.refresh(1)

    assert entry.market_data is None
    assert len(entry.token_holders) == 3
    assert entry.api_success is True


@pytest.mark.asyncio
async def test_confirmed_empty_holders_replace_cache(
    build_cache, listed_project, make_holder_adapter, success, sample_holders
):
    """Тест: подтверждённый пустой список заменяет прежних держателей"""
    cache, _ = build_cache(
        [listed_project],
        [],
        [make_holder_adapter("covalent", success("covalent", sample_holders), success("covalent", []))],
    )
    await cache.refresh(1)

    entry = await cache.refresh(1)

    assert entry.token_holders == ()
    assert entry.api_success is True


@pytest.mark.asyncio
async def test_concurrent_refreshes_are_coalesced(
    build_cache, listed_project, make_market_adapter, make_holder_adapter, success, sample_snapshot, sample_holders
):
    """Тест: два одновременных refresh -> один набор сетевых вызовов, одна запись"""
    market = make_market_adapter("geckoterminal", success("geckoterminal", sample_snapshot), delay=0.05)
    holders = make_holder_adapter("covalent", success("covalent", sample_holders), delay=0.05)
    cache, _ = build_cache([listed_project], [market], [holders])

    first, second = await asyncio.gather(cache.refresh(1), cache.refresh(1))

    assert market.fetch_market_data.await_count == 1
    assert holders.fetch_holders.await_count == 1
    assert first is second
    assert not cache.is_refreshing(1)


@pytest.mark.asyncio
async def test_changed_refresh_key_discards_superseded_result(
    build_cache, listed_project, make_market_adapter, make_holder_adapter, success, sample_snapshot, sample_holders
):
    """Тест: адрес пула поменялся во время обновления -> старый результат отброшен"""
    old_snapshot = replace(sample_snapshot, price=1.0)
    market = make_market_adapter(
        "geckoterminal",
        success("geckoterminal", old_snapshot),
        success("geckoterminal", sample_snapshot),
        delay=0.05,
    )
    cache, _ = build_cache([listed_project], [market], [make_holder_adapter("covalent", success("covalent", sample_holders))])
    moved = replace(listed_project, pool_address="0x" + "f" * 40)

    old, new = await asyncio.gather(cache.refresh(1, listed_project), cache.refresh(1, moved))

    assert market.fetch_market_data.await_count == 2
    assert new.market_data == sample_snapshot
    assert cache.get(1).market_data == sample_snapshot
    assert old.market_data != old_snapshot


@pytest.mark.asyncio
async def test_unknown_project_is_not_refreshed(build_cache, make_market_adapter, success, sample_snapshot):
    """Тест: проекта нет в источнике — запись не меняется"""
    market = make_market_adapter("geckoterminal", success("geckoterminal", sample_snapshot))
    cache, _ = build_cache([], [market])

    entry = await cache.refresh(99)

    assert entry.last_updated is None
    market.fetch_market_data.assert_not_called()


@pytest.mark.asyncio
async def test_freshness_and_invalidation(
    build_cache, listed_project, make_market_adapter, success, sample_snapshot, monkeypatch
):
    """Тест: запись свежа stale_after_sec, invalidate помечает её устаревшей без потери данных"""
    cache, _ = build_cache(
        [listed_project],
        [make_market_adapter("geckoterminal", success("geckoterminal", sample_snapshot))],
        stale_after_sec=60,
    )
    assert cache.is_fresh(1) is False

    entry = await cache.refresh(1)
    assert cache.is_fresh(1) is True

    cache.invalidate(1)
    assert cache.is_fresh(1) is False
    assert cache.get(1).market_data == sample_snapshot

    await cache.refresh(1)
    assert cache.is_fresh(1) is True

    later = entry.last_updated + timedelta(seconds=61)
    monkeypatch.setattr(project_cache_module, "utcnow", lambda: later)
    assert cache.is_fresh(1) is False


@pytest.mark.asyncio
async def test_invalidate_all(build_cache, listed_project, make_market_adapter, success, sample_snapshot):
    """Тест: invalidate_all помечает устаревшими все записи"""
    other = replace(listed_project, project_id=2)
    cache, _ = build_cache(
        [listed_project, other],
        [make_market_adapter("geckoterminal", success("geckoterminal", sample_snapshot))],
    )
    await cache.refresh(1)
    await cache.refresh(2)

    cache.invalidate_all()

    assert not cache.is_fresh(1)
    assert not cache.is_fresh(2)
    assert len(cache) == 2


@pytest.mark.asyncio
async def test_aclose_cancels_inflight_refresh(
    build_cache, listed_project, make_market_adapter, make_holder_adapter, success, sample_snapshot, sample_holders
):
    """Тест: остановка отменяет идущее обновление до закрытия HTTP-сессии"""
    market = make_market_adapter("geckoterminal", success("geckoterminal", sample_snapshot), delay=5)
    holders = make_holder_adapter("covalent", success("covalent", sample_holders), delay=5)
    cache, _ = build_cache([listed_project], [market], [holders], timeout=10.0)
    cache.track(listed_project)

    caller = asyncio.create_task(cache.refresh(1))
    await asyncio.sleep(0.01)
    assert cache.is_refreshing(1)

    await cache.aclose()

    assert not cache.is_refreshing(1)
    with pytest.raises(asyncio.CancelledError):
        await caller
    assert cache.get(1).last_updated is None


@pytest.mark.asyncio
async def test_aclose_without_inflight_is_noop(build_cache, listed_project):
    """Тест: нечего отменять -> записи не трогаются"""
    cache, _ = build_cache([listed_project])
    cache.track(listed_project)

    await cache.aclose()

    assert 1 in cache
    assert not cache.is_refreshing(1)
