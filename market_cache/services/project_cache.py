"""Кеш рыночных данных и держателей по проектам.

Жизненный цикл: один экземпляр создаётся при старте процесса (см. context.py)
и передаётся по ссылке в планировщик и HTTP-слой. Явного закрытия нет, данные
живут только в памяти и сбрасываются перезапуском.

Инварианты:
* get()/dump() не ходят в сеть и отвечают сразу из памяти;
* refresh() — единственный мутатор, записи заменяются целиком (снапшоты);
* после успешных данных неудачное обновление их не затирает (serve-stale);
* на один project_id одновременно идёт не больше одного обновления.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

from loguru import logger

from market_cache.providers.base import (
    AllProvidersExhausted,
    Holder,
    MarketSnapshot,
    ProviderSuccess,
)
from .holder_resolver import HolderResolution, HolderResolver
from .market_resolver import MarketDataResolver, MarketResolution
from .projects import ProjectSource, RefreshKey, TrackedProject


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True)
class ProjectCacheEntry:
    """Последний снапшот проекта."""

    project_id: int
    market_data: MarketSnapshot | None = None
    token_holders: tuple[Holder, ...] = ()
    last_updated: datetime | None = None
    api_success: bool = False
    is_new: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "marketData": self.market_data.as_dict() if self.market_data else None,
            "tokenHolders": [holder.as_dict() for holder in self.token_holders],
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
            "apiSuccess": self.api_success,
            "isNew": self.is_new,
        }

    def as_debug_dict(self) -> dict[str, Any]:
        return {
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
            "marketData": self.market_data.as_dict() if self.market_data else None,
            "tokenHolders": {"count": len(self.token_holders)},
            "apiSuccess": self.api_success,
            "isNew": self.is_new,
        }


@dataclass(slots=True)
class _InFlight:
    key: RefreshKey
    task: asyncio.Task[ProjectCacheEntry]


class ProjectCache:
    def __init__(
        self,
        source: ProjectSource,
        market_resolver: MarketDataResolver,
        holder_resolver: HolderResolver,
        *,
        stale_after_sec: float = 1800,
    ) -> None:
        self._source = source
        self._market_resolver = market_resolver
        self._holder_resolver = holder_resolver
        self._stale_after = stale_after_sec
        self._entries: dict[int, ProjectCacheEntry] = {}
        self._inflight: dict[int, _InFlight] = {}
        self._invalidated: set[int] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, project_id: object) -> bool:
        return project_id in self._entries

    def get(self, project_id: int) -> ProjectCacheEntry:
        """Текущая запись; пустая создаётся при первом обращении."""

        entry = self._entries.get(project_id)
        if entry is None:
            entry = ProjectCacheEntry(project_id=project_id)
            self._entries[project_id] = entry
        return entry

    def dump(self) -> dict[int, ProjectCacheEntry]:
        return dict(self._entries)

    def track(self, project: TrackedProject) -> ProjectCacheEntry:
        """Регистрирует проект; для is_new подставляет заглушки из карточки."""

        entry = self._seeded(project)
        self._entries[project.project_id] = entry
        return entry

    def is_fresh(self, project_id: int) -> bool:
        entry = self._entries.get(project_id)
        if entry is None or entry.last_updated is None or project_id in self._invalidated:
            return False
        return (utcnow() - entry.last_updated).total_seconds() < self._stale_after

    def is_refreshing(self, project_id: int) -> bool:
        inflight = self._inflight.get(project_id)
        return inflight is not None and not inflight.task.done()

    def invalidate(self, project_id: int) -> None:
        """Помечает запись устаревшей, данные остаются доступны."""

        if project_id in self._entries:
            self._invalidated.add(project_id)
            logger.info("Кеш проекта {project} инвалидирован", project=project_id)

    def invalidate_all(self) -> None:
        self._invalidated.update(self._entries)
        logger.info("Инвалидирован кеш всех проектов ({count})", count=len(self._entries))

    async def aclose(self) -> None:
        """Отменяет незавершённые обновления (перед закрытием HTTP-сессии)."""

        tasks = [inflight.task for inflight in self._inflight.values() if not inflight.task.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()
        if tasks:
            logger.info("Отменено незавершённых обновлений: {count}", count=len(tasks))

    async def refresh(
        self,
        project_id: int,
        project: TrackedProject | None = None,
    ) -> ProjectCacheEntry:
        """Обновляет проект через резолверы и возвращает новую запись.

        Параллельный вызов с тем же RefreshKey присоединяется к уже идущему
        обновлению. Если ключ изменился (поменяли адрес токена/пула), стартует
        новое обновление, а результат старого отбрасывается.
        """

        if project is None:
            project = await self._source.get_project(project_id)
            if project is None:
                logger.warning("Проект {project} не найден, обновление пропущено", project=project_id)
                return self.get(project_id)

        key = project.refresh_key
        inflight = self._inflight.get(project_id)
        if inflight is not None and not inflight.task.done():
            if inflight.key == key:
                logger.debug("Проект {project}: ждём уже идущее обновление", project=project_id)
                return await asyncio.shield(inflight.task)
            logger.info(
                "Проект {project}: входные данные изменились, текущее обновление будет отброшено",
                project=project_id,
            )

        task = asyncio.create_task(self._run_refresh(project), name=f"refresh-project-{project_id}")
        self._inflight[project_id] = _InFlight(key, task)
        task.add_done_callback(lambda done: self._forget(project_id, done))
        return await asyncio.shield(task)

    async def _run_refresh(self, project: TrackedProject) -> ProjectCacheEntry:
        project_id = project.project_id
        if project.is_new:
            # до листинга цены нет: в сеть не ходим, держим заглушки
            market: MarketResolution = AllProvidersExhausted()
            holders: HolderResolution = AllProvidersExhausted()
            logger.debug("Проект {project} ещё не залистен, провайдеры не опрашиваются", project=project_id)
        else:
            results = await asyncio.gather(
                self._market_resolver.resolve(
                    project.pool_address,
                    circulating_supply=project.circulating_supply,
                ),
                self._holder_resolver.resolve(project.token_address),
                return_exceptions=True,
            )
            market = self._unwrap(results[0], project_id, "market")
            holders = self._unwrap(results[1], project_id, "holders")

        current = self._inflight.get(project_id)
        if current is None or current.task is not asyncio.current_task():
            logger.info("Проект {project}: результат устаревшего обновления отброшен", project=project_id)
            return self.get(project_id)

        entry = self._merge(project, market, holders)
        self._entries[project_id] = entry
        self._invalidated.discard(project_id)
        logger.info(
            "Проект {project} ({symbol}) обновлён: market={market}, holders={holders}, apiSuccess={ok}",
            project=project_id,
            symbol=project.token_symbol,
            market=market.provider if isinstance(market, ProviderSuccess) else "stale",
            holders=holders.provider if isinstance(holders, ProviderSuccess) else "stale",
            ok=entry.api_success,
        )
        return entry

    def _merge(
        self,
        project: TrackedProject,
        market: MarketResolution,
        holders: HolderResolution,
    ) -> ProjectCacheEntry:
        """AllProvidersExhausted не затирает прежние данные (serve-stale)."""

        current = self._seeded(project)
        market_ok = isinstance(market, ProviderSuccess)
        holders_ok = isinstance(holders, ProviderSuccess)
        return replace(
            current,
            market_data=market.value if market_ok else current.market_data,
            token_holders=tuple(holders.value) if holders_ok else current.token_holders,
            last_updated=utcnow(),
            api_success=market_ok or holders_ok,
            is_new=project.is_new,
        )

    def _seeded(self, project: TrackedProject) -> ProjectCacheEntry:
        entry = self.get(project.project_id)
        if project.is_new and entry.market_data is None and project.placeholder is not None:
            entry = replace(entry, market_data=project.placeholder)
        if entry.is_new != project.is_new:
            entry = replace(entry, is_new=project.is_new)
        return entry

    def _forget(self, project_id: int, task: asyncio.Task) -> None:
        current = self._inflight.get(project_id)
        if current is not None and current.task is task:
            del self._inflight[project_id]

    @staticmethod
    def _unwrap(value: Any, project_id: int, what: str) -> Any:
        if isinstance(value, BaseException):
            logger.opt(exception=value).error(
                "Проект {project}: резолвер {what} упал: {error}",
                project=project_id,
                what=what,
                error=value,
            )
            return AllProvidersExhausted()
        return value


__all__ = ["ProjectCache", "ProjectCacheEntry", "utcnow"]
