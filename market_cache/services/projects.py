"""Метаданные отслеживаемых проектов (источник только для чтения)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, NamedTuple, Protocol

from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config.settings import ProjectSettings
from market_cache import repositories
from market_cache.models import Project
from market_cache.providers.base import MarketSnapshot


class RefreshKey(NamedTuple):
    """Набор входов резолверов. Идентичность — project_id."""

    project_id: int
    token_address: str | None
    pool_address: str | None
    token_symbol: str


@dataclass(slots=True, frozen=True)
class TrackedProject:
    project_id: int
    token_symbol: str
    token_address: str | None = None
    pool_address: str | None = None
    is_new: bool = False
    circulating_supply: float | None = None
    placeholder: MarketSnapshot | None = None

    @property
    def refresh_key(self) -> RefreshKey:
        return RefreshKey(
            self.project_id,
            self.token_address.lower() if self.token_address else None,
            self.pool_address.lower() if self.pool_address else None,
            self.token_symbol,
        )


def build_placeholder(
    *,
    is_new: bool,
    price: float | None,
    market_cap: float | None,
    volume_24h: float | None,
    change_24h: float | None,
    currency: str = "USD",
) -> MarketSnapshot | None:
    """Фиксированные значения из карточки проекта для ещё не залистенных токенов."""

    if not is_new or price is None:
        return None
    return MarketSnapshot(
        price=price,
        change_24h=change_24h or 0.0,
        volume_24h=volume_24h or 0.0,
        market_cap=market_cap,
        currency=currency,
    )


class ProjectSource(Protocol):
    async def get_project(self, project_id: int) -> TrackedProject | None:
        ...

    async def list_projects(self) -> list[TrackedProject]:
        ...


class StaticProjectSource:
    """Проекты из настроек (dev, тесты, деплой без БД)."""

    def __init__(self, projects: Iterable[TrackedProject]) -> None:
        self._projects = {project.project_id: project for project in projects}

    @classmethod
    def from_settings(cls, items: Iterable[ProjectSettings], currency: str = "USD") -> "StaticProjectSource":
        return cls(
            TrackedProject(
                project_id=item.id,
                token_symbol=item.token_symbol,
                token_address=item.token_address,
                pool_address=item.pool_address,
                is_new=item.is_new,
                circulating_supply=item.circulating_supply,
                placeholder=build_placeholder(
                    is_new=item.is_new,
                    price=item.price,
                    market_cap=item.market_cap,
                    volume_24h=item.volume_24h,
                    change_24h=item.change_24h,
                    currency=currency,
                ),
            )
            for item in items
        )

    async def get_project(self, project_id: int) -> TrackedProject | None:
        return self._projects.get(project_id)

    async def list_projects(self) -> list[TrackedProject]:
        return list(self._projects.values())


class DatabaseProjectSource:
    """Читает таблицу projects, которой владеет основной backend."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession], currency: str = "USD") -> None:
        self._session_maker = session_maker
        self._currency = currency

    async def get_project(self, project_id: int) -> TrackedProject | None:
        async with self._session_maker() as session:
            record = await repositories.get_project(session, project_id)
        return self._to_tracked(record) if record is not None else None

    async def list_projects(self) -> list[TrackedProject]:
        async with self._session_maker() as session:
            records = await repositories.list_projects(session)
        return [self._to_tracked(record) for record in records]

    def _to_tracked(self, record: Project) -> TrackedProject:
        return TrackedProject(
            project_id=record.id,
            token_symbol=record.token_symbol,
            token_address=record.contract_address,
            pool_address=record.pool_address,
            is_new=record.is_new,
            circulating_supply=record.circulating_supply,
            placeholder=build_placeholder(
                is_new=record.is_new,
                price=record.price,
                market_cap=record.market_cap,
                volume_24h=record.volume_24h,
                change_24h=record.change_24h,
                currency=self._currency,
            ),
        )


__all__ = [
    "DatabaseProjectSource",
    "ProjectSource",
    "RefreshKey",
    "StaticProjectSource",
    "TrackedProject",
    "build_placeholder",
]
