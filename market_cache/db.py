"""Подключение к БД метаданных проектов."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from sqlmodel.ext.asyncio.session import AsyncSession

from config.settings import DatabaseSettings
from market_cache import models  # noqa: F401  импортируем модели для регистрации метаданных


def create_engine(settings: DatabaseSettings) -> AsyncEngine:
    if not settings.dsn:
        raise RuntimeError("database.dsn не задан")
    return create_async_engine(settings.dsn, echo=settings.echo, poolclass=NullPool)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


__all__ = ["create_engine", "create_session_maker"]
