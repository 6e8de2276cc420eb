"""Чтение таблицы проектов."""

from __future__ import annotations

from typing import Optional

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from market_cache.models import Project


async def get_project(session: AsyncSession, project_id: int) -> Optional[Project]:
    stmt = select(Project).where(Project.id == project_id)
    result = await session.exec(stmt)
    return result.one_or_none()


async def list_projects(session: AsyncSession) -> list[Project]:
    stmt = select(Project).order_by(Project.id)
    result = await session.exec(stmt)
    return list(result.all())


__all__ = ["get_project", "list_projects"]
