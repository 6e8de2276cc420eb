"""Проект лаунчпада (таблица принадлежит основному backend, здесь только чтение)."""

from __future__ import annotations

from typing import Optional

from sqlmodel import Field, SQLModel


class Project(SQLModel, table=True):
    __tablename__ = "projects"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(default="", max_length=256)
    token_symbol: str = Field(max_length=32, index=True)
    contract_address: Optional[str] = Field(default=None, max_length=128)
    pool_address: Optional[str] = Field(default=None, max_length=128)
    is_new: bool = Field(default=False)
    circulating_supply: Optional[float] = Field(default=None)
    # значения-заглушки для проектов до листинга
    price: Optional[float] = Field(default=None)
    market_cap: Optional[float] = Field(default=None)
    volume_24h: Optional[float] = Field(default=None)
    change_24h: Optional[float] = Field(default=None)


__all__ = ["Project"]
