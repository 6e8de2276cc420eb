"""Глобальные настройки сервиса рыночных данных.

Настройки разделены по доменам (провайдеры, резолверы, планировщик, кеш, БД),
поэтому новый источник данных подключается без переписывания базового кода.
Вся конфигурация загружается из переменных окружения через Pydantic Settings.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import (
    AnyHttpUrl,
    BaseModel,
    Field,
    NonNegativeInt,
    PositiveFloat,
    PositiveInt,
    SecretStr,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent
ACCESSIBLE_ENV_FILE = BASE_DIR / "config" / "runtime.env"
DEFAULT_ENV_FILE = BASE_DIR / ".env"
ENV_FILE = ACCESSIBLE_ENV_FILE if ACCESSIBLE_ENV_FILE.exists() else DEFAULT_ENV_FILE

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36"
)


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class ProvidersSettings(BaseModel):
    """Общие параметры HTTP-вызовов к внешним провайдерам."""

    request_timeout: PositiveFloat = Field(
        2.5, description="Таймаут одного вызова провайдера, секунды"
    )
    user_agent: str = DEFAULT_USER_AGENT
    response_ttl_seconds: NonNegativeInt = Field(
        60, description="TTL кеша успешных ответов провайдеров (0 — выключен)"
    )


class GeckoTerminalSettings(BaseModel):
    """DEX-аналитика пулов GeckoTerminal (основной источник цены)."""

    base_url: AnyHttpUrl = Field("https://api.geckoterminal.com/api/v2")
    network: str = "polygon_pos"
    web_url: AnyHttpUrl = Field(
        "https://www.geckoterminal.com",
        description="Публичная страница пула, откуда берётся капитализация",
    )
    scrape_market_cap: bool = True


class DexScreenerSettings(BaseModel):
    """Агрегатор DexScreener (резервный источник цены)."""

    base_url: AnyHttpUrl = Field("https://api.dexscreener.com/latest/dex")
    chain: str = "polygon"


class CovalentSettings(BaseModel):
    """Индексатор держателей Covalent (нужен API-ключ)."""

    base_url: AnyHttpUrl = Field("https://api.covalenthq.com/v1")
    chain_id: PositiveInt = 137
    api_key: SecretStr | None = None

    @field_validator("api_key", mode="before")
    @classmethod
    def _empty_key_to_none(cls, value):
        return _blank_to_none(value)


class PolygonscanSettings(BaseModel):
    """Polygonscan: JSON API (с ключом) и HTML-страница держателей."""

    api_url: AnyHttpUrl = Field("https://api.polygonscan.com/api")
    web_url: AnyHttpUrl = Field("https://polygonscan.com")
    api_key: SecretStr | None = None

    @field_validator("api_key", mode="before")
    @classmethod
    def _empty_key_to_none(cls, value):
        return _blank_to_none(value)


class MarketSettings(BaseModel):
    """Порядок опроса провайдеров рыночных данных."""

    providers: list[str] = Field(default_factory=lambda: ["geckoterminal", "dexscreener"])
    currency: str = "USD"


class HoldersSettings(BaseModel):
    """Порядок опроса провайдеров держателей и подписи известных адресов."""

    providers: list[str] = Field(
        default_factory=lambda: ["covalent", "polygonscan_html"]
    )
    top_n: PositiveInt = 10
    labels: dict[str, str] = Field(
        default_factory=dict, description="Адрес -> подпись (Treasury, LP Token и т.д.)"
    )

    @field_validator("labels")
    @classmethod
    def _lowercase_label_keys(cls, value: dict[str, str]) -> dict[str, str]:
        return {address.strip().lower(): label for address, label in value.items()}


class SchedulerSettings(BaseModel):
    """Фоновое обновление кеша проектов."""

    enabled: bool = True
    interval_sec: PositiveInt = 1800
    stale_after_sec: PositiveInt = 1800
    max_concurrency: PositiveInt = 4
    run_on_startup: bool = True


class CacheSettings(BaseModel):
    """Настройки кеша ответов провайдеров (aiocache поддерживает memory / redis)."""

    backend: Literal["memory", "redis"] = "memory"
    redis_dsn: str | None = None


class DatabaseSettings(BaseModel):
    """Источник метаданных проектов (только чтение). Без DSN берём список из настроек."""

    dsn: str | None = Field(
        None,
        description="Строка подключения SQLAlchemy/SQLModel, например sqlite+aiosqlite:///./app.db",
    )
    echo: bool = False

    @field_validator("dsn", mode="before")
    @classmethod
    def _empty_dsn_to_none(cls, value):
        return _blank_to_none(value)


class ProjectSettings(BaseModel):
    """Статическое описание отслеживаемого проекта."""

    id: int
    token_symbol: str
    token_address: str | None = None
    pool_address: str | None = None
    is_new: bool = False
    circulating_supply: PositiveFloat | None = None
    price: float | None = None
    market_cap: float | None = None
    volume_24h: float | None = None
    change_24h: float | None = None


class WebSettings(BaseModel):
    host: str = "0.0.0.0"
    port: PositiveInt = 8000


class AppSettings(BaseSettings):
    """Главный контейнер настроек."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    environment: Literal["dev", "prod"] = "dev"
    log_json: bool = False
    log_level: str = "INFO"
    providers: ProvidersSettings = ProvidersSettings()
    geckoterminal: GeckoTerminalSettings = GeckoTerminalSettings()
    dexscreener: DexScreenerSettings = DexScreenerSettings()
    covalent: CovalentSettings = CovalentSettings()
    polygonscan: PolygonscanSettings = PolygonscanSettings()
    market: MarketSettings = MarketSettings()
    holders: HoldersSettings = HoldersSettings()
    scheduler: SchedulerSettings = SchedulerSettings()
    cache: CacheSettings = CacheSettings()
    database: DatabaseSettings = DatabaseSettings()
    projects: list[ProjectSettings] = Field(default_factory=list)
    web: WebSettings = WebSettings()

    @property
    def is_production(self) -> bool:
        """True, если сервис запущен в продовой среде."""

        return self.environment == "prod"


# Ленивый синглтон (избегаем глобальных переменных в модулях).
_settings: AppSettings | None = None


def get_settings() -> AppSettings:
    """Возвращает единый экземпляр настроек.

    Значения кэшируются, поэтому .env читается ровно один раз за процесс.
    Компоненты принимают настройки и явно, это удобно в тестах.
    """

    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings


__all__ = [
    "AppSettings",
    "CacheSettings",
    "CovalentSettings",
    "DatabaseSettings",
    "DexScreenerSettings",
    "GeckoTerminalSettings",
    "HoldersSettings",
    "MarketSettings",
    "PolygonscanSettings",
    "ProjectSettings",
    "ProvidersSettings",
    "SchedulerSettings",
    "WebSettings",
    "get_settings",
]
