"""FastAPI-поверхность кеша рыночных данных проектов."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request, status
from loguru import logger
from pydantic import BaseModel, Field

from market_cache.context import MarketServices, build_services
from market_cache.services import ProjectCacheEntry


# ============================================================================
# Модели ответа (ключи в camelCase, как их ждёт фронтенд)
# ============================================================================

class MarketDataModel(BaseModel):
    """Рыночные данные с торговой пары."""
    price: float
    change24h: float
    marketCap: float | None = None
    volume24h: float
    currency: str = "USD"


class TokenHolderModel(BaseModel):
    address: str
    percentage: float
    balance: str | None = None
    label: str | None = None


class ProjectMarketDataResponse(BaseModel):
    marketData: MarketDataModel | None = None
    tokenHolders: list[TokenHolderModel] = Field(default_factory=list)
    lastUpdated: str | None = None
    apiSuccess: bool = False
    isNew: bool = False


class CacheDumpResponse(BaseModel):
    cacheEntries: dict[str, dict]
    cacheSize: int


class CacheClearResponse(BaseModel):
    status: str = "ok"
    refreshed: int = 0


def get_services(request: Request) -> MarketServices:
    return request.app.state.services


async def ensure_project(project_id: int, services: MarketServices = Depends(get_services)) -> int:
    """Известные кешу проекты проверяются в памяти, источник спрашиваем только при промахе."""

    if project_id in services.cache:
        return project_id
    if await services.source.get_project(project_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Проект не найден")
    return project_id


def _to_response(entry: ProjectCacheEntry) -> ProjectMarketDataResponse:
    return ProjectMarketDataResponse.model_validate(entry.as_dict())


def create_app(services: MarketServices | None = None, *, run_scheduler: bool = True) -> FastAPI:
    """Собирает приложение.

    Переданные снаружи сервисы (тесты) не закрываются при остановке,
    останавливается только планировщик.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = services is None
        current = services or await build_services()
        app.state.services = current
        if run_scheduler and current.settings.scheduler.enabled:
            await current.scheduler.start()
        try:
            yield
        finally:
            if owned:
                await current.close()
            else:
                await current.scheduler.stop()

    app = FastAPI(title="Market Data Cache API", lifespan=lifespan)

    @app.get("/api/projects/{project_id}/market-data", response_model=ProjectMarketDataResponse)
    async def project_market_data(
        project_id: int = Depends(ensure_project),
        services: MarketServices = Depends(get_services),
    ) -> ProjectMarketDataResponse:
        """Отдаёт последний снапшот сразу, не дожидаясь провайдеров.

        Устаревшая запись обновляется в фоне; следующий запрос увидит новые данные.
        """
        cache = services.cache
        if not cache.is_fresh(project_id) and not cache.is_refreshing(project_id):
            logger.debug("Проект {project}: данные устарели, фоновое обновление", project=project_id)
            services.scheduler.request_refresh(project_id)
        return _to_response(cache.get(project_id))

    @app.post("/api/projects/{project_id}/refresh", response_model=ProjectMarketDataResponse)
    async def refresh_project(
        project_id: int = Depends(ensure_project),
        services: MarketServices = Depends(get_services),
    ) -> ProjectMarketDataResponse:
        entry = await services.cache.refresh(project_id)
        return _to_response(entry)

    @app.get("/api/cache/dump", response_model=CacheDumpResponse)
    async def dump_cache(services: MarketServices = Depends(get_services)) -> CacheDumpResponse:
        entries = services.cache.dump()
        return CacheDumpResponse(
            cacheEntries={str(project_id): entry.as_debug_dict() for project_id, entry in entries.items()},
            cacheSize=len(entries),
        )

    @app.post("/api/cache/clear", response_model=CacheClearResponse)
    async def clear_cache(services: MarketServices = Depends(get_services)) -> CacheClearResponse:
        services.cache.invalidate_all()
        refreshed = await services.scheduler.refresh_all()
        return CacheClearResponse(refreshed=len(refreshed))

    @app.get("/api/health")
    async def health(services: MarketServices = Depends(get_services)) -> dict:
        return {
            "status": "ok",
            "service": "market-cache",
            "projects": len(services.cache),
            "scheduler": services.scheduler.running,
        }

    return app


__all__ = ["create_app"]
