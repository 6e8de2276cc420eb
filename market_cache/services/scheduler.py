"""Периодическое и разовое обновление кеша проектов."""

from __future__ import annotations

import asyncio

from loguru import logger

from .project_cache import ProjectCache, ProjectCacheEntry
from .projects import ProjectSource, TrackedProject


class RefreshScheduler:
    """Раз в interval_sec обновляет все проекты; сбой одного не мешает другим."""

    def __init__(
        self,
        cache: ProjectCache,
        source: ProjectSource,
        *,
        interval_sec: float,
        max_concurrency: int = 4,
        run_on_startup: bool = True,
    ) -> None:
        self._cache = cache
        self._source = source
        self._interval = interval_sec
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._run_on_startup = run_on_startup
        self._task: asyncio.Task[None] | None = None
        self._stop = asyncio.Event()
        self._background: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._run_loop(), name="market-cache-refresh-loop")
        logger.info("RefreshScheduler запущен (интервал {interval} c)", interval=self._interval)

    async def stop(self) -> None:
        """Останавливает цикл и разовые обновления (graceful shutdown)."""

        self._stop.set()
        tasks = [task for task in (self._task, *self._background) if task is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._task = None

    async def refresh_all(self) -> dict[int, ProjectCacheEntry]:
        """Обновляет все известные проекты независимо друг от друга."""

        projects = await self._source.list_projects()
        for project in projects:
            self._cache.track(project)
        results = await asyncio.gather(*(self._limited_refresh(project) for project in projects))
        refreshed = {
            project.project_id: entry
            for project, entry in zip(projects, results)
            if entry is not None
        }
        logger.info(
            "Цикл обновления завершён: {ok}/{total} проектов",
            ok=len(refreshed),
            total=len(projects),
        )
        return refreshed

    def request_refresh(self, project_id: int) -> asyncio.Task:
        """Фоновое обновление по запросу (промах кеша, кнопка админа).

        Идёт через тот же ProjectCache.refresh, поэтому склеивается с уже
        идущим обновлением проекта.
        """

        task = asyncio.create_task(self._safe_refresh(project_id), name=f"on-demand-refresh-{project_id}")
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _run_loop(self) -> None:
        if not self._run_on_startup and await self._wait_interval():
            return
        while not self._stop.is_set():
            try:
                await self.refresh_all()
            except Exception as exc:  # noqa: BLE001
                logger.exception("Цикл обновления кеша упал: {error}", error=exc)
            if await self._wait_interval():
                return

    async def _wait_interval(self) -> bool:
        """Ждёт следующий тик; True, если за это время попросили остановиться."""

        try:
            await asyncio.wait_for(self._stop.wait(), timeout=self._interval)
        except asyncio.TimeoutError:
            return False
        return True

    async def _limited_refresh(self, project: TrackedProject) -> ProjectCacheEntry | None:
        async with self._semaphore:
            return await self._safe_refresh(project.project_id, project)

    async def _safe_refresh(
        self,
        project_id: int,
        project: TrackedProject | None = None,
    ) -> ProjectCacheEntry | None:
        try:
            return await self._cache.refresh(project_id, project)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Обновление проекта {project} упало: {error}", project=project_id, error=exc)
            return None


__all__ = ["RefreshScheduler"]
