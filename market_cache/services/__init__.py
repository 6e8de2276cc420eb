"""Резолверы, кеш проектов и планировщик обновлений."""

from .holder_resolver import HolderResolution, HolderResolver
from .market_resolver import MarketDataResolver, MarketResolution
from .project_cache import ProjectCache, ProjectCacheEntry
from .projects import (
    DatabaseProjectSource,
    ProjectSource,
    RefreshKey,
    StaticProjectSource,
    TrackedProject,
)
from .scheduler import RefreshScheduler

__all__ = [
    "DatabaseProjectSource",
    "HolderResolution",
    "HolderResolver",
    "MarketDataResolver",
    "MarketResolution",
    "ProjectCache",
    "ProjectCacheEntry",
    "ProjectSource",
    "RefreshKey",
    "RefreshScheduler",
    "StaticProjectSource",
    "TrackedProject",
]
