from .cache import configure_cache, get_cache

__all__ = ["configure_cache", "get_cache"]
