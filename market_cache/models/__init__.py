"""SQLModel сущности (только чтение)."""

from .project import Project  # noqa: F401

__all__ = ["Project"]
