"""Репозитории для работы с БД."""

from .project_repo import get_project, list_projects

__all__ = ["get_project", "list_projects"]
