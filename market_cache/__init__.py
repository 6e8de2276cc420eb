"""Кеш рыночных данных и топ-держателей для витрины проектов."""

__version__ = "0.1.0"
