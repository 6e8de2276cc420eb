"""Настройка loguru для продакшена."""

from __future__ import annotations

import sys

from loguru import logger


def setup_logging(json: bool = False, level: str = "INFO") -> None:
    logger.remove()
    fmt = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function} | {message}"
    logger.add(
        sys.stdout,
        format=fmt,
        level=level.upper(),
        colorize=not json,
        serialize=json,
        backtrace=False,
        enqueue=True,
    )


__all__ = ["setup_logging"]
