"""HTTP-обвязка над aiohttp: статусы и сетевые ошибки -> таксономия провайдера."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Mapping

import aiohttp
from loguru import logger

from market_cache.errors import (
    ProviderMalformedResponse,
    ProviderNotFound,
    ProviderRateLimited,
    ProviderUnreachable,
)


def create_session(timeout: float, user_agent: str) -> aiohttp.ClientSession:
    """Одна сессия на процесс, общий таймаут на каждый запрос."""

    return aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=timeout),
        headers={"User-Agent": user_agent},
    )


async def fetch_text(
    session: aiohttp.ClientSession,
    url: str,
    *,
    params: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
) -> str:
    try:
        async with session.get(url, params=params, headers=headers) as resp:
            body = await resp.text()
            _raise_for_status(resp.status, url, body)
            return body
    except asyncio.TimeoutError as exc:
        raise ProviderUnreachable(f"таймаут запроса {url}") from exc
    except UnicodeDecodeError as exc:
        raise ProviderMalformedResponse(f"тело ответа {url} не декодируется: {exc}") from exc
    except aiohttp.ClientError as exc:
        raise ProviderUnreachable(f"{type(exc).__name__}: {exc}") from exc


async def fetch_json(
    session: aiohttp.ClientSession,
    url: str,
    *,
    params: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
) -> Any:
    """GET и разбор JSON. HTML вместо JSON считается сломанным ответом."""

    merged = {"Accept": "application/json", **(headers or {})}
    body = await fetch_text(session, url, params=params, headers=merged)
    stripped = body.lstrip()
    if stripped[:9].lower() == "<!doctype" or stripped[:5].lower() == "<html":
        raise ProviderMalformedResponse(f"HTML вместо JSON от {url}")
    try:
        return json.loads(body)
    except ValueError as exc:
        raise ProviderMalformedResponse(f"невалидный JSON от {url}: {exc}") from exc


def _raise_for_status(status: int, url: str, body: str) -> None:
    if status < 400:
        return
    logger.debug("HTTP {status} от {url}: {body}", status=status, url=url, body=body[:200])
    if status == 429:
        raise ProviderRateLimited(f"HTTP 429 от {url}")
    if status == 404:
        raise ProviderNotFound(f"HTTP 404 от {url}")
    raise ProviderUnreachable(f"HTTP {status} от {url}")


__all__ = ["create_session", "fetch_json", "fetch_text"]
