"""Polygonscan: JSON API держателей и HTML-скрейп страницы tokenholderchart.

Скрейп — последний рубеж: разметка может поменяться в любой момент, поэтому
непонятые строки пропускаются, а пустая таблица возвращается как MALFORMED,
и кеш продолжает отдавать прежний список.
"""

from __future__ import annotations

from typing import Any, Sequence
from urllib.parse import parse_qs, urlsplit

import aiohttp
from bs4 import BeautifulSoup
from loguru import logger

from market_cache.errors import (
    ProviderError,
    ProviderMalformedResponse,
    ProviderNotFound,
    ProviderRateLimited,
    ProviderUnreachable,
)
from .base import BaseAdapter, Holder, ProviderResult, normalize_address
from .http import fetch_json, fetch_text


class PolygonscanApiHoldersAdapter(BaseAdapter):
    """tokenholderlist (API Pro) + tokensupply для расчёта доли."""

    name = "polygonscan_api"

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        api_url: str,
        api_key: str,
        page_size: int = 10,
        **cache_opts: Any,
    ) -> None:
        super().__init__(**cache_opts)
        self._session = session
        self._api_url = api_url.rstrip("/")
        self._api_key = api_key
        self._page_size = page_size

    async def fetch_holders(self, token_address: str) -> ProviderResult[Sequence[Holder]]:
        return await self._run("holders", token_address, self._request)

    async def _request(self, token_address: str) -> list[Holder]:
        payload = await fetch_json(
            self._session,
            self._api_url,
            params={
                "module": "token",
                "action": "tokenholderlist",
                "contractaddress": token_address,
                "page": 1,
                "offset": self._page_size,
                "apikey": self._api_key,
            },
        )
        rows = _unwrap_result(payload)
        total_supply = await self._total_supply(token_address)
        return parse_holder_list(rows, total_supply=total_supply)

    async def _total_supply(self, token_address: str) -> int | None:
        try:
            payload = await fetch_json(
                self._session,
                self._api_url,
                params={
                    "module": "stats",
                    "action": "tokensupply",
                    "contractaddress": token_address,
                    "apikey": self._api_key,
                },
            )
            return int(_unwrap_result(payload))
        except (ProviderError, TypeError, ValueError) as exc:
            logger.debug("polygonscan tokensupply недоступен, доля от суммы страницы: {error}", error=exc)
            return None


class PolygonscanHtmlHoldersAdapter(BaseAdapter):
    """Скрейп публичной страницы держателей (без ключа)."""

    name = "polygonscan_html"

    def __init__(self, session: aiohttp.ClientSession, *, web_url: str, **cache_opts: Any) -> None:
        super().__init__(**cache_opts)
        self._session = session
        self._web_url = web_url.rstrip("/")

    async def fetch_holders(self, token_address: str) -> ProviderResult[Sequence[Holder]]:
        return await self._run("holders", token_address, self._request)

    async def _request(self, token_address: str) -> list[Holder]:
        html = await fetch_text(
            self._session,
            f"{self._web_url}/token/tokenholderchart/{token_address}",
            headers={"Accept": "text/html,application/xhtml+xml,application/xml"},
        )
        holders = parse_holder_chart(html)
        if not holders:
            raise ProviderMalformedResponse("таблица держателей не найдена в HTML")
        return holders


def parse_holder_list(rows: Any, *, total_supply: int | None = None) -> list[Holder]:
    if not isinstance(rows, list):
        raise ProviderMalformedResponse("result tokenholderlist не список")
    try:
        pairs = [
            (str(row["TokenHolderAddress"]).lower(), int(row["TokenHolderQuantity"]))
            for row in rows
        ]
    except (KeyError, TypeError, ValueError) as exc:
        raise ProviderMalformedResponse(f"неожиданная строка tokenholderlist: {exc}") from exc
    if not pairs:
        raise ProviderNotFound("Polygonscan не вернул держателей")
    denominator = total_supply if total_supply else sum(balance for _, balance in pairs)
    if denominator <= 0:
        raise ProviderMalformedResponse("нулевая эмиссия")
    return [
        Holder(address=address, percentage=balance * 100 / denominator, balance=str(balance))
        for address, balance in pairs
    ]


def parse_holder_chart(html: str) -> list[Holder]:
    """Разбирает строки таблицы позиционно: адрес во 2-й колонке, доля в 4-й."""

    soup = BeautifulSoup(html, "html.parser")
    holders: list[Holder] = []
    for row in soup.select(".table tbody tr"):
        cells = row.find_all("td")
        if len(cells) < 4:
            continue
        address = _address_from_cell(cells[1])
        percentage = _percentage_from_cell(cells[3])
        if address is None or percentage is None:
            continue
        label_el = cells[1].select_one("span.text-secondary")
        label = label_el.get_text(strip=True) if label_el else None
        holders.append(Holder(address=address, percentage=percentage, label=label or None))
    return holders


def _address_from_cell(cell) -> str | None:
    link = cell.find("a", href=True)
    if link is None:
        return None
    href = urlsplit(link["href"])
    # ссылка вида /token/<token>?a=<holder> либо /address/<holder>
    candidates = parse_qs(href.query).get("a") or [href.path.rstrip("/").rsplit("/", 1)[-1]]
    try:
        return normalize_address(candidates[0])
    except ValueError:
        return None


def _percentage_from_cell(cell) -> float | None:
    text = cell.get_text(strip=True).replace("%", "").replace(",", "")
    try:
        return float(text)
    except ValueError:
        return None


def _unwrap_result(payload: Any) -> Any:
    """Etherscan-подобный конверт {status, message, result}."""

    if not isinstance(payload, dict) or "result" not in payload:
        raise ProviderMalformedResponse("нет поля result в ответе Polygonscan")
    if str(payload.get("status")) == "1":
        return payload["result"]
    message = f"{payload.get('message', '')} {payload.get('result', '')}".strip()
    lowered = message.lower()
    if "rate limit" in lowered:
        raise ProviderRateLimited(f"Polygonscan: {message}")
    if "no token" in lowered or "no data" in lowered or "not found" in lowered:
        raise ProviderNotFound(f"Polygonscan: {message}")
    raise ProviderUnreachable(f"Polygonscan: {message}")


__all__ = [
    "PolygonscanApiHoldersAdapter",
    "PolygonscanHtmlHoldersAdapter",
    "parse_holder_chart",
    "parse_holder_list",
]
