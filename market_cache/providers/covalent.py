"""Covalent: индексатор держателей токена (основной источник, нужен API-ключ)."""

from __future__ import annotations

from typing import Any, Sequence

import aiohttp

from market_cache.errors import (
    ProviderMalformedResponse,
    ProviderNotFound,
    ProviderRateLimited,
    ProviderUnreachable,
)
from .base import BaseAdapter, Holder, ProviderResult
from .http import fetch_json


class CovalentHoldersAdapter(BaseAdapter):
    name = "covalent"

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        base_url: str,
        chain_id: int,
        api_key: str,
        page_size: int = 10,
        **cache_opts: Any,
    ) -> None:
        super().__init__(**cache_opts)
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._chain_id = chain_id
        self._api_key = api_key
        self._page_size = page_size

    async def fetch_holders(self, token_address: str) -> ProviderResult[Sequence[Holder]]:
        return await self._run("holders", token_address, self._request)

    async def _request(self, token_address: str) -> list[Holder]:
        url = f"{self._base_url}/{self._chain_id}/tokens/{token_address}/token_holders_v2/"
        params = {"key": self._api_key, "page-size": self._page_size, "page-number": 0}
        payload = await fetch_json(self._session, url, params=params)
        return parse_token_holders(payload)


def parse_token_holders(payload: Any) -> list[Holder]:
    """Разбирает страницу token_holders_v2.

    Доля считается от total_supply; если его нет, от суммы балансов страницы.
    Пустой список возвращается только когда Covalent явно подтверждает 0 держателей.
    """

    if not isinstance(payload, dict):
        raise ProviderMalformedResponse("ответ Covalent не объект")
    if payload.get("error"):
        _raise_api_error(payload)
    data = payload.get("data")
    if not isinstance(data, dict) or not isinstance(data.get("items"), list):
        raise ProviderMalformedResponse("нет data.items в ответе Covalent")

    items = data["items"]
    if not items:
        total_count = (data.get("pagination") or {}).get("total_count")
        if total_count == 0:
            return []
        raise ProviderNotFound("Covalent не вернул держателей (контракт не проиндексирован)")

    try:
        balances = [int(item["balance"]) for item in items]
        total_supply = int(items[0].get("total_supply") or 0)
        addresses = [str(item["address"]).lower() for item in items]
    except (KeyError, TypeError, ValueError) as exc:
        raise ProviderMalformedResponse(f"неожиданная строка держателя: {exc}") from exc

    denominator = total_supply if total_supply > 0 else sum(balances)
    if denominator <= 0:
        raise ProviderMalformedResponse("нулевая эмиссия в ответе Covalent")

    holders = [
        Holder(address=address, percentage=balance * 100 / denominator, balance=str(balance))
        for address, balance in zip(addresses, balances)
    ]
    # sort стабилен: равные доли сохраняют порядок провайдера
    holders.sort(key=lambda holder: holder.percentage, reverse=True)
    return holders


def _raise_api_error(payload: dict[str, Any]) -> None:
    code = payload.get("error_code")
    message = payload.get("error_message") or "unknown error"
    if code == 429:
        raise ProviderRateLimited(f"Covalent: {message}")
    if code in (404, 406) or "not found" in str(message).lower():
        raise ProviderNotFound(f"Covalent: {message}")
    raise ProviderUnreachable(f"Covalent {code}: {message}")


__all__ = ["CovalentHoldersAdapter", "parse_token_holders"]
