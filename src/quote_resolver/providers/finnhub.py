"""Finnhub quote API — the secondary quote provider.

Quotes only; Finnhub's free tier has no usable candle history. Without an
API key the adapter is inert and every call is ``Empty("disabled")``.
"""

from __future__ import annotations

import logging
import math
from typing import Any

import httpx

from quote_resolver.core.exceptions import NoData, ProviderMalformed
from quote_resolver.core.models import Quote
from quote_resolver.providers.base import Empty, QuoteResult
from quote_resolver.providers.http import HostRacer, read_text

logger = logging.getLogger(__name__)

PROVIDER = "finnhub"

RATE_LIMIT_MARKERS: tuple[tuple[str, ...], ...] = (("api limit",),)


def parse_quote(data: Any) -> Quote:
    """``{"c": current, "pc": previous close}``; ``c == 0`` means unknown symbol."""
    if not isinstance(data, dict):
        raise ProviderMalformed(
            "Finnhub quote is not an object",
            context={"provider": PROVIDER, "reason": "shape"},
        )
    price = data.get("c")
    if price is None or not math.isfinite(float(price)) or float(price) <= 0:
        raise NoData("Finnhub has no price for symbol", context={"provider": PROVIDER})
    prev = data.get("pc")
    prev_close = float(prev) if prev and math.isfinite(float(prev)) and float(prev) > 0 else None
    return Quote(
        price=float(price),
        prev_close=prev_close if prev_close is not None else float(price),
        currency=None,
        source=PROVIDER,
    )


class FinnhubAdapter:
    """Fetches quotes from Finnhub's ``/quote`` endpoint."""

    name = PROVIDER

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        api_key: str | None,
        timeout: float = 1.5,
        rate_limit: int = 20,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._racer = HostRacer(client, PROVIDER, timeout=timeout, rate_limit=rate_limit)

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    async def fetch_quote(self, code: str) -> QuoteResult:
        if not self.enabled:
            return Empty(PROVIDER, reason="disabled")
        if not code:
            return Empty(PROVIDER, reason="no_code")

        return await self._racer.race(
            [f"{self._base_url}/quote"],
            self._parse,
            {"symbol": code, "token": self._api_key},
        )

    @staticmethod
    def _parse(response: httpx.Response) -> Quote:
        read_text(response, PROVIDER, RATE_LIMIT_MARKERS)
        return parse_quote(response.json())
