"""Stooq CSV feed — the domestic-exchange provider.

Serves Warsaw listings in PLN, but also foreign tickers under synthesised
codes (``aapl.us``), market indices (``wig20``) and FX pairs (``usdpln``).
The feed does not report a currency; routes supply it.

Stooq answers over both its .com and .pl hosts, on https and plain http;
all four are raced. Throttling shows up as a plain-text notice under
HTTP 200, and the Polish host localises CSV headers.
"""

from __future__ import annotations

import csv
import logging
import math
from datetime import date
from typing import Any

import httpx

from quote_resolver.core.exceptions import NoData, ProviderMalformed
from quote_resolver.core.models import (
    HistoryRequest,
    NativeSeries,
    PriceInterval,
    PricePoint,
    Quote,
)
from quote_resolver.providers.base import Empty, HistoryResult, QuoteResult
from quote_resolver.providers.http import HostRacer, read_text

logger = logging.getLogger(__name__)

PROVIDER = "stooq"

_HISTORY_PATH = "/q/d/l/"
_QUOTE_PATH = "/q/l/"

_INTERVAL_MAP: dict[PriceInterval, str] = {
    PriceInterval.DAILY: "d",
    PriceInterval.WEEKLY: "w",
    PriceInterval.MONTHLY: "m",
}

RATE_LIMIT_MARKERS: tuple[tuple[str, ...], ...] = (
    ("limit", "wywołań"),
    ("limit", "wywolan"),
    ("exceeded", "daily hits limit"),
)

_DATE_HEADERS = {"date", "data"}
_NO_DATA_TOKENS = {"", "n/d", "n/a", "-"}


def parse_number(raw: str | None) -> float | None:
    """Parse a locale-formatted number; None for blanks, N/D and non-finite."""
    if raw is None:
        return None
    s = str(raw).strip().replace("\xa0", "").replace(" ", "")
    if s.lower() in _NO_DATA_TOKENS:
        return None
    if "," in s and "." not in s:
        s = s.replace(",", ".")
    elif "," in s:
        # 1,234.56: comma is a thousands separator
        s = s.replace(",", "")
    try:
        value = float(s)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def _parse_date(raw: str) -> date | None:
    try:
        return date.fromisoformat(raw.strip())
    except ValueError:
        return None


def _sniff_delimiter(header: str) -> str:
    return ";" if header.count(";") > header.count(",") else ","


def parse_history_csv(text: str) -> list[PricePoint]:
    """Parse a Stooq daily CSV into PricePoints sorted by date.

    Rows with a missing date or a non-positive / non-finite close are
    dropped. A later row for the same date replaces an earlier one.

    Raises
    ------
    ProviderMalformed
        If the header is not a Stooq price header.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        return []

    delimiter = _sniff_delimiter(lines[0])
    header = next(csv.reader([lines[0]], delimiter=delimiter))
    if not header or header[0].strip().lower() not in _DATE_HEADERS:
        raise ProviderMalformed(
            "Unexpected Stooq CSV header",
            context={"provider": PROVIDER, "reason": lines[0][:80]},
        )

    by_date: dict[date, PricePoint] = {}
    for row in csv.reader(lines[1:], delimiter=delimiter):
        if len(row) < 5:
            continue
        day = _parse_date(row[0])
        close = parse_number(row[4])
        if day is None or close is None or close <= 0:
            continue
        by_date[day] = PricePoint(date=day, close=close)

    return [by_date[d] for d in sorted(by_date)]


def parse_quote_csv(text: str) -> Quote:
    """Parse the Stooq light-quote CSV (``f=sd2t2ohlcv``, with header).

    The feed carries no previous close; the last close stands in for it.

    Raises
    ------
    NoData
        If the row is missing or the close is N/D.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        raise NoData("Stooq quote has no data row", context={"provider": PROVIDER})

    delimiter = _sniff_delimiter(lines[0])
    row = next(csv.reader([lines[1]], delimiter=delimiter))
    close = parse_number(row[6]) if len(row) > 6 else None
    if close is None or close <= 0:
        raise NoData("Stooq quote close is N/D", context={"provider": PROVIDER})
    return Quote(price=close, prev_close=close, currency=None, source=PROVIDER)


class StooqAdapter:
    """Fetches history and light quotes from the Stooq CSV endpoints.

    Parameters
    ----------
    client : httpx.AsyncClient
        Shared HTTP client.
    hosts : tuple[str, ...]
        Equivalent base URLs raced on every call.
    timeout : float
        Per-attempt deadline in seconds.
    rate_limit : int
        Attempts per second across all hosts.
    user_agent : str
        Sent as ``User-Agent``; Stooq rejects empty agents.
    """

    name = PROVIDER

    def __init__(
        self,
        client: httpx.AsyncClient,
        hosts: tuple[str, ...],
        timeout: float = 1.5,
        rate_limit: int = 20,
        user_agent: str = "Mozilla/5.0",
    ) -> None:
        self._hosts = hosts
        self._racer = HostRacer(
            client,
            PROVIDER,
            timeout=timeout,
            rate_limit=rate_limit,
            headers={"User-Agent": user_agent, "Accept": "text/csv,*/*"},
        )

    async def fetch_history(self, request: HistoryRequest) -> HistoryResult:
        if not request.code:
            return Empty(PROVIDER, reason="no_code")

        params: dict[str, Any] = {
            "s": request.code,
            "i": _INTERVAL_MAP[request.interval],
        }
        if request.start is not None:
            params["d1"] = request.start.strftime("%Y%m%d")
        if request.end is not None:
            params["d2"] = request.end.strftime("%Y%m%d")

        urls = [f"{host}{_HISTORY_PATH}" for host in self._hosts]
        return await self._racer.race(urls, self._parse_history, params)

    async def fetch_quote(self, code: str) -> QuoteResult:
        if not code:
            return Empty(PROVIDER, reason="no_code")

        params = {"s": code, "f": "sd2t2ohlcv", "h": "", "e": "csv"}
        urls = [f"{host}{_QUOTE_PATH}" for host in self._hosts]
        return await self._racer.race(urls, self._parse_quote, params)

    @staticmethod
    def _parse_history(response: httpx.Response) -> NativeSeries:
        text = read_text(response, PROVIDER, RATE_LIMIT_MARKERS)
        points = parse_history_csv(text)
        if not points:
            raise NoData("Stooq history has no valid rows", context={"provider": PROVIDER})
        return NativeSeries(points=points, currency=None, source=PROVIDER)

    @staticmethod
    def _parse_quote(response: httpx.Response) -> Quote:
        text = read_text(response, PROVIDER, RATE_LIMIT_MARKERS)
        return parse_quote_csv(text)
