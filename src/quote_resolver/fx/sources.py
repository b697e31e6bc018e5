"""FX rate sources, each returning a dated ``<base>/PLN`` series.

Cascade order (see ``FxResolver``):

1. ``PairFeedSource`` over the domestic CSV feed (``usdpln``).
2. ``CentralBankSource``: NBP table A mid rates.
3. ``GenericFxApiSource``: Frankfurter (ECB reference rates).
4. ``PairFeedSource`` over the global chart feed (``USDPLN=X``).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import date, timedelta
from typing import Any, Protocol, Union, runtime_checkable

import httpx

from quote_resolver.core.exceptions import NoData, ProviderMalformed
from quote_resolver.core.models import SETTLEMENT_CURRENCY, FxRate, HistoryRequest
from quote_resolver.providers.base import Empty, HistoryAdapter, Ok, RateLimited
from quote_resolver.providers.http import HostRacer, read_text
from quote_resolver.symbols.classifier import fx_pair_code

logger = logging.getLogger(__name__)

FxSeriesResult = Union[Ok[list[FxRate]], RateLimited, Empty]


@runtime_checkable
class FxSource(Protocol):
    """One rung of the FX cascade."""

    name: str

    async def fetch_series(
        self, base: str, start: date, end: date
    ) -> FxSeriesResult: ...


def yahoo_pair_code(base: str) -> str:
    return f"{base.upper()}{SETTLEMENT_CURRENCY}=X"


class PairFeedSource:
    """Reads an FX pair as an ordinary close series from a history adapter."""

    def __init__(
        self,
        adapter: HistoryAdapter,
        code_for: Callable[[str], str] = fx_pair_code,
        name: str | None = None,
    ) -> None:
        self._adapter = adapter
        self._code_for = code_for
        self.name = name or f"{adapter.name}-pair"

    async def fetch_series(self, base: str, start: date, end: date) -> FxSeriesResult:
        request = HistoryRequest(code=self._code_for(base), start=start, end=end)
        result = await self._adapter.fetch_history(request)
        match result:
            case Ok(value=series):
                rates = [
                    FxRate(base=base, date=p.date, rate=p.close, source=self.name)
                    for p in series.points
                    if start <= p.date <= end
                ]
                if rates:
                    return Ok(rates)
                return Empty(self.name, reason="no_data")
            case RateLimited():
                return RateLimited(self.name)
            case Empty(reason=reason):
                return Empty(self.name, reason=reason)


class CentralBankSource:
    """NBP table A mid rates.

    The API answers at most 367 days per call and 404s a window with no
    publications, so long windows are split and fetched concurrently.
    """

    name = "nbp"

    MAX_SPAN_DAYS = 367
    FIRST_DAY = date(2002, 1, 2)

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = "https://api.nbp.pl",
        timeout: float = 1.5,
        rate_limit: int = 20,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._racer = HostRacer(
            client,
            self.name,
            timeout=timeout,
            rate_limit=rate_limit,
            headers={"Accept": "application/json"},
        )

    def windows(self, start: date, end: date) -> list[tuple[date, date]]:
        start = max(start, self.FIRST_DAY)
        out: list[tuple[date, date]] = []
        cursor = start
        while cursor <= end:
            stop = min(cursor + timedelta(days=self.MAX_SPAN_DAYS - 1), end)
            out.append((cursor, stop))
            cursor = stop + timedelta(days=1)
        return out

    async def fetch_series(self, base: str, start: date, end: date) -> FxSeriesResult:
        windows = self.windows(start, end)
        if not windows:
            return Empty(self.name, reason="out_of_range")

        code = base.lower()
        results = await asyncio.gather(
            *(
                self._racer.race(
                    [
                        f"{self._base_url}/api/exchangerates/rates/A/{code}"
                        f"/{lo.isoformat()}/{hi.isoformat()}/"
                    ],
                    lambda r: self._parse(r, base),
                    {"format": "json"},
                )
                for lo, hi in windows
            )
        )

        rates: list[FxRate] = []
        rate_limited = False
        for result in results:
            match result:
                case Ok(value=chunk):
                    rates.extend(chunk)
                case RateLimited():
                    rate_limited = True
                case Empty():
                    pass

        if rates:
            return Ok(sorted(rates, key=lambda r: r.date))
        if rate_limited:
            return RateLimited(self.name)
        return Empty(self.name, reason="no_data")

    def _parse(self, response: httpx.Response, base: str) -> list[FxRate]:
        if response.status_code == 404:
            raise NoData("NBP has no rates in window", context={"provider": self.name})
        read_text(response, self.name)
        data: Any = response.json()
        if not isinstance(data, dict) or "rates" not in data:
            raise ProviderMalformed(
                "NBP payload has no 'rates' key",
                context={"provider": self.name, "reason": "shape"},
            )
        return [
            FxRate(
                base=base,
                date=date.fromisoformat(row["effectiveDate"]),
                rate=float(row["mid"]),
                source=self.name,
            )
            for row in data["rates"]
        ]


class GenericFxApiSource:
    """Frankfurter time-series API (``/<start>..<end>?from=USD&to=PLN``)."""

    name = "frankfurter"

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = "https://api.frankfurter.app",
        timeout: float = 1.5,
        rate_limit: int = 20,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._racer = HostRacer(
            client,
            self.name,
            timeout=timeout,
            rate_limit=rate_limit,
            headers={"Accept": "application/json"},
        )

    async def fetch_series(self, base: str, start: date, end: date) -> FxSeriesResult:
        url = f"{self._base_url}/{start.isoformat()}..{end.isoformat()}"
        return await self._racer.race(
            [url],
            lambda r: self._parse(r, base),
            {"from": base, "to": SETTLEMENT_CURRENCY},
        )

    def _parse(self, response: httpx.Response, base: str) -> list[FxRate]:
        read_text(response, self.name)
        data: Any = response.json()
        if not isinstance(data, dict) or "rates" not in data:
            raise ProviderMalformed(
                "Frankfurter payload has no 'rates' key",
                context={"provider": self.name, "reason": "shape"},
            )
        rates = [
            FxRate(
                base=base,
                date=date.fromisoformat(day),
                rate=float(values[SETTLEMENT_CURRENCY]),
                source=self.name,
            )
            for day, values in data["rates"].items()
            if SETTLEMENT_CURRENCY in (values or {})
        ]
        if not rates:
            raise NoData("Frankfurter returned no PLN rates", context={"provider": self.name})
        return sorted(rates, key=lambda r: r.date)
