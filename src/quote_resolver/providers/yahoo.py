"""Yahoo Finance chart and spark endpoints over direct HTTP.

Uses the unauthenticated ``/v8/finance/chart/`` endpoint via httpx, with
``/v8/finance/spark`` as a lighter fallback for history. Both query hosts
serve identical data and are raced.

The chart ``meta`` block reports the listing currency, which is what the
FX step keys off for foreign instruments.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, timedelta, timezone
from typing import Any

import httpx

from quote_resolver.core.exceptions import NoData, ProviderMalformed
from quote_resolver.core.models import (
    HistoryRequest,
    NativeSeries,
    PricePoint,
    Quote,
)
from quote_resolver.providers.base import (
    Empty,
    HistoryResult,
    Ok,
    QuoteResult,
    RateLimited,
)
from quote_resolver.providers.http import HostRacer, read_text

logger = logging.getLogger(__name__)

PROVIDER = "yahoo"

_CHART_PATH = "/v8/finance/chart"
_SPARK_PATH = "/v8/finance/spark"

RATE_LIMIT_MARKERS: tuple[tuple[str, ...], ...] = (("too many requests",),)


class YahooChartParser:
    """Transforms raw Yahoo Finance chart JSON into canonical models.

    Understands the ``chart.result[0]`` object and the ``spark.result[0]``
    wrapper, which nests the same shape under ``response[0]``.
    """

    def points(self, raw: dict[str, Any]) -> list[PricePoint]:
        """Parse ``timestamp`` + ``indicators.quote[0].close`` into points.

        Parameters
        ----------
        raw : dict
            A chart result object.

        Returns
        -------
        list[PricePoint]
            Sorted by date ascending. Null, non-positive and non-finite
            closes are skipped; the last bar of a day wins.
        """
        timestamps: list[int] = raw.get("timestamp") or []
        if not timestamps:
            return []

        quotes = (raw.get("indicators", {}).get("quote") or [{}])[0]
        closes: list[float | None] = quotes.get("close") or []
        offset = int(raw.get("meta", {}).get("gmtoffset") or 0)

        by_date: dict[date, PricePoint] = {}
        for i, ts in enumerate(timestamps):
            c = closes[i] if i < len(closes) else None
            if c is None:
                continue
            close = float(c)
            if not math.isfinite(close) or close <= 0:
                continue
            # Bars are stamped at session open in exchange-local time
            bar_date = (
                datetime.fromtimestamp(int(ts), tz=timezone.utc)
                + timedelta(seconds=offset)
            ).date()
            by_date[bar_date] = PricePoint(date=bar_date, close=close)

        return [by_date[d] for d in sorted(by_date)]

    def currency(self, raw: dict[str, Any]) -> str | None:
        currency = raw.get("meta", {}).get("currency")
        return str(currency) if currency else None

    def quote(self, raw: dict[str, Any]) -> Quote:
        """Market price from ``meta``; previous close from the daily bars.

        The second-to-last bar of the chart is the prior session.
        ``chartPreviousClose`` is the close before the whole requested
        window, so it is only used when neither the bars nor the
        ``regularMarketPreviousClose`` / ``previousClose`` fields help.
        """
        meta = raw.get("meta", {})
        price = _finite(meta.get("regularMarketPrice"))
        if price is None:
            raise NoData("Yahoo chart meta has no market price", context={"provider": PROVIDER})
        points = self.points(raw)
        prev_close = (
            (points[-2].close if len(points) >= 2 else None)
            or _finite(meta.get("regularMarketPreviousClose"))
            or _finite(meta.get("previousClose"))
            or _finite(meta.get("chartPreviousClose"))
        )
        return Quote(
            price=price,
            prev_close=prev_close if prev_close is not None else price,
            currency=self.currency(raw),
            source=PROVIDER,
        )


def _finite(value: Any) -> float | None:
    if value is None:
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) and f > 0 else None


def _chart_result(data: Any) -> dict[str, Any]:
    """Unwrap ``chart.result[0]`` or raise the matching provider error."""
    if not isinstance(data, dict) or "chart" not in data:
        raise ProviderMalformed(
            "Yahoo chart payload has no 'chart' key",
            context={"provider": PROVIDER, "reason": "shape"},
        )
    chart = data["chart"] or {}
    if chart.get("error"):
        err = chart["error"]
        raise NoData(
            f"Yahoo chart error: {err.get('code')} — {err.get('description')}",
            context={"provider": PROVIDER},
        )
    results = chart.get("result")
    if not results:
        raise NoData("Yahoo chart returned no results", context={"provider": PROVIDER})
    return results[0]


def _spark_result(data: Any) -> dict[str, Any]:
    """Unwrap ``spark.result[0].response[0]`` into a chart-shaped object."""
    if not isinstance(data, dict) or "spark" not in data:
        raise ProviderMalformed(
            "Yahoo spark payload has no 'spark' key",
            context={"provider": PROVIDER, "reason": "shape"},
        )
    results = (data["spark"] or {}).get("result") or []
    if not results or not results[0].get("response"):
        raise NoData("Yahoo spark returned no results", context={"provider": PROVIDER})
    return results[0]["response"][0]


class YahooChartAdapter:
    """Fetches history and quotes from Yahoo Finance's chart API.

    Parameters
    ----------
    client : httpx.AsyncClient
        Shared HTTP client.
    hosts : tuple[str, ...]
        Query hosts raced on every call.
    timeout : float
        Per-attempt deadline in seconds.
    rate_limit : int
        Attempts per second across all hosts.
    user_agent : str
        Sent as ``User-Agent``.
    parser : YahooChartParser | None
        Custom parser instance. Uses default if None.
    """

    name = PROVIDER

    def __init__(
        self,
        client: httpx.AsyncClient,
        hosts: tuple[str, ...],
        timeout: float = 1.5,
        rate_limit: int = 20,
        user_agent: str = "Mozilla/5.0",
        parser: YahooChartParser | None = None,
    ) -> None:
        self._hosts = hosts
        self._parser = parser or YahooChartParser()
        self._racer = HostRacer(
            client,
            PROVIDER,
            timeout=timeout,
            rate_limit=rate_limit,
            headers={
                "User-Agent": user_agent,
                "Accept": "application/json,*/*",
                "Referer": "https://finance.yahoo.com/",
            },
        )

    async def fetch_history(self, request: HistoryRequest) -> HistoryResult:
        """Chart first, spark second; RateLimited only if neither had data."""
        if not request.code:
            return Empty(PROVIDER, reason="no_code")

        params = self._history_params(request)
        chart_urls = [f"{h}{_CHART_PATH}/{request.code}" for h in self._hosts]
        chart = await self._racer.race(chart_urls, self._parse_chart_history, params)
        if isinstance(chart, Ok):
            return chart

        logger.debug("Yahoo chart empty for %s, trying spark", request.code)
        spark_urls = [f"{h}{_SPARK_PATH}" for h in self._hosts]
        spark = await self._racer.race(
            spark_urls,
            self._parse_spark_history,
            {"symbols": request.code, **params},
        )
        if isinstance(spark, Ok):
            return spark
        if isinstance(chart, RateLimited) or isinstance(spark, RateLimited):
            return RateLimited(PROVIDER)
        return chart

    async def fetch_quote(self, code: str) -> QuoteResult:
        if not code:
            return Empty(PROVIDER, reason="no_code")

        urls = [f"{h}{_CHART_PATH}/{code}" for h in self._hosts]
        return await self._racer.race(
            urls, self._parse_chart_quote, {"range": "5d", "interval": "1d"}
        )

    @staticmethod
    def _history_params(request: HistoryRequest) -> dict[str, str]:
        params = {"interval": request.interval.value}
        if request.start is not None:
            end = request.end or date.today()
            params["period1"] = str(_epoch(request.start))
            # period2 is exclusive
            params["period2"] = str(_epoch(end + timedelta(days=1)))
        else:
            params["range"] = request.range.value
        return params

    def _parse_chart_history(self, response: httpx.Response) -> NativeSeries:
        read_text(response, PROVIDER, RATE_LIMIT_MARKERS)
        raw = _chart_result(response.json())
        return self._series(raw)

    def _parse_spark_history(self, response: httpx.Response) -> NativeSeries:
        read_text(response, PROVIDER, RATE_LIMIT_MARKERS)
        raw = _spark_result(response.json())
        return self._series(raw)

    def _parse_chart_quote(self, response: httpx.Response) -> Quote:
        read_text(response, PROVIDER, RATE_LIMIT_MARKERS)
        return self._parser.quote(_chart_result(response.json()))

    def _series(self, raw: dict[str, Any]) -> NativeSeries:
        points = self._parser.points(raw)
        if not points:
            raise NoData("Yahoo series has no valid closes", context={"provider": PROVIDER})
        return NativeSeries(
            points=points,
            currency=self._parser.currency(raw),
            source=PROVIDER,
        )


def _epoch(d: date) -> int:
    return int(datetime(d.year, d.month, d.day, tzinfo=timezone.utc).timestamp())
