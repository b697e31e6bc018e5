"""Tests for quote_resolver.providers.stooq."""

from __future__ import annotations

from datetime import date

import httpx
import pytest
import respx

from quote_resolver.core.exceptions import NoData, ProviderMalformed
from quote_resolver.core.models import HistoryRequest, PriceInterval
from quote_resolver.providers.base import Empty, HistoryAdapter, Ok, QuoteAdapter, RateLimited
from quote_resolver.providers.stooq import (
    StooqAdapter,
    parse_history_csv,
    parse_number,
    parse_quote_csv,
)

HISTORY_CSV = (
    "Date,Open,High,Low,Close,Volume\n"
    "2024-01-02,49.0,50.5,48.9,50.10,1000\n"
    "2024-01-03,50.1,51.0,49.5,50.80,1200\n"
)

HISTORY_CSV_PL = (
    "Data;Otwarcie;Najwyzszy;Najnizszy;Zamkniecie;Wolumen\n"
    "2024-01-02;49,0;50,5;48,9;50,10;1000\n"
    "2024-01-03;50,1;51,0;49,5;50,80;1200\n"
)

QUOTE_CSV = (
    "Symbol,Date,Time,Open,High,Low,Close,Volume\n"
    "PKO,2024-01-03,17:00:00,50.1,51,49.5,50.8,123456\n"
)


@pytest.fixture
async def adapter():
    async with httpx.AsyncClient() as client:
        yield StooqAdapter(client, ("https://stooq.com",))


class TestParseNumber:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("50.10", 50.1),
            ("50,10", 50.1),
            ("1,234.50", 1234.5),
            (" 12 ", 12.0),
            ("N/D", None),
            ("", None),
            (None, None),
            ("abc", None),
            ("inf", None),
            ("nan", None),
        ],
    )
    def test_cases(self, raw, expected):
        assert parse_number(raw) == expected


class TestParseHistoryCsv:
    def test_comma_dialect(self):
        points = parse_history_csv(HISTORY_CSV)
        assert [(p.date, p.close) for p in points] == [
            (date(2024, 1, 2), 50.1),
            (date(2024, 1, 3), 50.8),
        ]

    def test_semicolon_decimal_comma_dialect(self):
        points = parse_history_csv(HISTORY_CSV_PL)
        assert [p.close for p in points] == [50.1, 50.8]

    def test_drops_invalid_closes(self):
        text = HISTORY_CSV + "2024-01-04,1,1,1,0,1\n2024-01-05,1,1,1,-3,1\n2024-01-08,1,1,1,N/D,1\n"
        assert len(parse_history_csv(text)) == 2

    def test_drops_bad_dates_and_short_rows(self):
        text = HISTORY_CSV + "not-a-date,1,1,1,5,1\n2024-01-09,1\n"
        assert len(parse_history_csv(text)) == 2

    def test_sorted_and_deduplicated(self):
        text = (
            "Date,Open,High,Low,Close,Volume\n"
            "2024-01-03,1,1,1,3,1\n"
            "2024-01-02,1,1,1,2,1\n"
            "2024-01-03,1,1,1,4,1\n"
        )
        points = parse_history_csv(text)
        assert [(p.date.day, p.close) for p in points] == [(2, 2.0), (3, 4.0)]

    def test_unexpected_header_is_malformed(self):
        with pytest.raises(ProviderMalformed):
            parse_history_csv("Brak danych\n")

    def test_empty_text(self):
        assert parse_history_csv("") == []


class TestParseQuoteCsv:
    def test_close_column(self):
        q = parse_quote_csv(QUOTE_CSV)
        assert q.price == 50.8
        assert q.prev_close == 50.8
        assert q.currency is None
        assert q.source == "stooq"

    def test_nd_row_is_no_data(self):
        with pytest.raises(NoData):
            parse_quote_csv(
                "Symbol,Date,Time,Open,High,Low,Close,Volume\nXYZ,N/D,N/D,N/D,N/D,N/D,N/D,N/D\n"
            )

    def test_header_only_is_no_data(self):
        with pytest.raises(NoData):
            parse_quote_csv("Symbol,Date,Time,Open,High,Low,Close,Volume\n")


class TestStooqAdapter:
    def test_protocol_conformance(self, adapter):
        assert isinstance(adapter, HistoryAdapter)
        assert isinstance(adapter, QuoteAdapter)

    @respx.mock
    async def test_fetch_history(self, adapter):
        route = respx.get(host="stooq.com", path="/q/d/l/").mock(
            return_value=httpx.Response(200, text=HISTORY_CSV)
        )

        result = await adapter.fetch_history(
            HistoryRequest(code="pko", interval=PriceInterval.WEEKLY)
        )

        assert isinstance(result, Ok)
        assert result.value.currency is None
        assert result.value.source == "stooq"
        assert len(result.value.points) == 2
        params = route.calls.last.request.url.params
        assert params["s"] == "pko"
        assert params["i"] == "w"
        assert "d1" not in params

    @respx.mock
    async def test_fetch_history_date_window(self, adapter):
        route = respx.get(host="stooq.com", path="/q/d/l/").mock(
            return_value=httpx.Response(200, text=HISTORY_CSV)
        )

        await adapter.fetch_history(
            HistoryRequest(code="usdpln", start=date(2024, 1, 1), end=date(2024, 1, 31))
        )

        params = route.calls.last.request.url.params
        assert params["d1"] == "20240101"
        assert params["d2"] == "20240131"

    @respx.mock
    async def test_daily_limit_notice_is_rate_limited(self, adapter):
        respx.get(host="stooq.com", path="/q/d/l/").mock(
            return_value=httpx.Response(200, text="Przekroczony dzienny limit wywolan")
        )

        result = await adapter.fetch_history(HistoryRequest(code="pko"))

        assert result == RateLimited("stooq")

    @respx.mock
    async def test_no_data_body_is_empty(self, adapter):
        respx.get(host="stooq.com", path="/q/d/l/").mock(
            return_value=httpx.Response(200, text="Date,Open,High,Low,Close,Volume\n")
        )

        result = await adapter.fetch_history(HistoryRequest(code="nosuch"))

        assert result == Empty("stooq", reason="no_data")

    @respx.mock
    async def test_html_page_is_empty(self, adapter):
        respx.get(host="stooq.com", path="/q/d/l/").mock(
            return_value=httpx.Response(200, text="<!DOCTYPE html><html>captcha</html>")
        )

        result = await adapter.fetch_history(HistoryRequest(code="pko"))

        assert result == Empty("stooq", reason="malformed")

    @respx.mock
    async def test_fetch_quote(self, adapter):
        route = respx.get(host="stooq.com", path="/q/l/").mock(
            return_value=httpx.Response(200, text=QUOTE_CSV)
        )

        result = await adapter.fetch_quote("pko")

        assert isinstance(result, Ok)
        assert result.value.price == 50.8
        params = route.calls.last.request.url.params
        assert params["s"] == "pko"
        assert params["f"] == "sd2t2ohlcv"

    async def test_empty_code_short_circuits(self, adapter):
        assert await adapter.fetch_quote("") == Empty("stooq", reason="no_code")
