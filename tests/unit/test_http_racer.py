"""Tests for quote_resolver.providers.http (read_text, HostRacer)."""

from __future__ import annotations

import asyncio

import httpx
import pytest
import respx

from quote_resolver.core.exceptions import (
    NoData,
    ProviderMalformed,
    ProviderRateLimited,
    ProviderUnavailable,
)
from quote_resolver.providers.base import Empty, Ok, RateLimited
from quote_resolver.providers.http import HostRacer, read_text

MARKERS = (("limit", "wywołań"),)


class StubClient:
    """Minimal async client: per-URL delay, records cancellations."""

    def __init__(self, delays: dict[str, float], body: str = "payload") -> None:
        self.delays = delays
        self.body = body
        self.started: list[str] = []
        self.cancelled: list[str] = []

    async def get(self, url, params=None, headers=None):
        self.started.append(url)
        try:
            await asyncio.sleep(self.delays.get(url, 0))
        except asyncio.CancelledError:
            self.cancelled.append(url)
            raise
        return httpx.Response(200, text=self.body, request=httpx.Request("GET", url))


def _text(response: httpx.Response) -> str:
    return read_text(response, "test", MARKERS)


class TestReadText:
    def test_returns_body(self):
        assert read_text(httpx.Response(200, text=" ok \n"), "test") == "ok"

    def test_429_is_rate_limited(self):
        with pytest.raises(ProviderRateLimited):
            read_text(httpx.Response(429, text="slow down"), "test")

    def test_marker_in_200_body_is_rate_limited(self):
        body = "Przekroczony dzienny limit wywołań"
        with pytest.raises(ProviderRateLimited):
            read_text(httpx.Response(200, text=body), "test", MARKERS)

    def test_partial_marker_is_not_rate_limited(self):
        assert read_text(httpx.Response(200, text="limit order"), "test", MARKERS) == "limit order"

    def test_non_200_is_unavailable(self):
        with pytest.raises(ProviderUnavailable) as exc_info:
            read_text(httpx.Response(503, text="down"), "test")
        assert exc_info.value.context["status_code"] == 503

    def test_empty_body_is_no_data(self):
        with pytest.raises(NoData):
            read_text(httpx.Response(200, text="   "), "test")

    @pytest.mark.parametrize("body", ["<!DOCTYPE html><html></html>", "<html><body>x"])
    def test_html_is_malformed(self, body):
        with pytest.raises(ProviderMalformed):
            read_text(httpx.Response(200, text=body), "test")


class TestHostRacer:
    async def test_no_hosts(self):
        racer = HostRacer(StubClient({}), "test")
        assert await racer.race([], _text) == Empty("test", reason="no_hosts")

    async def test_first_success_wins_and_losers_cancelled(self):
        client = StubClient({"https://slow": 5.0, "https://fast": 0.0})
        racer = HostRacer(client, "test", timeout=10)

        result = await racer.race(["https://slow", "https://fast"], _text)

        assert result == Ok("payload")
        assert client.cancelled == ["https://slow"]

    async def test_timeout_is_unavailable(self):
        client = StubClient({"https://slow": 5.0})
        racer = HostRacer(client, "test", timeout=0.05)

        result = await racer.race(["https://slow"], _text)

        assert result == Empty("test", reason="unavailable")

    async def test_parser_value_error_is_malformed(self):
        def parse(response):
            raise ValueError("bad json")

        racer = HostRacer(StubClient({}), "test")
        assert await racer.race(["https://a"], parse) == Empty("test", reason="malformed")

    @pytest.mark.respx(assert_all_called=False)
    async def test_healthy_host_wins_over_failing_one(self, respx_mock):
        respx_mock.get("https://a.example/q").mock(return_value=httpx.Response(500))
        respx_mock.get("https://b.example/q").mock(return_value=httpx.Response(200, text="data"))

        async with httpx.AsyncClient() as client:
            racer = HostRacer(client, "test")
            result = await racer.race(["https://a.example/q", "https://b.example/q"], _text)

        assert result == Ok("data")

    @respx.mock
    async def test_rate_limit_reported_when_nothing_succeeds(self):
        respx.get("https://a.example/q").mock(return_value=httpx.Response(429))
        respx.get("https://b.example/q").mock(return_value=httpx.Response(500))

        async with httpx.AsyncClient() as client:
            racer = HostRacer(client, "test")
            result = await racer.race(["https://a.example/q", "https://b.example/q"], _text)

        assert result == RateLimited("test")

    @respx.mock
    async def test_html_body_is_empty_malformed(self):
        respx.get("https://a.example/q").mock(
            return_value=httpx.Response(200, text="<html>captcha</html>")
        )

        async with httpx.AsyncClient() as client:
            result = await HostRacer(client, "test").race(["https://a.example/q"], _text)

        assert result == Empty("test", reason="malformed")

    @respx.mock
    async def test_connect_error_is_unavailable(self):
        respx.get("https://a.example/q").mock(side_effect=httpx.ConnectError("refused"))

        async with httpx.AsyncClient() as client:
            result = await HostRacer(client, "test").race(["https://a.example/q"], _text)

        assert result == Empty("test", reason="unavailable")

    @respx.mock
    async def test_params_and_headers_sent(self):
        route = respx.get(host="a.example", path="/q").mock(
            return_value=httpx.Response(200, text="x")
        )

        async with httpx.AsyncClient() as client:
            racer = HostRacer(client, "test", headers={"User-Agent": "ua/1"})
            await racer.race(["https://a.example/q"], _text, {"s": "pko"})

        request = route.calls.last.request
        assert request.url.params["s"] == "pko"
        assert request.headers["User-Agent"] == "ua/1"

    async def test_invalid_url_is_unavailable(self):
        async with httpx.AsyncClient() as client:
            result = await HostRacer(client, "test").race(["https://a.example/AB\x01C"], _text)

        assert result == Empty("test", reason="unavailable")
