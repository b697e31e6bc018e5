"""Shared pytest fixtures for quote-resolver."""

from __future__ import annotations

import asyncio
from datetime import date, timedelta

import httpx
import pytest

from quote_resolver.core.config import CacheConfig, ResolverConfig
from quote_resolver.core.models import FxRate, NativeSeries, PricePoint, Quote
from quote_resolver.engine.cache import ResolutionCache
from quote_resolver.engine.routes import ProviderRole
from quote_resolver.engine.service import QuoteEngine
from quote_resolver.fx.resolver import FxResolver
from quote_resolver.providers.base import Empty, Ok

TODAY = date(2024, 6, 28)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAdapter:
    """History + quote adapter with canned results per code and call counters.

    A result may be an exception instance, which is raised instead.
    """

    def __init__(
        self,
        name: str,
        history: dict | None = None,
        quotes: dict | None = None,
        default=None,
        delay: float = 0.0,
    ) -> None:
        self.name = name
        self.history = dict(history or {})
        self.quotes = dict(quotes or {})
        self.default = default if default is not None else Empty(name)
        self.delay = delay
        self.history_calls: list[str] = []
        self.quote_calls: list[str] = []
        self.requests: list = []

    async def fetch_history(self, request):
        self.history_calls.append(request.code)
        self.requests.append(request)
        return await self._answer(self.history.get(request.code, self.default))

    async def fetch_quote(self, code):
        self.quote_calls.append(code)
        return await self._answer(self.quotes.get(code, self.default))

    async def _answer(self, result):
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(result, Exception):
            raise result
        return result


class FakeFxSource:
    """FX source serving fixed rates per currency, or one constant rate daily."""

    def __init__(
        self,
        name: str = "fake-fx",
        rates: dict[str, dict[date, float]] | None = None,
        constant: float | None = None,
    ) -> None:
        self.name = name
        self.rates = rates or {}
        self.constant = constant
        self.calls: list[tuple[str, date, date]] = []

    async def fetch_series(self, base, start, end):
        self.calls.append((base, start, end))
        if self.constant is not None:
            days = (end - start).days + 1
            return Ok(
                [
                    FxRate(
                        base=base,
                        date=start + timedelta(days=i),
                        rate=self.constant,
                        source=self.name,
                    )
                    for i in range(days)
                ]
            )
        rates = [
            FxRate(base=base, date=d, rate=r, source=self.name)
            for d, r in sorted(self.rates.get(base, {}).items())
            if start <= d <= end
        ]
        return Ok(rates) if rates else Empty(self.name)


def series(points: list[tuple[date, float]], currency: str | None = None, source="fake") -> Ok:
    return Ok(
        NativeSeries(
            points=[PricePoint(date=d, close=c) for d, c in points],
            currency=currency,
            source=source,
        )
    )


def quote(price: float, prev_close: float | None = None, currency: str | None = None) -> Ok:
    return Ok(Quote(price=price, prev_close=prev_close, currency=currency))


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> ResolutionCache:
    return ResolutionCache(CacheConfig(), clock=clock)


@pytest.fixture
def make_fx(cache: ResolutionCache):
    def _make(*sources, backfill_days: int = 7) -> FxResolver:
        return FxResolver(list(sources), cache, backfill_days=backfill_days, today=lambda: TODAY)

    return _make


@pytest.fixture
async def make_engine(clock: FakeClock):
    """Factory for a QuoteEngine wired to fake adapters and FX sources."""
    engines: list[QuoteEngine] = []
    client = httpx.AsyncClient()

    def _make(
        domestic: FakeAdapter | None = None,
        global_: FakeAdapter | None = None,
        secondary: FakeAdapter | None = None,
        fx_sources=(),
        config: ResolverConfig | None = None,
    ) -> QuoteEngine:
        config = config or ResolverConfig()
        slots = {
            ProviderRole.DOMESTIC: domestic,
            ProviderRole.GLOBAL: global_,
            ProviderRole.SECONDARY: secondary,
        }
        adapters = {role: a for role, a in slots.items() if a is not None}
        engine = QuoteEngine(
            config,
            client=client,
            cache=ResolutionCache(config.cache, clock=clock),
            history_adapters={
                r: a for r, a in adapters.items() if r != ProviderRole.SECONDARY
            },
            quote_adapters=adapters,
            fx_sources=list(fx_sources),
            today=lambda: TODAY,
        )
        engines.append(engine)
        return engine

    yield _make

    for engine in engines:
        await engine.aclose()
    await client.aclose()
