"""QuoteEngine — the public facade over resolution, FX, cache and batching.

None of the public coroutines raise. Total failure surfaces as
``QuoteSettled(price_pln=None)``, ``[]`` or a map of per-id empties, the
same shape as "this instrument genuinely has no data".
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import date
from typing import Any

import httpx

from quote_resolver.core.config import ResolverConfig
from quote_resolver.core.models import (
    HistoryRange,
    PriceInterval,
    PricePointSettled,
    QuoteSettled,
    TtlClass,
)
from quote_resolver.engine.batch import BatchOrchestrator, coerce_items, portfolio_value_series
from quote_resolver.engine.cache import ResolutionCache
from quote_resolver.engine.history import HistoryAssembler
from quote_resolver.engine.quote import QuoteAssembler
from quote_resolver.engine.ranges import parse_interval, parse_range, range_start
from quote_resolver.engine.routes import ProviderRole
from quote_resolver.fx.resolver import FxResolver
from quote_resolver.fx.sources import (
    CentralBankSource,
    FxSource,
    GenericFxApiSource,
    PairFeedSource,
    yahoo_pair_code,
)
from quote_resolver.providers.base import HistoryAdapter, QuoteAdapter
from quote_resolver.providers.finnhub import FinnhubAdapter
from quote_resolver.providers.stooq import StooqAdapter
from quote_resolver.providers.yahoo import YahooChartAdapter
from quote_resolver.symbols.classifier import classify, fx_base_currency

logger = logging.getLogger(__name__)

# Windows tried, shortest first, when looking up a close on a past date
_CLOSE_ON_RANGES = (
    HistoryRange.SIX_MONTHS,
    HistoryRange.ONE_YEAR,
    HistoryRange.FIVE_YEARS,
    HistoryRange.MAX,
)


class QuoteEngine:
    """Resolves quotes and histories for arbitrary tickers, settled in PLN.

    Use as an async context manager so the HTTP client and background
    refreshes are closed on exit::

        async with QuoteEngine(load_config()) as engine:
            quote = await engine.get_quote("PKO.WA")

    Parameters
    ----------
    config : ResolverConfig | None
        Defaults if None.
    client : httpx.AsyncClient | None
        Shared client. Created (and later closed) by the engine if None.
    cache : ResolutionCache | None
        Shared cache. Created from ``config.cache`` if None.
    history_adapters, quote_adapters : Mapping[ProviderRole, ...] | None
        Override the built-in provider adapters per route slot.
    fx_sources : Sequence[FxSource] | None
        Override the built-in FX cascade.
    today : Callable[[], date]
        Date provider for range anchoring. Injectable for tests.
    """

    def __init__(
        self,
        config: ResolverConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        cache: ResolutionCache | None = None,
        history_adapters: Mapping[ProviderRole, HistoryAdapter] | None = None,
        quote_adapters: Mapping[ProviderRole, QuoteAdapter] | None = None,
        fx_sources: Sequence[FxSource] | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.config = config or ResolverConfig()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            follow_redirects=True,
            timeout=self.config.providers.request_timeout,
        )
        self.cache = cache or ResolutionCache(self.config.cache)
        self._today = today

        p = self.config.providers
        stooq = StooqAdapter(
            self._client, p.stooq_hosts, p.request_timeout, p.rate_limit, p.user_agent
        )
        yahoo = YahooChartAdapter(
            self._client, p.yahoo_hosts, p.request_timeout, p.rate_limit, p.user_agent
        )
        finnhub = FinnhubAdapter(
            self._client, p.finnhub_base_url, p.finnhub_api_key, p.request_timeout, p.rate_limit
        )

        if history_adapters is None:
            history_adapters = {ProviderRole.DOMESTIC: stooq, ProviderRole.GLOBAL: yahoo}
        if quote_adapters is None:
            quote_adapters = {
                ProviderRole.DOMESTIC: stooq,
                ProviderRole.GLOBAL: yahoo,
                ProviderRole.SECONDARY: finnhub,
            }
        if fx_sources is None:
            fx_sources = [
                PairFeedSource(stooq),
                CentralBankSource(self._client, p.nbp_base_url, p.request_timeout, p.rate_limit),
                GenericFxApiSource(
                    self._client, p.frankfurter_base_url, p.request_timeout, p.rate_limit
                ),
                PairFeedSource(yahoo, code_for=yahoo_pair_code),
            ]

        self.fx = FxResolver(
            fx_sources, self.cache, backfill_days=self.config.fx.backfill_days, today=today
        )
        self._history = HistoryAssembler(history_adapters, self.fx, today=today)
        self._quotes = QuoteAssembler(quote_adapters, self.fx)
        self._batch = BatchOrchestrator(self.config.batch.concurrency)

    async def __aenter__(self) -> QuoteEngine:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.cache.aclose()
        if self._owns_client:
            await self._client.aclose()

    # --- Single symbol ---

    async def get_quote(self, symbol: str) -> QuoteSettled:
        sym = classify(symbol)
        if not sym.canonical:
            return QuoteSettled.empty()
        try:
            return await self.cache.resolve(
                f"quote:{sym.canonical}",
                TtlClass.QUOTE,
                lambda: self._quotes.assemble(sym),
                empty=QuoteSettled.empty(),
            )
        except Exception:
            logger.exception("get_quote failed for %s", symbol)
            return QuoteSettled.empty()

    async def get_history(
        self,
        symbol: str,
        range: str | HistoryRange = HistoryRange.ONE_YEAR,
        interval: str | PriceInterval = PriceInterval.DAILY,
    ) -> list[PricePointSettled]:
        sym = classify(symbol)
        if not sym.canonical:
            return []
        rng = parse_range(range)
        iv = parse_interval(interval)
        try:
            return await self.cache.resolve(
                f"history:{sym.canonical}:{rng}:{iv}",
                TtlClass.SHORT,
                lambda: self._history.assemble(sym, rng, iv),
                empty=[],
            )
        except Exception:
            logger.exception("get_history failed for %s", symbol)
            return []

    async def get_close_on(self, symbol: str, target: date) -> PricePointSettled | None:
        """Last settled daily close on or before ``target``.

        Windows widen until one holds such a close, so a target just inside
        the 6-month edge still finds the session before it.
        """
        today = self._today()
        for rng in _CLOSE_ON_RANGES:
            start = range_start(rng, today)
            if start is not None and start > target:
                continue
            history = await self.get_history(symbol, rng, PriceInterval.DAILY)
            eligible = [p for p in history if p.date <= target]
            if eligible:
                return eligible[-1]
        return None

    async def get_fx_rate(self, code: str, as_of: date | None = None) -> float | None:
        try:
            return await self.fx.resolve(fx_base_currency(code), as_of)
        except Exception:
            logger.exception("get_fx_rate failed for %s", code)
            return None

    # --- Batches ---

    async def get_history_batch(
        self,
        items: Iterable[Any],
        range: str | HistoryRange = HistoryRange.ONE_YEAR,
        interval: str | PriceInterval = PriceInterval.DAILY,
    ) -> dict[str, list[PricePointSettled]]:
        try:
            batch = coerce_items(items)
            return await self._batch.run(
                batch,
                lambda item: self.get_history(item.symbol, range, interval),
                fallback=list,
            )
        except Exception:
            logger.exception("get_history_batch failed")
            return {}

    async def get_quote_batch(self, items: Iterable[Any]) -> dict[str, QuoteSettled]:
        try:
            batch = coerce_items(items)
            return await self._batch.run(
                batch,
                lambda item: self.get_quote(item.symbol),
                fallback=QuoteSettled.empty,
            )
        except Exception:
            logger.exception("get_quote_batch failed")
            return {}

    async def get_portfolio_value(
        self,
        items: Iterable[Any],
        range: str | HistoryRange = HistoryRange.ONE_YEAR,
        interval: str | PriceInterval = PriceInterval.DAILY,
    ) -> list[PricePointSettled]:
        """Daily market value in PLN of ``{symbol, shares}`` holdings."""
        try:
            batch = coerce_items(items)
            histories = await self.get_history_batch(batch, range, interval)
            return portfolio_value_series(histories, batch)
        except Exception:
            logger.exception("get_portfolio_value failed")
            return []
