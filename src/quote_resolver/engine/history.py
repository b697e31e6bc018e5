"""History assembly: walk the route table, normalise, settle, filter."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import date, timedelta

from quote_resolver.core.exceptions import FxUnresolved
from quote_resolver.core.models import (
    SETTLEMENT_CURRENCY,
    HistoryRange,
    HistoryRequest,
    NativeSeries,
    PriceInterval,
    PricePointSettled,
    Symbol,
)
from quote_resolver.engine.ranges import (
    convert_series,
    filter_by_range,
    settle_native,
)
from quote_resolver.engine.routes import HISTORY_ROUTES, ProviderRole, Route
from quote_resolver.fx.resolver import FxResolver
from quote_resolver.providers.base import Empty, HistoryAdapter, Ok, RateLimited
from quote_resolver.symbols.classifier import fx_base_currency, pence_factor

logger = logging.getLogger(__name__)


class HistoryAssembler:
    """Resolves a symbol's settled close series with strict route priority.

    Parameters
    ----------
    adapters : Mapping[ProviderRole, HistoryAdapter]
        Adapter per route slot. Routes whose slot is missing are skipped.
    fx : FxResolver
        Converts non-PLN series.
    routes : Mapping[MarketSegment, tuple[Route, ...]]
        Fallback chains per segment.
    today : Callable[[], date]
        Range anchor. Injectable for tests.
    """

    def __init__(
        self,
        adapters: Mapping[ProviderRole, HistoryAdapter],
        fx: FxResolver,
        routes: Mapping = HISTORY_ROUTES,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._adapters = adapters
        self._fx = fx
        self._routes = routes
        self._today = today

    async def assemble(
        self,
        symbol: Symbol,
        range_: HistoryRange = HistoryRange.ONE_YEAR,
        interval: PriceInterval = PriceInterval.DAILY,
    ) -> list[PricePointSettled]:
        today = self._today()
        for route in self._routes.get(symbol.segment, ()):
            adapter = self._adapters.get(route.provider)
            if adapter is None:
                continue

            for code in route.codes(symbol):
                result = await adapter.fetch_history(
                    HistoryRequest(code=code, interval=interval, range=range_)
                )
                match result:
                    case Ok(value=series):
                        series = series.model_copy(
                            update={"points": filter_by_range(series.points, range_, today)}
                        )
                        if not series.points:
                            logger.debug("%s:%s has nothing in %s", adapter.name, code, range_)
                            continue
                        try:
                            settled = await self._settle(symbol, route, series)
                        except FxUnresolved as e:
                            logger.debug("%s via %s: %s", symbol.canonical, adapter.name, e)
                            continue
                        if settled:
                            logger.debug(
                                "History for %s from %s:%s (%d points)",
                                symbol.canonical, adapter.name, code, len(settled),
                            )
                            return settled
                    case RateLimited():
                        logger.warning(
                            "%s rate limited on %s, advancing route", adapter.name, symbol.canonical
                        )
                        break
                    case Empty(reason=reason):
                        logger.debug("%s empty for %s: %s", adapter.name, code, reason)

        logger.info("No history for %s", symbol.canonical)
        return []

    async def _settle(
        self, symbol: Symbol, route: Route, series: NativeSeries
    ) -> list[PricePointSettled]:
        """Apply pence scaling and FX; raise FxUnresolved if nothing converts."""
        if not route.settle:
            # Index levels stay in points
            return settle_native(series.points)

        currency = route.currency(symbol, series.currency)
        factor = pence_factor(currency)
        base = fx_base_currency(currency)
        if not base or base == SETTLEMENT_CURRENCY:
            return settle_native(series.points, factor)

        backfill = self._fx.backfill_days
        start = series.points[0].date - timedelta(days=backfill)
        end = series.points[-1].date
        rates = await self._fx.series(base, start, end)
        converted = convert_series(series.points, rates, backfill, factor)
        if not converted:
            raise FxUnresolved(
                f"No {base}/PLN rate for any point",
                context={"currency": base, "date": None},
            )
        return converted
