"""FX resolution: ordered source cascade, backfill window, EOD caching."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import date, timedelta
from typing import TYPE_CHECKING

from quote_resolver.core.models import SETTLEMENT_CURRENCY, FxRate, TtlClass
from quote_resolver.fx.sources import FxSource
from quote_resolver.providers.base import Empty, Ok, RateLimited
from quote_resolver.symbols.classifier import fx_base_currency

if TYPE_CHECKING:
    from quote_resolver.engine.cache import ResolutionCache

logger = logging.getLogger(__name__)


def rate_as_of(
    rates: Sequence[FxRate], day: date, tolerance_days: int
) -> FxRate | None:
    """Latest rate dated in ``[day - tolerance_days, day]``."""
    best: FxRate | None = None
    for r in rates:
        if r.date > day or (day - r.date).days > tolerance_days:
            continue
        if best is None or r.date >= best.date:
            best = r
    return best


class FxResolver:
    """Converts a native currency to PLN.

    Sources are tried in order; the first non-empty series wins. A total
    miss yields ``None`` / ``[]``, never parity.

    Parameters
    ----------
    sources : Sequence[FxSource]
        The cascade, highest priority first.
    cache : ResolutionCache
        Shared cache; FX values use the EOD TTL class.
    backfill_days : int
        How far back a rate may be carried to a date without its own
        publication (weekends, holidays).
    today : Callable[[], date]
        Date provider. Injectable for tests.
    """

    def __init__(
        self,
        sources: Sequence[FxSource],
        cache: ResolutionCache,
        backfill_days: int = 7,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._sources = list(sources)
        self._cache = cache
        self.backfill_days = backfill_days
        self._today = today

    async def series(self, code: str | None, start: date, end: date) -> list[FxRate]:
        """Dated ``<code>/PLN`` rates within ``[start, end]``."""
        base = fx_base_currency(code)
        if not base or base == SETTLEMENT_CURRENCY or end < start:
            return []

        key = f"fx:series:{base}:{start.isoformat()}:{end.isoformat()}"
        return await self._cache.resolve(
            key,
            TtlClass.EOD,
            lambda: self._cascade(base, start, end),
            empty=[],
        )

    async def rate_on(self, code: str | None, as_of: date | None = None) -> FxRate | None:
        """The rate in force on ``as_of`` (default today), within backfill."""
        base = fx_base_currency(code)
        day = as_of or self._today()
        if base == SETTLEMENT_CURRENCY:
            return FxRate(base=base, date=day, rate=1.0, source="identity")
        if not base:
            return None

        rates = await self.series(base, day - timedelta(days=self.backfill_days), day)
        return rate_as_of(rates, day, self.backfill_days)

    async def resolve(self, code: str | None, as_of: date | None = None) -> float | None:
        """``rate_on`` as a bare float."""
        rate = await self.rate_on(code, as_of)
        return rate.rate if rate is not None else None

    async def _cascade(self, base: str, start: date, end: date) -> list[FxRate]:
        for source in self._sources:
            result = await source.fetch_series(base, start, end)
            match result:
                case Ok(value=rates) if rates:
                    logger.debug(
                        "FX %s/PLN %s..%s from %s (%d rates)",
                        base, start, end, source.name, len(rates),
                    )
                    return rates
                case RateLimited():
                    logger.warning("FX source %s rate limited for %s", source.name, base)
                case Empty(reason=reason):
                    logger.debug("FX source %s empty for %s: %s", source.name, base, reason)
                case Ok():
                    logger.debug("FX source %s returned no rates for %s", source.name, base)

        logger.warning("FX unresolved for %s/PLN %s..%s", base, start, end)
        return []
