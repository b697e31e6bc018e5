"""Quote assembly: walk the route table, normalise, settle."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from quote_resolver.core.exceptions import FxUnresolved
from quote_resolver.core.models import (
    SETTLEMENT_CURRENCY,
    Quote,
    QuoteSettled,
    Symbol,
)
from quote_resolver.engine.routes import QUOTE_ROUTES, ProviderRole, Route
from quote_resolver.fx.resolver import FxResolver
from quote_resolver.providers.base import Empty, Ok, QuoteAdapter, RateLimited
from quote_resolver.symbols.classifier import fx_base_currency, pence_factor

logger = logging.getLogger(__name__)


class QuoteAssembler:
    """Resolves a symbol's current price in PLN with strict route priority."""

    def __init__(
        self,
        adapters: Mapping[ProviderRole, QuoteAdapter],
        fx: FxResolver,
        routes: Mapping = QUOTE_ROUTES,
    ) -> None:
        self._adapters = adapters
        self._fx = fx
        self._routes = routes

    async def assemble(self, symbol: Symbol) -> QuoteSettled:
        for route in self._routes.get(symbol.segment, ()):
            adapter = self._adapters.get(route.provider)
            if adapter is None:
                continue

            for code in route.codes(symbol):
                result = await adapter.fetch_quote(code)
                match result:
                    case Ok(value=quote):
                        try:
                            settled = await self._settle(symbol, route, quote, adapter.name)
                        except FxUnresolved as e:
                            logger.debug("%s via %s: %s", symbol.canonical, adapter.name, e)
                            continue
                        if not settled.is_empty:
                            return settled
                    case RateLimited():
                        logger.warning(
                            "%s rate limited on %s, advancing route", adapter.name, symbol.canonical
                        )
                        break
                    case Empty(reason=reason):
                        logger.debug("%s empty for %s: %s", adapter.name, code, reason)

        logger.info("No quote for %s", symbol.canonical)
        return QuoteSettled.empty()

    async def _settle(
        self, symbol: Symbol, route: Route, quote: Quote, source: str
    ) -> QuoteSettled:
        if quote.price is None:
            return QuoteSettled.empty()

        currency = route.currency(symbol, quote.currency)
        factor = pence_factor(currency) if route.settle else 1.0
        base = fx_base_currency(currency)

        if not route.settle:
            rate = None
        elif not base or base == SETTLEMENT_CURRENCY:
            rate = 1.0
        else:
            rate = await self._fx.resolve(base)
            if rate is None:
                raise FxUnresolved(
                    f"No {base}/PLN rate for quote",
                    context={"currency": base, "date": None},
                )

        multiplier = factor * (rate if rate is not None else 1.0)
        return QuoteSettled(
            price_pln=quote.price * multiplier,
            prev_close_pln=(
                quote.prev_close * multiplier if quote.prev_close is not None else None
            ),
            currency=currency,
            source=source,
            fx_rate=rate,
        )
