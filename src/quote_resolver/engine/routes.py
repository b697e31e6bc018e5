"""Resolution routes as data.

Each market segment maps to an ordered tuple of ``Route``s. Assemblers walk
the tuple top to bottom; the first route that yields a non-empty settled
result wins. Adding a provider means adding a row here.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from quote_resolver.core.models import SETTLEMENT_CURRENCY, MarketSegment, Symbol
from quote_resolver.symbols.classifier import domestic_codes, global_codes

_DEFAULT_FOREIGN_CURRENCY = "USD"


class ProviderRole(StrEnum):
    """Which adapter slot a route draws from."""

    DOMESTIC = "domestic"
    GLOBAL = "global"
    SECONDARY = "secondary"


CurrencyRule = Callable[[Symbol, str | None], str | None]


def reported(symbol: Symbol, reported_currency: str | None) -> str | None:
    return reported_currency


def settlement(symbol: Symbol, reported_currency: str | None) -> str | None:
    return SETTLEMENT_CURRENCY


def reported_or_settlement(symbol: Symbol, reported_currency: str | None) -> str | None:
    return reported_currency or SETTLEMENT_CURRENCY


def guessed(symbol: Symbol, reported_currency: str | None) -> str | None:
    return symbol.native_currency_guess or _DEFAULT_FOREIGN_CURRENCY


def reported_or_guessed(symbol: Symbol, reported_currency: str | None) -> str | None:
    return reported_currency or guessed(symbol, None)


@dataclass(frozen=True)
class Route:
    """One step of a fallback chain.

    Attributes
    ----------
    provider : ProviderRole
        Adapter slot to call.
    codes : Callable[[Symbol], list[str]]
        Candidate provider codes, tried in order.
    currency : CurrencyRule
        Native currency of the payload, given what the provider reported.
    settle : bool
        Convert to PLN. Indices are unit-less and stay unconverted.
    """

    provider: ProviderRole
    codes: Callable[[Symbol], list[str]]
    currency: CurrencyRule
    settle: bool = True


HISTORY_ROUTES: dict[MarketSegment, tuple[Route, ...]] = {
    MarketSegment.INDEX: (
        Route(ProviderRole.GLOBAL, global_codes, reported, settle=False),
        Route(ProviderRole.DOMESTIC, domestic_codes, reported, settle=False),
    ),
    MarketSegment.DOMESTIC: (
        Route(ProviderRole.DOMESTIC, domestic_codes, settlement),
        Route(ProviderRole.GLOBAL, global_codes, reported_or_settlement),
    ),
    MarketSegment.FOREIGN: (
        Route(ProviderRole.DOMESTIC, domestic_codes, guessed),
        Route(ProviderRole.GLOBAL, global_codes, reported_or_guessed),
    ),
}

QUOTE_ROUTES: dict[MarketSegment, tuple[Route, ...]] = {
    MarketSegment.INDEX: (
        *HISTORY_ROUTES[MarketSegment.INDEX],
        Route(ProviderRole.SECONDARY, global_codes, reported, settle=False),
    ),
    MarketSegment.DOMESTIC: (
        *HISTORY_ROUTES[MarketSegment.DOMESTIC],
        Route(ProviderRole.SECONDARY, global_codes, settlement),
    ),
    MarketSegment.FOREIGN: (
        *HISTORY_ROUTES[MarketSegment.FOREIGN],
        Route(ProviderRole.SECONDARY, global_codes, guessed),
    ),
}
