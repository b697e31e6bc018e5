"""Ticker classification: canonical form, market segment, currency guess.

Everything here is pure and total. Unknown input degrades to a foreign
symbol with no currency guess; nothing raises and nothing touches the
network.
"""

from __future__ import annotations

from dataclasses import dataclass

from quote_resolver.core.models import SETTLEMENT_CURRENCY, MarketSegment, Symbol

DOMESTIC_SUFFIX = ".WA"

# Known Yahoo <-> exchange ticker discrepancies
FIX_TICKER: dict[str, str] = {
    "PRA.WA": "GPP.WA",
}

# Exchange suffix -> currency the listing trades in
SUFFIX_CURRENCY: dict[str, str] = {
    ".WA": SETTLEMENT_CURRENCY,
    ".US": "USD",
    ".DE": "EUR",
    ".F": "EUR",
    ".BE": "EUR",
    ".VI": "EUR",
    ".AS": "EUR",
    ".PA": "EUR",
    ".MI": "EUR",
    ".BR": "EUR",
    ".L": "GBX",
    ".HK": "HKD",
    ".T": "JPY",
    ".TO": "CAD",
    ".V": "CAD",
    ".SW": "CHF",
    ".SS": "CNY",
    ".SZ": "CNY",
    ".KS": "KRW",
    ".KQ": "KRW",
    ".AX": "AUD",
}

# Quoted in hundredths of the base currency
PENCE_CURRENCIES: dict[str, str] = {
    "GBX": "GBP",
    "GBp": "GBP",
}


@dataclass(frozen=True)
class IndexAlias:
    """Where to look for a market index on each provider."""

    global_codes: tuple[str, ...]
    domestic_code: str


INDEX_ALIASES: dict[str, IndexAlias] = {
    "WIG20": IndexAlias(("WIG20.WA", "WIG20TR.WA"), "wig20"),
    "MWIG40": IndexAlias(("MWIG40.WA", "MWIG40TR.WA"), "mwig40"),
    "SWIG80": IndexAlias(("SWIG80.WA", "SWIG80TR.WA"), "swig80"),
    "WIG": IndexAlias(("WIG.WA",), "wig"),
    "SPX": IndexAlias(("^GSPC",), "^spx"),
    "^GSPC": IndexAlias(("^GSPC",), "^spx"),
    "^DJI": IndexAlias(("^DJI",), "^dji"),
    "NDQ": IndexAlias(("^IXIC",), "^ndq"),
    "^IXIC": IndexAlias(("^IXIC",), "^ndq"),
    "DAX": IndexAlias(("^GDAXI",), "^dax"),
    "^GDAXI": IndexAlias(("^GDAXI",), "^dax"),
}


def normalize(raw: str | None) -> str:
    """Trim, upper-case and apply known ticker fixes."""
    up = str(raw or "").strip().upper()
    return FIX_TICKER.get(up, up)


def _suffix(canonical: str) -> str | None:
    if "." not in canonical:
        return None
    return canonical[canonical.rindex(".") :]


def guess_currency(canonical: str) -> str | None:
    """Best-guess listing currency from the exchange suffix, or None."""
    suffix = _suffix(canonical)
    if suffix is None:
        return None
    return SUFFIX_CURRENCY.get(suffix)


def classify(raw: str | None) -> Symbol:
    """Map a raw ticker onto a canonical Symbol."""
    canonical = normalize(raw)

    if canonical.startswith("^") or canonical in INDEX_ALIASES:
        segment = MarketSegment.INDEX
        currency = None
    elif canonical.endswith(DOMESTIC_SUFFIX):
        segment = MarketSegment.DOMESTIC
        currency = SETTLEMENT_CURRENCY
    else:
        segment = MarketSegment.FOREIGN
        currency = guess_currency(canonical)

    return Symbol(
        raw=str(raw or ""),
        canonical=canonical,
        segment=segment,
        native_currency_guess=currency,
    )


# --- Provider codes ---


def domestic_codes(symbol: Symbol) -> list[str]:
    """Codes to try on the domestic CSV feed.

    ``PKO.WA`` -> ``pko``; ``AAPL`` -> ``aapl.us``; ``SAP.DE`` -> ``sap.de``.
    """
    s = symbol.canonical
    if not s:
        return []
    if symbol.segment == MarketSegment.INDEX:
        alias = INDEX_ALIASES.get(s)
        return [alias.domestic_code] if alias else [s.lower()]
    if symbol.segment == MarketSegment.DOMESTIC:
        return [s[: -len(DOMESTIC_SUFFIX)].lower()]
    if "." not in s:
        return [f"{s.lower()}.us"]
    return [s.lower()]


def global_codes(symbol: Symbol) -> list[str]:
    """Codes to try on the global chart feed (Yahoo notation)."""
    s = symbol.canonical
    if not s:
        return []
    if symbol.segment == MarketSegment.INDEX:
        alias = INDEX_ALIASES.get(s)
        return list(alias.global_codes) if alias else [s]
    if s.endswith(".US"):
        return [s[:-3]]
    return [s]


def fx_pair_code(currency: str) -> str:
    """Domestic-feed code of the ``<currency>/PLN`` pair, e.g. ``usdpln``."""
    return f"{fx_base_currency(currency).lower()}{SETTLEMENT_CURRENCY.lower()}"


# --- Currency helpers ---


def fx_base_currency(code: str | None) -> str:
    """Currency to look up an FX rate for; pence codes map to their base."""
    raw = str(code or "").strip()
    if raw in PENCE_CURRENCIES:
        return PENCE_CURRENCIES[raw]
    up = raw.upper()
    return PENCE_CURRENCIES.get(up, up)


def pence_factor(code: str | None) -> float:
    """Multiplier that brings a price into its base currency units."""
    raw = str(code or "").strip()
    if raw in PENCE_CURRENCIES or raw.upper() in PENCE_CURRENCIES:
        return 0.01
    return 1.0
