"""Currency conversion to the settlement currency (PLN)."""

from quote_resolver.fx.resolver import FxResolver, rate_as_of
from quote_resolver.fx.sources import (
    CentralBankSource,
    FxSeriesResult,
    FxSource,
    GenericFxApiSource,
    PairFeedSource,
    yahoo_pair_code,
)

__all__ = [
    "CentralBankSource",
    "FxResolver",
    "FxSeriesResult",
    "FxSource",
    "GenericFxApiSource",
    "PairFeedSource",
    "rate_as_of",
    "yahoo_pair_code",
]
