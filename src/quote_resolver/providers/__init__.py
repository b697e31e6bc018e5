"""Upstream market-data providers.

Architecture
------------
Each source is wrapped in an adapter that speaks one contract:

    Hosts → HostRacer → parser → Ok | RateLimited | Empty → route

Key abstractions:

- ``HistoryAdapter`` / ``QuoteAdapter``: consumer-facing protocols.
- ``HostRacer``: first-success-wins fan-out across equivalent hosts.
- ``Ok`` / ``RateLimited`` / ``Empty``: tagged fetch results.

Built-in implementations:

- ``StooqAdapter``: domestic CSV feed (Warsaw listings, indices, FX pairs).
- ``YahooChartAdapter``: global chart JSON with a spark fallback.
- ``FinnhubAdapter``: secondary quote API, enabled by an API key.

Adding a new provider:
1. Write an adapter implementing ``fetch_history`` and/or ``fetch_quote``.
2. Add a ``Route`` for it in ``quote_resolver.engine.routes``.
3. Assemblers pick it up from the table.
"""

from quote_resolver.providers.base import (
    Empty,
    FetchResult,
    HistoryAdapter,
    HistoryResult,
    Ok,
    QuoteAdapter,
    QuoteResult,
    RateLimited,
)
from quote_resolver.providers.finnhub import FinnhubAdapter
from quote_resolver.providers.http import HostRacer, read_text
from quote_resolver.providers.stooq import StooqAdapter
from quote_resolver.providers.yahoo import YahooChartAdapter, YahooChartParser

__all__ = [
    # Results
    "Empty",
    "FetchResult",
    "HistoryResult",
    "Ok",
    "QuoteResult",
    "RateLimited",
    # Protocols
    "HistoryAdapter",
    "QuoteAdapter",
    # Transport
    "HostRacer",
    "read_text",
    # Stooq
    "StooqAdapter",
    # Yahoo Finance
    "YahooChartAdapter",
    "YahooChartParser",
    # Finnhub
    "FinnhubAdapter",
]
