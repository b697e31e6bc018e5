"""Resolution engine: routes, assemblers, cache, batching and the facade."""

from quote_resolver.engine.batch import BatchOrchestrator, coerce_items, portfolio_value_series
from quote_resolver.engine.cache import (
    CacheEntry,
    CacheLookup,
    CacheService,
    ResolutionCache,
)
from quote_resolver.engine.history import HistoryAssembler
from quote_resolver.engine.quote import QuoteAssembler
from quote_resolver.engine.ranges import (
    convert_series,
    day_axis,
    filter_by_range,
    forward_fill,
    parse_interval,
    parse_range,
    range_start,
)
from quote_resolver.engine.routes import HISTORY_ROUTES, QUOTE_ROUTES, ProviderRole, Route
from quote_resolver.engine.service import QuoteEngine

__all__ = [
    # Facade
    "QuoteEngine",
    # Assembly
    "HISTORY_ROUTES",
    "QUOTE_ROUTES",
    "HistoryAssembler",
    "ProviderRole",
    "QuoteAssembler",
    "Route",
    # Cache
    "CacheEntry",
    "CacheLookup",
    "CacheService",
    "ResolutionCache",
    # Ranges
    "convert_series",
    "day_axis",
    "filter_by_range",
    "forward_fill",
    "parse_interval",
    "parse_range",
    "range_start",
    # Batch
    "BatchOrchestrator",
    "coerce_items",
    "portfolio_value_series",
]
