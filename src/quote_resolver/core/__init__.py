"""quote_resolver.core — Foundation types, config, and exceptions."""

from quote_resolver.core.config import (
    BatchConfig,
    CacheConfig,
    FxConfig,
    ProvidersConfig,
    ResolverConfig,
    load_config,
)
from quote_resolver.core.exceptions import (
    ConfigError,
    FxUnresolved,
    NoData,
    ProviderError,
    ProviderMalformed,
    ProviderRateLimited,
    ProviderUnavailable,
    QuoteResolverError,
)
from quote_resolver.core.models import (
    SETTLEMENT_CURRENCY,
    BatchItem,
    CurrencyCode,
    FxRate,
    HistoryRange,
    HistoryRequest,
    MarketSegment,
    NativeSeries,
    PriceInterval,
    PricePoint,
    PricePointSettled,
    ProviderName,
    Quote,
    QuoteSettled,
    Symbol,
    TtlClass,
)

__all__ = [
    # Constants / type aliases
    "SETTLEMENT_CURRENCY",
    "CurrencyCode",
    "ProviderName",
    # Enums
    "MarketSegment",
    "PriceInterval",
    "HistoryRange",
    "TtlClass",
    # Models
    "Symbol",
    "PricePoint",
    "PricePointSettled",
    "NativeSeries",
    "Quote",
    "QuoteSettled",
    "FxRate",
    "HistoryRequest",
    "BatchItem",
    # Config
    "ResolverConfig",
    "ProvidersConfig",
    "CacheConfig",
    "FxConfig",
    "BatchConfig",
    "load_config",
    # Exceptions
    "QuoteResolverError",
    "ConfigError",
    "ProviderError",
    "ProviderUnavailable",
    "ProviderRateLimited",
    "ProviderMalformed",
    "NoData",
    "FxUnresolved",
]
