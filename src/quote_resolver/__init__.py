"""quote-resolver: multi-provider quote and price-history resolution in PLN."""

__version__ = "0.1.0"
