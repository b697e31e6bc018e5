"""Custom exception hierarchy for quote-resolver."""

from typing import Any


class QuoteResolverError(Exception):
    """Base exception for all quote-resolver errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(QuoteResolverError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field: str — the config field that failed validation
        value: Any — the invalid value (redacted for secrets)
    """


class ProviderError(QuoteResolverError):
    """An upstream market-data provider did not produce usable data.

    Policy: recovered locally by advancing to the next route. Never
    surfaced to callers of QuoteEngine.

    Context keys:
        provider: str — "stooq", "yahoo", "finnhub", "nbp", "frankfurter"
        url: str — the URL that was being fetched
    """


class ProviderUnavailable(ProviderError):
    """Timeout, connection failure or non-success HTTP status.

    Context keys:
        status_code: int | None — HTTP status code if a response arrived
    """


class ProviderRateLimited(ProviderError):
    """The provider signalled a rate limit (HTTP 429 or a marker in the body).

    Policy: try the next provider. Distinct from "no data" so callers can
    tell a throttled source from an empty one.
    """


class ProviderMalformed(ProviderError):
    """Response was an HTML error page or did not have the expected shape.

    Context keys:
        reason: str — why the payload was rejected
    """


class NoData(ProviderError):
    """Well-formed response that contained no usable price points."""


class FxUnresolved(QuoteResolverError):
    """No FX rate found across the whole cascade and backfill window.

    Policy: drop the affected points (or the affected route's result),
    never substitute parity.

    Context keys:
        currency: str — the native currency that could not be converted
        date: str | None — ISO date of the lookup, if dated
    """
