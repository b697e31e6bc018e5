"""Pydantic data models — the engine's type contracts."""

from __future__ import annotations

import math
from datetime import date as Date
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# --- Constants ---

SETTLEMENT_CURRENCY = "PLN"

# --- Type Aliases ---

CurrencyCode = str
ProviderName = str

# --- Enumerations ---


class MarketSegment(StrEnum):
    """Where an instrument trades, as far as routing is concerned."""

    DOMESTIC = "domestic"
    FOREIGN = "foreign"
    INDEX = "index"


class PriceInterval(StrEnum):
    """Supported bar intervals, passed through to providers."""

    DAILY = "1d"
    WEEKLY = "1wk"
    MONTHLY = "1mo"


class HistoryRange(StrEnum):
    """Named history windows."""

    ONE_MONTH = "1mo"
    THREE_MONTHS = "3mo"
    SIX_MONTHS = "6mo"
    YEAR_TO_DATE = "ytd"
    ONE_YEAR = "1y"
    FIVE_YEARS = "5y"
    MAX = "max"


class TtlClass(StrEnum):
    """Cache freshness classes."""

    QUOTE = "quote"
    SHORT = "short"
    EOD = "eod"


# --- Symbol ---


class Symbol(BaseModel):
    """A classified instrument identifier. Derived from ``raw`` only."""

    model_config = ConfigDict(frozen=True)

    raw: str
    canonical: str
    segment: MarketSegment
    native_currency_guess: CurrencyCode | None = None

    @property
    def is_index(self) -> bool:
        return self.segment == MarketSegment.INDEX

    @property
    def is_domestic(self) -> bool:
        return self.segment == MarketSegment.DOMESTIC


# --- Prices ---


class PricePoint(BaseModel):
    """A daily close in the instrument's native currency."""

    model_config = ConfigDict(frozen=True)

    date: Date
    close: float

    @field_validator("close")
    @classmethod
    def close_positive_finite(cls, v: float) -> float:
        if not math.isfinite(v) or v <= 0:
            raise ValueError(f"close must be a positive finite number, got {v}")
        return v


class PricePointSettled(BaseModel):
    """A daily close converted to the settlement currency."""

    model_config = ConfigDict(frozen=True)

    date: Date
    close: float


class NativeSeries(BaseModel):
    """A provider's history answer: points plus the currency they are in."""

    model_config = ConfigDict(frozen=True)

    points: list[PricePoint]
    currency: CurrencyCode | None = None
    source: ProviderName = "unknown"


class Quote(BaseModel):
    """Point-in-time price in native currency."""

    model_config = ConfigDict(frozen=True)

    price: float | None = None
    prev_close: float | None = None
    currency: CurrencyCode | None = None
    source: ProviderName = "unknown"


class QuoteSettled(BaseModel):
    """Point-in-time price converted to the settlement currency.

    ``source`` records which provider/route satisfied the request; it is
    diagnostic only.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    price_pln: float | None = Field(default=None, serialization_alias="pricePLN")
    prev_close_pln: float | None = Field(
        default=None, serialization_alias="prevClosePLN"
    )
    currency: CurrencyCode | None = None
    source: str | None = None
    fx_rate: float | None = Field(default=None, serialization_alias="fxRate")

    @classmethod
    def empty(cls) -> QuoteSettled:
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.price_pln is None


class FxRate(BaseModel):
    """A point-in-time conversion fact: 1 ``base`` = ``rate`` ``quote``."""

    model_config = ConfigDict(frozen=True)

    base: CurrencyCode
    quote: CurrencyCode = SETTLEMENT_CURRENCY
    date: Date
    rate: float
    source: ProviderName = "unknown"

    @field_validator("rate")
    @classmethod
    def rate_positive(cls, v: float) -> float:
        if not math.isfinite(v) or v <= 0:
            raise ValueError(f"rate must be a positive finite number, got {v}")
        return v

    @property
    def pair(self) -> str:
        return f"{self.base}/{self.quote}"


# --- Requests ---


class HistoryRequest(BaseModel):
    """Parameters for a single provider history call."""

    model_config = ConfigDict(frozen=True)

    code: str
    interval: PriceInterval = PriceInterval.DAILY
    range: HistoryRange = HistoryRange.ONE_YEAR
    start: Date | None = None
    end: Date | None = None

    @model_validator(mode="after")
    def end_not_before_start(self) -> HistoryRequest:
        if self.start and self.end and self.end < self.start:
            raise ValueError(f"end ({self.end}) must not be before start ({self.start})")
        return self


class BatchItem(BaseModel):
    """One holding as read from the document store: ``{symbol, shares}``."""

    model_config = ConfigDict(frozen=True)

    id: str = ""
    symbol: str
    shares: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def id_defaults_to_symbol(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("id"):
            data = {**data, "id": str(data.get("symbol") or "").strip().upper()}
        return data
