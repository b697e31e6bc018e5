"""Provider adapter protocols and tagged fetch results.

Architecture
------------
Every upstream source is wrapped in an adapter that speaks one contract:

    HTTP hosts → HostRacer → parser → FetchResult → route → assembler

- **FetchResult** is a closed union of ``Ok``, ``RateLimited`` and
  ``Empty``. Adapters never raise outward; callers ``match`` on the result
  and either use the payload or advance to the next route.

- **HistoryAdapter** / **QuoteAdapter** are the consumer-facing protocols.
  A new provider is one class implementing them plus one entry in the
  route table; no assembler changes are needed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar, Union, runtime_checkable

from quote_resolver.core.models import HistoryRequest, NativeSeries, Quote

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """A structurally valid, non-empty payload."""

    value: T


@dataclass(frozen=True)
class RateLimited:
    """The provider explicitly throttled us."""

    provider: str


@dataclass(frozen=True)
class Empty:
    """Nothing usable: no data, malformed payload, or unreachable hosts."""

    provider: str
    reason: str = "no_data"


FetchResult = Union[Ok[T], RateLimited, Empty]
HistoryResult = Union[Ok[NativeSeries], RateLimited, Empty]
QuoteResult = Union[Ok[Quote], RateLimited, Empty]


@runtime_checkable
class HistoryAdapter(Protocol):
    """Fetches a daily/weekly/monthly close series for one provider code."""

    name: str

    async def fetch_history(self, request: HistoryRequest) -> HistoryResult: ...


@runtime_checkable
class QuoteAdapter(Protocol):
    """Fetches the current price and previous close for one provider code."""

    name: str

    async def fetch_quote(self, code: str) -> QuoteResult: ...
