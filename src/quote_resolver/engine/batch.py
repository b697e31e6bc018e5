"""Bounded fan-out over many symbols with partial-failure semantics."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from typing import Any, TypeVar

from pydantic import ValidationError

from quote_resolver.core.models import BatchItem, PricePointSettled
from quote_resolver.engine.ranges import weighted_sum

logger = logging.getLogger(__name__)

R = TypeVar("R")


def coerce_items(raw: Iterable[Any]) -> list[BatchItem]:
    """Accept ``BatchItem``s, ``{symbol, shares}`` mappings or bare tickers.

    Entries without a symbol and mappings that fail validation are logged
    and skipped.
    """
    items: list[BatchItem] = []
    for entry in raw:
        if isinstance(entry, BatchItem):
            item = entry
        elif isinstance(entry, str):
            item = BatchItem(symbol=entry)
        elif isinstance(entry, Mapping):
            try:
                item = BatchItem.model_validate(entry)
            except ValidationError as e:
                logger.warning("Skipping invalid batch entry %r: %s", entry.get("symbol"), e)
                continue
        else:
            logger.warning("Skipping batch entry of type %s", type(entry).__name__)
            continue
        if item.symbol.strip():
            items.append(item)
    return items


class BatchOrchestrator:
    """Runs one coroutine per item under a fixed worker cap.

    Workers draw from a shared FIFO iterator, so at most ``concurrency``
    resolutions are in flight. Every item id is present in the result; a
    failed item maps to ``fallback()``.

    Parameters
    ----------
    concurrency : int
        Worker count, 1 to 64.
    """

    def __init__(self, concurrency: int = 6) -> None:
        if concurrency < 1 or concurrency > 64:
            raise ValueError("concurrency must be between 1 and 64")
        self.concurrency = concurrency

    async def run(
        self,
        items: Sequence[BatchItem],
        worker: Callable[[BatchItem], Awaitable[R]],
        fallback: Callable[[], R],
    ) -> dict[str, R]:
        results: dict[str, R] = {item.id: fallback() for item in items}
        if not items:
            return results

        pending = iter(items)

        async def drain() -> None:
            for item in pending:
                try:
                    results[item.id] = await worker(item)
                except Exception:
                    logger.warning("Batch item %s failed", item.id, exc_info=True)

        async with asyncio.TaskGroup() as tg:
            for _ in range(min(self.concurrency, len(items))):
                tg.create_task(drain())

        return results


def portfolio_value_series(
    histories: Mapping[str, Sequence[PricePointSettled]],
    items: Sequence[BatchItem],
) -> list[PricePointSettled]:
    """Daily Σ shares × close in PLN, each holding forward-filled.

    Holdings with zero shares or no history are ignored. Duplicate ids add
    their shares.
    """
    weights: dict[str, float] = {}
    for item in items:
        if item.shares:
            weights[item.id] = weights.get(item.id, 0.0) + item.shares
    return weighted_sum(dict(histories), weights)
