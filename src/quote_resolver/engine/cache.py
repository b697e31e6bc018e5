"""Resolution cache: TTL classes, stale-while-revalidate, in-flight coalescing.

All state lives on one event loop. Every mutation is a single synchronous
dict operation between awaits, so no locks are taken.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, NamedTuple, Protocol, TypeVar, runtime_checkable

from cachetools import TTLCache

from quote_resolver.core.config import CacheConfig
from quote_resolver.core.models import TtlClass

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISS = object()


@dataclass
class CacheEntry:
    """A stored value plus the bookkeeping needed to judge its freshness."""

    key: str
    value: Any
    written_at: float
    ttl_class: TtlClass
    last_read_at: float


class CacheLookup(NamedTuple):
    hit: bool
    fresh: bool
    value: Any = None


@runtime_checkable
class CacheService(Protocol):
    """Keyed cache contract the engine is written against."""

    def get(self, key: str) -> CacheLookup: ...

    def put(self, key: str, value: Any, ttl_class: TtlClass) -> None: ...

    def invalidate(self, key: str) -> None: ...


def is_empty_value(value: Any) -> bool:
    """Default emptiness test: None, empty containers, or ``.is_empty``."""
    if value is None:
        return True
    if getattr(value, "is_empty", False):
        return True
    try:
        return len(value) == 0
    except TypeError:
        return False


class ResolutionCache:
    """In-process implementation of ``CacheService`` with a resolve helper.

    Parameters
    ----------
    config : CacheConfig | None
        TTL classes and bounds. Defaults if None.
    clock : Callable[[], float]
        Monotonic seconds. Injectable for tests.

    Notes
    -----
    - A fresh hit is returned as-is.
    - A stale hit within ``max_stale_seconds`` is returned immediately and a
      background refresh is scheduled.
    - A miss runs the loader once; concurrent callers for the same key
      await the same task. The task is shielded, so a caller that goes
      away does not cancel the load for everyone else.
    - Empty or failed loads are never stored. They set a short
      negative-cache mark instead.
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or CacheConfig()
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._inflight: dict[str, asyncio.Task[Any]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()
        self._negative: TTLCache[str, bool] | None = None
        if self._config.negative_ttl > 0:
            self._negative = TTLCache(
                maxsize=self._config.max_entries,
                ttl=self._config.negative_ttl,
                timer=clock,
            )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    # --- CacheService ---

    def get(self, key: str) -> CacheLookup:
        entry = self._entries.get(key)
        if entry is None:
            return CacheLookup(hit=False, fresh=False)

        now = self._clock()
        age = now - entry.written_at
        ttl = self._config.ttl_for(entry.ttl_class)
        if age > ttl + self._config.max_stale_seconds:
            del self._entries[key]
            return CacheLookup(hit=False, fresh=False)

        entry.last_read_at = now
        self._entries.move_to_end(key)
        return CacheLookup(hit=True, fresh=age <= ttl, value=entry.value)

    def put(self, key: str, value: Any, ttl_class: TtlClass) -> None:
        now = self._clock()
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            written_at=now,
            ttl_class=ttl_class,
            last_read_at=now,
        )
        self._entries.move_to_end(key)
        while len(self._entries) > self._config.max_entries:
            self._entries.popitem(last=False)
        if self._negative is not None:
            self._negative.pop(key, None)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)
        if self._negative is not None:
            self._negative.pop(key, None)

    def is_negative(self, key: str) -> bool:
        return self._negative is not None and key in self._negative

    # --- Resolution ---

    async def resolve(
        self,
        key: str,
        ttl_class: TtlClass,
        loader: Callable[[], Awaitable[T]],
        empty: T,
        is_empty: Callable[[Any], bool] = is_empty_value,
    ) -> T:
        """Return a cached value or load it, never raising on loader failure."""
        lookup = self.get(key)
        if lookup.hit:
            if not lookup.fresh:
                self._refresh_in_background(key, ttl_class, loader, is_empty)
            return lookup.value

        if self.is_negative(key):
            logger.debug("Negative cache hit for %s", key)
            return empty

        task = self._inflight.get(key)
        if task is None:
            task = self._start(key, ttl_class, loader, is_empty)
        else:
            logger.debug("Joining in-flight resolution for %s", key)

        value = await asyncio.shield(task)
        return empty if value is _MISS else value

    def _start(
        self,
        key: str,
        ttl_class: TtlClass,
        loader: Callable[[], Awaitable[Any]],
        is_empty: Callable[[Any], bool],
    ) -> asyncio.Task[Any]:
        task = asyncio.create_task(self._load(key, ttl_class, loader, is_empty))
        self._inflight[key] = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _refresh_in_background(
        self,
        key: str,
        ttl_class: TtlClass,
        loader: Callable[[], Awaitable[Any]],
        is_empty: Callable[[Any], bool],
    ) -> None:
        if key in self._inflight or self.is_negative(key):
            return
        logger.debug("Serving stale %s, refreshing in background", key)
        self._start(key, ttl_class, loader, is_empty)

    async def _load(
        self,
        key: str,
        ttl_class: TtlClass,
        loader: Callable[[], Awaitable[Any]],
        is_empty: Callable[[Any], bool],
    ) -> Any:
        try:
            try:
                value = await loader()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Resolution failed for %s", key)
                value = None

            if is_empty(value):
                if self._negative is not None:
                    self._negative[key] = True
                return _MISS

            self.put(key, value, ttl_class)
            return value
        finally:
            self._inflight.pop(key, None)

    # --- Lifecycle ---

    async def drain(self) -> None:
        """Wait for every outstanding load, including background refreshes."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel outstanding loads and wait for them to finish."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()
