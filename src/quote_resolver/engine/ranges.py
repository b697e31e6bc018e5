"""Range windows, forward-fill alignment and FX as-of conversion.

Dates are calendar days. Windows are computed with ``pandas.DateOffset`` so
that "1 month before March 31" is February 28/29, not March 3.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import date
from typing import TypeVar

import pandas as pd

from quote_resolver.core.models import (
    FxRate,
    HistoryRange,
    PriceInterval,
    PricePoint,
    PricePointSettled,
)

logger = logging.getLogger(__name__)

P = TypeVar("P", PricePoint, PricePointSettled)

_OFFSETS: dict[HistoryRange, pd.DateOffset] = {
    HistoryRange.ONE_MONTH: pd.DateOffset(months=1),
    HistoryRange.THREE_MONTHS: pd.DateOffset(months=3),
    HistoryRange.SIX_MONTHS: pd.DateOffset(months=6),
    HistoryRange.ONE_YEAR: pd.DateOffset(years=1),
    HistoryRange.FIVE_YEARS: pd.DateOffset(years=5),
}


def parse_range(value: str | HistoryRange | None) -> HistoryRange:
    """Lenient range parsing; anything unknown means one year."""
    try:
        return HistoryRange(str(value or "").strip().lower())
    except ValueError:
        return HistoryRange.ONE_YEAR


def parse_interval(value: str | PriceInterval | None) -> PriceInterval:
    """Lenient interval parsing; anything unknown means daily."""
    try:
        return PriceInterval(str(value or "").strip().lower())
    except ValueError:
        return PriceInterval.DAILY


def range_start(range_: HistoryRange, today: date) -> date | None:
    """First calendar day inside the window, or None for ``max``."""
    match range_:
        case HistoryRange.MAX:
            return None
        case HistoryRange.YEAR_TO_DATE:
            return date(today.year, 1, 1)
        case _:
            return (pd.Timestamp(today) - _OFFSETS[range_]).date()


def filter_by_range(
    points: Sequence[P],
    range_: HistoryRange,
    today: date,
) -> list[P]:
    """Points dated on or after the window start."""
    start = range_start(range_, today)
    if start is None:
        return list(points)
    return [p for p in points if p.date >= start]


# --- FX conversion ---


def settle_native(
    points: Sequence[PricePoint], factor: float = 1.0
) -> list[PricePointSettled]:
    """Points already in the settlement currency, scaled by ``factor``."""
    return [PricePointSettled(date=p.date, close=p.close * factor) for p in points]


def convert_series(
    points: Sequence[PricePoint],
    rates: Sequence[FxRate],
    tolerance_days: int,
    factor: float = 1.0,
) -> list[PricePointSettled]:
    """Multiply each close by the latest rate dated on or before it.

    A rate is usable only if it is at most ``tolerance_days`` older than
    the point. Points with no usable rate are dropped.
    """
    if not points or not rates:
        return []

    left = pd.DataFrame(
        {
            "date": pd.to_datetime([p.date for p in points]),
            "close": [p.close for p in points],
        }
    ).sort_values("date")
    right = (
        pd.DataFrame(
            {
                "date": pd.to_datetime([r.date for r in rates]),
                "rate": [r.rate for r in rates],
            }
        )
        .sort_values("date")
        .drop_duplicates("date", keep="last")
    )

    merged = pd.merge_asof(
        left,
        right,
        on="date",
        direction="backward",
        tolerance=pd.Timedelta(days=tolerance_days),
    ).dropna(subset=["rate"])

    dropped = len(left) - len(merged)
    if dropped:
        logger.debug("Dropped %d points with no FX rate within %d days", dropped, tolerance_days)

    return [
        PricePointSettled(
            date=ts.date(),
            close=float(close * factor * rate),
        )
        for ts, close, rate in zip(merged["date"], merged["close"], merged["rate"])
    ]


# --- Alignment ---


def day_axis(*series: Iterable[PricePointSettled]) -> list[date]:
    """Sorted union of every date present in any series."""
    days: set[date] = set()
    for s in series:
        days.update(p.date for p in s)
    return sorted(days)


def _to_series(points: Iterable[PricePointSettled]) -> pd.Series:
    pts = list(points)
    s = pd.Series(
        [p.close for p in pts],
        index=pd.DatetimeIndex([pd.Timestamp(p.date) for p in pts]),
        dtype="float64",
    )
    return s[~s.index.duplicated(keep="last")].sort_index()


def forward_fill(
    points: Sequence[PricePointSettled], axis: Sequence[date]
) -> list[float | None]:
    """Value of ``points`` on each axis day, carrying the last close forward.

    Days before the first point stay None.
    """
    if not axis:
        return []
    idx = pd.DatetimeIndex([pd.Timestamp(d) for d in axis])
    s = _to_series(points)
    filled = s.reindex(s.index.union(idx)).ffill().reindex(idx)
    return [None if pd.isna(v) else float(v) for v in filled]


def weighted_sum(
    histories: dict[str, Sequence[PricePointSettled]],
    weights: dict[str, float],
) -> list[PricePointSettled]:
    """Forward-filled Σ weight × close over the union day axis.

    Days on which no weighted series has started yet are omitted.
    """
    keys = [k for k in weights if histories.get(k)]
    if not keys:
        return []
    axis = day_axis(*(histories[k] for k in keys))
    frame = pd.DataFrame(
        {k: forward_fill(histories[k], axis) for k in keys},
        index=pd.DatetimeIndex([pd.Timestamp(d) for d in axis]),
        dtype="float64",
    )
    totals = (frame * pd.Series({k: weights[k] for k in keys})).sum(axis=1, min_count=1)
    return [
        PricePointSettled(date=ts.date(), close=float(v))
        for ts, v in totals.dropna().items()
    ]
