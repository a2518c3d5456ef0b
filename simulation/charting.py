"""Chart series for each ``ChartPeriod``.

Daily history is stored per instrument; longer periods are aggregated from it
by calendar bucket. The intraday series comes from the tick trail kept by
``IntradayRecorder``.
"""

from __future__ import annotations

from collections import deque
from datetime import date
from itertools import groupby
from typing import Callable, Sequence

from models.market import ChartPeriod, Instrument, OHLCVBar

_FIVE_DAY_BARS = 5


def _week_key(day: date) -> tuple[int, int]:
    year, week, _ = day.isocalendar()
    return (year, week)


def _month_key(day: date) -> tuple[int, int]:
    return (day.year, day.month)


def _quarter_key(day: date) -> tuple[int, int]:
    return (day.year, (day.month - 1) // 3 + 1)


def _year_key(day: date) -> tuple[int]:
    return (day.year,)


_BUCKET_KEYS: dict[ChartPeriod, Callable[[date], tuple]] = {
    ChartPeriod.WEEKLY: _week_key,
    ChartPeriod.MONTHLY: _month_key,
    ChartPeriod.QUARTERLY: _quarter_key,
    ChartPeriod.YEARLY: _year_key,
}


def aggregate_bars(
    bars: Sequence[OHLCVBar],
    key: Callable[[date], tuple],
) -> list[OHLCVBar]:
    """Merge consecutive daily bars that share a calendar bucket.

    Each merged bar takes the first open, highest high, lowest low, last
    close and summed volume; its time is the first day of the bucket.
    """
    merged: list[OHLCVBar] = []
    for _, group in groupby(bars, key=lambda b: key(date.fromisoformat(b.time))):
        chunk = list(group)
        merged.append(
            OHLCVBar(
                time=chunk[0].time,
                open=chunk[0].open,
                high=max(b.high for b in chunk),
                low=min(b.low for b in chunk),
                close=chunk[-1].close,
                volume=sum(b.volume for b in chunk),
            )
        )
    return merged


class IntradayRecorder:
    """Keeps the most recent tick prices of every instrument.

    Register ``record`` as a market tick listener.
    """

    def __init__(self, max_points: int) -> None:
        self._max_points = max_points
        self._trails: dict[str, deque[OHLCVBar]] = {}

    def record(self, instruments: Sequence[Instrument], tick: int) -> None:
        label = f"tick-{tick:04d}"
        for inst in instruments:
            trail = self._trails.get(inst.id)
            if trail is None:
                trail = self._trails[inst.id] = deque(maxlen=self._max_points)
            trail.append(
                OHLCVBar(
                    time=label,
                    open=inst.price,
                    high=inst.price,
                    low=inst.price,
                    close=inst.price,
                    volume=0,
                )
            )

    def trail(self, instrument_id: str) -> list[OHLCVBar]:
        return list(self._trails.get(instrument_id, ()))


def chart_series(
    instrument: Instrument,
    period: ChartPeriod,
    intraday: IntradayRecorder | None = None,
) -> list[OHLCVBar]:
    """Return the bars to chart for *instrument* over *period*."""
    if period is ChartPeriod.INTRADAY:
        return intraday.trail(instrument.id) if intraday is not None else []
    if period is ChartPeriod.DAILY:
        return list(instrument.history)
    if period is ChartPeriod.FIVE_DAY:
        return list(instrument.history[-_FIVE_DAY_BARS:])
    return aggregate_bars(instrument.history, _BUCKET_KEYS[period])
