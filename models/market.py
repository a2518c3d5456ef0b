"""Market data models: OHLCV bars, instruments, chart periods."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class ChartPeriod(str, Enum):
    """Chart periods selectable for the focused instrument."""

    INTRADAY = "intraday"
    FIVE_DAY = "five_day"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class OHLCVBar(BaseModel):
    """One period of price history."""

    model_config = ConfigDict(frozen=True)

    time: str  # ISO date for daily bars, "tick-NNNN" for intraday points
    open: float
    high: float
    low: float
    close: float
    volume: int


class Instrument(BaseModel):
    """A tradable instrument owned by the market simulator.

    Instances are frozen: every tick produces a new ``Instrument`` via
    ``model_copy`` so a reader holding a reference always sees one coherent
    state. ``history`` is fixed once generation finishes.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    code: str
    price: float
    open_price: float
    high: float
    low: float
    last_close: float
    change_percent: float
    sector: str
    history: tuple[OHLCVBar, ...] = ()
