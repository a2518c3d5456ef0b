"""Synthetic market: instrument generation and the periodic price tick.

The simulator owns the instrument universe. Each tick replaces the whole
instrument mapping at once, so readers that grab ``snapshot()`` or
``get_instrument()`` see either the pre-tick or the post-tick state of an
instrument, never a mixture.

Lifecycle::

    market = MarketSimulator(config.market)
    market.start()          # inside a running event loop
    ...
    await market.stop()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
from datetime import date, timedelta
from typing import Callable, Iterable

from models.config import MarketConfig
from models.market import Instrument, OHLCVBar
from simulation.errors import UnknownInstrument

logger = logging.getLogger(__name__)

TickListener = Callable[[tuple[Instrument, ...], int], None]

_NAME_SYLLABLES = ["Li", "Long", "Tai", "Sheng", "Hua", "Xin", "Da", "Tong"]
_NAME_SUFFIXES = ["Technology", "Power", "Holdings", "Group", "International", "Heavy Industry"]
_FIRST_CODE = 600000


# ------------------------------------------------------------------
# Pure generation / update functions
# ------------------------------------------------------------------

def generate_history(
    base_price: float,
    length: int,
    rng: random.Random,
    *,
    volatility: float,
    jitter: float,
    max_volume: int,
    end_date: date,
) -> tuple[OHLCVBar, ...]:
    """Random-walk *length* daily bars starting from *base_price*.

    Bars are dated one day apart, the last one the day before *end_date*.
    """
    bars: list[OHLCVBar] = []
    last_close = base_price
    for i in range(length):
        day = end_date - timedelta(days=length - i)
        open_ = last_close * (1 + (rng.random() - 0.5) * volatility)
        close = open_ * (1 + (rng.random() - 0.5) * volatility)
        high = max(open_, close) * (1 + rng.random() * jitter)
        low = min(open_, close) * (1 - rng.random() * jitter)
        bars.append(
            OHLCVBar(
                time=day.isoformat(),
                open=open_,
                high=high,
                low=low,
                close=close,
                volume=rng.randrange(max_volume),
            )
        )
        last_close = close
    return tuple(bars)


def instrument_name(index: int, sector: str) -> str:
    """Compose a display name from the sector and two rotating word lists."""
    prefix = sector.split()[0]
    syllable = _NAME_SYLLABLES[index % len(_NAME_SYLLABLES)]
    suffix = _NAME_SUFFIXES[index % len(_NAME_SUFFIXES)]
    return f"{prefix} {syllable} {suffix}"


def create_instrument(
    index: int,
    config: MarketConfig,
    rng: random.Random,
    end_date: date,
) -> Instrument:
    """Build instrument number *index* with a freshly synthesized history."""
    base_price = rng.uniform(config.base_price_min, config.base_price_max)
    sector = config.sectors[index % len(config.sectors)]
    history = generate_history(
        base_price,
        config.history_length,
        rng,
        volatility=config.history_volatility,
        jitter=config.bar_range_jitter,
        max_volume=config.max_volume,
        end_date=end_date,
    )
    price = history[-1].close
    last_close = price * config.previous_close_ratio
    return Instrument(
        id=f"stock-{index}",
        name=instrument_name(index, sector),
        code=f"{_FIRST_CODE + index:06d}",
        price=price,
        open_price=price,
        high=price,
        low=price,
        last_close=last_close,
        change_percent=change_percent(price, last_close),
        sector=sector,
        history=history,
    )


def change_percent(price: float, last_close: float) -> float:
    return (price - last_close) / last_close * 100


def tick_instrument(instrument: Instrument, sample: float, volatility: float) -> Instrument:
    """Apply one price perturbation to *instrument*.

    *sample* is a uniform draw in ``[0, 1)``; the price moves by a factor of
    ``1 + (sample - 0.5) * volatility``. Pure: the result depends only on the
    arguments.
    """
    price = instrument.price * (1 + (sample - 0.5) * volatility)
    return instrument.model_copy(
        update={
            "price": price,
            "high": max(instrument.high, price),
            "low": min(instrument.low, price),
            "change_percent": change_percent(price, instrument.last_close),
        }
    )


# ------------------------------------------------------------------
# Simulator
# ------------------------------------------------------------------

class MarketSimulator:
    """Owns the instrument universe and advances prices on a fixed cadence."""

    def __init__(
        self,
        config: MarketConfig,
        rng: random.Random | None = None,
        instruments: Iterable[Instrument] | None = None,
    ) -> None:
        self._config = config
        self._rng = rng or random.Random(config.seed)
        if instruments is None:
            end_date = config.as_of or date.today()
            instruments = (
                create_instrument(i, config, self._rng, end_date)
                for i in range(config.num_instruments)
            )
        self._instruments: dict[str, Instrument] = {i.id: i for i in instruments}
        self._tick_count = 0
        self._listeners: list[TickListener] = []
        self._task: asyncio.Task | None = None
        logger.info("Market initialised with %d instruments.", len(self._instruments))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> tuple[Instrument, ...]:
        """Return the current instruments in universe order."""
        return tuple(self._instruments.values())

    def get_instrument(self, instrument_id: str) -> Instrument:
        """Return the current state of *instrument_id*.

        Raises ``UnknownInstrument`` if the id is not in the universe.
        """
        try:
            return self._instruments[instrument_id]
        except KeyError:
            raise UnknownInstrument(f"Unknown instrument '{instrument_id}'.") from None

    def prices(self) -> dict[str, float]:
        """Current price per instrument id, taken from one snapshot."""
        return {i.id: i.price for i in self._instruments.values()}

    def sectors(self) -> list[str]:
        """Distinct sectors in first-seen order."""
        return list(dict.fromkeys(i.sector for i in self._instruments.values()))

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def add_listener(self, listener: TickListener) -> None:
        """Register *listener* to receive ``(instruments, tick_count)`` after each tick."""
        self._listeners.append(listener)

    def tick(self) -> tuple[Instrument, ...]:
        """Advance every instrument by one tick and publish the result."""
        volatility = self._config.tick_volatility
        updated = {
            inst_id: tick_instrument(inst, self._rng.random(), volatility)
            for inst_id, inst in self._instruments.items()
        }
        # Swap the whole mapping so readers never observe a partial tick.
        self._instruments = updated
        self._tick_count += 1
        snapshot = tuple(updated.values())
        logger.debug("Tick %d applied to %d instruments.", self._tick_count, len(snapshot))

        for listener in self._listeners:
            try:
                listener(snapshot, self._tick_count)
            except Exception:
                logger.exception("Tick listener %r failed.", listener)
        return snapshot

    # ------------------------------------------------------------------
    # Background ticking
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start ticking every ``tick_interval_seconds`` on the running event loop."""
        if self.running:
            return
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name="market-ticker")
        logger.info(
            "Market ticker started (every %.1fs).", self._config.tick_interval_seconds
        )

    async def stop(self) -> None:
        """Cancel the ticker task and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Market ticker stopped after %d ticks.", self._tick_count)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._config.tick_interval_seconds)
            self.tick()
