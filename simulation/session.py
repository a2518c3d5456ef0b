"""Trading session: the user-facing actions over market, ledger and commentary.

The session holds the view state (selected instrument, sector filter, chart
period, trade quantity input) and passes it explicitly to the component that
needs it. The market ticker and the commentary fetch run as independent
background tasks; buy/sell/reset run synchronously on the caller.

Lifecycle::

    session = build_session(config)
    await session.start()
    session.set_trade_quantity("2")
    session.buy()
    ...
    await session.aclose()
"""

from __future__ import annotations

import asyncio
import logging
import random

from pydantic import BaseModel

from api_client.llm.client import LLMClient
from api_client.llm.registry import create_llm_client
from commentary.fetcher import CommentaryChannel, CommentaryFetcher
from models.config import AppConfig
from models.market import ChartPeriod, Instrument, OHLCVBar
from models.portfolio import AccountState, TradeReceipt
from simulation.account_store import AccountStore, create_account_store
from simulation.charting import IntradayRecorder, chart_series
from simulation.errors import InvalidQuantity
from simulation.ledger import PortfolioLedger
from simulation.market import MarketSimulator
from simulation.valuation import PortfolioValuation, value_portfolio

logger = logging.getLogger(__name__)

_FLASH_LIMIT = 10


class FlashItem(BaseModel):
    """One line of the market flash feed."""

    instrument_id: str
    name: str
    change_percent: float
    headline: str


class TradingSession:
    """Drives one user's interaction with the simulated market."""

    def __init__(
        self,
        market: MarketSimulator,
        ledger: PortfolioLedger,
        commentary: CommentaryChannel,
        intraday: IntradayRecorder | None = None,
        default_trade_lots: int = 1,
    ) -> None:
        self._market = market
        self._ledger = ledger
        self._commentary = commentary
        self._intraday = intraday
        self._selected_id = market.snapshot()[0].id
        self._sector: str | None = None
        self._period = ChartPeriod.DAILY
        self._trade_quantity = str(default_trade_lots)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the market ticker and fetch commentary for the initial selection."""
        self._market.start()
        self._commentary.request(self.selected_instrument())

    async def aclose(self) -> None:
        """Stop the ticker and cancel outstanding commentary requests."""
        await self._market.stop()
        await self._commentary.aclose()

    # ------------------------------------------------------------------
    # Selection and filters
    # ------------------------------------------------------------------

    @property
    def selected_id(self) -> str:
        return self._selected_id

    def selected_instrument(self) -> Instrument:
        return self._market.get_instrument(self._selected_id)

    def select_instrument(self, instrument_id: str) -> asyncio.Task | None:
        """Focus *instrument_id* and refresh its commentary.

        Raises ``UnknownInstrument`` for ids outside the universe. Selecting
        the already-selected instrument is a no-op and returns ``None``.
        """
        instrument = self._market.get_instrument(instrument_id)
        if instrument_id == self._selected_id:
            return None
        self._selected_id = instrument_id
        logger.debug("Selected %s (%s).", instrument.name, instrument.code)
        return self._commentary.request(instrument)

    def sectors(self) -> list[str]:
        return self._market.sectors()

    @property
    def sector_filter(self) -> str | None:
        return self._sector

    def select_sector(self, sector: str | None) -> None:
        """Restrict the instrument list to *sector*; ``None`` shows all."""
        if sector is not None and sector not in self.sectors():
            raise ValueError(f"Unknown sector '{sector}'. Available: {', '.join(self.sectors())}.")
        self._sector = sector

    def visible_instruments(self) -> list[Instrument]:
        """Instruments passing the sector filter, in universe order."""
        instruments = self._market.snapshot()
        if self._sector is None:
            return list(instruments)
        return [i for i in instruments if i.sector == self._sector]

    @property
    def chart_period(self) -> ChartPeriod:
        return self._period

    def select_chart_period(self, period: ChartPeriod | str) -> None:
        self._period = ChartPeriod(period)

    def chart(self) -> list[OHLCVBar]:
        """Bars for the selected instrument over the selected period."""
        return chart_series(self.selected_instrument(), self._period, self._intraday)

    # ------------------------------------------------------------------
    # Trading
    # ------------------------------------------------------------------

    @property
    def trade_quantity(self) -> str:
        return self._trade_quantity

    def set_trade_quantity(self, lots: str | int) -> None:
        """Store the raw lot-count input; it is parsed when a trade is placed."""
        self._trade_quantity = str(lots)

    def trade_lots(self) -> int:
        """Parse the trade quantity input. Raises ``InvalidQuantity``."""
        text = self._trade_quantity.strip()
        # Plain ASCII digits only; int() would also take "1_000" and "+3".
        if not (text.isascii() and text.isdecimal()):
            raise InvalidQuantity(
                f"Lot count must be a positive integer, got {self._trade_quantity!r}."
            )
        lots = int(text)
        if lots <= 0:
            raise InvalidQuantity(f"Lot count must be a positive integer, got {lots}.")
        return lots

    def estimated_amount(self) -> float | None:
        """Cost of the pending order at the current price, or ``None`` for invalid input."""
        try:
            lots = self.trade_lots()
        except InvalidQuantity:
            return None
        return lots * self._ledger.lot_size * self.selected_instrument().price

    def buy(self) -> TradeReceipt:
        return self._ledger.buy(self._selected_id, self.trade_lots())

    def sell(self) -> TradeReceipt:
        return self._ledger.sell(self._selected_id, self.trade_lots())

    def reset_account(self) -> AccountState:
        return self._ledger.reset()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    def account(self) -> AccountState:
        return self._ledger.get_account()

    def valuation(self) -> PortfolioValuation:
        return value_portfolio(self._ledger.get_account(), self._market.prices())

    @property
    def commentary(self) -> str:
        return self._commentary.text

    def market_flash(self, limit: int = _FLASH_LIMIT) -> list[FlashItem]:
        """Headline for each of the first *limit* instruments."""
        return [
            FlashItem(
                instrument_id=i.id,
                name=i.name,
                change_percent=i.change_percent,
                headline="surging" if i.change_percent > 0 else "sliding",
            )
            for i in self._market.snapshot()[:limit]
        ]


def build_session(
    config: AppConfig,
    *,
    client: LLMClient | None = None,
    store: AccountStore | None = None,
    rng: random.Random | None = None,
) -> TradingSession:
    """Wire a ``TradingSession`` from configuration.

    *client*, *store* and *rng* override the configured collaborators (tests
    pass a mock client and an in-memory store).
    """
    market = MarketSimulator(config.market, rng=rng)
    intraday = IntradayRecorder(config.market.intraday_points)
    market.add_listener(intraday.record)

    ledger = PortfolioLedger(
        config.ledger,
        market,
        store if store is not None else create_account_store(config.storage),
    )
    fetcher = CommentaryFetcher(
        client if client is not None else create_llm_client(config.commentary),
        config.commentary,
    )
    channel = CommentaryChannel(fetcher, config.commentary.placeholder)
    return TradingSession(
        market,
        ledger,
        channel,
        intraday,
        default_trade_lots=config.ledger.default_trade_lots,
    )
