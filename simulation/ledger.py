"""Portfolio ledger: cash balance, holdings and weighted-average-cost accounting.

The ledger validates and executes buy/sell requests with all-or-nothing
semantics. A rejected request raises a ``TradeRejected`` subclass and leaves
the account untouched; an accepted one produces a new ``AccountState`` that is
persisted before it replaces the current one.
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from models.config import LedgerConfig
from models.market import Instrument
from models.portfolio import AccountState, HoldingLot, TradeReceipt
from simulation.account_store import AccountStore, MemoryAccountStore
from simulation.errors import InsufficientFunds, InvalidQuantity, NoShortSelling

logger = logging.getLogger(__name__)


class InstrumentSource(Protocol):
    """Anything that can resolve an instrument id to its current state."""

    def get_instrument(self, instrument_id: str) -> Instrument:
        ...


class PortfolioLedger:
    """Owns the account state and applies buy, sell and reset requests.

    Mutations are serialized by a lock. Prices are read from *market* at the
    moment of the request; the ledger never modifies an instrument.
    """

    def __init__(
        self,
        config: LedgerConfig,
        market: InstrumentSource,
        store: AccountStore | None = None,
    ) -> None:
        self._config = config
        self._market = market
        self._store = store if store is not None else MemoryAccountStore()
        self._lock = threading.Lock()
        self._state: AccountState = self._store.load() or self._initial_state()

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def get_account(self) -> AccountState:
        """Return a snapshot of the current account state."""
        return self._state

    @property
    def lot_size(self) -> int:
        return self._config.lot_size

    @property
    def starting_balance(self) -> float:
        return self._config.starting_balance

    def buy(self, instrument_id: str, lots: int) -> TradeReceipt:
        """Buy *lots* lots of *instrument_id* at its current price.

        Raises ``InvalidQuantity``, ``UnknownInstrument`` or
        ``InsufficientFunds``; the account is unchanged in each case.
        """
        shares = self._shares(lots)

        with self._lock:
            instrument = self._market.get_instrument(instrument_id)
            price = instrument.price
            cost = shares * price
            state = self._state

            if state.balance < cost:
                logger.warning(
                    "Rejected buy of %d shares of %s: cost %.2f exceeds balance %.2f.",
                    shares,
                    instrument.code,
                    cost,
                    state.balance,
                )
                raise InsufficientFunds(
                    f"Insufficient cash to buy {shares} shares of {instrument.code} "
                    f"at {price:.2f} (cost {cost:.2f}, available {state.balance:.2f})."
                )

            existing = state.holding_for(instrument_id)
            if existing is not None:
                held = existing.quantity
                merged = existing.model_copy(
                    update={
                        "quantity": held + shares,
                        "average_cost": (existing.average_cost * held + cost) / (held + shares),
                    }
                )
                portfolio = tuple(
                    merged if h.instrument_id == instrument_id else h
                    for h in state.portfolio
                )
            else:
                portfolio = state.portfolio + (
                    HoldingLot(
                        instrument_id=instrument_id,
                        name=instrument.name,
                        code=instrument.code,
                        quantity=shares,
                        average_cost=price,
                    ),
                )

            new_state = AccountState(balance=state.balance - cost, portfolio=portfolio)
            self._commit(new_state)

        logger.info(
            "Bought %d shares of %s at %.2f (cost %.2f, balance %.2f).",
            shares,
            instrument.code,
            price,
            cost,
            new_state.balance,
        )
        return TradeReceipt(
            side="buy",
            instrument_id=instrument_id,
            lots=lots,
            shares=shares,
            price=price,
            amount=cost,
            balance_after=new_state.balance,
        )

    def sell(self, instrument_id: str, lots: int) -> TradeReceipt:
        """Sell *lots* lots of *instrument_id* at its current price.

        The average cost of the remaining shares is unchanged; a holding that
        reaches zero shares is removed. Raises ``InvalidQuantity``,
        ``NoShortSelling`` or ``UnknownInstrument``; the account is unchanged
        in each case.
        """
        shares = self._shares(lots)

        with self._lock:
            state = self._state
            existing = state.holding_for(instrument_id)
            held = existing.quantity if existing is not None else 0
            if shares > held:
                logger.warning(
                    "Rejected sell of %d shares of %s: only %d held.",
                    shares,
                    instrument_id,
                    held,
                )
                raise NoShortSelling(
                    f"Cannot sell {shares} shares of {instrument_id}: only {held} held."
                )

            instrument = self._market.get_instrument(instrument_id)
            price = instrument.price
            proceeds = shares * price

            remaining = held - shares
            if remaining == 0:
                portfolio = tuple(
                    h for h in state.portfolio if h.instrument_id != instrument_id
                )
            else:
                reduced = existing.model_copy(update={"quantity": remaining})
                portfolio = tuple(
                    reduced if h.instrument_id == instrument_id else h
                    for h in state.portfolio
                )

            new_state = AccountState(balance=state.balance + proceeds, portfolio=portfolio)
            self._commit(new_state)

        logger.info(
            "Sold %d shares of %s at %.2f (proceeds %.2f, balance %.2f).",
            shares,
            instrument.code,
            price,
            proceeds,
            new_state.balance,
        )
        return TradeReceipt(
            side="sell",
            instrument_id=instrument_id,
            lots=lots,
            shares=shares,
            price=price,
            amount=proceeds,
            balance_after=new_state.balance,
        )

    def reset(self) -> AccountState:
        """Restore the starting balance with no holdings and delete the persisted record."""
        with self._lock:
            self._store.clear()
            self._state = self._initial_state()
        logger.info("Account reset to starting balance %.2f.", self._state.balance)
        return self._state

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _initial_state(self) -> AccountState:
        return AccountState(balance=self._config.starting_balance, portfolio=())

    def _shares(self, lots: int) -> int:
        """Validate *lots* and convert it to a share count."""
        if isinstance(lots, bool) or not isinstance(lots, int) or lots <= 0:
            raise InvalidQuantity(f"Lot count must be a positive integer, got {lots!r}.")
        return lots * self._config.lot_size

    def _commit(self, new_state: AccountState) -> None:
        """Persist *new_state*, then make it current."""
        self._store.save(new_state)
        self._state = new_state
