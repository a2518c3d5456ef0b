"""Account state models: holdings, the persisted account snapshot, trade receipts."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class HoldingLot(BaseModel):
    """Shares held in a single instrument.

    ``name`` and ``code`` are captured at first purchase and never re-synced
    with the instrument. Field aliases match the persisted record layout.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    instrument_id: str = Field(alias="stockId")
    name: str
    code: str
    quantity: int = Field(gt=0, description="Shares held, a multiple of the lot size.")
    average_cost: float = Field(alias="averageCost")


class AccountState(BaseModel):
    """Cash balance and holdings, persisted as a whole after every mutation.

    Holdings are keyed by instrument id; at most one ``HoldingLot`` per
    instrument.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    balance: float = Field(ge=0)
    portfolio: tuple[HoldingLot, ...] = ()

    @model_validator(mode="after")
    def _unique_holdings(self) -> AccountState:
        ids = [h.instrument_id for h in self.portfolio]
        if len(ids) != len(set(ids)):
            raise ValueError("Duplicate holdings for the same instrument.")
        return self

    def holding_for(self, instrument_id: str) -> HoldingLot | None:
        """Return the holding for *instrument_id*, or ``None``."""
        for holding in self.portfolio:
            if holding.instrument_id == instrument_id:
                return holding
        return None

    def to_record(self) -> dict:
        """Serialize to the persisted record layout (camelCase keys)."""
        return self.model_dump(by_alias=True, mode="json")


class TradeReceipt(BaseModel):
    """Result of an accepted buy or sell, returned for display only."""

    model_config = ConfigDict(frozen=True)

    side: Literal["buy", "sell"]
    instrument_id: str
    lots: int
    shares: int
    price: float
    amount: float
    balance_after: float
