"""Read-only valuation of an account against current prices.

Nothing here is cached or persisted: every figure is recomputed from the
account snapshot and the price mapping passed in.
"""

from __future__ import annotations

from typing import Mapping

from pydantic import BaseModel

from models.portfolio import AccountState, HoldingLot


class HoldingValuation(BaseModel):
    """One holding marked to the current price."""

    instrument_id: str
    name: str
    code: str
    quantity: int
    average_cost: float
    current_price: float
    market_value: float
    profit: float
    profit_percent: float


class PortfolioValuation(BaseModel):
    """Cash, market value of all holdings, and per-holding detail."""

    balance: float
    market_value: float
    total_equity: float
    holdings: list[HoldingValuation]


def unrealized_profit(holding: HoldingLot, price: float) -> float:
    return (price - holding.average_cost) * holding.quantity


def unrealized_profit_percent(holding: HoldingLot, price: float) -> float:
    return (price - holding.average_cost) / holding.average_cost * 100


def value_holding(holding: HoldingLot, price: float) -> HoldingValuation:
    return HoldingValuation(
        instrument_id=holding.instrument_id,
        name=holding.name,
        code=holding.code,
        quantity=holding.quantity,
        average_cost=holding.average_cost,
        current_price=price,
        market_value=price * holding.quantity,
        profit=unrealized_profit(holding, price),
        profit_percent=unrealized_profit_percent(holding, price),
    )


def market_value(account: AccountState, prices: Mapping[str, float]) -> float:
    """Sum of ``price x quantity`` over holdings.

    A holding whose instrument has no price contributes zero.
    """
    return sum(prices.get(h.instrument_id, 0.0) * h.quantity for h in account.portfolio)


def value_portfolio(account: AccountState, prices: Mapping[str, float]) -> PortfolioValuation:
    """Mark every holding in *account* to *prices*."""
    holdings = [value_holding(h, prices.get(h.instrument_id, 0.0)) for h in account.portfolio]
    total = sum(h.market_value for h in holdings)
    return PortfolioValuation(
        balance=account.balance,
        market_value=total,
        total_equity=account.balance + total,
        holdings=holdings,
    )
