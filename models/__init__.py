"""Data models for the stock-trading simulator.

The market simulator, the ledger and the commentary fetcher all import from
models.
"""

from models.config import AppConfig, CommentaryConfig, LedgerConfig, MarketConfig, StorageConfig
from models.market import ChartPeriod, Instrument, OHLCVBar
from models.portfolio import AccountState, HoldingLot, TradeReceipt

__all__ = [
    # config
    "AppConfig",
    "CommentaryConfig",
    "LedgerConfig",
    "MarketConfig",
    "StorageConfig",
    # market
    "ChartPeriod",
    "Instrument",
    "OHLCVBar",
    # portfolio
    "AccountState",
    "HoldingLot",
    "TradeReceipt",
]
