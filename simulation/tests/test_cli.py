"""
Tests for the interactive command loop.

Tests verify:
  1. Commands are routed to the session and print their result
  2. Rejected trades and failed saves are reported without ending the loop
  3. quit ends the loop
"""

import pytest

import run_trading
from api_client.llm.chat_client import MockLLMClient
from commentary.fetcher import CommentaryChannel, CommentaryFetcher
from models.config import CommentaryConfig, LedgerConfig, MarketConfig
from models.market import Instrument
from models.portfolio import AccountState
from simulation.account_store import MemoryAccountStore
from simulation.ledger import PortfolioLedger
from simulation.market import MarketSimulator
from simulation.session import TradingSession


class ReadOnlyStore(MemoryAccountStore):
    def save(self, state: AccountState) -> None:
        raise PermissionError("read-only file system")


def make_session(store: MemoryAccountStore) -> TradingSession:
    instrument = Instrument(
        id="stock-0",
        name="Name 0",
        code="600000",
        price=50.0,
        open_price=50.0,
        high=50.0,
        low=50.0,
        last_close=50.0,
        change_percent=0.0,
        sector="AI Chips",
    )
    market = MarketSimulator(MarketConfig(seed=1), instruments=[instrument])
    config = CommentaryConfig(llm_provider="mock")
    channel = CommentaryChannel(CommentaryFetcher(MockLLMClient(), config), config.placeholder)
    return TradingSession(market, PortfolioLedger(LedgerConfig(), market, store), channel)


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def session() -> TradingSession:
    return make_session(MemoryAccountStore())


# =============================================================================
# COMMAND LOOP
# =============================================================================


def test_buy_prints_receipt(session, capsys):
    assert run_trading._run_command(session, "buy") is True
    assert "Buy 100 shares at 50.00" in capsys.readouterr().out
    assert session.account().balance == pytest.approx(95_000)


def test_blank_line_is_ignored(session, capsys):
    assert run_trading._run_command(session, "   ") is True
    assert capsys.readouterr().out == ""


def test_rejected_trade_keeps_loop_running(session, capsys):
    assert run_trading._run_command(session, "sell") is True
    assert capsys.readouterr().out.startswith("Rejected:")


def test_invalid_quantity_keeps_loop_running(session, capsys):
    assert run_trading._run_command(session, "qty 1_000") is True
    assert run_trading._run_command(session, "buy") is True
    assert "Rejected:" in capsys.readouterr().out
    assert session.account().balance == 100_000


def test_failed_save_is_reported_and_loop_continues(capsys):
    session = make_session(ReadOnlyStore())

    assert run_trading._run_command(session, "buy") is True

    out = capsys.readouterr().out
    assert "could not save the account" in out
    assert session.account() == AccountState(balance=100_000, portfolio=())


def test_quit_ends_loop(session):
    assert run_trading._run_command(session, "quit") is False
    assert run_trading._run_command(session, "EXIT") is False
