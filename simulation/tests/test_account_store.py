"""Tests for persisting the account record."""

import json

import pytest

from models.config import StorageConfig
from models.portfolio import AccountState, HoldingLot
from simulation.account_store import (
    JsonAccountStore,
    MemoryAccountStore,
    create_account_store,
)


@pytest.fixture
def state() -> AccountState:
    return AccountState(
        balance=95_000.0,
        portfolio=(
            HoldingLot(
                instrument_id="stock-0",
                name="AI Li Technology",
                code="600000",
                quantity=100,
                average_cost=50.0,
            ),
        ),
    )


def test_record_uses_persisted_layout(state):
    assert state.to_record() == {
        "balance": 95_000.0,
        "portfolio": [
            {
                "stockId": "stock-0",
                "name": "AI Li Technology",
                "code": "600000",
                "quantity": 100,
                "averageCost": 50.0,
            }
        ],
    }


def test_json_store_round_trip(tmp_path, state):
    store = JsonAccountStore(tmp_path / "state" / "star_trade_user.json")
    store.save(state)

    on_disk = json.loads(store.path.read_text(encoding="utf-8"))
    assert on_disk["portfolio"][0]["averageCost"] == 50.0
    assert store.load() == state


def test_json_store_missing_record_loads_none(tmp_path):
    assert JsonAccountStore(tmp_path / "absent.json").load() is None


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        '{"balance": -5, "portfolio": []}',
        '{"portfolio": []}',
        '{"balance": 1, "portfolio": [{"stockId": "a", "name": "x", "code": "1", "quantity": 0, "averageCost": 1}]}',
    ],
)
def test_json_store_ignores_unreadable_record(tmp_path, content):
    path = tmp_path / "star_trade_user.json"
    path.write_text(content, encoding="utf-8")
    assert JsonAccountStore(path).load() is None


def test_json_store_ignores_undecodable_bytes(tmp_path):
    path = tmp_path / "star_trade_user.json"
    path.write_bytes(b'{"balance": 1, "portfolio": []}\xff\xfe')
    assert JsonAccountStore(path).load() is None


def test_json_store_ignores_directory_at_record_path(tmp_path):
    path = tmp_path / "star_trade_user.json"
    path.mkdir()
    assert JsonAccountStore(path).load() is None


def test_json_store_clear(tmp_path, state):
    store = JsonAccountStore(tmp_path / "star_trade_user.json")
    store.save(state)
    store.clear()
    assert not store.path.exists()
    store.clear()  # already gone


def test_duplicate_holdings_rejected():
    lot = HoldingLot(instrument_id="stock-0", name="A", code="600000", quantity=100, average_cost=1.0)
    with pytest.raises(ValueError):
        AccountState(balance=1.0, portfolio=(lot, lot))


def test_memory_store(state):
    store = MemoryAccountStore()
    assert store.load() is None
    store.save(state)
    assert store.load() == state
    store.clear()
    assert store.record is None


def test_create_account_store_follows_config(tmp_path):
    enabled = create_account_store(StorageConfig(state_dir=str(tmp_path), record_name="acct"))
    assert isinstance(enabled, JsonAccountStore)
    assert enabled.path == tmp_path / "acct.json"

    disabled = create_account_store(StorageConfig(enabled=False))
    assert isinstance(disabled, MemoryAccountStore)
