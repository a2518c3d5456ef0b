"""Account persistence: a single named JSON record holding the AccountState.

The record layout is::

    {
      "balance": 95000.0,
      "portfolio": [
        {"stockId": "stock-0", "name": "...", "code": "600000",
         "quantity": 100, "averageCost": 50.0}
      ]
    }

It is read once at startup, rewritten after every successful ledger mutation
and deleted on reset.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from models.config import StorageConfig
from models.portfolio import AccountState

logger = logging.getLogger(__name__)


class AccountStore(Protocol):
    def load(self) -> AccountState | None:
        ...

    def save(self, state: AccountState) -> None:
        ...

    def clear(self) -> None:
        ...


class JsonAccountStore:
    """Stores the account record as ``{state_dir}/{record_name}.json``."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @classmethod
    def from_config(cls, config: StorageConfig) -> JsonAccountStore:
        return cls(config.record_path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> AccountState | None:
        """Return the persisted account, or ``None`` when there is no usable record.

        A record that cannot be read or parsed is logged and ignored so the
        caller falls back to a fresh account.
        """
        if not self._path.exists():
            return None
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            state = AccountState.model_validate(raw)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Ignoring unreadable account record %s: %s", self._path, exc)
            return None
        logger.info(
            "Loaded account from %s: balance %.2f, %d holding(s).",
            self._path,
            state.balance,
            len(state.portfolio),
        )
        return state

    def save(self, state: AccountState) -> None:
        """Write *state* as the current record."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        _write_json(self._path, state.to_record())
        logger.debug("Saved account record to %s", self._path)

    def clear(self) -> None:
        """Delete the record if present."""
        self._path.unlink(missing_ok=True)
        logger.info("Cleared account record %s", self._path)


class MemoryAccountStore:
    """In-process store, used when persistence is disabled."""

    def __init__(self, state: AccountState | None = None) -> None:
        self._record: dict[str, Any] | None = state.to_record() if state else None

    def load(self) -> AccountState | None:
        if self._record is None:
            return None
        return AccountState.model_validate(self._record)

    def save(self, state: AccountState) -> None:
        self._record = state.to_record()

    def clear(self) -> None:
        self._record = None

    @property
    def record(self) -> dict[str, Any] | None:
        return self._record


def create_account_store(config: StorageConfig) -> AccountStore:
    """Return a file-backed store, or an in-memory one when storage is disabled."""
    if config.enabled:
        return JsonAccountStore.from_config(config)
    return MemoryAccountStore()


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _write_json(path: Path, data: Any) -> None:
    """Write *data* as pretty-printed JSON to *path*, replacing it in one step."""
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    tmp.replace(path)
