"""Application configuration models, loaded from YAML.

These live in ``models/`` because they are shared data contracts used by the
market simulator, the ledger, the commentary fetcher and the CLI.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, model_validator

DEFAULT_SECTORS: list[str] = [
    "AI Chips",
    "New Energy",
    "Aerospace & Defense",
    "Low-Altitude Economy",
    "Biomedicine",
    "Financials",
    "Semiconductors",
    "Consumer Electronics",
    "Baijiu",
    "Digital Economy",
]


class MarketConfig(BaseModel):
    """Configuration for the synthetic market."""

    num_instruments: int = Field(
        default=200,
        gt=0,
        description="Number of instruments in the universe.",
    )
    history_length: int = Field(
        default=100,
        gt=0,
        description="Number of daily bars synthesized per instrument.",
    )
    base_price_min: float = Field(
        default=5.0,
        gt=0,
        description="Lower bound of the random base price.",
    )
    base_price_max: float = Field(
        default=205.0,
        gt=0,
        description="Upper bound of the random base price.",
    )
    history_volatility: float = Field(
        default=0.05,
        gt=0,
        lt=2.0,
        description="Full width of the symmetric per-bar perturbation (0.05 = +/-2.5%).",
    )
    bar_range_jitter: float = Field(
        default=0.02,
        ge=0,
        lt=1.0,
        description="Maximum fraction by which a bar's high/low extend past open/close.",
    )
    max_volume: int = Field(
        default=1_000_000,
        gt=0,
        description="Exclusive upper bound for synthesized bar volume.",
    )
    tick_interval_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Seconds between price ticks.",
    )
    tick_volatility: float = Field(
        default=0.002,
        gt=0,
        lt=2.0,
        description="Full width of the per-tick perturbation (0.002 = +/-0.1%).",
    )
    previous_close_ratio: float = Field(
        default=0.98,
        gt=0,
        description="Seed for previous close as a fraction of the starting price.",
    )
    intraday_points: int = Field(
        default=240,
        gt=0,
        description="Number of tick prices retained per instrument for the intraday chart.",
    )
    sectors: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SECTORS),
        min_length=1,
        description="Sector names assigned round-robin to instruments.",
    )
    seed: int | None = Field(
        default=None,
        description="Random seed for reproducible markets; None draws from the OS.",
    )
    as_of: date | None = Field(
        default=None,
        description="Date the generated history ends before; None means today.",
    )

    @model_validator(mode="after")
    def _check_price_range(self) -> MarketConfig:
        if self.base_price_max < self.base_price_min:
            raise ValueError(
                f"base_price_max ({self.base_price_max}) must be >= "
                f"base_price_min ({self.base_price_min})."
            )
        return self


class LedgerConfig(BaseModel):
    """Configuration for the portfolio ledger."""

    starting_balance: float = Field(
        default=100_000.0,
        gt=0,
        description="Cash balance of a fresh or reset account.",
    )
    lot_size: int = Field(
        default=100,
        gt=0,
        description="Shares per lot.",
    )
    default_trade_lots: int = Field(
        default=1,
        gt=0,
        description="Initial value of the trade quantity input.",
    )


class StorageConfig(BaseModel):
    """Where the account record is persisted."""

    enabled: bool = Field(
        default=True,
        description="Persist the account record after every mutation.",
    )
    state_dir: str = Field(
        default=".star_trade",
        description="Directory holding the account record.",
    )
    record_name: str = Field(
        default="star_trade_user",
        description="Name of the persisted account record (file stem).",
    )

    @property
    def record_path(self) -> Path:
        return Path(self.state_dir).expanduser() / f"{self.record_name}.json"


class CommentaryConfig(BaseModel):
    """Configuration for the AI commentary fetcher."""

    llm_provider: str = Field(
        default="openai",
        description="LLM provider identifier: 'openai', 'anthropic' or 'mock'.",
    )
    llm_model: str = Field(
        default="gpt-4o-mini",
        description="Model selector sent with every request.",
    )
    temperature: float = Field(
        default=0.9,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for the LLM.",
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Give up on a commentary request after this many seconds.",
    )
    placeholder: str = Field(
        default="Analyzing the market...",
        description="Shown while the first request for a selection is in flight.",
    )
    empty_fallback: str = Field(
        default="The AI advisor is watching the tape. Please try again shortly.",
        description="Returned when the service answers with no text.",
    )
    error_fallback: str = Field(
        default="The market is too choppy, so the AI analyst stepped out for coffee.",
        description="Returned when the service call fails.",
    )


class AppConfig(BaseModel):
    """Top-level configuration, loaded from YAML. Every section is optional."""

    market: MarketConfig = Field(default_factory=MarketConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    commentary: CommentaryConfig = Field(default_factory=CommentaryConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> AppConfig:
        """Load and validate an ``AppConfig`` from a YAML file.

        Raises ``FileNotFoundError`` if the file does not exist and
        ``ValueError`` if the content is not a valid YAML mapping.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with path.open(encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)

        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ValueError(
                f"Expected a YAML mapping in {path}, got {type(raw).__name__}."
            )

        return cls(**raw)
