"""Core configuration management module."""
from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class SystemConfig(BaseModel):
    """System-level configuration."""

    model_config = ConfigDict(use_enum_values=True)

    name: str = "stockpicker"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_dir: str | None = "logs"


class DataConfig(BaseModel):
    """Price history and result storage configuration."""

    model_config = ConfigDict(use_enum_values=True)

    sqlite_path: str = "data/stockpicker.db"
    io_timeout_seconds: float = 30.0

    @field_validator("io_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate that the I/O timeout is positive."""
        if v <= 0:
            raise ValueError("io_timeout_seconds must be positive")
        return v


class EngineConfig(BaseModel):
    """Backtest engine execution configuration."""

    model_config = ConfigDict(use_enum_values=True)

    evaluation_workers: int = 1
    record_results: bool = True

    @field_validator("evaluation_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Validate that at least one evaluation worker is configured."""
        if v < 1:
            raise ValueError("evaluation_workers must be at least 1")
        return v


class FactorConfig(BaseModel):
    """One factor entry of a weighted strategy."""

    model_config = ConfigDict(use_enum_values=True)

    name: str
    kind: str | None = None
    type: Literal["technical", "fundamental", "sentiment"] = "technical"
    weight: float = 1.0
    enabled: bool = True
    params: dict[str, Any] = Field(default_factory=dict)

    @property
    def factor_kind(self) -> str:
        """Registry key of the evaluator; defaults to the factor name."""
        return self.kind or self.name

    @field_validator("weight")
    @classmethod
    def validate_weight(cls, v: float) -> float:
        """Validate that the weight is between 0 and 1."""
        if not 0 <= v <= 1:
            raise ValueError("weight must be between 0 and 1")
        return v


class RiskManagementConfig(BaseModel):
    """Position sizing and exposure limits applied to every fill."""

    model_config = ConfigDict(use_enum_values=True)

    max_position_size: float = 0.10
    stop_loss_percent: float = 0.05
    take_profit_percent: float | None = None
    max_positions: int = 10
    max_daily_loss: float | None = None
    min_cash_reserve: float = 0.0

    @field_validator("max_position_size")
    @classmethod
    def validate_position_size(cls, v: float) -> float:
        """Validate that max_position_size is a fraction in (0, 1]."""
        if not 0 < v <= 1:
            raise ValueError("max_position_size must be between 0 and 1")
        return v

    @field_validator("stop_loss_percent", "min_cash_reserve")
    @classmethod
    def validate_fractions(cls, v: float) -> float:
        """Validate that fractional limits are in [0, 1)."""
        if not 0 <= v < 1:
            raise ValueError("Percentage values must be between 0 and 1")
        return v

    @field_validator("take_profit_percent")
    @classmethod
    def validate_take_profit(cls, v: float | None) -> float | None:
        """Validate that take_profit_percent is not negative."""
        if v is not None and v < 0:
            raise ValueError("take_profit_percent must not be negative")
        return v

    @field_validator("max_daily_loss")
    @classmethod
    def validate_daily_loss(cls, v: float | None) -> float | None:
        """Validate that max_daily_loss is a fraction in (0, 1)."""
        if v is not None and not 0 < v < 1:
            raise ValueError("max_daily_loss must be between 0 and 1")
        return v

    @field_validator("max_positions")
    @classmethod
    def validate_positions(cls, v: int) -> int:
        """Validate that max_positions is positive."""
        if v <= 0:
            raise ValueError("max_positions must be positive")
        return v


class StrategyConfig(BaseModel):
    """A tradable strategy: scoring variant, factors, risk rules and universe."""

    model_config = ConfigDict(use_enum_values=True)

    id: str
    name: str = ""
    scoring: Literal["weighted", "fixed_rule"] = "weighted"
    factors: list[FactorConfig] = Field(default_factory=list)
    risk_management: RiskManagementConfig = RiskManagementConfig()
    stock_universe: list[str]
    enabled: bool = True
    buy_threshold: float = 0.75
    sell_threshold: float = 0.50
    min_market_cap: float = 50e6
    max_market_cap: float = 2e9

    @field_validator("stock_universe")
    @classmethod
    def validate_universe(cls, v: list[str]) -> list[str]:
        """Normalize symbols to upper case and drop duplicates, keeping order."""
        symbols: list[str] = []
        for symbol in v:
            if not isinstance(symbol, str) or not symbol.strip():
                raise ValueError("Each symbol must be a non-empty string")
            normalized = symbol.strip().upper()
            if normalized not in symbols:
                symbols.append(normalized)
        if not symbols:
            raise ValueError("stock_universe must contain at least one symbol")
        return symbols

    @field_validator("buy_threshold", "sell_threshold")
    @classmethod
    def validate_thresholds(cls, v: float) -> float:
        """Validate that thresholds lie on the combined score scale."""
        if not 0 <= v <= 1:
            raise ValueError("Signal thresholds must be between 0 and 1")
        return v

    @model_validator(mode="after")
    def validate_strategy(self) -> StrategyConfig:
        if self.sell_threshold >= self.buy_threshold:
            raise ValueError("sell_threshold must be below buy_threshold")
        if self.min_market_cap >= self.max_market_cap:
            raise ValueError("min_market_cap must be below max_market_cap")
        if self.scoring == "weighted" and not any(f.enabled for f in self.factors):
            raise ValueError("A weighted strategy needs at least one enabled factor")
        return self

    @property
    def enabled_factors(self) -> list[FactorConfig]:
        return [f for f in self.factors if f.enabled]


class BacktestConfig(BaseModel):
    """Window, capital and frictions for a single backtest run."""

    model_config = ConfigDict(use_enum_values=True)

    strategy_id: str
    start_date: date
    end_date: date
    initial_cash: float = 100_000.0
    commission: float = 0.0
    slippage: float = 0.0
    lookback_days: int = 0

    @field_validator("initial_cash")
    @classmethod
    def validate_cash(cls, v: float) -> float:
        """Validate that initial cash is positive."""
        if v <= 0:
            raise ValueError("initial_cash must be positive")
        return v

    @field_validator("commission", "lookback_days")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("commission and lookback_days must not be negative")
        return v

    @field_validator("slippage")
    @classmethod
    def validate_slippage(cls, v: float) -> float:
        """Validate that slippage is a fraction in [0, 1)."""
        if not 0 <= v < 1:
            raise ValueError("slippage must be between 0 and 1")
        return v

    @model_validator(mode="after")
    def validate_window(self) -> BacktestConfig:
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class Settings(BaseModel):
    """Root settings configuration."""

    model_config = ConfigDict(use_enum_values=True)

    system: SystemConfig = SystemConfig()
    data: DataConfig = DataConfig()
    engine: EngineConfig = EngineConfig()
    strategies: list[StrategyConfig] = Field(default_factory=list)
    backtest: BacktestConfig | None = None
    market_caps: dict[str, float] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_strategy_ids(self) -> Settings:
        ids = [s.id for s in self.strategies]
        if len(ids) != len(set(ids)):
            raise ValueError("Strategy ids must be unique")
        if self.backtest is not None and self.backtest.strategy_id not in ids:
            raise ValueError(
                f"Backtest references unknown strategy: {self.backtest.strategy_id}"
            )
        return self

    def get_strategy(self, strategy_id: str) -> StrategyConfig:
        for strategy in self.strategies:
            if strategy.id == strategy_id:
                return strategy
        raise KeyError(strategy_id)


def load_settings(path: Path | str) -> Settings:
    """Load settings from a YAML configuration file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Settings instance with loaded configuration.

    Raises:
        FileNotFoundError: If configuration file does not exist.
        yaml.YAMLError: If YAML is invalid.
        ValueError: If configuration is invalid.
    """
    config_path = Path(path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        raw_config = {}

    return Settings.model_validate(raw_config)
