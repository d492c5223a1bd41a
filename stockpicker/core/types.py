from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class FactorType(str, Enum):
    TECHNICAL = "technical"
    FUNDAMENTAL = "fundamental"
    SENTIMENT = "sentiment"


class SignalType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True, slots=True)
class PriceBar:
    symbol: str
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class FactorScore:
    """Normalized opinion of one factor for one symbol on one evaluation date.

    ``value`` lies in [-1, 1] for factor evaluators. Composite sub-scores use
    the same record with ``value`` expressed in points.
    """

    factor_name: str
    value: float
    confidence: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Signal:
    symbol: str
    type: SignalType
    strength: float
    timestamp: datetime
    factor_scores: tuple[FactorScore, ...] = ()
    stop_loss: float | None = None
    take_profit: float | None = None
    reasoning: str = ""
    position_size: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_actionable(self) -> bool:
        return self.type != SignalType.HOLD


@dataclass
class SimulatedPosition:
    symbol: str
    quantity: int
    average_price: float
    current_price: float

    @property
    def cost_basis(self) -> float:
        return self.quantity * self.average_price

    @property
    def market_value(self) -> float:
        return self.quantity * self.current_price

    @property
    def unrealized_pnl(self) -> float:
        return self.market_value - self.cost_basis


@dataclass(frozen=True)
class BacktestTrade:
    timestamp: datetime
    symbol: str
    side: OrderSide
    quantity: int
    price: float
    amount: float
    commission: float
    signal: Signal | None = None
    pnl: float | None = None


@dataclass(frozen=True)
class DailySnapshot:
    timestamp: datetime
    total_value: float
    cash_balance: float
    positions_value: float
    position_count: int
    daily_return: float
