from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import TYPE_CHECKING

from stockpicker.core.types import BacktestTrade, DailySnapshot, PriceBar

if TYPE_CHECKING:
    from stockpicker.portfolio.performance import PerformanceMetrics


class PriceHistory(ABC):
    """Source of daily bars for the backtest engine."""

    @abstractmethod
    async def get_price_history(self, symbol: str, start: date, end: date) -> list[PriceBar]:
        """Bars dated within ``[start, end]``, ascending with no duplicate timestamps."""


class ResultSink(ABC):
    """Optional destination for backtest output."""

    @abstractmethod
    async def save_trades(self, run_id: str, trades: list[BacktestTrade]) -> None: ...

    @abstractmethod
    async def save_snapshots(self, run_id: str, snapshots: list[DailySnapshot]) -> None: ...

    @abstractmethod
    async def save_metrics(self, run_id: str, metrics: PerformanceMetrics) -> None: ...
