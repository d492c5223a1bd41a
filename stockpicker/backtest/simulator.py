from __future__ import annotations

import threading
from collections.abc import Mapping
from datetime import datetime

from stockpicker.core.exceptions import FillError
from stockpicker.core.types import (
    BacktestTrade,
    DailySnapshot,
    OrderSide,
    SimulatedPosition,
    Signal,
)


class PortfolioSimulator:
    """Cash and positions for a single backtest run.

    Fills are priced at the close moved against the trader by ``slippage``
    and charged a flat ``commission``. Every fill computes the new cash and
    position values before assigning any of them, so a rejected fill leaves
    the portfolio untouched. Fills are serialized by a per-run lock.
    """

    def __init__(self, initial_cash: float, commission: float = 0.0, slippage: float = 0.0) -> None:
        self._cash = initial_cash
        self._commission = commission
        self._slippage = slippage
        self._positions: dict[str, SimulatedPosition] = {}
        self._lock = threading.Lock()

    @property
    def cash(self) -> float:
        return self._cash

    @property
    def positions(self) -> Mapping[str, SimulatedPosition]:
        return dict(self._positions)

    @property
    def position_count(self) -> int:
        return len(self._positions)

    @property
    def positions_value(self) -> float:
        return sum(p.market_value for p in self._positions.values())

    @property
    def total_value(self) -> float:
        return self._cash + self.positions_value

    @property
    def commission(self) -> float:
        return self._commission

    def fill_price(self, close: float, side: OrderSide) -> float:
        if side == OrderSide.BUY:
            return close * (1 + self._slippage)
        return close * (1 - self._slippage)

    def mark_to_market(self, prices: Mapping[str, float]) -> None:
        """Reprice open positions; symbols missing from ``prices`` keep their last price."""
        for symbol, position in self._positions.items():
            price = prices.get(symbol)
            if price is not None:
                position.current_price = price

    def buy(
        self,
        symbol: str,
        quantity: int,
        close: float,
        timestamp: datetime,
        signal: Signal | None = None,
    ) -> BacktestTrade:
        if quantity <= 0:
            raise FillError(symbol, f"quantity must be positive, got {quantity}")
        price = self.fill_price(close, OrderSide.BUY)
        cost = quantity * price + self._commission

        with self._lock:
            if cost > self._cash:
                raise FillError(symbol, f"insufficient cash: need {cost:.2f}, have {self._cash:.2f}")

            existing = self._positions.get(symbol)
            if existing is None:
                position = SimulatedPosition(symbol, quantity, price, close)
            else:
                new_quantity = existing.quantity + quantity
                average = (existing.cost_basis + quantity * price) / new_quantity
                position = SimulatedPosition(symbol, new_quantity, average, close)

            self._cash -= cost
            self._positions[symbol] = position

        return BacktestTrade(
            timestamp=timestamp,
            symbol=symbol,
            side=OrderSide.BUY,
            quantity=quantity,
            price=price,
            amount=cost,
            commission=self._commission,
            signal=signal,
            pnl=None,
        )

    def sell(
        self,
        symbol: str,
        close: float,
        timestamp: datetime,
        signal: Signal | None = None,
    ) -> BacktestTrade:
        """Liquidate the whole position in ``symbol``."""
        price = self.fill_price(close, OrderSide.SELL)

        with self._lock:
            position = self._positions.get(symbol)
            if position is None:
                raise FillError(symbol, "no open position")
            quantity = position.quantity
            proceeds = quantity * price - self._commission
            pnl = quantity * (price - position.average_price)

            self._cash += proceeds
            del self._positions[symbol]

        return BacktestTrade(
            timestamp=timestamp,
            symbol=symbol,
            side=OrderSide.SELL,
            quantity=quantity,
            price=price,
            amount=proceeds,
            commission=self._commission,
            signal=signal,
            pnl=pnl,
        )

    def snapshot(self, timestamp: datetime, previous_total: float | None = None) -> DailySnapshot:
        total = self.total_value
        daily_return = 0.0 if previous_total is None else total - previous_total
        return DailySnapshot(
            timestamp=timestamp,
            total_value=total,
            cash_balance=self._cash,
            positions_value=self.positions_value,
            position_count=self.position_count,
            daily_return=daily_return,
        )
