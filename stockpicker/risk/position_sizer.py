from __future__ import annotations

import math

from stockpicker.core.config import RiskManagementConfig
from stockpicker.core.types import Signal


class PositionSizer:
    def __init__(self, config: RiskManagementConfig) -> None:
        self._config = config

    def target_fraction(self, signal: Signal) -> float:
        """Share of portfolio value to hold; a tiered signal size wins over the default."""
        if signal.position_size is not None:
            return signal.position_size
        return self._config.max_position_size

    def calculate(
        self,
        signal: Signal,
        fill_price: float,
        total_value: float,
        cash: float,
        commission: float = 0.0,
        held_value: float = 0.0,
    ) -> int:
        """Whole shares to buy at ``fill_price``.

        The target notional is topped up against ``held_value`` and capped by
        the cash left after commission and the configured cash reserve.
        """
        if fill_price <= 0:
            return 0
        target = total_value * self.target_fraction(signal) - held_value
        spendable = cash - commission - total_value * self._config.min_cash_reserve
        notional = min(target, spendable)
        if notional <= 0:
            return 0
        return math.floor(notional / fill_price)
