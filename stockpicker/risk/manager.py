from __future__ import annotations

from collections.abc import Mapping

from stockpicker.core.config import RiskManagementConfig
from stockpicker.core.types import SimulatedPosition


class RiskPolicy:
    """Gatekeeper for new exposure during a simulated trading day.

    SELLs are never blocked. A BUY for a symbol that is not yet held is
    refused once ``max_positions`` are open, and every BUY is refused after
    the portfolio has lost more than ``max_daily_loss`` since the prior
    close.
    """

    def __init__(self, config: RiskManagementConfig) -> None:
        self._config = config
        self._day_start_value: float = 0.0

    def start_day(self, previous_close_value: float) -> None:
        """Set the baseline for the daily loss check.

        Args:
            previous_close_value: Total portfolio value at the prior day's close.
        """
        self._day_start_value = previous_close_value

    def check_buy(
        self,
        symbol: str,
        positions: Mapping[str, SimulatedPosition],
        total_value: float,
    ) -> tuple[bool, str]:
        """Return ``(allowed, reason)`` for a prospective BUY."""
        if not self._check_max_positions(symbol, positions):
            return False, f"max positions reached ({self._config.max_positions})"
        if not self._check_daily_loss(total_value):
            return False, "daily loss limit reached"
        return True, ""

    def _check_max_positions(self, symbol: str, positions: Mapping[str, SimulatedPosition]) -> bool:
        if symbol in positions:
            return True
        return len(positions) < self._config.max_positions

    def _check_daily_loss(self, total_value: float) -> bool:
        limit = self._config.max_daily_loss
        if limit is None or self._day_start_value <= 0:
            return True
        loss = (self._day_start_value - total_value) / self._day_start_value
        return loss < limit
