from __future__ import annotations

from collections.abc import Sequence

from stockpicker.core.types import PriceBar


class QualityFilter:
    """Pre-scoring filter for the small-cap universe.

    Rejects symbols outside the market-cap band (only when the cap is
    known), below the minimum price or last-bar volume, or with too short a
    history to score. Rejected symbols are filtered, never scored.
    """

    def __init__(
        self,
        min_market_cap: float = 50e6,
        max_market_cap: float = 2e9,
        min_price: float = 2.0,
        min_volume: float = 50_000,
        min_history: int = 100,
    ) -> None:
        self.min_market_cap = min_market_cap
        self.max_market_cap = max_market_cap
        self.min_price = min_price
        self.min_volume = min_volume
        self.min_history = min_history

    def check(
        self, bars: Sequence[PriceBar], market_cap: float | None = None
    ) -> tuple[bool, str]:
        """Return ``(passed, reason)``; ``reason`` is empty when passed."""
        if len(bars) < self.min_history:
            return False, f"insufficient history ({len(bars)} < {self.min_history} bars)"
        last = bars[-1]
        if market_cap is not None and not (
            self.min_market_cap <= market_cap <= self.max_market_cap
        ):
            return False, f"market cap {market_cap:,.0f} outside band"
        if last.close < self.min_price:
            return False, f"price {last.close:.2f} below {self.min_price:.2f}"
        if last.volume < self.min_volume:
            return False, f"volume {last.volume:,.0f} below {self.min_volume:,.0f}"
        return True, ""

    def passes(self, bars: Sequence[PriceBar], market_cap: float | None = None) -> bool:
        """Check if a symbol's history passes every quality threshold."""
        return self.check(bars, market_cap)[0]
