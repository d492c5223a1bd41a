from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Literal

from stockpicker.core.types import PriceBar
from stockpicker.indicators.base import Indicator, closes
from stockpicker.indicators.builtin.moving_average import ema_series


class RSI(Indicator):
    """Relative Strength Index.

    ``smoothing="wilder"`` seeds with the simple average of the first
    ``period`` changes and then applies Wilder smoothing across the rest of
    the window. ``smoothing="simple"`` averages only the last ``period``
    changes. With no losses in the averaging window RSI is 100.
    """

    def __init__(self, period: int = 14, smoothing: Literal["wilder", "simple"] = "wilder") -> None:
        self.name = "RSI"
        self.warmup_period = period + 1
        self.period = period
        self.smoothing = smoothing

    def calculate(self, bars: Sequence[PriceBar]) -> float | None:
        if len(bars) < self.warmup_period:
            return None
        return self.from_closes(closes(bars))

    def from_closes(self, values: Sequence[float]) -> float | None:
        if len(values) < self.warmup_period:
            return None
        deltas = [values[i] - values[i - 1] for i in range(1, len(values))]
        gains = [d if d > 0 else 0.0 for d in deltas]
        losses = [-d if d < 0 else 0.0 for d in deltas]

        if self.smoothing == "simple":
            avg_gain = sum(gains[-self.period :]) / self.period
            avg_loss = sum(losses[-self.period :]) / self.period
        else:
            avg_gain = sum(gains[: self.period]) / self.period
            avg_loss = sum(losses[: self.period]) / self.period
            for i in range(self.period, len(deltas)):
                avg_gain = (avg_gain * (self.period - 1) + gains[i]) / self.period
                avg_loss = (avg_loss * (self.period - 1) + losses[i]) / self.period

        if avg_loss == 0:
            return 100.0
        rs = avg_gain / avg_loss
        return 100.0 - (100.0 / (1.0 + rs))


class MACD(Indicator):
    """Moving Average Convergence Divergence.

    ``calculate`` returns the full line, signal and histogram series aligned
    with the input bars; undefined warm-up entries are NaN. The signal line
    is an EMA over the MACD line starting at its first defined value.
    """

    def __init__(self, fast: int = 12, slow: int = 26, signal: int = 9) -> None:
        self.name = "MACD"
        self.fast = fast
        self.slow = slow
        self.signal = signal
        self.warmup_period = slow + signal - 1

    def calculate(self, bars: Sequence[PriceBar]) -> dict[str, list[float]] | None:
        if len(bars) < self.warmup_period:
            return None
        return self.from_closes(closes(bars))

    def from_closes(self, values: Sequence[float]) -> dict[str, list[float]]:
        fast_ema = ema_series(values, self.fast)
        slow_ema = ema_series(values, self.slow)
        macd_line = [f - s for f, s in zip(fast_ema, slow_ema)]

        first_valid = self.slow - 1
        signal_line = [math.nan] * len(values)
        if len(values) > first_valid:
            tail = ema_series(macd_line[first_valid:], self.signal)
            signal_line[first_valid:] = tail

        histogram = [m - s for m, s in zip(macd_line, signal_line)]
        return {"macd": macd_line, "signal": signal_line, "histogram": histogram}
