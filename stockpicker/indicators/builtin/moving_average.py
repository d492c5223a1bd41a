from __future__ import annotations

import math
from collections.abc import Sequence

from stockpicker.core.types import PriceBar
from stockpicker.indicators.base import Indicator, closes


def sma_series(values: Sequence[float], period: int) -> list[float]:
    """Rolling simple average; the first ``period - 1`` entries are NaN."""
    out = [math.nan] * len(values)
    if period <= 0 or len(values) < period:
        return out
    window_sum = sum(values[:period])
    out[period - 1] = window_sum / period
    for i in range(period, len(values)):
        window_sum += values[i] - values[i - period]
        out[i] = window_sum / period
    return out


def ema_series(values: Sequence[float], period: int) -> list[float]:
    """Exponential average seeded with the SMA of the first ``period`` values.

    Entries before the seed are NaN.
    """
    out = [math.nan] * len(values)
    if period <= 0 or len(values) < period:
        return out
    multiplier = 2 / (period + 1)
    ema = sum(values[:period]) / period
    out[period - 1] = ema
    for i in range(period, len(values)):
        ema = (values[i] - ema) * multiplier + ema
        out[i] = ema
    return out


class SMA(Indicator):
    def __init__(self, period: int) -> None:
        self.name = "SMA"
        self.warmup_period = period
        self.period = period

    def calculate(self, bars: Sequence[PriceBar]) -> float | None:
        if len(bars) < self.period:
            return None
        return sum(closes(bars[-self.period :])) / self.period

    def series(self, bars: Sequence[PriceBar]) -> list[float]:
        return sma_series(closes(bars), self.period)


class EMA(Indicator):
    def __init__(self, period: int) -> None:
        self.name = "EMA"
        self.warmup_period = period
        self.period = period

    def calculate(self, bars: Sequence[PriceBar]) -> float | None:
        if len(bars) < self.period:
            return None
        return ema_series(closes(bars), self.period)[-1]

    def series(self, bars: Sequence[PriceBar]) -> list[float]:
        return ema_series(closes(bars), self.period)
