from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Any, Literal

from stockpicker.core.types import FactorScore, PriceBar
from stockpicker.factors.base import Factor, clamp, is_integer
from stockpicker.indicators.base import closes
from stockpicker.indicators.builtin.momentum import MACD

CROSSOVER_SCORE = 0.8
CROSSOVER_CONFIDENCE = 0.9
MAX_TREND_CONFIDENCE = 0.7
SEPARATION_BOOST = 10.0


def classify_histogram(
    previous: float, current: float, max_abs: float
) -> tuple[float, float, str | None]:
    """Score the latest histogram reading before the separation boost.

    A sign change since the previous bar is a crossover. Otherwise the
    reading is scaled by the largest absolute histogram value in the window.
    Returns ``(value, confidence, crossover)``.
    """
    if previous <= 0 < current:
        return CROSSOVER_SCORE, CROSSOVER_CONFIDENCE, "bullish"
    if previous >= 0 > current:
        return -CROSSOVER_SCORE, CROSSOVER_CONFIDENCE, "bearish"
    if max_abs > 0:
        value = clamp(current / max_abs, -1.0, 1.0)
        return value, min(MAX_TREND_CONFIDENCE, abs(value)), None
    return 0.0, 0.0, None


def _interpret(histogram: float, crossover: str | None) -> str:
    if crossover:
        return f"{crossover} crossover"
    if histogram > 0:
        return "bullish momentum"
    if histogram < 0:
        return "bearish momentum"
    return "neutral"


class MACDFactor(Factor):
    kind = "MACD"
    defaults = {"fast": 12, "slow": 26, "signal": 9}

    def validate_params(self, params: Mapping[str, Any]) -> Literal[True] | str:
        fast = params.get("fast")
        slow = params.get("slow")
        signal = params.get("signal")
        if not is_integer(fast) or not 2 <= fast <= 50:
            return "fast must be an integer between 2 and 50"
        if not is_integer(slow) or not 2 <= slow <= 100:
            return "slow must be an integer between 2 and 100"
        if not is_integer(signal) or not 2 <= signal <= 50:
            return "signal must be an integer between 2 and 50"
        if fast >= slow:
            return "fast must be less than slow"
        return True

    def evaluate(self, bars: Sequence[PriceBar]) -> FactorScore:
        fast = int(self.get_param("fast"))
        slow = int(self.get_param("slow"))
        signal = int(self.get_param("signal"))
        required = slow + signal
        if len(bars) < required:
            return self._insufficient(required, len(bars))

        values = closes(bars)
        series = MACD(fast, slow, signal).from_closes(values)
        histogram = series["histogram"]
        macd_value = series["macd"][-1]
        signal_value = series["signal"][-1]
        current = histogram[-1]
        max_abs = max(abs(h) for h in histogram if not math.isnan(h))

        value, confidence, crossover = classify_histogram(histogram[-2], current, max_abs)

        avg_close = sum(values) / len(values)
        if avg_close > 0:
            separation = abs(macd_value - signal_value)
            confidence = min(1.0, confidence + SEPARATION_BOOST * separation / avg_close)

        return self._score(
            value,
            confidence,
            macd=macd_value,
            signal=signal_value,
            histogram=current,
            crossover=crossover,
            interpretation=_interpret(current, crossover),
        )
