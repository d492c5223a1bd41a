from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Any, Literal

from stockpicker.core.types import FactorScore, PriceBar
from stockpicker.factors.base import Factor, clamp, is_integer
from stockpicker.indicators.base import closes
from stockpicker.indicators.builtin.moving_average import ema_series, sma_series

CROSS_SCORE = 0.9
CROSS_CONFIDENCE = 0.95
MAX_GAP_CONFIDENCE = 0.8


class MovingAverageCrossoverFactor(Factor):
    """Short versus long moving average, scaled by the percentage gap.

    A cross on the latest bar scores +/-0.9. Otherwise the gap in percent
    of the long average is divided by 10. The close confirming or
    contradicting both averages then strengthens or weakens the reading.
    """

    kind = "MA_Crossover"
    defaults = {"short_period": 20, "long_period": 50, "ma_type": "sma"}

    def validate_params(self, params: Mapping[str, Any]) -> Literal[True] | str:
        short = params.get("short_period")
        long = params.get("long_period")
        if not is_integer(short) or not 2 <= short <= 200:
            return "short_period must be an integer between 2 and 200"
        if not is_integer(long) or not 2 <= long <= 500:
            return "long_period must be an integer between 2 and 500"
        if short >= long:
            return "short_period must be less than long_period"
        if params.get("ma_type") not in ("sma", "ema"):
            return "ma_type must be 'sma' or 'ema'"
        return True

    def evaluate(self, bars: Sequence[PriceBar]) -> FactorScore:
        short_period = int(self.get_param("short_period"))
        long_period = int(self.get_param("long_period"))
        if len(bars) < long_period:
            return self._insufficient(long_period, len(bars))

        values = closes(bars)
        average = ema_series if self.get_param("ma_type") == "ema" else sma_series
        short_ma = average(values, short_period)
        long_ma = average(values, long_period)
        short_now, long_now = short_ma[-1], long_ma[-1]
        short_prev = short_ma[-2] if len(values) > 1 else math.nan
        long_prev = long_ma[-2] if len(values) > 1 else math.nan

        gap_pct = (short_now - long_now) / long_now * 100 if long_now else 0.0
        is_above = short_now > long_now
        crossover = None
        if not (math.isnan(short_prev) or math.isnan(long_prev)):
            was_above = short_prev > long_prev
            if is_above and not was_above:
                crossover = "golden"
            elif was_above and not is_above:
                crossover = "death"

        if crossover == "golden":
            value, confidence = CROSS_SCORE, CROSS_CONFIDENCE
        elif crossover == "death":
            value, confidence = -CROSS_SCORE, CROSS_CONFIDENCE
        else:
            value = clamp(gap_pct / 10, -1.0, 1.0)
            confidence = min(MAX_GAP_CONFIDENCE, abs(gap_pct) / 10)

        price = values[-1]
        above_short = price > short_now
        above_long = price > long_now
        if above_short and above_long and value > 0:
            value *= 1.2
            confidence *= 1.1
        elif not above_short and not above_long and value < 0:
            value *= 1.2
            confidence *= 1.1
        elif above_short != above_long:
            confidence *= 0.7

        return self._score(
            value,
            confidence,
            short_ma=short_now,
            long_ma=long_now,
            gap_percent=gap_pct,
            crossover=crossover,
            ma_type=self.get_param("ma_type"),
        )
