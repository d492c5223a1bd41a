from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Literal

from stockpicker.core.types import FactorScore, PriceBar
from stockpicker.factors.base import Factor, is_integer, is_number
from stockpicker.indicators.builtin.momentum import RSI


def rsi_score(rsi: float, oversold: float, overbought: float) -> tuple[float, float, str]:
    """Map an RSI reading to ``(value, confidence, zone)``.

    Oversold readings give values in [0.5, 1], overbought readings give
    [-1, -0.5], and the neutral band blends linearly from +0.5 to -0.5.
    """
    if rsi <= oversold:
        depth = (oversold - rsi) / oversold
        return 0.5 + 0.5 * depth, depth, "oversold"
    if rsi >= overbought:
        height = (rsi - overbought) / (100.0 - overbought)
        return -(0.5 + 0.5 * height), height, "overbought"
    midpoint = (oversold + overbought) / 2
    half_band = (overbought - oversold) / 2
    return 0.5 * (midpoint - rsi) / half_band, 0.3, "neutral"


class RSIFactor(Factor):
    kind = "RSI"
    defaults = {"period": 14, "oversold": 30.0, "overbought": 70.0}

    def validate_params(self, params: Mapping[str, Any]) -> Literal[True] | str:
        period = params.get("period")
        oversold = params.get("oversold")
        overbought = params.get("overbought")
        if not is_integer(period) or not 2 <= period <= 100:
            return "period must be an integer between 2 and 100"
        if not is_number(oversold) or not 0 < oversold <= 50:
            return "oversold must be between 0 and 50"
        if not is_number(overbought) or not 50 <= overbought < 100:
            return "overbought must be between 50 and 100"
        if oversold >= overbought:
            return "oversold must be less than overbought"
        return True

    def evaluate(self, bars: Sequence[PriceBar]) -> FactorScore:
        period = int(self.get_param("period"))
        if len(bars) < period + 1:
            return self._insufficient(period + 1, len(bars), rsi=50.0)

        rsi = RSI(period).calculate(bars)
        value, confidence, zone = rsi_score(
            rsi, float(self.get_param("oversold")), float(self.get_param("overbought"))
        )
        return self._score(value, confidence, rsi=rsi, zone=zone, period=period)
