"""Five-component small-cap scorer.

Momentum, value (oversold RSI), volume surge, trend (MACD state) and
breakout position each earn 0-20 points. The unweighted total (0-100) maps
to tiered BUY signals with their own sizing and exits, a SELL below 50,
and HOLD otherwise.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from stockpicker.core.config import StrategyConfig
from stockpicker.core.types import FactorScore, PriceBar, Signal, SignalType
from stockpicker.factors.base import clamp
from stockpicker.indicators.base import closes
from stockpicker.indicators.builtin.momentum import MACD, RSI
from stockpicker.strategy.base import ScoringStrategy
from stockpicker.universe.filters import QualityFilter

logger = logging.getLogger(__name__)

MAX_COMPONENT_POINTS = 20.0
MAX_TOTAL_POINTS = 100.0
SELL_BELOW = 50.0

MOMENTUM_LOOKBACK = 20
VOLUME_LOOKBACK = 20
BREAKOUT_LOOKBACK = 260
BREAKOUT_MIN_BARS = 100
NEAR_ZERO_HISTOGRAM = 0.1


@dataclass(frozen=True)
class ScoreTier:
    min_score: float
    position_size: float
    stop_loss: float
    take_profit: float | None
    reasoning: str


BUY_TIERS = (
    ScoreTier(85.0, 0.15, 0.10, 0.30, "Exceptional multi-factor setup"),
    ScoreTier(75.0, 0.12, 0.12, None, "Strong multi-factor setup"),
)


def momentum_points(return_pct: float) -> float:
    if return_pct > 20:
        return 20
    if return_pct > 15:
        return 15
    if return_pct > 10:
        return 10
    if return_pct > 5:
        return 5
    return 0


def value_points(rsi: float) -> float:
    if rsi < 30:
        return 20
    if rsi < 40:
        return 15
    if rsi < 50:
        return 10
    if rsi < 60:
        return 5
    return 0


def volume_points(ratio: float) -> float:
    if ratio > 3:
        return 20
    if ratio > 2:
        return 15
    if ratio > 1.5:
        return 10
    if ratio > 1:
        return 5
    return 0


def trend_points(macd: float, signal: float, histogram: float, previous_histogram: float) -> float:
    above_signal = macd > signal
    if above_signal and histogram > 0 and histogram > previous_histogram:
        return 20
    if above_signal and histogram > 0:
        return 15
    if above_signal:
        return 10
    if abs(histogram) < NEAR_ZERO_HISTOGRAM:
        return 5
    return 0


def breakout_points(range_position: float) -> float:
    if range_position >= 95:
        return 20
    if range_position >= 90:
        return 15
    if 10 <= range_position <= 30:
        return 10
    if range_position < 10:
        return 5
    return 0


class FixedRuleComposite(ScoringStrategy):
    name = "fixed_rule"

    def __init__(
        self,
        config: StrategyConfig,
        market_caps: Mapping[str, float] | None = None,
        quality_filter: QualityFilter | None = None,
    ) -> None:
        super().__init__(config)
        self._market_caps = {s.upper(): cap for s, cap in (market_caps or {}).items()}
        self._filter = quality_filter or QualityFilter(
            min_market_cap=config.min_market_cap,
            max_market_cap=config.max_market_cap,
        )
        self._rsi = RSI(14, smoothing="simple")
        self._macd = MACD(12, 26, 9)

    def evaluate(self, symbol: str, bars: Sequence[PriceBar]) -> Signal | None:
        passed, reason = self._filter.check(bars, self._market_caps.get(symbol))
        if not passed:
            logger.debug("%s filtered before scoring: %s", symbol, reason)
            return None

        components = self.score_components(bars)
        total = clamp(sum(c.value for c in components), 0.0, MAX_TOTAL_POINTS)
        return self._to_signal(symbol, bars, total, components)

    def score_components(self, bars: Sequence[PriceBar]) -> list[FactorScore]:
        """Compute the five sub-scores, each clamped to [0, 20] points."""
        values = closes(bars)
        return [
            self._momentum(values),
            self._value(values),
            self._volume(bars),
            self._trend(values),
            self._breakout(bars),
        ]

    def _component(self, name: str, points: float, **metadata: float) -> FactorScore:
        return FactorScore(
            factor_name=name,
            value=clamp(points, 0.0, MAX_COMPONENT_POINTS),
            confidence=1.0,
            metadata={"max_points": MAX_COMPONENT_POINTS, **metadata},
        )

    def _momentum(self, values: list[float]) -> FactorScore:
        if len(values) < MOMENTUM_LOOKBACK:
            return self._component("momentum", 0, return_pct=0.0)
        past = values[-MOMENTUM_LOOKBACK]
        return_pct = (values[-1] - past) / past * 100 if past else 0.0
        return self._component("momentum", momentum_points(return_pct), return_pct=return_pct)

    def _value(self, values: list[float]) -> FactorScore:
        rsi = self._rsi.from_closes(values)
        if rsi is None:
            rsi = 50.0
        return self._component("value", value_points(rsi), rsi=rsi)

    def _volume(self, bars: Sequence[PriceBar]) -> FactorScore:
        ratio = 1.0
        if len(bars) >= VOLUME_LOOKBACK:
            average = sum(b.volume for b in bars[-VOLUME_LOOKBACK:]) / VOLUME_LOOKBACK
            if average > 0:
                ratio = bars[-1].volume / average
        return self._component("volume", volume_points(ratio), volume_ratio=ratio)

    def _trend(self, values: list[float]) -> FactorScore:
        if len(values) < self._macd.slow + self._macd.signal:
            return self._component("trend", 0, histogram=0.0)
        series = self._macd.from_closes(values)
        histogram = series["histogram"]
        previous = histogram[-2] if not math.isnan(histogram[-2]) else 0.0
        points = trend_points(series["macd"][-1], series["signal"][-1], histogram[-1], previous)
        return self._component(
            "trend",
            points,
            macd=series["macd"][-1],
            signal=series["signal"][-1],
            histogram=histogram[-1],
        )

    def _breakout(self, bars: Sequence[PriceBar]) -> FactorScore:
        lookback = min(BREAKOUT_LOOKBACK, len(bars))
        if lookback < BREAKOUT_MIN_BARS:
            return self._component("breakout", 0, range_position=0.0)
        window = bars[-lookback:]
        high = max(b.high for b in window)
        low = min(b.low for b in window)
        if high == low:
            return self._component("breakout", 0, range_position=0.0)
        position = (bars[-1].close - low) / (high - low) * 100
        return self._component("breakout", breakout_points(position), range_position=position)

    def _to_signal(
        self,
        symbol: str,
        bars: Sequence[PriceBar],
        total: float,
        components: list[FactorScore],
    ) -> Signal:
        price = bars[-1].close
        breakdown = ", ".join(f"{c.factor_name} {c.value:.0f}" for c in components)
        metadata = {"score": total, "components": {c.factor_name: c.value for c in components}}

        for tier in BUY_TIERS:
            if total >= tier.min_score:
                return Signal(
                    symbol=symbol,
                    type=SignalType.BUY,
                    strength=total / MAX_TOTAL_POINTS,
                    timestamp=bars[-1].timestamp,
                    factor_scores=tuple(components),
                    stop_loss=price * (1 - tier.stop_loss),
                    take_profit=price * (1 + tier.take_profit) if tier.take_profit else None,
                    reasoning=f"{tier.reasoning}: score {total:.0f}/100 ({breakdown})",
                    position_size=tier.position_size,
                    metadata={**metadata, "tier": tier.min_score},
                )

        if total < SELL_BELOW:
            signal_type = SignalType.SELL
            reasoning = f"Weak multi-factor profile: score {total:.0f}/100 ({breakdown})"
        else:
            signal_type = SignalType.HOLD
            reasoning = f"Mixed signals: score {total:.0f}/100 ({breakdown})"
        return Signal(
            symbol=symbol,
            type=signal_type,
            strength=total / MAX_TOTAL_POINTS,
            timestamp=bars[-1].timestamp,
            factor_scores=tuple(components),
            reasoning=reasoning,
            metadata=metadata,
        )
