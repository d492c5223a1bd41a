from __future__ import annotations

import logging
from collections.abc import Sequence

from stockpicker.core.config import StrategyConfig
from stockpicker.core.exceptions import EvaluationError, ValidationError
from stockpicker.core.types import FactorScore, PriceBar, Signal, SignalType
from stockpicker.factors.base import Factor, clamp
from stockpicker.factors.registry import FactorRegistry, default_registry
from stockpicker.strategy.base import ScoringStrategy

logger = logging.getLogger(__name__)


def normalize_weights(weights: Sequence[float]) -> list[float]:
    """Scale weights to sum to 1; all-zero weights become equal weights."""
    if not weights:
        return []
    total = sum(weights)
    if total <= 0:
        return [1.0 / len(weights)] * len(weights)
    return [w / total for w in weights]


class WeightedFactorComposite(ScoringStrategy):
    """Blends independent factor opinions into one combined score in [0, 1].

    Each factor value in [-1, 1] is mapped to (value + 1) / 2 and weighted
    by its share of the enabled weights. A factor that raises contributes
    nothing and is listed under ``metadata["failed_factors"]``.

    With ``strict=False`` a factor with an unknown kind or invalid params
    is kept in the weighting and reported the same way on every
    evaluation instead of failing construction.
    """

    name = "weighted"

    def __init__(
        self,
        config: StrategyConfig,
        registry: FactorRegistry | None = None,
        strict: bool = True,
    ) -> None:
        super().__init__(config)
        registry = registry or default_registry
        enabled = config.enabled_factors
        if not enabled:
            raise ValidationError(f"Strategy {config.id} has no enabled factors")
        self._names = [fc.name for fc in enabled]
        self._factors: list[Factor | None] = []
        self._rejected: dict[str, str] = {}
        for fc in enabled:
            try:
                self._factors.append(registry.create(fc))
            except ValidationError as exc:
                if strict:
                    raise
                logger.warning("Factor %s disabled for %s: %s", fc.name, config.id, exc)
                self._rejected[fc.name] = str(exc)
                self._factors.append(None)
        self._weights = normalize_weights([fc.weight for fc in enabled])

    @property
    def weights(self) -> dict[str, float]:
        return dict(zip(self._names, self._weights))

    def classify(self, combined: float) -> SignalType:
        if combined > self.config.buy_threshold:
            return SignalType.BUY
        if combined < self.config.sell_threshold:
            return SignalType.SELL
        return SignalType.HOLD

    def evaluate(self, symbol: str, bars: Sequence[PriceBar]) -> Signal:
        if not bars:
            raise EvaluationError(symbol, "empty price window")

        scores: list[FactorScore] = []
        contributions: dict[str, float] = {}
        failed: list[dict[str, str]] = []
        combined = 0.0
        for name, factor, weight in zip(self._names, self._factors, self._weights):
            if factor is None:
                failed.append({"factor": name, "error": self._rejected[name]})
                contributions[name] = 0.0
                continue
            try:
                score = factor.evaluate(bars)
            except Exception as exc:
                logger.exception("Factor %s failed for %s", name, symbol)
                failed.append({"factor": name, "error": str(exc)})
                contributions[name] = 0.0
                continue
            contribution = (score.value + 1) / 2 * weight
            contributions[name] = contribution
            combined += contribution
            scores.append(score)

        combined = clamp(combined, 0.0, 1.0)
        signal_type = self.classify(combined)
        stop_loss, take_profit = self._exit_levels(signal_type, bars[-1].close)

        return Signal(
            symbol=symbol,
            type=signal_type,
            strength=combined,
            timestamp=bars[-1].timestamp,
            factor_scores=tuple(scores),
            stop_loss=stop_loss,
            take_profit=take_profit,
            reasoning=self._reasoning(signal_type, combined, scores),
            metadata={
                "combined_score": combined,
                "contributions": contributions,
                "failed_factors": failed,
            },
        )

    def _exit_levels(self, signal_type: SignalType, price: float) -> tuple[float | None, float | None]:
        risk = self.config.risk_management
        take_profit_pct = risk.take_profit_percent
        if signal_type == SignalType.BUY:
            stop = price * (1 - risk.stop_loss_percent)
            target = price * (1 + take_profit_pct) if take_profit_pct else None
            return stop, target
        if signal_type == SignalType.SELL:
            stop = price * (1 + risk.stop_loss_percent)
            target = price * (1 - take_profit_pct) if take_profit_pct else None
            return stop, target
        return None, None

    @staticmethod
    def _reasoning(signal_type: SignalType, combined: float, scores: list[FactorScore]) -> str:
        if not scores:
            return "No factor produced a score"
        label = {
            SignalType.BUY: "Bullish signal",
            SignalType.SELL: "Bearish signal",
            SignalType.HOLD: "Neutral signal",
        }[signal_type]
        top = sorted(scores, key=lambda s: abs(s.value), reverse=True)[:3]
        parts = []
        for score in top:
            stance = "bullish" if score.value > 0 else "bearish" if score.value < 0 else "neutral"
            parts.append(f"{score.factor_name} {stance} ({score.value:+.2f})")
        return f"{label} (score {combined:.2f}) based on: {', '.join(parts)}"
