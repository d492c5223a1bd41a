from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence

from stockpicker.core.config import StrategyConfig
from stockpicker.core.types import PriceBar, Signal

logger = logging.getLogger(__name__)


class ScoringStrategy(ABC):
    """Turns one symbol's price window into a trading decision.

    ``evaluate`` returns ``None`` when the symbol is filtered out before
    scoring, otherwise a BUY, SELL or HOLD ``Signal`` stamped with the
    timestamp of the last bar in the window.
    """

    name: str

    def __init__(self, config: StrategyConfig) -> None:
        self.config = config

    @abstractmethod
    def evaluate(self, symbol: str, bars: Sequence[PriceBar]) -> Signal | None: ...

    def generate_signals(self, histories: Mapping[str, Sequence[PriceBar]]) -> list[Signal]:
        """Evaluate every symbol and return actionable signals, strongest first."""
        signals: list[Signal] = []
        for symbol, bars in histories.items():
            if not bars:
                continue
            try:
                signal = self.evaluate(symbol, bars)
            except Exception:
                logger.exception("Strategy %s failed for %s", self.name, symbol)
                continue
            if signal is not None and signal.is_actionable:
                signals.append(signal)
        return sorted(signals, key=lambda s: s.strength, reverse=True)
