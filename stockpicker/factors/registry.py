from __future__ import annotations

from collections.abc import Callable

from stockpicker.core.config import FactorConfig
from stockpicker.core.exceptions import ValidationError
from stockpicker.factors.base import Factor
from stockpicker.factors.ma_crossover import MovingAverageCrossoverFactor
from stockpicker.factors.macd import MACDFactor
from stockpicker.factors.rsi import RSIFactor

FactorConstructor = Callable[[FactorConfig], Factor]

BUILTIN_FACTORS: dict[str, FactorConstructor] = {
    RSIFactor.kind: RSIFactor,
    MACDFactor.kind: MACDFactor,
    MovingAverageCrossoverFactor.kind: MovingAverageCrossoverFactor,
}


class FactorRegistry:
    """Maps a factor name to its constructor.

    Starts with the built-in kinds; ``register`` adds new ones.
    """

    def __init__(self) -> None:
        self._constructors: dict[str, FactorConstructor] = dict(BUILTIN_FACTORS)

    def register(self, name: str, constructor: FactorConstructor) -> None:
        if name in self._constructors:
            raise ValueError(f"Factor already registered: {name}")
        self._constructors[name] = constructor

    def available(self) -> list[str]:
        return sorted(self._constructors)

    def create(self, config: FactorConfig) -> Factor:
        constructor = self._constructors.get(config.factor_kind)
        if constructor is None:
            raise ValidationError(
                f"Unknown factor: {config.factor_kind}. "
                f"Available factors: {', '.join(self.available())}"
            )
        return constructor(config)


default_registry = FactorRegistry()
