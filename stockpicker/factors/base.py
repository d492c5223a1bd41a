from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any, Literal

from stockpicker.core.config import FactorConfig
from stockpicker.core.exceptions import ValidationError
from stockpicker.core.types import FactorScore, PriceBar


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def is_integer(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    return isinstance(value, (int, float)) and float(value).is_integer()


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class Factor(ABC):
    """A stateless evaluator turning a price window into a ``FactorScore``.

    Subclasses declare ``defaults`` for their parameters and implement
    ``validate_params`` and ``evaluate``. The window passed to ``evaluate``
    must already end at the evaluation date; factors only ever look at the
    bars they are given.
    """

    kind: str
    defaults: Mapping[str, Any] = {}

    def __init__(self, config: FactorConfig) -> None:
        self.config = config
        self.params: dict[str, Any] = {**self.defaults, **config.params}
        result = self.validate_params(self.params)
        if result is not True:
            raise ValidationError(f"Invalid parameters for factor {config.name}: {result}")

    @property
    def name(self) -> str:
        return self.config.name

    @abstractmethod
    def validate_params(self, params: Mapping[str, Any]) -> Literal[True] | str: ...

    @abstractmethod
    def evaluate(self, bars: Sequence[PriceBar]) -> FactorScore: ...

    def get_param(self, key: str) -> Any:
        return self.params[key]

    def _score(self, value: float, confidence: float, **metadata: Any) -> FactorScore:
        return FactorScore(
            factor_name=self.name,
            value=clamp(value, -1.0, 1.0),
            confidence=clamp(confidence, 0.0, 1.0),
            metadata=metadata,
        )

    def _insufficient(self, required: int, available: int, **metadata: Any) -> FactorScore:
        return self._score(
            0.0,
            0.0,
            insufficient_data=True,
            error=f"Insufficient data: need {required} bars, got {available}",
            **metadata,
        )
