from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from stockpicker.core.types import PriceBar


class Indicator(ABC):
    name: str
    warmup_period: int

    @abstractmethod
    def calculate(self, bars: Sequence[PriceBar]) -> float | dict | None: ...


def closes(bars: Sequence[PriceBar]) -> list[float]:
    return [b.close for b in bars]
