from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from stockpicker.core.types import PriceBar
from stockpicker.data.store import PriceHistory


class InMemoryPriceHistory(PriceHistory):
    """Dict-backed price history; bars are sorted and de-duplicated on ingest."""

    def __init__(self, bars: Iterable[PriceBar] = ()) -> None:
        self._bars: dict[str, dict] = {}
        self.add_bars(bars)

    def add_bars(self, bars: Iterable[PriceBar]) -> None:
        for bar in bars:
            self._bars.setdefault(bar.symbol, {})[bar.timestamp] = bar

    def symbols(self) -> list[str]:
        return sorted(self._bars)

    async def get_price_history(self, symbol: str, start: date, end: date) -> list[PriceBar]:
        by_time = self._bars.get(symbol, {})
        return [
            by_time[ts]
            for ts in sorted(by_time)
            if start <= ts.date() <= end
        ]
