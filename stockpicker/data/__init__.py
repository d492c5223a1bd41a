from stockpicker.data.memory_store import InMemoryPriceHistory
from stockpicker.data.store import PriceHistory, ResultSink

__all__ = ["PriceHistory", "ResultSink", "InMemoryPriceHistory"]
