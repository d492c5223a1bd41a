from stockpicker.factors.base import Factor
from stockpicker.factors.ma_crossover import MovingAverageCrossoverFactor
from stockpicker.factors.macd import MACDFactor, classify_histogram
from stockpicker.factors.registry import FactorRegistry, default_registry
from stockpicker.factors.rsi import RSIFactor, rsi_score

__all__ = [
    "Factor",
    "FactorRegistry",
    "default_registry",
    "RSIFactor",
    "MACDFactor",
    "MovingAverageCrossoverFactor",
    "classify_histogram",
    "rsi_score",
]
