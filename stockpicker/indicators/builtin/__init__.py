from stockpicker.indicators.builtin.momentum import MACD, RSI
from stockpicker.indicators.builtin.moving_average import EMA, SMA, ema_series, sma_series

__all__ = ["SMA", "EMA", "RSI", "MACD", "sma_series", "ema_series"]
