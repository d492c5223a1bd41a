"""stockpicker: multi-factor equity signal scoring and daily backtesting."""

__version__ = "0.1.0"
