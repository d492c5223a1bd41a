from stockpicker.backtest.engine import BacktestEngine, BacktestResult, trading_days
from stockpicker.backtest.simulator import PortfolioSimulator

__all__ = ["BacktestEngine", "BacktestResult", "PortfolioSimulator", "trading_days"]
