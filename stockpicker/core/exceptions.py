"""Core exception hierarchy for stockpicker.

This module defines the exceptions raised by the factor, strategy,
backtest and analytics layers.
"""


class StockPickerError(Exception):
    """Base exception class for all stockpicker errors.

    All stockpicker-specific exceptions inherit from this class,
    allowing callers to catch all framework errors with a single except clause.
    """


class ConfigError(StockPickerError):
    """Configuration-related errors.

    Raised when configuration files cannot be used, for example when a
    strategy references a factor kind that does not exist.
    """


class ValidationError(ConfigError, ValueError):
    """Invalid factor parameters or a malformed strategy configuration.

    Always raised before a backtest starts simulating.
    """


class DataError(StockPickerError):
    """Price history and result storage errors."""


class InsufficientDataError(DataError):
    """Too few bars or snapshots for a requested calculation.

    Attributes:
        what: Name of the calculation that could not be performed.
        required: Minimum number of data points needed.
        available: Number of data points actually supplied.
    """

    def __init__(self, what: str, required: int, available: int):
        """Initialize InsufficientDataError.

        Args:
            what: Calculation name (e.g., "performance metrics").
            required: Minimum number of points the calculation needs.
            available: Number of points that were supplied.
        """
        super().__init__(
            f"Insufficient data for {what}: need {required}, got {available}"
        )
        self.what = what
        self.required = required
        self.available = available


class PersistenceError(DataError):
    """A result sink failed to store backtest output."""


class EvaluationError(StockPickerError):
    """A single factor or symbol failed during evaluation.

    The backtest engine isolates these per symbol and keeps running.

    Attributes:
        symbol: Symbol being evaluated.
        reason: Description of the failure.
    """

    def __init__(self, symbol: str, reason: str):
        super().__init__(f"[{symbol}] Evaluation failed: {reason}")
        self.symbol = symbol
        self.reason = reason


class FillError(StockPickerError):
    """A simulated fill was rejected before touching cash or positions.

    Attributes:
        symbol: Symbol of the rejected fill.
        reason: Why the fill was rejected (e.g., "insufficient cash").
    """

    def __init__(self, symbol: str, reason: str):
        super().__init__(f"[{symbol}] Fill rejected: {reason}")
        self.symbol = symbol
        self.reason = reason


class BacktestCancelledError(StockPickerError):
    """A backtest observed its cancellation flag at a day boundary.

    Attributes:
        completed_days: Number of trading days fully simulated before stopping.
    """

    def __init__(self, completed_days: int):
        super().__init__(f"Backtest cancelled after {completed_days} trading days")
        self.completed_days = completed_days
