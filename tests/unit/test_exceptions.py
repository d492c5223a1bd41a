"""Unit tests for core exceptions."""
import pytest
from stockpicker.core.exceptions import (
    BacktestCancelledError,
    ConfigError,
    DataError,
    EvaluationError,
    FillError,
    InsufficientDataError,
    PersistenceError,
    StockPickerError,
    ValidationError,
)


class TestExceptionHierarchy:
    def test_exception_hierarchy(self):
        assert issubclass(ConfigError, StockPickerError)
        assert issubclass(ValidationError, ConfigError)
        assert issubclass(DataError, StockPickerError)
        assert issubclass(InsufficientDataError, DataError)
        assert issubclass(PersistenceError, DataError)
        assert issubclass(EvaluationError, StockPickerError)
        assert issubclass(FillError, StockPickerError)
        assert issubclass(BacktestCancelledError, StockPickerError)

    def test_validation_error_is_value_error(self):
        assert issubclass(ValidationError, ValueError)

    def test_base_exception_is_exception(self):
        assert issubclass(StockPickerError, Exception)


class TestInsufficientDataError:
    def test_message_and_attributes(self):
        err = InsufficientDataError("performance metrics", 2, 1)
        assert str(err) == "Insufficient data for performance metrics: need 2, got 1"
        assert err.what == "performance metrics"
        assert err.required == 2
        assert err.available == 1


class TestEvaluationError:
    def test_message_format(self):
        err = EvaluationError("SOFI", "empty price window")
        assert str(err) == "[SOFI] Evaluation failed: empty price window"
        assert err.symbol == "SOFI"
        assert err.reason == "empty price window"


class TestFillError:
    def test_message_format(self):
        err = FillError("PLUG", "no open position")
        assert str(err) == "[PLUG] Fill rejected: no open position"
        assert err.reason == "no open position"


class TestBacktestCancelledError:
    def test_completed_days(self):
        err = BacktestCancelledError(3)
        assert err.completed_days == 3
        assert "3 trading days" in str(err)


class TestExceptionCatching:
    def test_catch_with_base_class(self):
        with pytest.raises(StockPickerError):
            raise FillError("AAPL", "insufficient cash")

    def test_catch_validation_as_value_error(self):
        with pytest.raises(ValueError):
            raise ValidationError("Unknown factor: FOO")
