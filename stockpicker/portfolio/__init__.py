from stockpicker.portfolio.performance import PerformanceMetrics, calculate_performance

__all__ = ["PerformanceMetrics", "calculate_performance"]
