from stockpicker.universe.filters import QualityFilter

__all__ = ["QualityFilter"]
