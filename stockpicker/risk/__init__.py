from stockpicker.risk.manager import RiskPolicy
from stockpicker.risk.position_sizer import PositionSizer

__all__ = ["RiskPolicy", "PositionSizer"]
