from stockpicker.strategy.base import ScoringStrategy
from stockpicker.strategy.factory import build_scoring_strategy
from stockpicker.strategy.fixed_rule import FixedRuleComposite
from stockpicker.strategy.weighted import WeightedFactorComposite, normalize_weights

__all__ = [
    "ScoringStrategy",
    "WeightedFactorComposite",
    "FixedRuleComposite",
    "build_scoring_strategy",
    "normalize_weights",
]
