from __future__ import annotations

from collections.abc import Mapping

from stockpicker.core.config import StrategyConfig
from stockpicker.factors.registry import FactorRegistry
from stockpicker.strategy.base import ScoringStrategy
from stockpicker.strategy.fixed_rule import FixedRuleComposite
from stockpicker.strategy.weighted import WeightedFactorComposite


def build_scoring_strategy(
    config: StrategyConfig,
    market_caps: Mapping[str, float] | None = None,
    registry: FactorRegistry | None = None,
) -> ScoringStrategy:
    """Select the scoring variant named by ``config.scoring``.

    Raises:
        ValidationError: If a factor kind is unknown or its params are invalid.
    """
    if config.scoring == "fixed_rule":
        return FixedRuleComposite(config, market_caps=market_caps)
    return WeightedFactorComposite(config, registry=registry)
