from __future__ import annotations

import asyncio
import logging
import uuid
from bisect import bisect_right
from collections.abc import Mapping, Sequence
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import nullcontext
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Protocol

from stockpicker.core.config import BacktestConfig, EngineConfig, StrategyConfig
from stockpicker.core.exceptions import (
    BacktestCancelledError,
    EvaluationError,
    FillError,
    InsufficientDataError,
    PersistenceError,
    ValidationError,
)
from stockpicker.core.types import (
    BacktestTrade,
    DailySnapshot,
    OrderSide,
    PriceBar,
    Signal,
    SignalType,
    SimulatedPosition,
)
from stockpicker.backtest.simulator import PortfolioSimulator
from stockpicker.data.store import PriceHistory, ResultSink
from stockpicker.factors.registry import FactorRegistry
from stockpicker.portfolio.performance import PerformanceMetrics, calculate_performance
from stockpicker.risk.manager import RiskPolicy
from stockpicker.risk.position_sizer import PositionSizer
from stockpicker.strategy.base import ScoringStrategy
from stockpicker.strategy.factory import build_scoring_strategy

logger = logging.getLogger(__name__)


class CancelToken(Protocol):
    def is_set(self) -> bool: ...


@dataclass(frozen=True)
class EvaluationFailure:
    timestamp: datetime
    symbol: str
    reason: str


@dataclass(frozen=True)
class SkippedOrder:
    timestamp: datetime
    symbol: str
    signal_type: SignalType
    reason: str


@dataclass
class BacktestResult:
    run_id: str
    strategy_id: str
    start_date: date
    end_date: date
    initial_cash: float
    final_cash: float
    final_value: float
    trades: list[BacktestTrade] = field(default_factory=list)
    snapshots: list[DailySnapshot] = field(default_factory=list)
    metrics: PerformanceMetrics | None = None
    positions: dict[str, SimulatedPosition] = field(default_factory=dict)
    excluded_symbols: list[str] = field(default_factory=list)
    failures: list[EvaluationFailure] = field(default_factory=list)
    skipped: list[SkippedOrder] = field(default_factory=list)

    @property
    def insufficient_data(self) -> bool:
        """True when too few trading days were simulated to compute metrics."""
        return self.metrics is None

    @property
    def total_trades(self) -> int:
        return len(self.trades)


def trading_days(histories: Mapping[str, Sequence[PriceBar]], start: date, end: date) -> list[datetime]:
    """Distinct bar timestamps of all symbols within ``[start, end]``, ascending."""
    days = {
        bar.timestamp
        for bars in histories.values()
        for bar in bars
        if start <= bar.timestamp.date() <= end
    }
    return sorted(days)


def _evaluate_symbol(
    strategy: ScoringStrategy, symbol: str, window: Sequence[PriceBar]
) -> Signal | EvaluationError | None:
    try:
        return strategy.evaluate(symbol, window)
    except Exception as exc:
        logger.exception("Evaluation failed for %s on %s", symbol, window[-1].timestamp)
        return EvaluationError(symbol, str(exc))


class BacktestEngine:
    """Runs a scoring strategy day by day over historical prices.

    ``run`` owns the I/O boundaries (loading price history, persisting
    results) and applies ``io_timeout`` to them. ``simulate`` is the pure,
    synchronous day loop: it is handed all bars up front and only ever shows
    a strategy the slice of bars ending at the day being simulated.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        io_timeout: float = 30.0,
        registry: FactorRegistry | None = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._io_timeout = io_timeout
        self._registry = registry

    async def run(
        self,
        strategy_config: StrategyConfig,
        backtest_config: BacktestConfig,
        price_history: PriceHistory,
        sink: ResultSink | None = None,
        cancel_event: CancelToken | None = None,
        market_caps: Mapping[str, float] | None = None,
        run_id: str | None = None,
    ) -> BacktestResult:
        """Validate, load prices, simulate, then optionally persist the results.

        Raises:
            ValidationError: If the strategy cannot be built from its config.
            InsufficientDataError: If no symbol has any bars in the window.
            BacktestCancelledError: If ``cancel_event`` is set before the last day.
            PersistenceError: If the sink fails or times out.
        """
        if backtest_config.strategy_id != strategy_config.id:
            raise ValidationError(
                f"Backtest targets strategy {backtest_config.strategy_id}, "
                f"got {strategy_config.id}"
            )
        if not strategy_config.enabled:
            logger.warning("Backtesting disabled strategy %s", strategy_config.id)
        strategy = build_scoring_strategy(
            strategy_config, market_caps=market_caps, registry=self._registry
        )

        histories = await self._load_histories(
            strategy_config.stock_universe, price_history, backtest_config
        )
        result = self.simulate(
            strategy,
            backtest_config,
            histories,
            cancel_event=cancel_event,
            run_id=run_id,
        )

        if sink is not None and self._config.record_results:
            await self._persist(sink, result)
        return result

    async def _load_histories(
        self,
        symbols: Sequence[str],
        price_history: PriceHistory,
        config: BacktestConfig,
    ) -> dict[str, list[PriceBar]]:
        fetch_start = config.start_date - timedelta(days=config.lookback_days)
        results = await asyncio.gather(
            *(
                asyncio.wait_for(
                    price_history.get_price_history(symbol, fetch_start, config.end_date),
                    timeout=self._io_timeout,
                )
                for symbol in symbols
            ),
            return_exceptions=True,
        )

        histories: dict[str, list[PriceBar]] = {}
        for symbol, result in zip(symbols, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, Exception):
                logger.warning("Price history for %s unavailable: %r", symbol, result)
                histories[symbol] = []
            else:
                histories[symbol] = list(result)
        return histories

    async def _persist(self, sink: ResultSink, result: BacktestResult) -> None:
        try:
            await asyncio.wait_for(
                sink.save_trades(result.run_id, result.trades), timeout=self._io_timeout
            )
            await asyncio.wait_for(
                sink.save_snapshots(result.run_id, result.snapshots), timeout=self._io_timeout
            )
            if result.metrics is not None:
                await asyncio.wait_for(
                    sink.save_metrics(result.run_id, result.metrics), timeout=self._io_timeout
                )
        except Exception as exc:
            raise PersistenceError(f"Failed to record backtest {result.run_id}: {exc!r}") from exc
        logger.info(
            "Recorded backtest %s: %d trades, %d snapshots",
            result.run_id,
            len(result.trades),
            len(result.snapshots),
        )

    def simulate(
        self,
        strategy: ScoringStrategy,
        config: BacktestConfig,
        histories: Mapping[str, Sequence[PriceBar]],
        cancel_event: CancelToken | None = None,
        run_id: str | None = None,
    ) -> BacktestResult:
        start, end = config.start_date, config.end_date
        usable = {
            symbol: list(bars)
            for symbol, bars in histories.items()
            if any(start <= b.timestamp.date() <= end for b in bars)
        }
        excluded = [symbol for symbol in histories if symbol not in usable]
        for symbol in excluded:
            logger.warning("Excluding %s: no price data between %s and %s", symbol, start, end)
        if not usable:
            raise InsufficientDataError("backtest price history", 1, 0)

        days = trading_days(usable, start, end)
        timestamps = {symbol: [b.timestamp for b in bars] for symbol, bars in usable.items()}

        risk = strategy.config.risk_management
        simulator = PortfolioSimulator(config.initial_cash, config.commission, config.slippage)
        policy = RiskPolicy(risk)
        sizer = PositionSizer(risk)
        result = BacktestResult(
            run_id=run_id or uuid.uuid4().hex,
            strategy_id=strategy.config.id,
            start_date=start,
            end_date=end,
            initial_cash=config.initial_cash,
            final_cash=config.initial_cash,
            final_value=config.initial_cash,
            excluded_symbols=excluded,
        )

        logger.info(
            "Backtest %s: strategy %s, %d symbols, %d trading days",
            result.run_id,
            strategy.config.id,
            len(usable),
            len(days),
        )

        workers = self._config.evaluation_workers
        pool = ThreadPoolExecutor(max_workers=workers) if workers > 1 else nullcontext()
        with pool as executor:
            previous_total: float | None = None
            for index, day in enumerate(days):
                if cancel_event is not None and cancel_event.is_set():
                    logger.info("Backtest %s cancelled before %s", result.run_id, day)
                    raise BacktestCancelledError(index)

                closes: dict[str, float] = {}
                windows: dict[str, list[PriceBar]] = {}
                for symbol, bars in usable.items():
                    cut = bisect_right(timestamps[symbol], day)
                    if cut and timestamps[symbol][cut - 1] == day:
                        closes[symbol] = bars[cut - 1].close
                        windows[symbol] = bars[:cut]

                simulator.mark_to_market(closes)
                policy.start_day(previous_total if previous_total is not None else config.initial_cash)

                signals = self._evaluate_day(strategy, windows, day, result, executor)
                for signal in self._order_signals(signals):
                    trade = self._apply(signal, closes[signal.symbol], day, simulator, policy, sizer, result)
                    if trade is not None:
                        result.trades.append(trade)

                snapshot = simulator.snapshot(day, previous_total)
                result.snapshots.append(snapshot)
                previous_total = snapshot.total_value

        result.final_cash = simulator.cash
        result.final_value = simulator.total_value
        result.positions = dict(simulator.positions)

        try:
            result.metrics = calculate_performance(result.snapshots, result.trades)
        except InsufficientDataError as exc:
            logger.warning("Backtest %s: %s", result.run_id, exc)

        logger.info(
            "Backtest %s finished: %d trades, final value %.2f",
            result.run_id,
            len(result.trades),
            result.final_value,
        )
        return result

    def _evaluate_day(
        self,
        strategy: ScoringStrategy,
        windows: Mapping[str, list[PriceBar]],
        day: datetime,
        result: BacktestResult,
        executor: Executor | None,
    ) -> list[Signal]:
        symbols = list(windows)
        if executor is not None and len(symbols) > 1:
            outcomes = list(
                executor.map(lambda s: _evaluate_symbol(strategy, s, windows[s]), symbols)
            )
        else:
            outcomes = [_evaluate_symbol(strategy, s, windows[s]) for s in symbols]

        signals = []
        for symbol, outcome in zip(symbols, outcomes):
            if isinstance(outcome, EvaluationError):
                result.failures.append(EvaluationFailure(day, symbol, outcome.reason))
            elif outcome is not None and outcome.is_actionable:
                signals.append(outcome)
        return signals

    @staticmethod
    def _order_signals(signals: list[Signal]) -> list[Signal]:
        """SELLs first to free cash and slots, then BUYs strongest first."""
        sells = [s for s in signals if s.type == SignalType.SELL]
        buys = [s for s in signals if s.type == SignalType.BUY]
        buys.sort(key=lambda s: s.strength, reverse=True)
        return sells + buys

    def _apply(
        self,
        signal: Signal,
        close: float,
        day: datetime,
        simulator: PortfolioSimulator,
        policy: RiskPolicy,
        sizer: PositionSizer,
        result: BacktestResult,
    ) -> BacktestTrade | None:
        def skip(reason: str) -> None:
            logger.info("Skipping %s %s on %s: %s", signal.type.value, signal.symbol, day, reason)
            result.skipped.append(SkippedOrder(day, signal.symbol, signal.type, reason))

        positions = simulator.positions
        if signal.type == SignalType.SELL:
            if signal.symbol not in positions:
                skip("no open position")
                return None
            return simulator.sell(signal.symbol, close, day, signal)

        allowed, reason = policy.check_buy(signal.symbol, positions, simulator.total_value)
        if not allowed:
            skip(reason)
            return None

        held = positions.get(signal.symbol)
        quantity = sizer.calculate(
            signal,
            simulator.fill_price(close, OrderSide.BUY),
            simulator.total_value,
            simulator.cash,
            simulator.commission,
            held.market_value if held else 0.0,
        )
        if quantity <= 0:
            skip("quantity resolved to 0")
            return None
        try:
            return simulator.buy(signal.symbol, quantity, close, day, signal)
        except FillError as exc:
            skip(exc.reason)
            return None
