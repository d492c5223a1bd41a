"""Backtest runner: loads a YAML config, optionally imports CSV prices, runs one backtest.

Usage:
    python scripts/run_backtest.py --config config/small_cap_alpha.yaml
    python scripts/run_backtest.py --config my.yaml --csv-dir prices/ --no-record
"""
from __future__ import annotations

import argparse
import asyncio
import math
import sys
from pathlib import Path

# Ensure project root is on sys.path
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(_PROJECT_ROOT))

from stockpicker.backtest.engine import BacktestEngine, BacktestResult
from stockpicker.core.config import load_settings
from stockpicker.core.logger import setup_logging
from stockpicker.data.csv_loader import load_bars_csv
from stockpicker.data.sqlite_store import SQLiteStore


def _print_summary(result: BacktestResult) -> None:
    print("=" * 80)
    print(f"  Backtest {result.run_id} -- strategy {result.strategy_id}")
    print("=" * 80)
    print(f"  Period     : {result.start_date} to {result.end_date}")
    print(f"  Initial    : ${result.initial_cash:,.2f}")
    print(f"  Final      : ${result.final_value:,.2f}")
    print(f"  Trades     : {result.total_trades}")
    print(f"  Open       : {', '.join(sorted(result.positions)) or '-'}")
    if result.excluded_symbols:
        print(f"  Excluded   : {', '.join(result.excluded_symbols)}")
    if result.failures:
        print(f"  Failures   : {len(result.failures)} symbol evaluations")

    m = result.metrics
    if m is None:
        print("\n  Not enough trading days for performance metrics.")
        return

    pf_str = f"{m.profit_factor:.2f}" if not math.isinf(m.profit_factor) else "inf"
    print("\n  PERFORMANCE")
    print("  " + "-" * 40)
    print(f"  Total return     : ${m.total_return:>+14,.2f} ({m.total_return_percent:+.2f}%)")
    print(f"  Annualized       : {m.annualized_return:>+14.2%}")
    print(f"  Volatility       : {m.volatility:>14.2%}")
    print(f"  Max drawdown     : ${m.max_drawdown:>14,.2f} ({m.max_drawdown_percent:.2f}%)")
    print(f"  Sharpe / Sortino : {m.sharpe_ratio:>7.2f} / {m.sortino_ratio:.2f}")
    print(f"  Calmar           : {m.calmar_ratio:>7.2f}")
    print(f"  VaR 95 / 99      : {m.var_95:>+7.2%} / {m.var_99:+.2%}")
    print(f"  CVaR 95 / 99     : {m.cvar_95:>+7.2%} / {m.cvar_99:+.2%}")
    print(f"  Win rate         : {m.win_rate:>7.1f}%   PF {pf_str}")
    print(f"  Average trade    : ${m.average_trade:>+14,.2f}")


async def _run(args: argparse.Namespace) -> int:
    settings = load_settings(args.config)
    setup_logging("stockpicker", settings.system.log_level, settings.system.log_dir)

    if settings.backtest is None:
        print("[ERROR] Configuration has no 'backtest' section")
        return 1
    strategy = settings.get_strategy(settings.backtest.strategy_id)

    Path(settings.data.sqlite_path).parent.mkdir(parents=True, exist_ok=True)
    store = SQLiteStore(settings.data.sqlite_path)
    await store.initialize()
    try:
        if args.csv_dir:
            for csv_file in sorted(Path(args.csv_dir).glob("*.csv")):
                bars = load_bars_csv(csv_file)
                await store.save_bars(bars)
                print(f"  Imported {len(bars)} bars for {csv_file.stem.upper()}")

        engine = BacktestEngine(settings.engine, io_timeout=settings.data.io_timeout_seconds)
        result = await engine.run(
            strategy,
            settings.backtest,
            store,
            sink=None if args.no_record else store,
            market_caps=settings.market_caps,
        )
    finally:
        await store.close()

    _print_summary(result)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Run a stockpicker backtest from a YAML configuration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", required=True, help="Path to the YAML settings file")
    parser.add_argument(
        "--csv-dir",
        help="Directory of <SYMBOL>.csv OHLCV files to import before running",
    )
    parser.add_argument(
        "--no-record", action="store_true",
        help="Run without writing trades, snapshots or metrics to the store",
    )
    args = parser.parse_args()
    sys.exit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
