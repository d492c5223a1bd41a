from __future__ import annotations

import dataclasses
from datetime import date, datetime, timedelta
from typing import Any

import aiosqlite

from stockpicker.core.types import BacktestTrade, DailySnapshot, PriceBar
from stockpicker.data.store import PriceHistory, ResultSink
from stockpicker.portfolio.performance import PerformanceMetrics

_METRIC_FIELDS = [
    f.name
    for f in dataclasses.fields(PerformanceMetrics)
    if f.name not in ("period_start", "period_end")
]

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS bars (
        symbol TEXT NOT NULL,
        timestamp TEXT NOT NULL,
        open REAL NOT NULL,
        high REAL NOT NULL,
        low REAL NOT NULL,
        close REAL NOT NULL,
        volume REAL NOT NULL,
        PRIMARY KEY (symbol, timestamp)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS backtest_trades (
        run_id TEXT NOT NULL,
        seq INTEGER NOT NULL,
        timestamp TEXT NOT NULL,
        symbol TEXT NOT NULL,
        side TEXT NOT NULL,
        quantity INTEGER NOT NULL,
        price REAL NOT NULL,
        amount REAL NOT NULL,
        commission REAL NOT NULL,
        signal_type TEXT,
        signal_strength REAL,
        pnl REAL,
        PRIMARY KEY (run_id, seq)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS backtest_snapshots (
        run_id TEXT NOT NULL,
        timestamp TEXT NOT NULL,
        total_value REAL NOT NULL,
        cash_balance REAL NOT NULL,
        positions_value REAL NOT NULL,
        position_count INTEGER NOT NULL,
        daily_return REAL NOT NULL,
        PRIMARY KEY (run_id, timestamp)
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS performance_metrics (
        run_id TEXT NOT NULL,
        period_start TEXT NOT NULL,
        period_end TEXT NOT NULL,
        {", ".join(f"{name} REAL" for name in _METRIC_FIELDS)},
        PRIMARY KEY (run_id, period_start, period_end)
    )
    """,
)


class SQLiteStore(PriceHistory, ResultSink):
    """aiosqlite-backed price history and backtest result storage."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        self._db = await aiosqlite.connect(self._db_path)
        for statement in _SCHEMA:
            await self._db.execute(statement)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    # -- price history ---------------------------------------------------

    async def save_bars(self, bars: list[PriceBar]) -> None:
        assert self._db is not None
        await self._db.executemany(
            "INSERT OR REPLACE INTO bars (symbol, timestamp, open, high, low, close, volume) VALUES (?, ?, ?, ?, ?, ?, ?)",
            [(b.symbol, b.timestamp.isoformat(), b.open, b.high, b.low, b.close, b.volume) for b in bars],
        )
        await self._db.commit()

    async def load_bars(self, symbol: str, start: datetime, end: datetime) -> list[PriceBar]:
        return await self._select_bars(symbol, start.isoformat(), end.isoformat())

    async def get_price_history(self, symbol: str, start: date, end: date) -> list[PriceBar]:
        return await self._select_bars(
            symbol, start.isoformat(), (end + timedelta(days=1)).isoformat()
        )

    async def _select_bars(self, symbol: str, lower: str, upper: str) -> list[PriceBar]:
        assert self._db is not None
        cursor = await self._db.execute(
            "SELECT symbol, timestamp, open, high, low, close, volume FROM bars WHERE symbol = ? AND timestamp >= ? AND timestamp < ? ORDER BY timestamp",
            (symbol, lower, upper),
        )
        rows = await cursor.fetchall()
        return [
            PriceBar(
                symbol=r[0],
                timestamp=datetime.fromisoformat(r[1]),
                open=r[2], high=r[3], low=r[4], close=r[5], volume=r[6],
            )
            for r in rows
        ]

    # -- results ---------------------------------------------------------

    async def save_trades(self, run_id: str, trades: list[BacktestTrade]) -> None:
        assert self._db is not None
        await self._db.executemany(
            "INSERT OR REPLACE INTO backtest_trades (run_id, seq, timestamp, symbol, side, quantity, price, amount, commission, signal_type, signal_strength, pnl) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    run_id,
                    seq,
                    t.timestamp.isoformat(),
                    t.symbol,
                    t.side.value,
                    t.quantity,
                    t.price,
                    t.amount,
                    t.commission,
                    t.signal.type.value if t.signal else None,
                    t.signal.strength if t.signal else None,
                    t.pnl,
                )
                for seq, t in enumerate(trades)
            ],
        )
        await self._db.commit()

    async def save_snapshots(self, run_id: str, snapshots: list[DailySnapshot]) -> None:
        assert self._db is not None
        await self._db.executemany(
            "INSERT OR REPLACE INTO backtest_snapshots (run_id, timestamp, total_value, cash_balance, positions_value, position_count, daily_return) VALUES (?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    run_id,
                    s.timestamp.isoformat(),
                    s.total_value,
                    s.cash_balance,
                    s.positions_value,
                    s.position_count,
                    s.daily_return,
                )
                for s in snapshots
            ],
        )
        await self._db.commit()

    async def save_metrics(self, run_id: str, metrics: PerformanceMetrics) -> None:
        """Insert metrics, replacing any earlier calculation for the same period."""
        assert self._db is not None
        columns = ["run_id", "period_start", "period_end", *_METRIC_FIELDS]
        updates = ", ".join(f"{name} = excluded.{name}" for name in _METRIC_FIELDS)
        await self._db.execute(
            f"INSERT INTO performance_metrics ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)}) "
            f"ON CONFLICT (run_id, period_start, period_end) DO UPDATE SET {updates}",
            (
                run_id,
                metrics.period_start.isoformat(),
                metrics.period_end.isoformat(),
                *(getattr(metrics, name) for name in _METRIC_FIELDS),
            ),
        )
        await self._db.commit()

    async def load_snapshots(self, run_id: str) -> list[DailySnapshot]:
        assert self._db is not None
        cursor = await self._db.execute(
            "SELECT timestamp, total_value, cash_balance, positions_value, position_count, daily_return FROM backtest_snapshots WHERE run_id = ? ORDER BY timestamp",
            (run_id,),
        )
        rows = await cursor.fetchall()
        return [
            DailySnapshot(datetime.fromisoformat(r[0]), r[1], r[2], r[3], r[4], r[5])
            for r in rows
        ]

    async def load_trade_count(self, run_id: str) -> int:
        assert self._db is not None
        cursor = await self._db.execute(
            "SELECT COUNT(*) FROM backtest_trades WHERE run_id = ?", (run_id,)
        )
        row = await cursor.fetchone()
        return row[0]

    async def load_metrics(self, run_id: str) -> list[dict[str, Any]]:
        assert self._db is not None
        self._db.row_factory = aiosqlite.Row
        try:
            cursor = await self._db.execute(
                "SELECT * FROM performance_metrics WHERE run_id = ? ORDER BY period_start",
                (run_id,),
            )
            rows = await cursor.fetchall()
        finally:
            self._db.row_factory = None
        return [dict(row) for row in rows]
