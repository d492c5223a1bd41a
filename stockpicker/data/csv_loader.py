from __future__ import annotations

from pathlib import Path

import pandas as pd

from stockpicker.core.exceptions import DataError
from stockpicker.core.types import PriceBar

REQUIRED_COLUMNS = ("timestamp", "open", "high", "low", "close", "volume")


def load_bars_csv(path: Path | str, symbol: str | None = None) -> list[PriceBar]:
    """Read an OHLCV CSV file into ascending, de-duplicated bars.

    The symbol defaults to the file stem in upper case. Timestamps are
    parsed as UTC.

    Raises:
        FileNotFoundError: If the file does not exist.
        DataError: If required columns are missing.
    """
    csv_path = Path(path)
    if not csv_path.exists():
        raise FileNotFoundError(f"Price file not found: {csv_path}")

    df = pd.read_csv(csv_path)
    df.columns = [str(c).strip().lower() for c in df.columns]
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise DataError(f"{csv_path.name}: missing columns {', '.join(missing)}")

    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    df = (
        df.dropna(subset=list(REQUIRED_COLUMNS))
        .drop_duplicates(subset="timestamp", keep="last")
        .sort_values("timestamp")
    )

    ticker = (symbol or csv_path.stem).upper()
    return [
        PriceBar(
            symbol=ticker,
            timestamp=row.timestamp.to_pydatetime(),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
        )
        for row in df.itertuples(index=False)
    ]
