"""
KlineIngestor - kline file loading and validation.

Loads Binance-style klines (JSON list of objects or CSV), validates and
sorts them, and converts rows into Candle objects for the scanners.
"""

import json
import logging
from pathlib import Path
from typing import List, Sequence, Union

import numpy as np
import pandas as pd

from ..models import Candle, MalformedCandleError

logger = logging.getLogger(__name__)

# Binance kline field -> Candle field
COLUMN_MAP = {
    "open_time": "open_time",
    "open": "open",
    "high": "high",
    "low": "low",
    "close": "close",
    "close_time": "close_time",
    "volume": "volume",
    "quote_asset_volume": "quote_volume",
    "number_of_trades": "trade_count",
    "taker_buy_base_asset_volume": "taker_buy_base",
    "taker_buy_quote_asset_volume": "taker_buy_quote",
}

KLINE_FIELDS = [
    "open_time",
    "open",
    "high",
    "low",
    "close",
    "volume",
    "close_time",
    "quote_asset_volume",
    "number_of_trades",
    "taker_buy_base_asset_volume",
    "taker_buy_quote_asset_volume",
]


def kline_file_name(symbol: str, interval: str) -> str:
    """File name used for stored klines, e.g. BTCUSDT-1m.json."""
    return f"{symbol.upper()}-{interval}.json"


class KlineIngestor:
    """
    Loads and validates kline data.

    Responsibilities:
        - JSON / CSV parsing (numeric strings accepted)
        - Validation of required columns
        - OHLC invariants, finite values, close_time >= open_time
        - Sorting by open_time and duplicate timestamp detection

    With strict=True (default) any malformed row raises
    MalformedCandleError; with strict=False malformed and duplicate rows
    are dropped with a warning.
    """

    REQUIRED_COLUMNS = {"open_time", "open", "high", "low", "close", "close_time"}
    OPTIONAL_COLUMNS = set(KLINE_FIELDS) - REQUIRED_COLUMNS
    PRICE_COLUMNS = ["open", "high", "low", "close"]

    def __init__(self, strict: bool = True):
        self.strict = strict

    def load(self, path: Union[str, Path]) -> pd.DataFrame:
        """Load a .json or .csv kline file."""
        path = Path(path)
        if path.suffix.lower() == ".csv":
            return self.load_csv(path)
        return self.load_json(path)

    def load_json(self, path: Union[str, Path]) -> pd.DataFrame:
        """
        Load klines from a JSON file holding a list of kline objects.

        Args:
            path: Path to JSON file

        Returns:
            Validated DataFrame sorted by open_time
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Kline file does not exist: {path}")

        with open(path, "r", encoding="utf-8") as f:
            records = json.load(f)

        if not isinstance(records, list):
            raise MalformedCandleError(f"{path.name}: expected a list of klines")

        return self.prepare(pd.DataFrame(records), source=path.name)

    def load_csv(self, path: Union[str, Path]) -> pd.DataFrame:
        """
        Load klines from a CSV file with a header row.

        Args:
            path: Path to CSV file

        Returns:
            Validated DataFrame sorted by open_time
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Kline file does not exist: {path}")

        return self.prepare(pd.read_csv(path), source=path.name)

    def _validate_columns(self, df: pd.DataFrame, source: str) -> None:
        df.columns = df.columns.str.lower().str.strip()

        missing = self.REQUIRED_COLUMNS - set(df.columns)
        if missing:
            raise MalformedCandleError(f"Missing columns in {source}: {sorted(missing)}")

    def _reject(self, df: pd.DataFrame, bad: pd.Series, reason: str, source: str) -> pd.DataFrame:
        count = int(bad.sum())
        if count == 0:
            return df

        rows = list(df.index[bad][:10])
        if self.strict:
            raise MalformedCandleError(f"{source}: {count} rows with {reason} (rows {rows})")

        logger.warning(f"{source}: dropping {count} rows with {reason} (rows {rows})")
        return df[~bad]

    def prepare(self, df: pd.DataFrame, source: str = "<dataframe>") -> pd.DataFrame:
        """
        Validate, clean and sort a raw kline DataFrame.

        Args:
            df: Raw DataFrame with Binance kline columns
            source: Name used in log / error messages

        Returns:
            DataFrame with KLINE_FIELDS columns, sorted by open_time
        """
        if df.empty:
            raise MalformedCandleError(f"{source}: no klines")

        df = df.copy()
        self._validate_columns(df, source)

        for col in self.OPTIONAL_COLUMNS:
            if col not in df.columns:
                df[col] = 0

        df = df[KLINE_FIELDS]
        df = df.apply(pd.to_numeric, errors="coerce")

        core = ["open_time", "close_time"] + self.PRICE_COLUMNS
        not_finite = ~np.isfinite(df[core]).all(axis=1)
        df = self._reject(df, not_finite, "missing or non-finite values", source)

        invalid_ohlc = ~(
            (df["low"] <= df[["open", "close"]].min(axis=1)) &
            (df[["open", "close"]].max(axis=1) <= df["high"])
        )
        df = self._reject(df, invalid_ohlc, "invalid OHLC relationships", source)

        bad_times = df["close_time"] < df["open_time"]
        df = self._reject(df, bad_times, "close_time before open_time", source)

        df = df.fillna(0)
        df["open_time"] = df["open_time"].astype("int64")
        df["close_time"] = df["close_time"].astype("int64")
        df["number_of_trades"] = df["number_of_trades"].astype("int64")

        df = df.sort_values("open_time", kind="stable").reset_index(drop=True)

        duplicated = df["open_time"].duplicated(keep="first")
        df = self._reject(df, duplicated, "duplicate open_time", source).reset_index(drop=True)

        if df.empty:
            raise MalformedCandleError(f"{source}: no valid klines")

        logger.info(f"Loaded {len(df)} klines from {source}")
        logger.info(
            f"Time range: {pd.to_datetime(df['open_time'].iloc[0], unit='ms')} "
            f"to {pd.to_datetime(df['close_time'].iloc[-1], unit='ms')}"
        )
        return df

    @staticmethod
    def to_candles(df: pd.DataFrame) -> List[Candle]:
        """Convert a prepared DataFrame into Candle objects."""
        renamed = df.rename(columns=COLUMN_MAP)
        return [
            Candle(
                open_time=int(row.open_time),
                open=float(row.open),
                high=float(row.high),
                low=float(row.low),
                close=float(row.close),
                close_time=int(row.close_time),
                volume=float(row.volume),
                quote_volume=float(row.quote_volume),
                trade_count=int(row.trade_count),
                taker_buy_base=float(row.taker_buy_base),
                taker_buy_quote=float(row.taker_buy_quote),
            )
            for row in renamed.itertuples(index=False)
        ]

    def load_candles(self, path: Union[str, Path]) -> List[Candle]:
        """Load a kline file straight into Candle objects."""
        return self.to_candles(self.load(path))


def candles_to_frame(candles: Sequence[Candle]) -> pd.DataFrame:
    """Candle objects -> DataFrame with Binance kline columns."""
    inverse = {v: k for k, v in COLUMN_MAP.items()}
    records = [
        {inverse[name]: getattr(candle, name) for name in inverse}
        for candle in candles
    ]
    return pd.DataFrame(records, columns=KLINE_FIELDS)


def save_klines_json(
    klines: Union[pd.DataFrame, Sequence[Candle]],
    path: Union[str, Path],
) -> Path:
    """
    Write klines as a pretty-printed JSON list of Binance kline objects.

    Args:
        klines: Prepared DataFrame or Candle objects
        path: Output file (parent directories are created)

    Returns:
        Path written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    df = klines if isinstance(klines, pd.DataFrame) else candles_to_frame(klines)
    records = json.loads(df[KLINE_FIELDS].to_json(orient="records"))

    with open(path, "w", encoding="utf-8") as f:
        json.dump(records, f, indent=2)

    logger.info(f"Saved {len(records)} klines to {path}")
    return path
