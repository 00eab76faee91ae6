"""
Candle normalization - turns provider output into the canonical OHLC frame.

Canonical frame columns: [time, open, high, low, close, volume] plus
close_time when the provider supplies it. Sorted by time, unique time,
RangeIndex. Malformed rows are repaired or dropped, never propagated.
"""

import logging
from dataclasses import asdict, is_dataclass
from typing import Any, Iterable, Tuple, Union

import numpy as np
import pandas as pd

from .errors import InvalidInputError

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("open", "high", "low", "close")
COLUMN_ALIASES = {
    "opentime": "time",
    "open_time": "time",
    "timestamp": "time",
    "closetime": "close_time",
    "tick_volume": "volume",
}

CandleInput = Union[pd.DataFrame, Iterable[Any]]


def to_ohlc_frame(candles: CandleInput) -> pd.DataFrame:
    """
    Build the canonical OHLC frame from a DataFrame, Candle objects or dicts.

    Args:
        candles: DataFrame, list of Candle dataclasses, or list of dicts with
                 openTime/open_time/time, open, high, low, close[, volume].
                 Numeric times are read as epoch milliseconds (UTC).

    Returns:
        Cleaned DataFrame. Empty input gives an empty frame.

    Raises:
        InvalidInputError: required OHLC columns are missing, or every row
                           was dropped as malformed.
    """
    if isinstance(candles, pd.DataFrame):
        df = candles.copy()
    else:
        rows = [asdict(c) if is_dataclass(c) else dict(c) for c in candles]
        df = pd.DataFrame(rows)

    if df.empty and len(df.columns) == 0:
        return pd.DataFrame(columns=["time", *REQUIRED_COLUMNS, "volume"])

    df.columns = [str(c).strip() for c in df.columns]
    df = df.rename(columns=lambda c: COLUMN_ALIASES.get(c.lower(), c.lower()))

    missing = set(REQUIRED_COLUMNS) - set(df.columns)
    if missing:
        raise InvalidInputError(f"Missing candle columns: {sorted(missing)}")

    if "time" not in df.columns:
        logger.debug("No time column in candles, using positional index")
        df["time"] = np.arange(len(df))
    else:
        df["time"] = _parse_time(df["time"])
    if "close_time" in df.columns:
        df["close_time"] = _parse_time(df["close_time"])

    if "volume" not in df.columns:
        df["volume"] = 0.0

    row_count = len(df)
    df = _clean_dataframe(df)
    if row_count > 0 and df.empty:
        raise InvalidInputError(f"No usable candles in {row_count} rows")

    columns = ["time", "close_time", *REQUIRED_COLUMNS, "volume"]
    return df[[c for c in columns if c in df.columns]]


def _parse_time(values: pd.Series) -> pd.Series:
    """Epoch-ms numbers -> UTC datetimes; datetimes and strings via pandas."""
    if pd.api.types.is_datetime64_any_dtype(values):
        return values
    if pd.api.types.is_numeric_dtype(values):
        return pd.to_datetime(values, unit="ms", utc=True)
    return pd.to_datetime(values)


def _clean_dataframe(df: pd.DataFrame) -> pd.DataFrame:
    """
    Repair or drop malformed candles.

    Operations:
    - Coerce OHLCV to float, drop rows with NaN in OHLC
    - Swap high/low where high < low
    - Widen high/low so they contain open and close
    - Sort by time, drop duplicate times (last wins)
    """
    initial_len = len(df)

    for col in (*REQUIRED_COLUMNS, "volume"):
        df[col] = pd.to_numeric(df[col], errors="coerce")
    df["volume"] = df["volume"].fillna(0.0)
    df = df.dropna(subset=list(REQUIRED_COLUMNS))

    inverted = df["high"] < df["low"]
    inverted_count = int(inverted.sum())
    if inverted_count > 0:
        logger.warning(f"Found {inverted_count} candles with high < low, swapping")
        df.loc[inverted, ["high", "low"]] = df.loc[inverted, ["low", "high"]].to_numpy()

    body_high = df[["open", "close"]].max(axis=1)
    body_low = df[["open", "close"]].min(axis=1)
    outside = (df["high"] < body_high) | (df["low"] > body_low)
    outside_count = int(outside.sum())
    if outside_count > 0:
        logger.warning(f"Found {outside_count} candles with body outside wicks, widening")
        df["high"] = np.maximum(df["high"], body_high)
        df["low"] = np.minimum(df["low"], body_low)

    df = df.sort_values("time", kind="stable")
    df = df.drop_duplicates(subset=["time"], keep="last")

    cleaned_len = len(df)
    if cleaned_len < initial_len:
        logger.info(f"Dropped {initial_len - cleaned_len} invalid or duplicate candles")

    return df.reset_index(drop=True)


def price_arrays(ohlc: pd.DataFrame) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Return (opens, highs, lows, closes) as float arrays."""
    return tuple(ohlc[col].to_numpy(dtype=float) for col in REQUIRED_COLUMNS)
