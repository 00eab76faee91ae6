"""
FVG (Fair Value Gap) detector.

FVG = 3-candle formation where wicks of 1st and 3rd candles don't overlap.

Bullish FVG: candle1.high < candle3.low (gap up)
Bearish FVG: candle1.low > candle3.high (gap down)
"""

import logging
from typing import List, Optional

import pandas as pd

from ..candles import CandleInput, to_ohlc_frame
from ..config import FVGConfig
from ..models import FairValueGap

logger = logging.getLogger(__name__)


def detect_fair_value_gaps(
    candles: CandleInput,
    config: Optional[FVGConfig] = None,
) -> List[FairValueGap]:
    """
    Detect Fair Value Gaps and track whether later price filled them.

    Args:
        candles: OHLC series (anything to_ohlc_frame accepts). Min 3 rows.
        config: FVGConfig (min size %, max age in candles, show filled)

    Returns:
        FairValueGap list sorted by size (largest first), then filtered by
        age and, unless show_filled, by fill status.
    """
    config = config or FVGConfig()
    ohlc_data = to_ohlc_frame(candles)

    if len(ohlc_data) < 3:
        logger.debug(f"FVG detection needs 3 candles, got {len(ohlc_data)}")
        return []

    fvgs = _find_gaps(ohlc_data, config.min_gap_size_percent)
    for fvg in fvgs:
        _track_fill(fvg, ohlc_data)
        fvg.age = len(ohlc_data) - 1 - fvg.candle_index

    fvgs.sort(key=lambda g: g.size_percent, reverse=True)
    fvgs = [g for g in fvgs if g.age <= config.max_age_candles]
    if not config.show_filled:
        fvgs = [g for g in fvgs if not g.is_filled]

    return fvgs


def _find_gaps(
    ohlc_data: pd.DataFrame,
    min_gap_size_percent: float,
) -> List[FairValueGap]:
    """Scan every interior candle for a gap between its outer neighbours."""
    highs = ohlc_data["high"].to_numpy(dtype=float)
    lows = ohlc_data["low"].to_numpy(dtype=float)
    times = ohlc_data["time"].tolist()

    fvgs = []
    for i in range(1, len(ohlc_data) - 1):
        c1_high, c1_low = highs[i - 1], lows[i - 1]
        c3_high, c3_low = highs[i + 1], lows[i + 1]

        # Bullish FVG: gap between c1.high and c3.low
        if c1_high < c3_low and c1_high > 0:
            size = (c3_low - c1_high) / c1_high * 100
            if size >= min_gap_size_percent:
                fvgs.append(FairValueGap(
                    direction="bullish",
                    top=float(c3_low),
                    bottom=float(c1_high),
                    size_percent=float(size),
                    candle_index=i,
                    start_time=times[i],
                ))

        # Bearish FVG: gap between c3.high and c1.low
        if c1_low > c3_high and c3_high > 0:
            size = (c1_low - c3_high) / c3_high * 100
            if size >= min_gap_size_percent:
                fvgs.append(FairValueGap(
                    direction="bearish",
                    top=float(c1_low),
                    bottom=float(c3_high),
                    size_percent=float(size),
                    candle_index=i,
                    start_time=times[i],
                ))

    return fvgs


def _track_fill(fvg: FairValueGap, ohlc_data: pd.DataFrame) -> None:
    """
    Mark the gap filled at the first later candle that trades through it.

    Bullish FVG filled from above: low reaches the gap bottom.
    Bearish FVG filled from below: high reaches the gap top.
    Scan starts after the 3rd candle of the formation.
    """
    after = ohlc_data.iloc[fvg.candle_index + 2:]
    if after.empty:
        return

    if fvg.direction == "bullish":
        touched = after[after["low"] <= fvg.bottom]
    else:
        touched = after[after["high"] >= fvg.top]

    if not touched.empty:
        fvg.is_filled = True
        fvg.filled_at = touched.iloc[0]["time"]
