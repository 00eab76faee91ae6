"""
Swing structure detector.

Detects swing points, labels consecutive same-kind swings HH/HL/LH/LL and
flags structure shifts (bearish -> bullish structure and back) based on
Smart Money Concepts methodology.
"""

import logging
from typing import List, Optional

import pandas as pd

from ..candles import CandleInput, to_ohlc_frame
from ..config import SwingConfig
from ..models import StructureSegment, StructureShift, SwingPoint, SwingStructure
from ..rules import is_swing_high, is_swing_low, label_high, label_low, shift_direction

logger = logging.getLogger(__name__)


def detect_swing_structure(
    candles: CandleInput,
    config: Optional[SwingConfig] = None,
) -> SwingStructure:
    """
    Detect swing points, structure segments and structure shifts.

    Args:
        candles: OHLC series (anything to_ohlc_frame accepts)
        config: SwingConfig; lookback = bars on each side of a swing

    Returns:
        SwingStructure. Empty when the series has fewer than
        lookback * 2 + 1 candles.
    """
    config = config or SwingConfig()
    ohlc_data = to_ohlc_frame(candles)
    lookback = config.lookback

    if len(ohlc_data) < lookback * 2 + 1:
        logger.debug(f"Swing structure needs {lookback * 2 + 1} candles, got {len(ohlc_data)}")
        return SwingStructure()

    swing_points = _find_swing_points(ohlc_data, lookback)
    segments = _classify_swings(swing_points)
    shifts = _find_structure_shifts(segments)

    return SwingStructure(
        swing_points=swing_points,
        segments=segments,
        shifts=shifts,
    )


def _find_swing_points(
    ohlc_data: pd.DataFrame,
    lookback: int,
) -> List[SwingPoint]:
    """
    Find swing highs and lows, merged in bar order.

    A bar that is both a swing high and a swing low yields the high first.
    """
    highs = ohlc_data["high"].to_numpy(dtype=float)
    lows = ohlc_data["low"].to_numpy(dtype=float)
    times = ohlc_data["time"].tolist()

    points = []
    for i in range(lookback, len(ohlc_data) - lookback):
        if is_swing_high(highs, i, lookback):
            points.append(SwingPoint(index=i, time=times[i], price=float(highs[i]), kind="high"))
        if is_swing_low(lows, i, lookback):
            points.append(SwingPoint(index=i, time=times[i], price=float(lows[i]), kind="low"))

    return points


def _classify_swings(
    swing_points: List[SwingPoint],
) -> List[StructureSegment]:
    """
    Label each swing against the last swing of the same kind.

    The first high and the first low only seed the comparison.
    """
    segments = []
    last_high = None
    last_low = None

    for point in swing_points:
        if point.kind == "high":
            if last_high is not None:
                segments.append(_make_segment(label_high(last_high.price, point.price), last_high, point))
            last_high = point
        else:
            if last_low is not None:
                segments.append(_make_segment(label_low(last_low.price, point.price), last_low, point))
            last_low = point

    return segments


def _make_segment(kind: str, start: SwingPoint, end: SwingPoint) -> StructureSegment:
    strength = abs(end.price - start.price) / start.price if start.price else 0.0
    return StructureSegment(kind=kind, start=start, end=end, strength=strength)


def _find_structure_shifts(
    segments: List[StructureSegment],
) -> List[StructureShift]:
    """
    Scan adjacent segment pairs for a structure flip.

    Bullish: LL -> HL, LH -> HH
    Bearish: HH -> LH, HL -> LL
    """
    shifts = []

    for previous, current in zip(segments, segments[1:]):
        direction = shift_direction(previous.kind, current.kind)
        if direction is None:
            continue
        shifts.append(StructureShift(
            direction=direction,
            segment=current,
            previous_segment=previous,
            strength=current.strength,
            time=current.end.time,
            price=current.end.price,
            index=current.end.index,
        ))

    return shifts
