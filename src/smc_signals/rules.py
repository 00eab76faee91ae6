"""
Shared structure rules.

Swing extrema, HH/HL/LH/LL labels, structure-shift transitions and the
window comparisons used by the synthesis waterfall. Detectors and synthesis
both call these, so a rule has exactly one definition.
"""

from typing import List, Optional, Sequence

import numpy as np

BULLISH_SHIFTS = {("LL", "HL"), ("LH", "HH")}
BEARISH_SHIFTS = {("HH", "LH"), ("HL", "LL")}


# ================================
# Swing extrema
# ================================

def is_swing_high(highs: Sequence[float], i: int, lookback: int) -> bool:
    """Center high strictly above every high within lookback bars on both sides."""
    if lookback < 1 or i - lookback < 0 or i + lookback >= len(highs):
        return False
    center = highs[i]
    for j in range(1, lookback + 1):
        if highs[i - j] >= center or highs[i + j] >= center:
            return False
    return True


def is_swing_low(lows: Sequence[float], i: int, lookback: int) -> bool:
    """Center low strictly below every low within lookback bars on both sides."""
    if lookback < 1 or i - lookback < 0 or i + lookback >= len(lows):
        return False
    center = lows[i]
    for j in range(1, lookback + 1):
        if lows[i - j] <= center or lows[i + j] <= center:
            return False
    return True


# ================================
# Structure labels
# ================================

def label_high(previous: float, current: float) -> str:
    """HH when the new high is strictly higher, otherwise LH."""
    return "HH" if current > previous else "LH"


def label_low(previous: float, current: float) -> str:
    """LL when the new low is strictly lower, otherwise HL."""
    return "LL" if current < previous else "HL"


def shift_direction(previous_kind: str, current_kind: str) -> Optional[str]:
    """Direction of the structure flip between two adjacent labels, if any."""
    pair = (previous_kind, current_kind)
    if pair in BULLISH_SHIFTS:
        return "bullish"
    if pair in BEARISH_SHIFTS:
        return "bearish"
    return None


# ================================
# Window comparisons
# ================================

def rising(values: Sequence[float], points: int = 2) -> bool:
    """Last `points` values strictly increasing."""
    if len(values) < points:
        return False
    return bool(np.all(np.diff(np.asarray(values[-points:], dtype=float)) > 0))


def falling(values: Sequence[float], points: int = 2) -> bool:
    """Last `points` values strictly decreasing."""
    if len(values) < points:
        return False
    return bool(np.all(np.diff(np.asarray(values[-points:], dtype=float)) < 0))


def prior_max(values: Sequence[float], window: int) -> float:
    """Max of the `window` values before the last one."""
    return float(np.max(values[-window - 1:-1]))


def prior_min(values: Sequence[float], window: int) -> float:
    """Min of the `window` values before the last one."""
    return float(np.min(values[-window - 1:-1]))


def breaks_above(values: Sequence[float], window: int) -> bool:
    """Last value strictly above the prior `window` values."""
    if len(values) < window + 1:
        return False
    return values[-1] > prior_max(values, window)


def breaks_below(values: Sequence[float], window: int) -> bool:
    """Last value strictly below the prior `window` values."""
    if len(values) < window + 1:
        return False
    return values[-1] < prior_min(values, window)


def equal_levels(values: Sequence[float], tolerance: float, points: int = 3) -> bool:
    """Each consecutive pair of the last `points` values within tolerance."""
    if len(values) < points:
        return False
    diffs = np.abs(np.diff(np.asarray(values[-points:], dtype=float)))
    return bool(np.all(diffs < tolerance))


def equal_level_clusters(values: Sequence[float], tolerance: float, window: int) -> List[float]:
    """Levels starting a run of three near-equal values inside the last `window`."""
    start = max(0, len(values) - window)
    clusters = []
    for i in range(start, len(values) - 2):
        if abs(values[i] - values[i + 1]) < tolerance and abs(values[i + 1] - values[i + 2]) < tolerance:
            clusters.append(float(values[i]))
    return clusters
