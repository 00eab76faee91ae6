"""
Stop hunt detector.

A stop hunt candle has a small body and a wick many times longer than the
body: price swept the stops beyond a level and came straight back.
"""

import logging
import math
from typing import List, Optional

import pandas as pd

from ..candles import CandleInput, price_arrays, to_ohlc_frame
from ..config import StopHuntConfig
from ..models import StopHuntEvent, StopHuntResult, StopHuntSummary

logger = logging.getLogger(__name__)

RECENT_SHARE = 0.15

RECOMMENDATIONS = {
    "none": "No stop hunts detected, market might be more predictable.",
    "recent_lower": (
        "Recent lower stop hunts detected. Consider placing stop losses further away "
        "from obvious levels or using alternative risk management strategies."
    ),
    "recent_upper": "Recent upper stop hunts detected. The market might be more volatile at resistance levels.",
    "lower_majority": (
        "Historical pattern shows more lower stop hunts than upper. "
        "Consider this when placing stop losses."
    ),
    "upper_majority": (
        "Historical pattern shows more upper stop hunts than lower. "
        "Be cautious with resistance levels."
    ),
    "balanced": (
        "Both upper and lower stop hunts detected with similar frequency. "
        "Market shows balanced volatility."
    ),
}


def detect_stop_hunts(
    candles: CandleInput,
    config: Optional[StopHuntConfig] = None,
) -> StopHuntResult:
    """
    Detect stop hunt wicks in the last lookback_period candles.

    Args:
        candles: OHLC series (anything to_ohlc_frame accepts)
        config: StopHuntConfig (wick ratio, body ratio, window, recency)

    Returns:
        StopHuntResult with events (candle_index relative to the full input)
        and an aggregate summary with a recommendation.
    """
    config = config or StopHuntConfig()
    ohlc_data = to_ohlc_frame(candles)

    window = ohlc_data.tail(config.lookback_period) if config.lookback_period > 0 else ohlc_data
    offset = len(ohlc_data) - len(window)

    events = _find_stop_hunts(window, config, offset)
    summary = _summarize(events, len(window), offset, config.recency_weight)

    if events:
        logger.debug(
            f"Stop hunts: {summary.lower_count} lower, {summary.upper_count} upper "
            f"in {len(window)} candles"
        )

    return StopHuntResult(events=events, summary=summary)


def _find_stop_hunts(
    window: pd.DataFrame,
    config: StopHuntConfig,
    offset: int,
) -> List[StopHuntEvent]:
    """
    Flag small-body candles with long wicks.

    Upper and lower checks are independent: one candle may give both.
    Doji (zero body) are skipped.
    """
    opens, highs, lows, closes = price_arrays(window)
    times = window["time"].tolist()

    events = []
    for i in range(len(window)):
        body = abs(closes[i] - opens[i])
        total_range = highs[i] - lows[i]
        if body == 0 or total_range <= 0:
            continue

        body_ratio = body / total_range
        if body_ratio >= config.min_body_to_range_ratio:
            continue

        lower_wick = min(opens[i], closes[i]) - lows[i]
        upper_wick = highs[i] - max(opens[i], closes[i])
        lower_ratio = lower_wick / body
        upper_ratio = upper_wick / body

        if lower_ratio >= config.min_wick_ratio:
            events.append(StopHuntEvent(
                side="lower",
                candle_index=offset + i,
                time=times[i],
                price=float(lows[i]),
                wick_ratio=float(lower_ratio),
                body_ratio=float(body_ratio),
            ))

        if upper_ratio >= config.min_wick_ratio:
            events.append(StopHuntEvent(
                side="upper",
                candle_index=offset + i,
                time=times[i],
                price=float(highs[i]),
                wick_ratio=float(upper_ratio),
                body_ratio=float(body_ratio),
            ))

    return events


def _summarize(
    events: List[StopHuntEvent],
    window_len: int,
    offset: int,
    recency_weight: int,
) -> StopHuntSummary:
    """
    Split events into recent vs historical and pick a recommendation.

    Recent period: last max(recency_weight, 15% of window) candles.
    Priority: recent lower > recent upper > lower majority > upper majority
    > balanced.
    """
    if not events:
        return StopHuntSummary(recommendation=RECOMMENDATIONS["none"])

    lower = [e for e in events if e.side == "lower"]
    upper = [e for e in events if e.side == "upper"]

    recent_period = max(recency_weight, math.floor(window_len * RECENT_SHARE))
    recent_start = offset + window_len - recent_period
    recent_lower = [e for e in lower if e.candle_index >= recent_start]
    recent_upper = [e for e in upper if e.candle_index >= recent_start]

    if recent_lower:
        key = "recent_lower"
    elif recent_upper:
        key = "recent_upper"
    elif len(lower) > len(upper):
        key = "lower_majority"
    elif len(upper) > len(lower):
        key = "upper_majority"
    else:
        key = "balanced"

    most_recent = events[0]
    for event in events[1:]:
        if event.candle_index > most_recent.candle_index:
            most_recent = event

    return StopHuntSummary(
        detected=True,
        lower_count=len(lower),
        upper_count=len(upper),
        recent_lower_count=len(recent_lower),
        recent_upper_count=len(recent_upper),
        most_recent=most_recent,
        recommendation=RECOMMENDATIONS[key],
    )
