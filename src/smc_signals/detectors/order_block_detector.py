"""
Order block detector.

Order block = the candle right before the candle that launched a strong
impulse. Impulse strength = body of the impulse candle divided by the range
of the candle preceding it.
"""

import logging
from typing import List, Optional

import numpy as np
import pandas as pd

from ..candles import CandleInput, price_arrays, to_ohlc_frame
from ..config import OrderBlockConfig
from ..models import OrderBlockZone

logger = logging.getLogger(__name__)


def detect_order_blocks(
    candles: CandleInput,
    config: Optional[OrderBlockConfig] = None,
) -> List[OrderBlockZone]:
    """
    Detect order blocks and track whether later price retested them.

    Args:
        candles: OHLC series (anything to_ohlc_frame accepts). Min 3 rows.
        config: OrderBlockConfig (impulse ratio, max blocks, fresh only)

    Returns:
        OrderBlockZone list sorted by strength (strongest first), at most
        max_blocks long.
    """
    config = config or OrderBlockConfig()
    ohlc_data = to_ohlc_frame(candles)

    if len(ohlc_data) < 3:
        logger.debug(f"Order block detection needs 3 candles, got {len(ohlc_data)}")
        return []

    blocks = _find_blocks(ohlc_data, config.min_impulse_strength)
    for block in blocks:
        _track_test(block, ohlc_data)
        block.age = len(ohlc_data) - 1 - block.candle_index

    blocks.sort(key=lambda b: b.strength, reverse=True)
    if config.display_fresh_only:
        blocks = [b for b in blocks if not b.is_tested]

    return blocks[:max(config.max_blocks, 0)]


def _find_blocks(
    ohlc_data: pd.DataFrame,
    min_impulse_strength: float,
) -> List[OrderBlockZone]:
    """
    Find candles followed by a strong impulse.

    For candle i: impulse when |close[i+1] - open[i+1]| > range[i] * ratio.
    The zone is candle i-1.
    Bullish zone: wick high down to body low.
    Bearish zone: body high down to wick low.
    """
    opens, highs, lows, closes = price_arrays(ohlc_data)
    times = ohlc_data["time"].tolist()

    blocks = []
    for i in range(1, len(ohlc_data) - 1):
        current_range = highs[i] - lows[i]
        if current_range <= 0:
            continue

        next_body = abs(closes[i + 1] - opens[i + 1])
        if next_body <= current_range * min_impulse_strength:
            continue

        is_bullish = closes[i + 1] > opens[i + 1]
        ob = i - 1
        body_high = max(opens[ob], closes[ob])
        body_low = min(opens[ob], closes[ob])

        blocks.append(OrderBlockZone(
            direction="bullish" if is_bullish else "bearish",
            top=float(highs[ob] if is_bullish else body_high),
            bottom=float(body_low if is_bullish else lows[ob]),
            strength=float(next_body / current_range),
            candle_index=ob,
            time=times[ob],
        ))

    return blocks


def _track_test(block: OrderBlockZone, ohlc_data: pd.DataFrame) -> None:
    """
    Mark the block tested at the first later candle that re-enters it.

    Bullish block: candle low inside [bottom, top].
    Bearish block: candle high inside [bottom, top].
    """
    after = ohlc_data.iloc[block.candle_index + 2:]
    if after.empty:
        return

    touch_side = after["low"] if block.direction == "bullish" else after["high"]
    inside = np.flatnonzero((touch_side >= block.bottom).to_numpy() & (touch_side <= block.top).to_numpy())

    if len(inside) > 0:
        block.is_tested = True
        block.tested_at = after.iloc[inside[0]]["time"]
