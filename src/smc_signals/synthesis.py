"""
Signal synthesis - ordered ICT / Smart Money pattern waterfall.

The latest candles are tested against PATTERN_RULES in order; the first rule
whose condition holds produces the signal. Order matters: earlier, more
specific rules pre-empt later, more general ones.

Levels are measured against the swing window (last `swing_window` candles):
    BUY:  stop = swing_low - stop_mult * range,  target = entry + target_mult * range
    SELL: stop = swing_high + stop_mult * range, target = entry - target_mult * range
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np
import pandas as pd

from .candles import CandleInput, price_arrays, to_ohlc_frame
from .config import SignalConfig
from .errors import InsufficientDataError, NoPatternFoundError
from .event_log import SignalEventLog
from .models import Signal
from .order_book import WallConfidenceAdjuster, as_snapshot
from .rules import (
    breaks_above,
    breaks_below,
    equal_level_clusters,
    equal_levels,
    falling,
    label_high,
    label_low,
    prior_max,
    prior_min,
    rising,
)

logger = logging.getLogger(__name__)

LIQUIDITY_GRAB_WINDOW = 9
BOS_WINDOW = 5
STOP_HUNT_WINDOW = 19
EQUAL_LEVEL_TOLERANCE = 0.02
STOP_CLUSTER_TOLERANCE = 0.01
FVG_MIN_GAP = 0.2
OB_VOLUME_MULTIPLIER = 1.5
BREAKOUT_BODY = 0.4


@dataclass
class MarketWindow:
    """Price arrays and swing range shared by every rule."""
    opens: np.ndarray
    highs: np.ndarray
    lows: np.ndarray
    closes: np.ndarray
    volumes: np.ndarray
    swing_high: float
    swing_low: float

    @property
    def range(self) -> float:
        return self.swing_high - self.swing_low

    @property
    def last_close(self) -> float:
        return float(self.closes[-1])

    @property
    def last_bullish(self) -> bool:
        return self.closes[-1] > self.opens[-1]

    @property
    def last_bearish(self) -> bool:
        return self.closes[-1] < self.opens[-1]

    @classmethod
    def from_frame(cls, ohlc: pd.DataFrame, swing_window: int) -> "MarketWindow":
        opens, highs, lows, closes = price_arrays(ohlc)
        return cls(
            opens=opens,
            highs=highs,
            lows=lows,
            closes=closes,
            volumes=ohlc["volume"].to_numpy(dtype=float),
            swing_high=float(np.max(highs[-swing_window:])),
            swing_low=float(np.min(lows[-swing_window:])),
        )


@dataclass(frozen=True)
class PatternRule:
    """One waterfall entry: condition plus level and confidence formula."""
    pattern: str
    direction: str                        # "BUY" / "SELL"
    condition: Callable[[MarketWindow], bool]
    stop_mult: float
    target_mult: float
    confidence: float
    reasoning: str
    annotate: Optional[Callable[[MarketWindow], str]] = None

    def build(self, window: MarketWindow, pair: str) -> Signal:
        entry = window.last_close
        r = window.range
        if self.direction == "BUY":
            stop_loss = window.swing_low - r * self.stop_mult
            take_profit = entry + r * self.target_mult
        else:
            stop_loss = window.swing_high + r * self.stop_mult
            take_profit = entry - r * self.target_mult

        reasoning = self.reasoning
        if self.annotate is not None:
            note = self.annotate(window)
            if note:
                reasoning += "\n" + note

        return Signal(
            pair=pair,
            direction=self.direction,
            entry_point=entry,
            stop_loss=stop_loss,
            take_profit=take_profit,
            reasoning=reasoning,
            confidence=self.confidence,
            pattern=self.pattern,
        )


# ================================
# Conditions
# ================================

def _liquidity_grab_buy(w: MarketWindow) -> bool:
    return breaks_below(w.lows, LIQUIDITY_GRAB_WINDOW) and w.closes[-1] > w.closes[-2] and w.last_bullish


def _liquidity_grab_sell(w: MarketWindow) -> bool:
    return breaks_above(w.highs, LIQUIDITY_GRAB_WINDOW) and w.closes[-1] < w.closes[-2] and w.last_bearish


def _higher_low(w: MarketWindow) -> bool:
    return rising(w.closes[:-1]) and rising(w.lows)


def _lower_high(w: MarketWindow) -> bool:
    return falling(w.closes[:-1]) and falling(w.highs)


def _choch_sell(w: MarketWindow) -> bool:
    # Highs were still printing HH, the latest low breaks to LL and close falls
    return (
        label_high(w.highs[-3], w.highs[-2]) == "HH"
        and label_low(w.lows[-2], w.lows[-1]) == "LL"
        and falling(w.closes)
    )


def _choch_buy(w: MarketWindow) -> bool:
    return (
        label_low(w.lows[-3], w.lows[-2]) == "LL"
        and label_high(w.highs[-2], w.highs[-1]) == "HH"
        and rising(w.closes)
    )


def _fvg_sell(w: MarketWindow) -> bool:
    gap = w.opens[-2] - w.closes[-3]
    return gap > 0 and gap > w.range * FVG_MIN_GAP


def _fvg_buy(w: MarketWindow) -> bool:
    gap = w.opens[-3] - w.closes[-2]
    return gap > 0 and gap > w.range * FVG_MIN_GAP


def _heavy_volume(w: MarketWindow) -> bool:
    return w.volumes[-1] > OB_VOLUME_MULTIPLIER * float(np.mean(w.volumes))


def _stop_hunt_buy(w: MarketWindow) -> bool:
    if len(w.lows) < STOP_HUNT_WINDOW + 1:
        return False
    level = prior_min(w.lows, STOP_HUNT_WINDOW)
    return w.lows[-1] < level < w.closes[-1] and w.last_bullish


def _stop_hunt_sell(w: MarketWindow) -> bool:
    if len(w.highs) < STOP_HUNT_WINDOW + 1:
        return False
    level = prior_max(w.highs, STOP_HUNT_WINDOW)
    return w.highs[-1] > level > w.closes[-1] and w.last_bearish


def _lower_cluster_note(w: MarketWindow) -> str:
    clusters = equal_level_clusters(w.lows, w.range * STOP_CLUSTER_TOLERANCE, STOP_HUNT_WINDOW + 1)
    below = [level for level in clusters if level < w.last_close]
    if not below:
        return ""
    return (
        f"Nearest stop cluster (EQL) was at {max(below):.2f}. "
        "Price may run that liquidity below before reversing."
    )


def _upper_cluster_note(w: MarketWindow) -> str:
    clusters = equal_level_clusters(w.highs, w.range * STOP_CLUSTER_TOLERANCE, STOP_HUNT_WINDOW + 1)
    above = [level for level in clusters if level > w.last_close]
    if not above:
        return ""
    return (
        f"Nearest stop cluster (EQH) was at {min(above):.2f}. "
        "Price may run that liquidity above before reversing."
    )


def _breakout_body(w: MarketWindow) -> bool:
    return abs(w.closes[-1] - w.opens[-1]) > w.range * BREAKOUT_BODY


PATTERN_RULES: Tuple[PatternRule, ...] = (
    PatternRule(
        "liquidity_grab", "BUY", _liquidity_grab_buy, 0.1, 0.8, 0.8,
        "Liquidity grab below the lows with a fast reclaim - ICT long setup.",
    ),
    PatternRule(
        "liquidity_grab", "SELL", _liquidity_grab_sell, 0.1, 0.8, 0.8,
        "Liquidity grab above the highs with a fast rejection - ICT short setup.",
    ),
    PatternRule(
        "higher_high", "BUY", lambda w: rising(w.highs, 3), 0.1, 0.7, 0.7,
        "Higher Highs (HH): consecutive rising highs - uptrend, potential long.",
    ),
    PatternRule(
        "lower_low", "SELL", lambda w: falling(w.lows, 3), 0.1, 0.7, 0.7,
        "Lower Lows (LL): consecutive falling lows - downtrend, potential short.",
    ),
    PatternRule(
        "higher_low", "BUY", _higher_low, 0.1, 0.6, 0.65,
        "Higher Low (HL): low above the previous one, bullish trend confirmation.",
    ),
    PatternRule(
        "lower_high", "SELL", _lower_high, 0.1, 0.6, 0.65,
        "Lower High (LH): high below the previous one, bearish trend confirmation.",
    ),
    PatternRule(
        "choch", "SELL", _choch_sell, 0.15, 0.8, 0.75,
        "Change of Character (CHoCH): structure flipped from bullish to bearish.",
    ),
    PatternRule(
        "choch", "BUY", _choch_buy, 0.15, 0.8, 0.75,
        "Change of Character (CHoCH): structure flipped from bearish to bullish.",
    ),
    PatternRule(
        "bos", "BUY", lambda w: breaks_above(w.highs, BOS_WINDOW), 0.12, 0.9, 0.7,
        "Break of Structure (BOS): key high broken, bullish impulse confirmed.",
    ),
    PatternRule(
        "bos", "SELL", lambda w: breaks_below(w.lows, BOS_WINDOW), 0.12, 0.9, 0.7,
        "Break of Structure (BOS): key low broken, bearish impulse confirmed.",
    ),
    PatternRule(
        "equal_highs", "SELL", lambda w: equal_levels(w.highs, w.range * EQUAL_LEVEL_TOLERANCE), 0.1, 0.7, 0.6,
        "Equal Highs (EQH): liquidity pooling above equal highs.",
    ),
    PatternRule(
        "equal_lows", "BUY", lambda w: equal_levels(w.lows, w.range * EQUAL_LEVEL_TOLERANCE), 0.1, 0.7, 0.6,
        "Equal Lows (EQL): liquidity pooling below equal lows.",
    ),
    PatternRule(
        "fair_value_gap", "SELL", _fvg_sell, 0.1, 0.7, 0.65,
        "Fair Value Gap (FVG): gap between candles, likely return to fair price.",
    ),
    PatternRule(
        "fair_value_gap", "BUY", _fvg_buy, 0.1, 0.7, 0.65,
        "Fair Value Gap (FVG): gap between candles, likely return to fair price.",
    ),
    PatternRule(
        "order_block", "BUY", lambda w: w.last_bearish and _heavy_volume(w), 0.1, 0.7, 0.7,
        "Order Block (OB): large bearish candle on volume, possible reversal.",
    ),
    PatternRule(
        "order_block", "SELL", lambda w: w.last_bullish and _heavy_volume(w), 0.1, 0.7, 0.7,
        "Order Block (OB): large bullish candle on volume, possible reversal.",
    ),
    PatternRule(
        "market_structure_break", "BUY",
        lambda w: rising(w.highs) and rising(w.lows) and rising(w.closes), 0.1, 0.7, 0.7,
        "Market Structure Break/Shift (MSB/MSS): sharp bullish change of structure.",
    ),
    PatternRule(
        "market_structure_break", "SELL",
        lambda w: falling(w.highs) and falling(w.lows) and falling(w.closes), 0.1, 0.7, 0.7,
        "Market Structure Break/Shift (MSB/MSS): sharp bearish change of structure.",
    ),
    PatternRule(
        "stop_hunt", "BUY", _stop_hunt_buy, 0.08, 0.65, 0.75,
        "Stop hunt below the lows: low pierced and price closed back above the extreme.",
        annotate=_lower_cluster_note,
    ),
    PatternRule(
        "stop_hunt", "SELL", _stop_hunt_sell, 0.08, 0.65, 0.75,
        "Stop hunt above the highs: high pierced and price closed back below the extreme.",
        annotate=_upper_cluster_note,
    ),
    PatternRule(
        "volatility_breakout", "BUY", lambda w: _breakout_body(w) and w.last_bullish, 0.1, 0.8, 0.7,
        "Impulsive breakout up from consolidation - Smart Money breakout BUY.",
    ),
    PatternRule(
        "volatility_breakout", "SELL", lambda w: _breakout_body(w) and w.last_bearish, 0.1, 0.8, 0.7,
        "Impulsive breakout down from consolidation - Smart Money breakout SELL.",
    ),
)


def match_rule(window: MarketWindow, pair: str = "") -> Optional[PatternRule]:
    """First rule in PATTERN_RULES whose condition holds, or None."""
    for rule in PATTERN_RULES:
        matched = bool(rule.condition(window))
        logger.debug(f"[{pair}] {rule.pattern} {rule.direction}: {matched}")
        if matched:
            return rule
    return None


def synthesize_signal(
    candles: CandleInput,
    order_book=None,
    pair: str = "",
    config: Optional[SignalConfig] = None,
    adjuster=None,
    event_log: Optional[SignalEventLog] = None,
) -> Signal:
    """
    Produce a trading signal from the latest candles.

    Args:
        candles: OHLC series (anything to_ohlc_frame accepts), >= min_candles
        order_book: Optional OrderBookSnapshot or {"bids", "asks"} mapping
        pair: Symbol attached to the signal
        config: SignalConfig
        adjuster: Confidence adjuster applied when an order book is given.
                  Defaults to WallConfidenceAdjuster.
        event_log: Optional SignalEventLog receiving the decision trail

    Returns:
        Signal of the first matching rule, confidence adjusted by the
        order book when one is supplied.

    Raises:
        InsufficientDataError: fewer than config.min_candles candles
        NoPatternFoundError: no rule matched
    """
    config = config or SignalConfig()
    ohlc = to_ohlc_frame(candles)

    if len(ohlc) < config.min_candles:
        raise InsufficientDataError(config.min_candles, len(ohlc))

    window = MarketWindow.from_frame(ohlc, config.swing_window)
    rule = match_rule(window, pair)

    if rule is None:
        if event_log is not None:
            event_log.record_simple(pair, "NO_PATTERN", price=window.last_close)
        raise NoPatternFoundError(pair)

    signal = rule.build(window, pair)
    logger.info(f"[{pair}] {rule.pattern} {rule.direction} signal at {signal.entry_point}")
    if event_log is not None:
        event_log.record_simple(
            pair, "RULE_MATCHED", pattern=rule.pattern, direction=rule.direction,
            price=signal.entry_point, confidence=signal.confidence,
        )

    snapshot = as_snapshot(order_book)
    if snapshot is not None:
        adjuster = adjuster or WallConfidenceAdjuster(config.order_book_wall_multiplier, config.confidence_step)
        adjusted = adjuster.adjust(signal, snapshot)
        if event_log is not None:
            event_log.record_simple(
                pair, "ORDER_BOOK", pattern=rule.pattern, direction=adjusted.direction,
                price=adjusted.entry_point, confidence_before=signal.confidence,
                confidence_after=adjusted.confidence,
            )
        signal = adjusted

    return signal
