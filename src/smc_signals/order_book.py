"""
Order book wall analysis and signal confidence adjustment.

A wall is a level whose size exceeds `multiplier` x the average level size.
Walls that share an identical size are flagged as duplicates (possible
algorithmic or spoofed orders). Adjusters are pluggable: any object with
`adjust(signal, snapshot) -> Signal` can replace the default one.
"""

import logging
from collections import Counter
from dataclasses import replace
from typing import Any, List, Optional

import numpy as np

from .models import OrderBookSnapshot, OrderBookWall, Signal

logger = logging.getLogger(__name__)


def as_snapshot(order_book: Any) -> Optional[OrderBookSnapshot]:
    """Accept an OrderBookSnapshot or a {"bids": [...], "asks": [...]} mapping."""
    if order_book is None or isinstance(order_book, OrderBookSnapshot):
        return order_book
    bids = [(float(level[0]), float(level[1])) for level in order_book.get("bids", [])]
    asks = [(float(level[0]), float(level[1])) for level in order_book.get("asks", [])]
    return OrderBookSnapshot(bids=bids, asks=asks)


def find_walls(snapshot: OrderBookSnapshot, multiplier: float = 3.0) -> List[OrderBookWall]:
    """
    Find bid/ask levels larger than multiplier x average level size.

    Returns:
        Bid walls first, then ask walls, in book order.
    """
    levels = list(snapshot.bids) + list(snapshot.asks)
    if not levels:
        return []

    avg_size = float(np.mean([size for _, size in levels]))
    threshold = avg_size * multiplier

    walls = [OrderBookWall(side="bid", price=p, size=s) for p, s in snapshot.bids if s > threshold]
    walls += [OrderBookWall(side="ask", price=p, size=s) for p, s in snapshot.asks if s > threshold]

    size_counts = Counter(w.size for w in walls)
    for wall in walls:
        wall.is_duplicate_size = size_counts[wall.size] > 1

    return walls


class NullAdjuster:
    """Leaves signals untouched. Use to disable order book adjustment."""

    def adjust(self, signal: Signal, snapshot: Optional[OrderBookSnapshot]) -> Signal:
        return signal


class WallConfidenceAdjuster:
    """
    Nudge signal confidence by the position of walls around the entry.

    BUY + bid wall below entry: +step      SELL + ask wall above entry: +step
    BUY + ask wall above entry: -step      SELL + bid wall below entry: -step

    Direction is never changed.
    """

    def __init__(self, multiplier: float = 3.0, step: float = 0.05, flag_duplicates: bool = True):
        self.multiplier = multiplier
        self.step = step
        self.flag_duplicates = flag_duplicates

    def adjust(self, signal: Signal, snapshot: Optional[OrderBookSnapshot]) -> Signal:
        if snapshot is None:
            return signal

        walls = find_walls(snapshot, self.multiplier)
        if not walls:
            return replace(signal, reasoning=signal.reasoning + "\nOrder book analysis: no significant walls.")

        lines = ["Order book analysis:"]
        lines += [f"{w.side.capitalize()} wall: {w.price} (size {w.size})" for w in walls]

        duplicates = sorted({w.size for w in walls if w.is_duplicate_size})
        if self.flag_duplicates and duplicates:
            sizes = ", ".join(f"{s:g}" for s in duplicates)
            lines.append(
                f"Several large orders share the same size: {sizes}. "
                "This may indicate algorithmic orders or manipulation."
            )

        entry = signal.entry_point
        bid_below = any(w.side == "bid" and w.price < entry for w in walls)
        ask_above = any(w.side == "ask" and w.price > entry for w in walls)

        confidence = signal.confidence
        if signal.direction == "BUY" and bid_below:
            confidence += self.step
            lines.append("Bid wall below entry - signal strengthened.")
        if signal.direction == "SELL" and ask_above:
            confidence += self.step
            lines.append("Ask wall above entry - signal strengthened.")
        if signal.direction == "BUY" and ask_above:
            confidence -= self.step
            lines.append("Ask wall above entry - signal weakened.")
        if signal.direction == "SELL" and bid_below:
            confidence -= self.step
            lines.append("Bid wall below entry - signal weakened.")

        confidence = round(min(max(confidence, 0.0), 1.0), 10)
        if confidence != signal.confidence:
            logger.debug(f"[{signal.pair}] Order book moved confidence {signal.confidence:.2f} -> {confidence:.2f}")

        return replace(
            signal,
            confidence=confidence,
            reasoning=signal.reasoning + "\n" + "\n".join(lines),
        )
