"""
SMC signal data models - dataclasses for candles, structures and signals.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple


# ================================
# Input
# ================================

@dataclass
class Candle:
    """Single OHLC candle as delivered by a candle provider."""
    open_time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    close_time: Optional[datetime] = None


@dataclass
class OrderBookSnapshot:
    """Order book levels as (price, size) pairs."""
    bids: List[Tuple[float, float]] = field(default_factory=list)
    asks: List[Tuple[float, float]] = field(default_factory=list)


@dataclass
class OrderBookWall:
    """Order book level whose size stands out against the average level."""
    side: str                             # "bid" / "ask"
    price: float
    size: float
    is_duplicate_size: bool = False


# ================================
# Swing / Structure
# ================================

@dataclass
class SwingPoint:
    """Local extremum relative to a symmetric neighbour window."""
    index: int
    time: Any
    price: float
    kind: str                             # "high" / "low"


@dataclass
class StructureSegment:
    """Move between two consecutive swing points of the same kind."""
    kind: str                             # "HH" / "HL" / "LH" / "LL"
    start: SwingPoint
    end: SwingPoint
    strength: float                       # |end - start| / start


@dataclass
class StructureShift:
    """Structure flip between two adjacent segments."""
    direction: str                        # "bullish" / "bearish"
    segment: StructureSegment
    previous_segment: StructureSegment
    strength: float
    time: Any
    price: float
    index: int


@dataclass
class SwingStructure:
    """Result of swing/structure detection."""
    swing_points: List[SwingPoint] = field(default_factory=list)
    segments: List[StructureSegment] = field(default_factory=list)
    shifts: List[StructureShift] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.swing_points


# ================================
# Zones
# ================================

@dataclass
class FairValueGap:
    """Fair Value Gap - 3-candle imbalance between the outer wicks."""
    direction: str                        # "bullish" / "bearish"
    top: float
    bottom: float
    size_percent: float
    candle_index: int                     # Middle candle
    start_time: Any
    is_filled: bool = False
    filled_at: Any = None
    age: int = 0

    @property
    def midpoint(self) -> float:
        return (self.top + self.bottom) / 2


@dataclass
class OrderBlockZone:
    """Candle preceding a strong impulse."""
    direction: str                        # "bullish" / "bearish"
    top: float
    bottom: float
    strength: float                       # Impulse body / impulse-source range
    candle_index: int
    time: Any
    is_tested: bool = False
    tested_at: Any = None
    age: int = 0


# ================================
# Stop hunts
# ================================

@dataclass
class StopHuntEvent:
    """Long wick beyond a small body - likely liquidity sweep."""
    side: str                             # "upper" / "lower"
    candle_index: int
    time: Any
    price: float                          # Wick extreme
    wick_ratio: float
    body_ratio: float


@dataclass
class StopHuntSummary:
    """Aggregate view of the stop hunts in a window."""
    detected: bool = False
    lower_count: int = 0
    upper_count: int = 0
    recent_lower_count: int = 0
    recent_upper_count: int = 0
    most_recent: Optional[StopHuntEvent] = None
    recommendation: str = ""


@dataclass
class StopHuntResult:
    events: List[StopHuntEvent] = field(default_factory=list)
    summary: StopHuntSummary = field(default_factory=StopHuntSummary)


# ================================
# Signals
# ================================

@dataclass
class Signal:
    """Directional trading signal produced by synthesis."""
    pair: str
    direction: str                        # "BUY" / "SELL"
    entry_point: float
    stop_loss: float
    take_profit: float
    reasoning: str
    confidence: float
    pattern: str = ""                     # Rule that produced the signal


@dataclass
class SignalEvent:
    """Single chronological entry in the synthesis decision log."""
    timestamp: datetime
    pair: str
    event_type: str
    pattern: Optional[str] = None
    direction: Optional[str] = None
    price: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict)


# ================================
# Aggregates
# ================================

@dataclass
class AnalysisResult:
    """Outcome of running every enabled detector over one series."""
    symbol: str
    interval: str
    results: Dict[str, Any] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class ScanResult:
    """Outcome of a multi-pair scan."""
    signals: List[Signal] = field(default_factory=list)
    attempted: int = 0
    failed: Dict[str, str] = field(default_factory=dict)
    cancelled: bool = False

    @property
    def generated(self) -> int:
        return len(self.signals)
