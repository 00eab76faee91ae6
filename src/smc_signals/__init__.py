"""
SMC signal engine - Smart Money / ICT pattern detection and signal synthesis.

Three-layer architecture:
- Detectors: pure functions that scan candle series for SMC structures
- Synthesis: ordered pattern waterfall producing one trading signal
- Engine / scanner: orchestration, caching and multi-pair scanning
"""
from .detectors import (
    detect_fair_value_gaps,
    detect_order_blocks,
    detect_stop_hunts,
    detect_swing_structure,
)
from .engine import SMCEngine
from .errors import InsufficientDataError, InvalidInputError, NoPatternFoundError, SignalError
from .scanner import scan_pairs
from .synthesis import synthesize_signal
