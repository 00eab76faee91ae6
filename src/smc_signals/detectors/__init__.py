"""
SMC Detectors - pure functions for detecting market structures.

Each detector takes a candle series + config, returns its result.
No side effects, no state.
"""
from .swing_structure_detector import detect_swing_structure
from .fvg_detector import detect_fair_value_gaps
from .order_block_detector import detect_order_blocks
from .stop_hunt_detector import detect_stop_hunts
