"""
SMC signal configuration - per-detector, synthesis and scan parameters.
"""

import hashlib
from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass
class SwingConfig:
    """Swing point / market structure detector parameters."""

    lookback: int = 3                     # Bars on each side of a swing point
    min_swing_strength: float = 0.5       # Reserved, not applied


@dataclass
class FVGConfig:
    """Fair Value Gap detector parameters."""

    min_gap_size_percent: float = 0.1     # Gap size in % of the lower outer candle
    max_age_candles: int = 50
    show_filled: bool = False


@dataclass
class OrderBlockConfig:
    """Order block detector parameters."""

    min_impulse_strength: float = 1.5     # Impulse body / preceding candle range
    max_blocks: int = 5
    display_fresh_only: bool = True       # Drop blocks already retested


@dataclass
class StopHuntConfig:
    """Stop hunt detector parameters."""

    min_wick_ratio: float = 0.5           # Wick length / body length
    min_body_to_range_ratio: float = 0.3  # Candle body must stay below this share of range
    lookback_period: int = 20             # Window analysed (last N candles)
    recency_weight: int = 3               # Minimum size of the "recent" period


@dataclass
class SignalConfig:
    """Signal synthesis parameters."""

    min_candles: int = 50
    swing_window: int = 20                # Candles used for swing high/low and range
    order_book_wall_multiplier: float = 3.0
    confidence_step: float = 0.05


@dataclass
class ScanConfig:
    """Multi-pair scan parameters."""

    target_count: int = 10                # Stop once this many signals are produced
    candle_limit: int = 200               # Latest N candles per pair; 0 = all
    shuffle: bool = True


@dataclass
class EngineConfig:
    """Configuration for SMC engine. One per symbol/interval."""

    # --- Feature flags ---
    enable_swing_structure: bool = True
    enable_fvg: bool = True
    enable_order_blocks: bool = True
    enable_stop_hunts: bool = True

    # --- Detector params ---
    swing: SwingConfig = field(default_factory=SwingConfig)
    fvg: FVGConfig = field(default_factory=FVGConfig)
    order_block: OrderBlockConfig = field(default_factory=OrderBlockConfig)
    stop_hunt: StopHuntConfig = field(default_factory=StopHuntConfig)

    # --- Synthesis ---
    signal: SignalConfig = field(default_factory=SignalConfig)

    def detector_configs(self) -> dict:
        """Map detector id -> config for every built-in detector."""
        return {
            "swing_structure": self.swing,
            "fair_value_gap": self.fvg,
            "order_block": self.order_block,
            "stop_hunt": self.stop_hunt,
        }

    def enabled_detectors(self) -> dict:
        """Map detector id -> config for every enabled detector."""
        enabled = {
            "swing_structure": self.enable_swing_structure,
            "fair_value_gap": self.enable_fvg,
            "order_block": self.enable_order_blocks,
            "stop_hunt": self.enable_stop_hunts,
        }
        return {k: v for k, v in self.detector_configs().items() if enabled[k]}


def config_hash(config: Any) -> str:
    """Deterministic 8-char hash of a config dataclass.

    Hash from: class name + sorted field values. Two configs with equal
    fields hash the same, so the hash can key a result cache.
    """
    items = sorted(asdict(config).items())
    raw = f"{type(config).__name__}:{items!r}"
    return hashlib.md5(raw.encode()).hexdigest()[:8]
