"""
Detector registry and caller-owned result cache.
"""

import hashlib
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple, Type

import pandas as pd

from .config import FVGConfig, OrderBlockConfig, StopHuntConfig, SwingConfig, config_hash
from .detectors import (
    detect_fair_value_gaps,
    detect_order_blocks,
    detect_stop_hunts,
    detect_swing_structure,
)


@dataclass(frozen=True)
class DetectorEntry:
    """A detector is any (candles, config) -> result function."""
    detector_id: str
    func: Callable[..., Any]
    config_type: Type


DETECTORS: Dict[str, DetectorEntry] = {
    "swing_structure": DetectorEntry("swing_structure", detect_swing_structure, SwingConfig),
    "fair_value_gap": DetectorEntry("fair_value_gap", detect_fair_value_gaps, FVGConfig),
    "order_block": DetectorEntry("order_block", detect_order_blocks, OrderBlockConfig),
    "stop_hunt": DetectorEntry("stop_hunt", detect_stop_hunts, StopHuntConfig),
}


def register_detector(detector_id: str, func: Callable[..., Any], config_type: Type) -> DetectorEntry:
    """Add or replace a detector in the registry."""
    entry = DetectorEntry(detector_id, func, config_type)
    DETECTORS[detector_id] = entry
    return entry


def get_detector(detector_id: str) -> DetectorEntry:
    """Look up a detector. Raises KeyError for unknown ids."""
    if detector_id not in DETECTORS:
        raise KeyError(f"Unknown detector: {detector_id}. Registered: {sorted(DETECTORS)}")
    return DETECTORS[detector_id]


def series_fingerprint(ohlc: pd.DataFrame) -> str:
    """Hash of the candle values, so a changed series misses the cache."""
    if ohlc.empty:
        return "empty"
    values = pd.util.hash_pandas_object(ohlc, index=False).to_numpy()
    return hashlib.md5(values.tobytes()).hexdigest()[:8]


CacheKey = Tuple[str, str, str, str, str]


class ResultCache:
    """In-memory detector results keyed by (symbol, interval, detector, config hash, series).

    Owned by the caller; detectors themselves keep no state.
    """

    def __init__(self):
        self._store: Dict[CacheKey, Any] = {}

    @staticmethod
    def make_key(symbol: str, interval: str, detector_id: str, config: Any, ohlc: pd.DataFrame) -> CacheKey:
        return (symbol, interval, detector_id, config_hash(config), series_fingerprint(ohlc))

    def get(self, key: CacheKey) -> Optional[Any]:
        """Cached result or None."""
        return self._store.get(key)

    def put(self, key: CacheKey, result: Any) -> None:
        self._store[key] = result

    def invalidate(self, symbol: str, interval: Optional[str] = None) -> int:
        """Drop entries for a symbol (optionally one interval). Returns count removed."""
        to_remove = [
            key for key in self._store
            if key[0] == symbol and (interval is None or key[1] == interval)
        ]
        for key in to_remove:
            del self._store[key]
        return len(to_remove)

    def count(self, detector_id: Optional[str] = None) -> int:
        """Count cached results."""
        if detector_id:
            return sum(1 for key in self._store if key[2] == detector_id)
        return len(self._store)

    def clear(self) -> None:
        """Remove all cached results."""
        self._store.clear()

    def to_dataframe(self) -> pd.DataFrame:
        """Export cache keys for inspection."""
        if not self._store:
            return pd.DataFrame()
        return pd.DataFrame(
            list(self._store.keys()),
            columns=["symbol", "interval", "detector_id", "config_hash", "series"],
        )
