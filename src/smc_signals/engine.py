"""
SMC Engine - orchestrator for detector runs and signal generation.

Responsibilities:
- Run every enabled detector over one candle series
- Isolate per-detector failures
- Reuse results through a caller-owned cache
- Generate signals and keep their decision trail
"""

import logging
from typing import Any, Optional

from .candles import CandleInput, to_ohlc_frame
from .config import EngineConfig
from .event_log import SignalEventLog
from .models import AnalysisResult, Signal
from .registry import ResultCache, get_detector
from .synthesis import synthesize_signal

logger = logging.getLogger(__name__)


class SMCEngine:
    """
    Main SMC orchestration engine.

    Holds configuration, result cache and event log. Detectors stay pure;
    all state lives here and is owned by whoever owns the engine.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        cache: Optional[ResultCache] = None,
        adjuster=None,
    ):
        self.config = config or EngineConfig()
        self.cache = cache if cache is not None else ResultCache()
        self.event_log = SignalEventLog()
        self.adjuster = adjuster

    def calculate(
        self,
        detector_id: str,
        candles: CandleInput,
        symbol: str = "",
        interval: str = "",
        config: Any = None,
    ) -> Any:
        """
        Run one detector, served from cache when the same series/config was seen.

        Raises:
            KeyError: unknown detector id
        """
        entry = get_detector(detector_id)
        if config is None:
            config = self.config.detector_configs().get(detector_id) or entry.config_type()

        ohlc = to_ohlc_frame(candles)
        key = self.cache.make_key(symbol, interval, detector_id, config, ohlc)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        result = entry.func(ohlc, config)
        self.cache.put(key, result)
        return result

    def analyze(
        self,
        candles: CandleInput,
        symbol: str = "",
        interval: str = "",
    ) -> AnalysisResult:
        """
        Run every enabled detector. A failing detector is logged and
        reported in AnalysisResult.errors; the others still run.
        """
        ohlc = to_ohlc_frame(candles)
        logger.info(f"[{symbol}] Analyzing {len(ohlc)} candles ({interval or 'n/a'})")

        analysis = AnalysisResult(symbol=symbol, interval=interval)
        for detector_id, config in self.config.enabled_detectors().items():
            try:
                analysis.results[detector_id] = self.calculate(detector_id, ohlc, symbol, interval, config)
            except Exception as e:
                logger.exception(f"[{symbol}] Detector {detector_id} failed")
                analysis.errors[detector_id] = str(e)
                analysis.results[detector_id] = None

        if analysis.errors:
            logger.warning(f"[{symbol}] {len(analysis.errors)} detectors failed")

        return analysis

    def generate_signal(
        self,
        candles: CandleInput,
        symbol: str = "",
        order_book=None,
    ) -> Signal:
        """
        Synthesize a signal, recording the decision trail in self.event_log.

        Raises:
            InsufficientDataError, NoPatternFoundError (see synthesize_signal)
        """
        return synthesize_signal(
            candles,
            order_book=order_book,
            pair=symbol,
            config=self.config.signal,
            adjuster=self.adjuster,
            event_log=self.event_log,
        )
