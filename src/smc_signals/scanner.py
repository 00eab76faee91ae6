"""
Multi-pair scan driver.

Pairs are processed one at a time so candle fetches stay bounded. The scan
stops once target_count signals exist or the cancel event is set; a pair
that fails is logged and skipped.
"""

import logging
import random
import threading
from typing import Any, Callable, Iterable, Optional

from .candles import to_ohlc_frame
from .config import ScanConfig, SignalConfig
from .errors import NoPatternFoundError
from .event_log import SignalEventLog
from .models import ScanResult
from .synthesis import synthesize_signal

logger = logging.getLogger(__name__)


def scan_pairs(
    pairs: Iterable[str],
    fetch_candles: Callable[[str], Any],
    config: Optional[ScanConfig] = None,
    fetch_order_book: Optional[Callable[[str], Any]] = None,
    cancel_event: Optional[threading.Event] = None,
    rng: Optional[random.Random] = None,
    signal_config: Optional[SignalConfig] = None,
    adjuster=None,
    event_log: Optional[SignalEventLog] = None,
) -> ScanResult:
    """
    Generate signals across pairs until target_count is reached.

    Args:
        pairs: Symbols to scan
        fetch_candles: pair -> candle series (any to_ohlc_frame input)
        config: ScanConfig (target count, candle limit, shuffle)
        fetch_order_book: Optional pair -> order book snapshot. A failing
                          provider only drops the order book adjustment.
        cancel_event: Checked before each pair; set it to stop the scan
        rng: Random source for shuffling (seed it for reproducible order)
        signal_config: Passed to synthesize_signal
        adjuster: Passed to synthesize_signal
        event_log: Passed to synthesize_signal

    Returns:
        ScanResult with signals, attempted count, failures and cancel flag.
    """
    config = config or ScanConfig()
    ordered = list(pairs)
    if config.shuffle:
        (rng or random.Random()).shuffle(ordered)

    result = ScanResult()
    logger.info(f"Scanning {len(ordered)} pairs for {config.target_count} signals")

    for pair in ordered:
        if cancel_event is not None and cancel_event.is_set():
            result.cancelled = True
            logger.info(f"Scan cancelled after {result.attempted} pairs")
            break
        if result.generated >= config.target_count:
            break

        result.attempted += 1
        try:
            candles = to_ohlc_frame(fetch_candles(pair))
            if config.candle_limit > 0:
                candles = candles.tail(config.candle_limit)
            order_book = _fetch_order_book(fetch_order_book, pair)
            signal = synthesize_signal(
                candles,
                order_book=order_book,
                pair=pair,
                config=signal_config,
                adjuster=adjuster,
                event_log=event_log,
            )
        except NoPatternFoundError as e:
            logger.info(f"[SCAN] No signal for {pair}")
            result.failed[pair] = str(e)
            continue
        except Exception as e:
            logger.warning(f"[SCAN] Error analyzing {pair}: {e}")
            result.failed[pair] = str(e)
            continue

        result.signals.append(signal)
        logger.info(f"[SCAN] Signal for {pair}: {signal.direction} ({signal.pattern}, {signal.confidence:.2f})")

    logger.info(f"Scan finished: {result.generated} signals from {result.attempted} pairs")
    return result


def _fetch_order_book(fetch_order_book: Optional[Callable[[str], Any]], pair: str) -> Any:
    """Order book for the pair, or None when no provider is set or it fails."""
    if fetch_order_book is None:
        return None
    try:
        return fetch_order_book(pair)
    except Exception as e:
        logger.warning(f"[SCAN] Order book unavailable for {pair}, scoring without it: {e}")
        return None
