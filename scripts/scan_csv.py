"""
Scan a directory of candle CSV files for SMC signals.

One CSV per pair, named <PAIR>.csv, with columns
[time, open, high, low, close, volume]. Each file plays the role of the
candle provider for its pair.

Usage:
    python scripts/scan_csv.py data/candles --target 5 --seed 42
"""

import argparse
import logging
import random
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import pandas as pd

import config
from src.smc_signals.config import ScanConfig, SignalConfig
from src.smc_signals.event_log import SignalEventLog
from src.smc_signals.scanner import scan_pairs

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format=config.LOG_FORMAT,
    handlers=[logging.StreamHandler(), logging.FileHandler(config.LOG_FILE)],
)
logger = logging.getLogger(__name__)


def load_pairs(data_dir: Path) -> dict:
    """Map pair name -> CSV path."""
    files = sorted(data_dir.glob("*.csv"))
    logger.info(f"Found {len(files)} CSV files in {data_dir}")
    return {f.stem.upper(): f for f in files}


def main() -> int:
    parser = argparse.ArgumentParser(description="Scan candle CSVs for SMC signals")
    parser.add_argument("data_dir", type=Path, help="Directory with <PAIR>.csv files")
    parser.add_argument("--target", type=int, default=config.SCAN_TARGET_COUNT, help="Signals to collect")
    parser.add_argument("--limit", type=int, default=config.CANDLE_LIMIT, help="Candles per pair (latest N)")
    parser.add_argument("--seed", type=int, default=None, help="Shuffle seed")
    parser.add_argument("--log-csv", type=Path, default=None, help="Write decision log CSV here")
    args = parser.parse_args()

    if not args.data_dir.exists():
        logger.error(f"Data path does not exist: {args.data_dir}")
        return 1

    paths = load_pairs(args.data_dir)

    def fetch_candles(pair: str) -> pd.DataFrame:
        return pd.read_csv(paths[pair])

    event_log = SignalEventLog()
    result = scan_pairs(
        paths.keys(),
        fetch_candles,
        config=ScanConfig(target_count=args.target, candle_limit=args.limit),
        rng=random.Random(args.seed),
        signal_config=SignalConfig(order_book_wall_multiplier=config.ORDER_BOOK_WALL_MULTIPLIER),
        event_log=event_log,
    )

    for signal in result.signals:
        print(f"{signal.pair:<12} {signal.direction:<4} {signal.pattern:<24} "
              f"entry={signal.entry_point:.4f} sl={signal.stop_loss:.4f} "
              f"tp={signal.take_profit:.4f} conf={signal.confidence:.2f}")
    print(f"\n{result.generated} signals, {result.attempted} pairs scanned, {len(result.failed)} without signal")

    if args.log_csv:
        event_log.to_csv(str(args.log_csv))
        logger.info(f"Decision log written to {args.log_csv}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
