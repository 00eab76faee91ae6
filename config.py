"""
Configuration file for the SMC signal engine workspace.

Process-level settings only. Detector and synthesis parameters live in
src.smc_signals.config.
"""
import os

# ================================
# SCAN DEFAULTS
# ================================
SCAN_TARGET_COUNT = int(os.getenv("SCAN_TARGET_COUNT", "10"))   # Stop after N signals
CANDLE_LIMIT = int(os.getenv("CANDLE_LIMIT", "200"))            # Candles per pair

# ================================
# ORDER BOOK
# ================================
ORDER_BOOK_WALL_MULTIPLIER = 3.0   # Wall = level size > 3x average level size

# ================================
# LOGGING SETTINGS
# ================================
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", "scan.log")
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
