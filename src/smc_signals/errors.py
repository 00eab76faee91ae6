"""
Exceptions raised by the SMC signal package.
"""


class SignalError(Exception):
    """Base class for SMC signal errors."""


class InsufficientDataError(SignalError):
    """Series is shorter than the minimum an operation needs."""

    def __init__(self, required: int, actual: int):
        self.required = required
        self.actual = actual
        super().__init__(f"Not enough candles: need {required}, got {actual}")


class NoPatternFoundError(SignalError):
    """No synthesis rule matched the latest candles."""

    def __init__(self, pair: str = ""):
        self.pair = pair
        label = f" for {pair}" if pair else ""
        super().__init__(f"No ICT/Smart Money pattern matched{label}")


class InvalidInputError(SignalError, ValueError):
    """Candle input cannot be turned into a usable series."""
