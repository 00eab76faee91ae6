"""Tests for the signal synthesis waterfall."""
import pytest
import numpy as np
import pandas as pd

from src.smc_signals.config import SignalConfig
from src.smc_signals.errors import InsufficientDataError, NoPatternFoundError
from src.smc_signals.event_log import SignalEventLog
from src.smc_signals.order_book import NullAdjuster
from src.smc_signals.synthesis import (
    PATTERN_RULES,
    MarketWindow,
    _lower_cluster_note,
    _stop_hunt_buy,
    _stop_hunt_sell,
    _upper_cluster_note,
    match_rule,
    synthesize_signal,
)


def _make_series(tail, count=50, base=100.0):
    """Flat candles at `base` followed by custom (o, h, l, c) tail rows."""
    rows = [(base, base, base, base)] * (count - len(tail)) + list(tail)
    return pd.DataFrame({
        "time": pd.date_range(start="2024-01-01", periods=count, freq="15min"),
        "open": [r[0] for r in rows],
        "high": [r[1] for r in rows],
        "low": [r[2] for r in rows],
        "close": [r[3] for r in rows],
        "volume": [1.0] * count,
    })


def _window(opens, highs, lows, closes, swing_high, swing_low, volumes=None):
    return MarketWindow(
        opens=np.array(opens, dtype=float),
        highs=np.array(highs, dtype=float),
        lows=np.array(lows, dtype=float),
        closes=np.array(closes, dtype=float),
        volumes=np.ones(len(opens)) if volumes is None else np.array(volumes, dtype=float),
        swing_high=swing_high,
        swing_low=swing_low,
    )


HIGHER_HIGHS = [
    (100, 101, 100, 100.5),
    (100.5, 102, 100.2, 101.5),
    (101.5, 103, 101, 102.5),
]

LOWER_LOWS = [
    (100, 100, 99, 99.5),
    (99.5, 99.8, 98, 98.5),
    (98.5, 99, 97, 97.5),
]


class TestRuleOrder:
    """Test the waterfall order."""

    def test_rule_sequence(self):
        """Rules are evaluated in a fixed priority order."""
        assert [(r.pattern, r.direction) for r in PATTERN_RULES] == [
            ("liquidity_grab", "BUY"),
            ("liquidity_grab", "SELL"),
            ("higher_high", "BUY"),
            ("lower_low", "SELL"),
            ("higher_low", "BUY"),
            ("lower_high", "SELL"),
            ("choch", "SELL"),
            ("choch", "BUY"),
            ("bos", "BUY"),
            ("bos", "SELL"),
            ("equal_highs", "SELL"),
            ("equal_lows", "BUY"),
            ("fair_value_gap", "SELL"),
            ("fair_value_gap", "BUY"),
            ("order_block", "BUY"),
            ("order_block", "SELL"),
            ("market_structure_break", "BUY"),
            ("market_structure_break", "SELL"),
            ("stop_hunt", "BUY"),
            ("stop_hunt", "SELL"),
            ("volatility_breakout", "BUY"),
            ("volatility_breakout", "SELL"),
        ]

    def test_liquidity_grab_beats_higher_high(self):
        """Both rule 1 and rule 3 hold: rule 1 wins."""
        data = _make_series([
            (100, 101, 99.5, 100.5),
            (100.5, 102, 99.8, 100.8),
            (100.9, 103, 98, 102),
        ])
        signal = synthesize_signal(data, pair="BTCUSDT")
        assert signal.pattern == "liquidity_grab"
        assert signal.direction == "BUY"
        assert signal.pair == "BTCUSDT"
        assert signal.entry_point == 102
        assert signal.stop_loss == pytest.approx(97.5)
        assert signal.take_profit == pytest.approx(106)
        assert signal.confidence == 0.8


class TestSynthesizeSignal:
    """Test end-to-end synthesis on candle series."""

    def test_higher_highs_buy(self):
        signal = synthesize_signal(_make_series(HIGHER_HIGHS))
        assert signal.pattern == "higher_high"
        assert signal.direction == "BUY"
        assert signal.entry_point == 102.5
        assert signal.stop_loss == pytest.approx(99.7)
        assert signal.take_profit == pytest.approx(104.6)
        assert signal.confidence == 0.7
        assert "Higher Highs" in signal.reasoning

    def test_lower_lows_sell(self):
        signal = synthesize_signal(_make_series(LOWER_LOWS))
        assert signal.pattern == "lower_low"
        assert signal.direction == "SELL"
        assert signal.stop_loss == pytest.approx(100.3)
        assert signal.take_profit == pytest.approx(95.4)

    def test_level_ordering(self):
        """BUY: stop < entry < target. SELL mirrors it."""
        buy = synthesize_signal(_make_series(HIGHER_HIGHS))
        assert buy.stop_loss < buy.entry_point < buy.take_profit
        sell = synthesize_signal(_make_series(LOWER_LOWS))
        assert sell.take_profit < sell.entry_point < sell.stop_loss

    def test_flat_series_no_pattern(self):
        """Every condition is strict, so a flat series matches nothing."""
        with pytest.raises(NoPatternFoundError):
            synthesize_signal(_make_series([]), pair="FLAT")

    def test_insufficient_data(self):
        with pytest.raises(InsufficientDataError):
            synthesize_signal(_make_series(HIGHER_HIGHS, count=49))

    def test_min_candles_configurable(self):
        signal = synthesize_signal(_make_series(HIGHER_HIGHS, count=30), config=SignalConfig(min_candles=30))
        assert signal.pattern == "higher_high"

    def test_confidence_in_range(self):
        for tail in (HIGHER_HIGHS, LOWER_LOWS):
            signal = synthesize_signal(_make_series(tail))
            assert 0.0 <= signal.confidence <= 1.0

    def test_idempotent(self):
        data = _make_series(HIGHER_HIGHS)
        assert synthesize_signal(data, pair="X") == synthesize_signal(data, pair="X")

    def test_event_log_records_decision(self):
        log = SignalEventLog()
        synthesize_signal(_make_series(HIGHER_HIGHS), pair="ETHUSDT", event_log=log)
        events = log.get_events(event_type="RULE_MATCHED")
        assert len(events) == 1
        assert events[0].pattern == "higher_high"
        assert events[0].direction == "BUY"

    def test_event_log_records_no_pattern(self):
        log = SignalEventLog()
        with pytest.raises(NoPatternFoundError):
            synthesize_signal(_make_series([]), pair="FLAT", event_log=log)
        assert [e.event_type for e in log.events] == ["NO_PATTERN"]


class TestOrderBookAdjustment:
    """Test confidence adjustment by order book walls."""

    BOOK = {
        "bids": [(99, 1), (98, 1), (97, 1), (96, 1), (95, 60)],
        "asks": [(103, 1), (104, 1), (105, 1), (106, 1), (107, 1)],
    }

    def test_bid_wall_strengthens_buy(self):
        signal = synthesize_signal(_make_series(HIGHER_HIGHS), order_book=self.BOOK)
        assert signal.direction == "BUY"
        assert signal.confidence == pytest.approx(0.75)
        assert "Bid wall below entry" in signal.reasoning

    def test_bid_wall_weakens_sell_without_flipping(self):
        signal = synthesize_signal(_make_series(LOWER_LOWS), order_book=self.BOOK)
        assert signal.direction == "SELL"
        assert signal.confidence == pytest.approx(0.65)

    def test_no_order_book_no_adjustment(self):
        signal = synthesize_signal(_make_series(HIGHER_HIGHS))
        assert signal.confidence == 0.7
        assert "Order book" not in signal.reasoning

    def test_null_adjuster(self):
        signal = synthesize_signal(_make_series(HIGHER_HIGHS), order_book=self.BOOK, adjuster=NullAdjuster())
        assert signal.confidence == 0.7

    def test_order_book_event_logged(self):
        log = SignalEventLog()
        synthesize_signal(_make_series(HIGHER_HIGHS), order_book=self.BOOK, event_log=log)
        event = log.get_events(event_type="ORDER_BOOK")[0]
        assert event.details["confidence_before"] == 0.7
        assert event.details["confidence_after"] == pytest.approx(0.75)


class TestRuleConditions:
    """Test individual rules on hand-built windows."""

    def test_choch_sell(self):
        """HH on the highs, then a new low with falling close."""
        window = _window(
            opens=[100, 100.5, 100.5],
            highs=[100, 101, 100.5],
            lows=[99, 99.5, 98],
            closes=[100, 100.8, 99],
            swing_high=101, swing_low=98,
        )
        rule = match_rule(window)
        assert (rule.pattern, rule.direction) == ("choch", "SELL")
        signal = rule.build(window, "X")
        assert signal.stop_loss == pytest.approx(101 + 3 * 0.15)
        assert signal.take_profit == pytest.approx(99 - 3 * 0.8)
        assert signal.confidence == 0.75

    def test_equal_highs(self):
        window = _window(
            opens=[99.9, 99.7, 99.6],
            highs=[100.02, 100, 100.01],
            lows=[99, 98.9, 99.1],
            closes=[99.8, 99.6, 99.5],
            swing_high=101, swing_low=96,
        )
        rule = match_rule(window)
        assert (rule.pattern, rule.direction) == ("equal_highs", "SELL")
        assert rule.confidence == 0.6

    def test_volatility_breakout(self):
        window = _window(
            opens=[100, 100, 100],
            highs=[100, 100, 103],
            lows=[100, 100, 99.5],
            closes=[100, 100, 102.5],
            swing_high=101, swing_low=96,
        )
        rule = match_rule(window)
        assert (rule.pattern, rule.direction) == ("volatility_breakout", "BUY")
        signal = rule.build(window, "X")
        assert signal.stop_loss == pytest.approx(95.5)
        assert signal.take_profit == pytest.approx(106.5)

    def test_no_match(self):
        window = _window([100] * 3, [100] * 3, [100] * 3, [100] * 3, 100, 100)
        assert match_rule(window) is None

    def test_stop_hunt_buy_condition(self):
        """Low pierces the 19-candle low and close recovers above it."""
        window = _window(
            opens=[100] * 19 + [99.5],
            highs=[100.5] * 19 + [101.2],
            lows=[100] * 19 + [97],
            closes=[100] * 19 + [101],
            swing_high=101.2, swing_low=97,
        )
        assert _stop_hunt_buy(window)

    def test_stop_hunt_needs_twenty_candles(self):
        window = _window([100, 99.5], [100.5, 101.2], [100, 97], [100, 101], 101.2, 97)
        assert not _stop_hunt_buy(window)

    def test_lower_cluster_note_uses_nearest(self):
        """The highest EQL cluster under the close is reported, not the lowest one.

        This differs on purpose from taking the minimum level below the close.
        """
        window = _window(
            opens=[100] * 20,
            highs=[101] * 20,
            lows=[95] * 10 + [99] * 10,
            closes=[100] * 19 + [100.5],
            swing_high=101, swing_low=95,
        )
        note = _lower_cluster_note(window)
        assert "99.00" in note
        assert "95.00" not in note

    def test_lower_cluster_note_empty_without_cluster(self):
        window = _window(
            opens=[100] * 20,
            highs=[101] * 20,
            lows=[90 + i for i in range(20)],
            closes=[110] * 20,
            swing_high=110, swing_low=90,
        )
        assert _lower_cluster_note(window) == ""


def _rule(pattern, direction):
    return next(r for r in PATTERN_RULES if r.pattern == pattern and r.direction == direction)


class TestWaterfallEntries:
    """One hand-built window per waterfall entry: matched rule and levels."""

    def _assert_signal(self, window, pattern, direction, stop_loss, take_profit, confidence):
        rule = match_rule(window)
        assert rule is not None
        assert (rule.pattern, rule.direction) == (pattern, direction)
        signal = rule.build(window, "TEST")
        assert signal.stop_loss == pytest.approx(stop_loss)
        assert signal.take_profit == pytest.approx(take_profit)
        assert signal.confidence == confidence

    def test_higher_low_buy(self):
        window = _window(
            opens=[99, 99.5, 100],
            highs=[101, 101, 101],
            lows=[98, 98, 99],
            closes=[99, 100, 100.5],
            swing_high=101, swing_low=98,
        )
        self._assert_signal(window, "higher_low", "BUY", 97.7, 102.3, 0.65)

    def test_lower_high_sell(self):
        window = _window(
            opens=[101, 100, 99.5],
            highs=[102, 102, 101],
            lows=[99, 99, 99],
            closes=[101, 100, 99.5],
            swing_high=102, swing_low=99,
        )
        self._assert_signal(window, "lower_high", "SELL", 102.3, 97.7, 0.65)

    def test_choch_buy(self):
        """LL followed by HH with a rising close."""
        window = _window(
            opens=[100, 99, 99.8],
            highs=[101, 100, 100.5],
            lows=[99, 98, 98.5],
            closes=[100, 99, 100.2],
            swing_high=101, swing_low=98,
        )
        self._assert_signal(window, "choch", "BUY", 97.55, 102.6, 0.75)

    def test_bos_buy(self):
        window = _window(
            opens=[100.5] * 6,
            highs=[101] * 5 + [102],
            lows=[100] * 6,
            closes=[100.5] * 5 + [101.5],
            swing_high=102, swing_low=100,
        )
        self._assert_signal(window, "bos", "BUY", 99.76, 103.3, 0.7)

    def test_bos_sell(self):
        window = _window(
            opens=[100.5] * 6,
            highs=[101] * 6,
            lows=[100] * 5 + [99],
            closes=[100.5] * 5 + [99.5],
            swing_high=101, swing_low=99,
        )
        self._assert_signal(window, "bos", "SELL", 101.24, 97.7, 0.7)

    def test_bos_needs_six_candles(self):
        window = _window([100.5] * 5, [101] * 4 + [102], [100] * 5, [100.5] * 5, 102, 100)
        rule = match_rule(window)
        assert rule is None or rule.pattern != "bos"

    def test_equal_lows_buy(self):
        """Lows within 2% of the range of each other."""
        window = _window(
            opens=[100, 100, 100],
            highs=[100, 101, 100.5],
            lows=[99, 99.02, 99.01],
            closes=[100, 100, 100.2],
            swing_high=101, swing_low=99,
        )
        self._assert_signal(window, "equal_lows", "BUY", 98.8, 101.6, 0.6)

    def test_fair_value_gap_sell(self):
        """Open of the middle candle gaps above the first close."""
        window = _window(
            opens=[100, 102, 102],
            highs=[103, 104, 103.5],
            lows=[98, 99, 99],
            closes=[100, 102, 102],
            swing_high=104, swing_low=98,
        )
        self._assert_signal(window, "fair_value_gap", "SELL", 104.6, 97.8, 0.65)

    def test_fair_value_gap_buy(self):
        window = _window(
            opens=[102, 100, 100],
            highs=[104, 103, 103],
            lows=[99, 98, 98.5],
            closes=[102, 100, 100],
            swing_high=104, swing_low=98,
        )
        self._assert_signal(window, "fair_value_gap", "BUY", 97.4, 104.2, 0.65)

    def test_order_block_buy(self):
        """Bearish last candle on more than 1.5x the mean volume."""
        window = _window(
            opens=[100, 100, 100.8],
            highs=[102, 101, 101.5],
            lows=[99, 99.5, 99.2],
            closes=[100, 100, 100.3],
            swing_high=102, swing_low=99,
            volumes=[1, 1, 5],
        )
        self._assert_signal(window, "order_block", "BUY", 98.7, 102.4, 0.7)

    def test_order_block_volume_must_exceed_threshold(self):
        """Volume equal to 1.5x the mean is not enough."""
        window = _window(
            opens=[100, 100, 100.8],
            highs=[102, 101, 101.5],
            lows=[99, 99.5, 99.2],
            closes=[100, 100, 100.3],
            swing_high=102, swing_low=99,
            volumes=[1, 1, 2],
        )
        assert match_rule(window) is None

    def test_order_block_sell(self):
        window = _window(
            opens=[100, 100, 99.8],
            highs=[102, 101, 101.5],
            lows=[99, 99.5, 99.2],
            closes=[100, 100, 100.3],
            swing_high=102, swing_low=99,
            volumes=[1, 1, 5],
        )
        self._assert_signal(window, "order_block", "SELL", 102.3, 98.2, 0.7)

    def test_market_structure_break_buy(self):
        """Highs, lows and closes all step up on the last candle."""
        closes = [100.5, 100, 100.4]
        window = _window(
            opens=closes,
            highs=[102, 101, 101.5],
            lows=[99, 99.2, 99.6],
            closes=closes,
            swing_high=102, swing_low=99,
        )
        self._assert_signal(window, "market_structure_break", "BUY", 98.7, 102.5, 0.7)

    def test_market_structure_break_sell(self):
        closes = [100, 100.5, 100.1]
        window = _window(
            opens=closes,
            highs=[102, 101.5, 101.2],
            lows=[99, 99.4, 99.1],
            closes=closes,
            swing_high=102, swing_low=99,
        )
        self._assert_signal(window, "market_structure_break", "SELL", 102.3, 98.0, 0.7)

    def test_volatility_breakout_sell(self):
        """Bearish body larger than 40% of the range."""
        window = _window(
            opens=[100, 100, 100],
            highs=[100, 100, 100.5],
            lows=[100, 100, 97],
            closes=[100, 100, 97.5],
            swing_high=100.5, swing_low=97,
        )
        self._assert_signal(window, "volatility_breakout", "SELL", 100.85, 94.7, 0.7)


class TestStopHuntSell:
    """Stop hunt above the highs.

    A high above the prior 19 highs also breaks the prior 5, so BOS always
    matches first through the waterfall. Condition, levels and note are
    checked on the entry directly.
    """

    def _window(self):
        return _window(
            opens=[100] * 20,
            highs=[100.5] * 19 + [103],
            lows=[98] * 20,
            closes=[100] * 18 + [99, 99.5],
            swing_high=103, swing_low=98,
        )

    def test_condition(self):
        assert _stop_hunt_sell(self._window())

    def test_bos_matches_first(self):
        assert match_rule(self._window()).pattern == "bos"

    def test_levels_and_note(self):
        signal = _rule("stop_hunt", "SELL").build(self._window(), "TEST")
        assert signal.direction == "SELL"
        assert signal.stop_loss == pytest.approx(103.4)
        assert signal.take_profit == pytest.approx(96.25)
        assert signal.confidence == 0.75
        assert "100.50" in signal.reasoning

    def test_upper_cluster_note_reports_equal_highs(self):
        assert "100.50" in _upper_cluster_note(self._window())
