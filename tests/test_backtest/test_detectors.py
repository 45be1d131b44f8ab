"""Tests for the W / M / bull reversal detectors."""
import pytest

from kline_backtest.detectors import (
    find_bull_reversal,
    find_m_pattern,
    find_pattern,
    find_w_pattern,
)
from kline_backtest.models import (
    DoublePatternParams,
    MPatternMatch,
    PatternKind,
    ReversalPatternMatch,
    ReversalPatternParams,
    WPatternMatch,
)
from tests.helpers import W_SCENARIO, build_candles


W_PARAMS = DoublePatternParams(PatternKind.W, repetition_count=3, search_range=5)
M_PARAMS = DoublePatternParams(PatternKind.M, repetition_count=3, search_range=5)


def _mirror(ohlc, axis=200):
    """Reflect (open, high, low, close) tuples around a price axis."""
    return [(axis - o, axis - l, axis - h, axis - c) for o, h, l, c in ohlc]


# ==========================================
# W pattern
# ==========================================


class TestWPattern:
    """Double bottom detection on the reference scenario."""

    def test_detects_confirmed_pattern(self, w_candles):
        match = find_w_pattern(w_candles, 0, W_PARAMS)

        assert isinstance(match, WPatternMatch)
        assert match.start_index == 0
        assert match.end_index == 10
        assert match.lower_price == 94
        assert match.neckline_price == 108
        assert match.start_time == w_candles[0].open_time
        assert match.end_time == w_candles[10].close_time

    def test_neckline_above_lower(self, w_candles):
        match = find_w_pattern(w_candles, 0, W_PARAMS)
        assert match.neckline_price > match.lower_price

    def test_potential_only_ends_at_pullback(self, w_candles):
        match = find_w_pattern(w_candles, 0, W_PARAMS, potential_only=True)

        assert match.end_index == 7
        assert match.neckline_price == 108

    def test_first_leg_must_start_at_cursor(self, w_candles):
        assert find_w_pattern(w_candles, 1, W_PARAMS) is None

    def test_anchor_break_during_pullback_aborts(self):
        ohlc = list(W_SCENARIO)
        ohlc[7] = (101, 102, 93, 97)    # low 93 breaks the 94 anchor
        candles = build_candles(ohlc)
        assert find_w_pattern(candles, 0, W_PARAMS) is None

    def test_no_breakout_within_range(self):
        ohlc = list(W_SCENARIO[:10]) + [(106, 107.5, 104, 105)] * 10
        candles = build_candles(ohlc)
        assert find_w_pattern(candles, 0, W_PARAMS) is None

    def test_short_input_returns_none(self):
        candles = build_candles(W_SCENARIO[:7])
        assert find_w_pattern(candles, 0, W_PARAMS) is None
        assert find_w_pattern(build_candles(W_SCENARIO), 15, W_PARAMS) is None

    def test_rejects_m_parameters(self, w_candles):
        with pytest.raises(ValueError):
            find_w_pattern(w_candles, 0, M_PARAMS)


# ==========================================
# M pattern
# ==========================================


class TestMPattern:
    """Double top detection on the mirrored scenario."""

    def test_detects_mirrored_pattern(self):
        candles = build_candles(_mirror(W_SCENARIO))
        match = find_m_pattern(candles, 0, M_PARAMS)

        assert isinstance(match, MPatternMatch)
        assert match.start_index == 0
        assert match.end_index == 10
        assert match.higher_price == 106
        assert match.neckline_price == 92

    def test_neckline_below_higher(self):
        candles = build_candles(_mirror(W_SCENARIO))
        match = find_m_pattern(candles, 0, M_PARAMS)
        assert match.neckline_price < match.higher_price

    def test_potential_only_ends_at_pullback(self):
        candles = build_candles(_mirror(W_SCENARIO))
        match = find_m_pattern(candles, 0, M_PARAMS, potential_only=True)
        assert match.end_index == 7

    def test_no_match_on_double_bottom(self, w_candles):
        assert find_m_pattern(w_candles, 0, M_PARAMS) is None

    def test_short_input_returns_none(self):
        candles = build_candles(_mirror(W_SCENARIO[:5]))
        assert find_m_pattern(candles, 0, M_PARAMS) is None

    def test_rejects_w_parameters(self):
        candles = build_candles(_mirror(W_SCENARIO))
        with pytest.raises(ValueError):
            find_m_pattern(candles, 0, W_PARAMS)


# ==========================================
# Bull reversal
# ==========================================


class TestBullReversal:
    """Bearish trend followed by a bullish counter-trend."""

    PARAMS = ReversalPatternParams(trend_length=3, counter_trend_length=3)

    def test_detects_reversal(self, w_candles):
        match = find_bull_reversal(w_candles, 0, self.PARAMS)

        assert isinstance(match, ReversalPatternMatch)
        assert match.start_index == 0
        assert match.end_index == 5
        assert match.peak_price == 95
        assert match.end_price == 107

    def test_potential_only_stops_after_trend(self, w_candles):
        match = find_bull_reversal(w_candles, 0, self.PARAMS, potential_only=True)

        assert match.end_index == 2
        assert match.end_price == match.peak_price == 95

    def test_trend_may_start_after_cursor(self, candle_builder):
        candles = candle_builder([(100, 103, 99, 102)] + W_SCENARIO[:6])
        match = find_bull_reversal(candles, 0, self.PARAMS)

        assert match.start_index == 1
        assert match.end_index == 6

    def test_no_counter_trend(self, candle_builder):
        candles = candle_builder(W_SCENARIO[:3] + [(95, 96, 93, 94)] * 5)
        assert find_bull_reversal(candles, 0, self.PARAMS) is None

    def test_short_input_returns_none(self, candle_builder):
        candles = candle_builder(W_SCENARIO[:5])
        assert find_bull_reversal(candles, 0, self.PARAMS) is None


# ==========================================
# Dispatch
# ==========================================


class TestFindPattern:
    """find_pattern dispatches on the parameter kind."""

    def test_dispatches_by_kind(self, w_candles):
        assert isinstance(find_pattern(w_candles, 0, W_PARAMS), WPatternMatch)
        assert find_pattern(w_candles, 0, M_PARAMS) is None
        reversal = find_pattern(w_candles, 0, ReversalPatternParams(3, 3))
        assert isinstance(reversal, ReversalPatternMatch)

    def test_detectors_are_pure(self, w_candles):
        first = find_pattern(w_candles, 0, W_PARAMS)
        second = find_pattern(w_candles, 0, W_PARAMS)
        assert first == second
