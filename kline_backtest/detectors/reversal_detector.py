"""
Bull reversal detector - a bearish trend followed by a bullish counter-trend.
"""

from typing import Optional, Sequence

from ..models import Candle, ReversalPatternMatch, ReversalPatternParams
from .primitives import find_run, is_down, is_up


def find_bull_reversal(
    candles: Sequence[Candle],
    start: int,
    params: ReversalPatternParams,
    potential_only: bool = False,
) -> Optional[ReversalPatternMatch]:
    """
    Detect a bull reversal at or after `start`.

    The first run of `trend_length` bearish candles gives the trend end;
    its close is the peak (trough) reference. The first run of
    `counter_trend_length` bullish candles after it confirms the reversal,
    and the close of that run's last candle is the entry.

    Args:
        candles: Full candle sequence
        start: Cursor index
        params: Trend / counter-trend lengths
        potential_only: Stop after the trend, without counter-trend confirmation

    Returns:
        ReversalPatternMatch with absolute indices, or None
    """
    if start < 0 or len(candles) - start < params.trend_length + params.counter_trend_length:
        return None

    trend_start = find_run(candles, start, len(candles), params.trend_length, [is_down])
    if trend_start is None:
        return None

    trend_end = trend_start + params.trend_length - 1
    peak_price = candles[trend_end].close

    if potential_only:
        return ReversalPatternMatch(
            start_index=trend_start,
            start_time=candles[trend_start].open_time,
            end_index=trend_end,
            end_time=candles[trend_end].close_time,
            peak_price=peak_price,
            end_price=peak_price,
        )

    counter_start = find_run(
        candles, trend_end + 1, len(candles), params.counter_trend_length, [is_up]
    )
    if counter_start is None:
        return None

    end_index = counter_start + params.counter_trend_length - 1
    return ReversalPatternMatch(
        start_index=trend_start,
        start_time=candles[trend_start].open_time,
        end_index=end_index,
        end_time=candles[end_index].close_time,
        peak_price=peak_price,
        end_price=candles[end_index].close,
    )
