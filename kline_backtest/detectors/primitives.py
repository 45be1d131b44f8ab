"""
Scan primitives shared by the pattern detectors.

Predicates are plain callables Candle -> bool. The price-bound ones are
built by small factories so a detector can describe each phase as a
list of predicates.
"""

from typing import Callable, List, Optional, Sequence

from ..models import Candle

Predicate = Callable[[Candle], bool]


def is_up(candle: Candle) -> bool:
    return candle.is_bullish


def is_down(candle: Candle) -> bool:
    return candle.is_bearish


def breaks_above(price: float) -> Predicate:
    """High trades above price."""
    return lambda candle: candle.high > price


def breaks_below(price: float) -> Predicate:
    """Low trades below price."""
    return lambda candle: candle.low < price


def holds_above(price: float) -> Predicate:
    """Low does not break below price."""
    return lambda candle: not candle.low < price


def holds_below(price: float) -> Predicate:
    """High does not break above price."""
    return lambda candle: not candle.high > price


def closes_above(price: float) -> Predicate:
    return lambda candle: candle.close > price


def closes_below(price: float) -> Predicate:
    return lambda candle: candle.close < price


def find_run(
    candles: Sequence[Candle],
    start: int,
    stop: int,
    repetitions: int,
    predicates: List[Predicate],
) -> Optional[int]:
    """
    Find the first run of consecutive candles satisfying every predicate.

    A candle counts only if all predicates hold on it; any failure resets
    the run length to zero.

    Args:
        candles: Full candle sequence
        start: First index to scan (inclusive)
        stop: Last index to scan (exclusive), clipped to len(candles)
        repetitions: Required run length
        predicates: Conditions applied to each candle

    Returns:
        Start index of the first run reaching `repetitions`, or None
    """
    stop = min(stop, len(candles))
    run_length = 0

    for i in range(max(start, 0), stop):
        candle = candles[i]
        if all(test(candle) for test in predicates):
            run_length += 1
            if run_length >= repetitions:
                return i - (run_length - 1)
        else:
            run_length = 0

    return None


def find_extremum(
    candles: Sequence[Candle],
    start: int,
    stop: int,
    lowest: bool,
    qualifies: List[Predicate],
    failing: List[Predicate],
    fast: List[Predicate],
    key: Callable[[Candle], float] = lambda candle: candle.close,
) -> Optional[int]:
    """
    Track the best qualifying candle with abort and early-exit conditions.

    Per candle, in order:
    1. any `failing` predicate true -> abort, return None
    2. any `fast` predicate true -> stop, return the best so far
    3. all `qualifies` true and key strictly better than best -> new best

    Ties keep the earlier candle.

    Returns:
        Index of the best candle, or None if aborted / nothing qualified
    """
    stop = min(stop, len(candles))
    best_index: Optional[int] = None
    best_value = 0.0

    for i in range(max(start, 0), stop):
        candle = candles[i]

        if any(test(candle) for test in failing):
            return None

        if any(test(candle) for test in fast):
            return best_index

        if not all(test(candle) for test in qualifies):
            continue

        value = key(candle)
        if best_index is None:
            best_index, best_value = i, value
        elif (value < best_value) if lowest else (value > best_value):
            best_index, best_value = i, value

    return best_index
