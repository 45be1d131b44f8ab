"""
Double bottom (W) and double top (M) detector.

Both formations share one code path; M is the mirror image of W.

W phases, with R = repetition_count and K = search_range:
1. R bearish candles starting at the cursor; anchor = their lowest low
2. first R-candle bullish run within the next K candles; its last candle's
   high is the neckline
3. pullback: lowest close within K candles after the neckline candle,
   aborted if the anchor low breaks, ended early once price breaks above
   the neckline
4. trigger: first close above the neckline within K candles after the
   pullback (skipped when only the potential pattern is requested)
"""

import logging
from typing import Optional, Sequence

from ..models import (
    Candle,
    DoublePatternParams,
    MPatternMatch,
    PatternKind,
    WPatternMatch,
)
from .primitives import (
    breaks_above,
    breaks_below,
    closes_above,
    closes_below,
    find_extremum,
    find_run,
    holds_above,
    holds_below,
    is_down,
    is_up,
)

logger = logging.getLogger(__name__)


def find_double_pattern(
    candles: Sequence[Candle],
    start: int,
    params: DoublePatternParams,
    potential_only: bool = False,
):
    """
    Detect a W or M pattern whose first leg starts at `start`.

    Args:
        candles: Full candle sequence
        start: Cursor index where the first leg must begin
        params: Pattern kind and size parameters
        potential_only: Return the unconfirmed pattern (ends at the pullback)

    Returns:
        WPatternMatch / MPatternMatch with absolute indices, or None
    """
    n = params.repetition_count
    k = params.search_range
    bottom = params.kind is PatternKind.W

    if start < 0 or len(candles) - start < n + k:
        return None

    first_leg, second_leg = (is_down, is_up) if bottom else (is_up, is_down)

    # Phase 1: initial run, anchored at the cursor
    first_leg_end = start + n
    if find_run(candles, start, first_leg_end, n, [first_leg]) != start:
        return None

    if bottom:
        anchor_index = min(range(start, first_leg_end), key=lambda i: candles[i].low)
        anchor = candles[anchor_index].low
    else:
        anchor_index = max(range(start, first_leg_end), key=lambda i: candles[i].high)
        anchor = candles[anchor_index].high

    # Phase 2: opposite run -> neckline
    second_leg_start = find_run(candles, first_leg_end, first_leg_end + k, n, [second_leg])
    if second_leg_start is None:
        return None

    neckline_index = second_leg_start + n - 1
    if bottom:
        neckline = candles[neckline_index].high
        if not neckline > anchor:
            return None
    else:
        neckline = candles[neckline_index].low
        if not neckline < anchor:
            return None

    # Phase 3: pullback extremum
    if bottom:
        anchor_break = breaks_below(anchor)
        neckline_break = breaks_above(neckline)
        qualifies = [holds_above(anchor), holds_below(neckline)]
    else:
        anchor_break = breaks_above(anchor)
        neckline_break = breaks_below(neckline)
        qualifies = [holds_below(anchor), holds_above(neckline)]

    pullback_index = find_extremum(
        candles,
        neckline_index + 1,
        neckline_index + 1 + k,
        lowest=bottom,
        qualifies=qualifies,
        failing=[anchor_break],
        fast=[neckline_break],
    )
    if pullback_index is None:
        return None

    if potential_only:
        return _build_match(candles, params.kind, start, pullback_index, anchor, neckline)

    # Phase 4: breakout close beyond the neckline
    breakout = closes_above(neckline) if bottom else closes_below(neckline)
    trigger_index = find_run(candles, pullback_index + 1, pullback_index + 1 + k, 1, [breakout])
    if trigger_index is None:
        return None

    if find_run(candles, pullback_index + 1, trigger_index, 1, [anchor_break]) is not None:
        return None

    logger.debug(
        f"{params.kind.value} pattern: start={start} neckline={neckline_index} "
        f"pullback={pullback_index} trigger={trigger_index}"
    )
    return _build_match(candles, params.kind, start, trigger_index, anchor, neckline)


def find_w_pattern(
    candles: Sequence[Candle],
    start: int,
    params: DoublePatternParams,
    potential_only: bool = False,
) -> Optional[WPatternMatch]:
    if params.kind is not PatternKind.W:
        raise ValueError(f"Expected W parameters, got {params.kind}")
    return find_double_pattern(candles, start, params, potential_only)


def find_m_pattern(
    candles: Sequence[Candle],
    start: int,
    params: DoublePatternParams,
    potential_only: bool = False,
) -> Optional[MPatternMatch]:
    if params.kind is not PatternKind.M:
        raise ValueError(f"Expected M parameters, got {params.kind}")
    return find_double_pattern(candles, start, params, potential_only)


def _build_match(candles, kind, start, end, anchor, neckline):
    common = dict(
        start_index=start,
        start_time=candles[start].open_time,
        end_index=end,
        end_time=candles[end].close_time,
        neckline_price=neckline,
    )
    if kind is PatternKind.W:
        return WPatternMatch(lower_price=anchor, **common)
    return MPatternMatch(higher_price=anchor, **common)
