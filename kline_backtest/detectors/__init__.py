"""
Pattern detectors - pure functions scanning a candle sequence from a cursor.

Each detector takes (candles, start, params, potential_only) and returns a
pattern match with absolute indices, or None. No side effects, no state.
"""
from typing import Callable, Dict, Optional, Sequence

from ..models import Candle, PatternKind, PatternMatch, PatternParams
from .double_pattern import find_double_pattern, find_m_pattern, find_w_pattern
from .primitives import find_extremum, find_run
from .reversal_detector import find_bull_reversal

DETECTORS: Dict[PatternKind, Callable] = {
    PatternKind.W: find_w_pattern,
    PatternKind.M: find_m_pattern,
    PatternKind.BULL_REVERSAL: find_bull_reversal,
}


def find_pattern(
    candles: Sequence[Candle],
    start: int,
    params: PatternParams,
    potential_only: bool = False,
) -> Optional[PatternMatch]:
    """Run the detector registered for params.kind."""
    return DETECTORS[params.kind](candles, start, params, potential_only)


__all__ = [
    "DETECTORS",
    "find_pattern",
    "find_double_pattern",
    "find_w_pattern",
    "find_m_pattern",
    "find_bull_reversal",
    "find_run",
    "find_extremum",
]
