"""
Trade Factory - converts pattern matches into pending trades.

Scans the candle sequence with the strategy's detector, advancing the
cursor past each match, and derives entry / stop / target levels from the
pattern's characteristic prices and the strategy multipliers.
"""

import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .config import PROGRESS_REPORT_INTERVAL
from .detectors import find_pattern
from .models import (
    Candle,
    MPatternMatch,
    PatternKind,
    ReversalPatternMatch,
    StrategyConfig,
    Trade,
    TradeDirection,
    WPatternMatch,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

# (entry, stop_loss, take_profit)
Levels = Tuple[float, float, float]


def w_levels(match: WPatternMatch, config: StrategyConfig) -> Levels:
    height = match.neckline_price - match.lower_price
    entry = match.neckline_price
    stop = match.lower_price - height * (config.stop_loss_multiplier - 1.0)
    target = match.neckline_price + height * config.take_profit_multiplier
    return entry, stop, target


def m_levels(match: MPatternMatch, config: StrategyConfig) -> Levels:
    # height is negative: stop above, target below the neckline
    height = match.neckline_price - match.higher_price
    entry = match.neckline_price
    stop = match.higher_price - height * (config.stop_loss_multiplier - 1.0)
    target = match.neckline_price + height * config.take_profit_multiplier
    return entry, stop, target


def reversal_levels(match: ReversalPatternMatch, config: StrategyConfig) -> Levels:
    entry = match.end_price
    stop = match.peak_price * config.stop_loss_multiplier
    target = match.end_price + (match.end_price - match.peak_price) * config.take_profit_multiplier
    return entry, stop, target


LEVEL_BUILDERS: Dict[PatternKind, Callable] = {
    PatternKind.W: w_levels,
    PatternKind.M: m_levels,
    PatternKind.BULL_REVERSAL: reversal_levels,
}


def build_trade(match, config: StrategyConfig) -> Optional[Trade]:
    """
    Build a NOT_OPENED trade from a pattern match.

    Returns None when the levels are degenerate: the target equals the
    entry, or the stop is not strictly on the opposite side of the entry.
    """
    entry, stop, target = LEVEL_BUILDERS[config.pattern_kind](match, config)

    if target > entry and stop < entry:
        direction = TradeDirection.LONG
    elif target < entry and stop > entry:
        direction = TradeDirection.SHORT
    else:
        logger.debug(
            f"Skipping {config.pattern_kind.value} match at index {match.end_index}: "
            f"entry={entry} stop={stop} target={target}"
        )
        return None

    return Trade(
        entry_price=entry,
        stop_loss=stop,
        take_profit=target,
        open_time=match.end_time,
        direction=direction,
        pattern_kind=config.pattern_kind,
    )


def create_trades(
    candles: Sequence[Candle],
    config: StrategyConfig,
    progress: Optional[ProgressCallback] = None,
    potential_only: bool = False,
) -> List[Trade]:
    """
    Scan the whole sequence and return pending trades in open_time order.

    After a match the cursor jumps to the match's end index; otherwise it
    advances by one candle. Progress is reported in the 0-50 range.

    Args:
        candles: Full candle sequence (read-only)
        config: Strategy configuration
        progress: Optional callback receiving a percentage
        potential_only: Trade unconfirmed patterns

    Returns:
        List of Trade objects in NOT_OPENED state
    """
    trades: List[Trade] = []
    total = len(candles)
    cursor = 0
    last_sent = 0

    while cursor < total:
        match = find_pattern(candles, cursor, config.pattern_params, potential_only)
        if match is not None:
            trade = build_trade(match, config)
            if trade is not None:
                trades.append(trade)
            cursor = max(match.end_index, cursor + 1)
        else:
            cursor += 1

        if progress is not None and cursor - last_sent >= PROGRESS_REPORT_INTERVAL:
            progress(min(cursor, total) / total * 50.0)
            last_sent = cursor

    logger.debug(f"{config.pattern_kind.value}: {len(trades)} trades from {total} candles")
    return trades
