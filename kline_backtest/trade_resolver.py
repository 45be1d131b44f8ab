"""
Trade Resolver - chronological replay of pending trades.

Single forward pass over the candles:
- activates trades on their confirming candle (position sizing + fees)
- triggers trades whose entry was not reached on that candle once price
  comes back to the entry
- closes running trades on stop / target touches from the next candle on
- halts the run when equity is exhausted
"""

import logging
import math
from bisect import bisect_left
from typing import Callable, List, Optional, Sequence

from .config import MAX_LEVERAGE, PROGRESS_REPORT_INTERVAL, fee_rate_for
from .models import (
    AccountState,
    Candle,
    MarketType,
    StrategyConfig,
    Trade,
    TradeResult,
    TradeStatus,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


def calculate_position_size(
    equity: float,
    entry_price: float,
    stop_loss: float,
    config: StrategyConfig,
) -> float:
    """
    Position size for a new trade.

    Formula:
    1. size = equity * risk * (sl_multiplier / tp_multiplier) / |entry - stop|
    2. spot only: size <= equity * MAX_LEVERAGE / entry
    """
    distance = abs(entry_price - stop_loss)
    if distance <= 0:
        raise ValueError(f"Stop loss equals entry price ({entry_price})")

    ratio = config.stop_loss_multiplier / config.take_profit_multiplier
    size = (equity * config.risk_per_trade * ratio) / distance

    if config.market_type is MarketType.SPOT:
        max_notional = equity * MAX_LEVERAGE
        size = min(size, max_notional / entry_price)
        # division rounding can leave the notional one ulp above the cap
        while size * entry_price > max_notional:
            size = math.nextafter(size, 0.0)

    return size


def activate_trade(
    trade: Trade,
    candle: Candle,
    config: StrategyConfig,
    account: AccountState,
) -> bool:
    """
    Size the trade, charge fees and mark it RUNNING or NOT_TRIGGERED.

    Returns False if the fees exhausted the account.
    """
    size = calculate_position_size(account.equity, trade.entry_price, trade.stop_loss, config)
    fees = size * trade.entry_price * fee_rate_for(config.market_type)
    account.equity -= fees

    trade.position_size = size
    trade.fees = fees
    trade.gross_profit = size * abs(trade.take_profit - trade.entry_price)
    trade.gross_loss = size * abs(trade.entry_price - trade.stop_loss)

    if candle.brackets(trade.entry_price):
        trade.transition(TradeStatus.RUNNING)
        trade.triggered_time = candle.close_time
    else:
        trade.transition(TradeStatus.NOT_TRIGGERED)

    return account.equity > 0


def settle_trade(trade: Trade, candle: Candle, account: AccountState) -> bool:
    """
    Check a RUNNING trade against one candle.

    Both levels touched -> UNKNOWN (touch order unknowable from OHLC),
    equity unchanged. Returns True if the trade closed.
    """
    stop_hit = trade.stop_hit(candle)
    target_hit = trade.target_hit(candle)

    if stop_hit and target_hit:
        trade.close(TradeResult.UNKNOWN, candle.close_time)
    elif stop_hit:
        trade.close(TradeResult.LOST, candle.close_time)
        account.equity -= trade.gross_loss
        account.equity_curve.append(account.equity)
    elif target_hit:
        trade.close(TradeResult.WIN, candle.close_time)
        account.equity += trade.gross_profit
        account.equity_curve.append(account.equity)
    else:
        return False

    return True


def resolve_trades(
    candles: Sequence[Candle],
    trades: List[Trade],
    config: StrategyConfig,
    account: AccountState,
    progress: Optional[ProgressCallback] = None,
) -> AccountState:
    """
    Replay trades against the candle sequence.

    Closed trades are never touched, so running the resolver again over
    resolved trades is a no-op. Progress is reported in the 50-100 range.

    Args:
        candles: Full candle sequence (read-only)
        trades: Trades produced by the trade factory, mutated in place
        config: Strategy configuration
        account: Equity state of this run, mutated in place
        progress: Optional callback receiving a percentage

    Returns:
        The account state
    """
    pending = sorted(
        (t for t in trades if t.status is TradeStatus.NOT_OPENED),
        key=lambda t: t.open_time,
    )
    live = [
        t for t in trades
        if t.status in (TradeStatus.NOT_TRIGGERED, TradeStatus.RUNNING)
    ]
    if account.exhausted or (not pending and not live):
        return account

    first_time = min(t.open_time for t in pending + live)
    close_times = [c.close_time for c in candles]
    start = bisect_left(close_times, first_time)

    total = len(candles)
    next_pending = 0
    last_sent = start

    for i in range(start, total):
        candle = candles[i]

        # Activation
        while next_pending < len(pending) and pending[next_pending].open_time <= candle.close_time:
            trade = pending[next_pending]
            next_pending += 1
            if trade.open_time != candle.close_time:
                logger.debug(f"No candle closes at {trade.open_time}, trade left unopened")
                continue
            if not activate_trade(trade, candle, config, account):
                account.exhausted = True
                logger.debug(f"Fees exhausted equity at {candle.close_time}, halting run")
                return account
            live.append(trade)

        # Trigger / resolution
        still_live = []
        for trade in live:
            if trade.status is TradeStatus.NOT_TRIGGERED:
                if candle.close_time > trade.open_time and candle.brackets(trade.entry_price):
                    trade.transition(TradeStatus.RUNNING)
                    trade.triggered_time = candle.close_time
                still_live.append(trade)
                continue

            if candle.close_time <= trade.triggered_time or not settle_trade(trade, candle, account):
                still_live.append(trade)
                continue

            if account.equity <= 0:
                account.exhausted = True
                logger.debug(f"Equity exhausted at {candle.close_time}, halting run")
                return account
        live = still_live

        if progress is not None and i - last_sent >= PROGRESS_REPORT_INTERVAL:
            progress(50.0 + i / total * 50.0)
            last_sent = i

    return account
