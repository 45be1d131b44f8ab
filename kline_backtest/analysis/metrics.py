"""
Strategy statistics - outcome ratios and equity metrics of one run.
"""

import logging
import math
from typing import Dict, List, Sequence

import numpy as np

from ..models import AccountState, StrategyConfig, StrategyResult, Trade, TradeResult

logger = logging.getLogger(__name__)

NAN = float("nan")


def required_win_ratio(take_profit_multiplier: float, stop_loss_multiplier: float) -> float:
    """Break-even win percentage for a tp:sl reward/risk profile."""
    return round(1.0 / (1.0 + take_profit_multiplier / stop_loss_multiplier) * 100.0, 2)


def risk_reward_label(take_profit_multiplier: float, stop_loss_multiplier: float) -> str:
    """Reward-to-risk label, e.g. "2:1"."""
    return f"{take_profit_multiplier / stop_loss_multiplier:g}:1"


def count_results(trades: Sequence[Trade]) -> Dict[str, int]:
    """Count closed trades per result plus still-open trades."""
    counts = {"win": 0, "lost": 0, "unknown": 0, "open": 0}
    for trade in trades:
        if not trade.is_closed:
            counts["open"] += 1
        elif trade.result is TradeResult.WIN:
            counts["win"] += 1
        elif trade.result is TradeResult.LOST:
            counts["lost"] += 1
        else:
            counts["unknown"] += 1
    return counts


def calculate_drawdown_pct(starting_equity: float, equity_curve: List[float]) -> float:
    """Largest peak-to-trough drop of [starting_equity] + curve, in percent."""
    equity = np.array([starting_equity] + list(equity_curve), dtype=float)
    running_max = np.maximum.accumulate(equity)
    drawdown_pct = np.where(running_max > 0, (running_max - equity) / running_max * 100, 0)
    return float(np.max(drawdown_pct))


def compute_strategy_result(
    config: StrategyConfig,
    trades: Sequence[Trade],
    account: AccountState,
) -> StrategyResult:
    """
    Aggregate a finished run into a StrategyResult.

    Ratios are percentages of closed trades rounded to 2 decimals. With no
    closed trade the win / lose / unknown / efficiency ratios are NaN.

    Args:
        config: Strategy configuration of the run
        trades: Trades after resolution
        account: Account state after resolution

    Returns:
        StrategyResult
    """
    counts = count_results(trades)
    closed = counts["win"] + counts["lost"] + counts["unknown"]
    required = required_win_ratio(config.take_profit_multiplier, config.stop_loss_multiplier)

    if closed > 0:
        win_ratio = round(counts["win"] * 100 / closed, 2)
        lose_ratio = round(counts["lost"] * 100 / closed, 2)
        unknown_ratio = round(counts["unknown"] * 100 / closed, 2)
        efficiency = round(win_ratio / required, 2)
    else:
        win_ratio = lose_ratio = unknown_ratio = efficiency = NAN

    start = config.starting_equity
    total_return_pct = (account.equity - start) / start * 100

    return StrategyResult(
        config=config,
        win_count=counts["win"],
        lose_count=counts["lost"],
        unknown_count=counts["unknown"],
        closed_count=closed,
        open_count=counts["open"],
        win_ratio=win_ratio,
        lose_ratio=lose_ratio,
        unknown_ratio=unknown_ratio,
        required_win_ratio=required,
        efficiency_ratio=efficiency,
        risk_reward_label=risk_reward_label(config.take_profit_multiplier, config.stop_loss_multiplier),
        final_equity=account.equity,
        total_return_pct=round(total_return_pct, 2),
        max_drawdown_pct=round(calculate_drawdown_pct(start, account.equity_curve), 2),
        equity_curve=list(account.equity_curve),
    )


def error_result(config: StrategyConfig, error: str) -> StrategyResult:
    """Placeholder result for a configuration whose run raised."""
    return StrategyResult(
        config=config,
        win_count=0,
        lose_count=0,
        unknown_count=0,
        closed_count=0,
        open_count=0,
        win_ratio=NAN,
        lose_ratio=NAN,
        unknown_ratio=NAN,
        required_win_ratio=required_win_ratio(config.take_profit_multiplier, config.stop_loss_multiplier),
        efficiency_ratio=NAN,
        risk_reward_label=risk_reward_label(config.take_profit_multiplier, config.stop_loss_multiplier),
        final_equity=config.starting_equity,
        total_return_pct=0.0,
        max_drawdown_pct=0.0,
        error=error,
    )


def format_result(result: StrategyResult) -> str:
    """One-line summary of a result."""
    if result.error:
        return f"{result.config.pattern_kind.value} [{result.risk_reward_label}] ERROR: {result.error}"
    win = "n/a" if math.isnan(result.win_ratio) else f"{result.win_ratio:.2f}%"
    eff = "n/a" if math.isnan(result.efficiency_ratio) else f"{result.efficiency_ratio:.2f}"
    return (
        f"{result.config.pattern_kind.value} [{result.risk_reward_label}] "
        f"closed={result.closed_count} win={win} required={result.required_win_ratio:.2f}% "
        f"eff={eff} equity={result.final_equity:,.2f}"
    )
