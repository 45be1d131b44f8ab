"""
Visualizer - equity curve charts for strategy results.
"""

import logging
from pathlib import Path
from typing import List, Optional

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.figure import Figure

from ..models import StrategyResult

logger = logging.getLogger(__name__)

COLORS = {
    "equity": "#2ecc71",
    "drawdown": "#e74c3c",
    "start": "#3498db",
}


def plot_equity_curve(
    equity_curve: List[float],
    starting_equity: float,
    title: str = "Equity Curve",
    save_path: Optional[Path] = None,
) -> Figure:
    """
    Plot equity after each won / lost trade, with drawdown below.

    Args:
        equity_curve: Equity values after each Win / Lost resolution
        starting_equity: Equity before the first trade
        title: Chart title
        save_path: Path to save figure (PNG)

    Returns:
        Matplotlib Figure
    """
    equity = np.array([starting_equity] + list(equity_curve), dtype=float)
    trades = np.arange(len(equity))

    running_max = np.maximum.accumulate(equity)
    drawdown_pct = np.where(running_max > 0, (equity - running_max) / running_max * 100, 0)

    fig, (ax1, ax2) = plt.subplots(
        2, 1, figsize=(12, 8), sharex=True, gridspec_kw={"height_ratios": [3, 1]}
    )

    ax1.plot(trades, equity, color=COLORS["equity"], linewidth=1.5, label="Equity")
    ax1.axhline(starting_equity, color=COLORS["start"], linestyle="--", linewidth=1, alpha=0.7)
    ax1.set_title(title, fontsize=14, fontweight="bold")
    ax1.set_ylabel("Equity")
    ax1.legend(loc="upper left")
    ax1.grid(True, alpha=0.3)

    ax2.fill_between(trades, drawdown_pct, 0, color=COLORS["drawdown"], alpha=0.3)
    ax2.plot(trades, drawdown_pct, color=COLORS["drawdown"], linewidth=1)
    ax2.set_xlabel("Closed trade #")
    ax2.set_ylabel("Drawdown (%)")
    ax2.set_ylim(top=0)
    ax2.grid(True, alpha=0.3)

    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
        logger.info(f"Saved equity curve to {save_path}")

    return fig


def plot_result(result: StrategyResult, save_path: Optional[Path] = None) -> Figure:
    """Equity chart titled with the strategy's pattern and reward/risk."""
    config = result.config
    title = (
        f"{config.pattern_kind.value} {result.risk_reward_label} "
        f"risk={config.risk_per_trade * 100:g}% ({config.market_type.value})"
    )
    return plot_equity_curve(result.equity_curve, config.starting_equity, title=title, save_path=save_path)
