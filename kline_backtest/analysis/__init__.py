from .metrics import (
    compute_strategy_result,
    error_result,
    format_result,
    required_win_ratio,
    risk_reward_label,
)
from .visualizer import plot_equity_curve, plot_result

__all__ = [
    "compute_strategy_result",
    "error_result",
    "format_result",
    "required_win_ratio",
    "risk_reward_label",
    "plot_equity_curve",
    "plot_result",
]
