"""
Orchestrator module for Pattern Strategy Optimizer.

Runs strategy sweeps sequentially or over a process pool, with
background progress aggregation.
"""

from .master import BacktestOrchestrator, calculate_safe_workers
from .progress import ProgressAggregator, overall_progress
from .worker import init_worker_data, process_strategy, run_strategy

__all__ = [
    "BacktestOrchestrator",
    "calculate_safe_workers",
    "ProgressAggregator",
    "overall_progress",
    "init_worker_data",
    "process_strategy",
    "run_strategy",
]
