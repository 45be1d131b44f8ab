"""
Engine module for Pattern Strategy Optimizer.

Provides parameter grid generation and result ranking.
"""

from .parameter_grid import ParameterGrid, create_w_and_m_strategies, print_grid_info
from .metrics_calculator import MetricsCalculator

__all__ = ["ParameterGrid", "create_w_and_m_strategies", "print_grid_info", "MetricsCalculator"]
