"""
Pattern Strategy Optimizer.

This package sweeps chart-pattern strategy parameters over a kline
history using the kline_backtest engine, and ranks and reports the
results.
"""

__version__ = "0.1.0"
