"""Tests for equity curve charts."""
import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt

from kline_backtest.analysis.metrics import error_result
from kline_backtest.analysis.visualizer import plot_equity_curve, plot_result
from kline_backtest.models import (
    DoublePatternParams,
    MarketType,
    PatternKind,
    StrategyConfig,
)


class TestVisualizer:
    def test_saves_png(self, tmp_path):
        path = tmp_path / "equity.png"

        fig = plot_equity_curve([1010.0, 990.0, 1030.0], 1000.0, title="W 2:1", save_path=path)

        assert path.exists()
        assert len(fig.axes) == 2
        assert fig.axes[0].get_title() == "W 2:1"
        plt.close(fig)

    def test_empty_curve(self):
        fig = plot_equity_curve([], 1000.0)
        assert len(fig.axes[0].lines) >= 1
        plt.close(fig)

    def test_plot_result_title(self, tmp_path):
        config = StrategyConfig(
            take_profit_multiplier=2.0,
            stop_loss_multiplier=1.0,
            risk_per_trade=0.01,
            starting_equity=1000.0,
            market_type=MarketType.FUTURES,
            pattern_params=DoublePatternParams(PatternKind.M, 3, 5),
        )

        fig = plot_result(error_result(config, "none"), save_path=tmp_path / "m.png")

        assert fig.axes[0].get_title() == "M 2:1 risk=1% (futures)"
        plt.close(fig)
