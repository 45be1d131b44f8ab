"""Tests for the optimizer command line."""
import json

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt

from kline_backtest.data_processor import save_klines_json
from kline_backtest.models import MarketType, PatternKind
from pattern_optimizer.config import SweepConfig
from pattern_optimizer.run_optimizer import apply_overrides, main, parse_args


def _write_sweep(path, output_dir):
    path.write_text(json.dumps({
        "sweep": {"patterns": ["W", "M"]},
        "ranges": {
            "take_profit": [2.0, 2.0, 1.0],
            "stop_loss": [1.0, 1.5, 0.5],
            "size_a": [3, 3, 1],
            "size_b": [5, 5, 1],
            "risk": [1, 1, 1],
        },
        "output": {"dir": str(output_dir)},
    }), encoding="utf-8")
    return path


class TestArguments:
    def test_overrides(self):
        args = parse_args(["--pattern", "Bull Reversal", "--market", "futures", "--workers", "2", "--potential"])
        sweep = apply_overrides(SweepConfig(), args)

        assert sweep.patterns == [PatternKind.BULL_REVERSAL]
        assert sweep.market_type is MarketType.FUTURES
        assert sweep.num_workers == 2
        assert sweep.potential_only

    def test_no_overrides_keeps_config(self):
        sweep = SweepConfig()
        assert apply_overrides(sweep, parse_args([])) is sweep


class TestMain:
    """End-to-end runs of the CLI entry point."""

    def test_full_run(self, tmp_path, w_candles):
        plt.close("all")
        data = save_klines_json(w_candles, tmp_path / "BTCUSDT-1m.json")
        config = _write_sweep(tmp_path / "sweep.json", tmp_path / "out")

        assert main(["--data", str(data), "--config", str(config), "--excel", "--plot"]) == 0

        (run_dir,) = list((tmp_path / "out").iterdir())
        assert run_dir.name.startswith("W_M_4strategies_")
        names = {p.name for p in run_dir.iterdir()}
        assert {
            "sweep_results.csv",
            "sweep_results.json",
            "sweep_best_params.json",
            "sweep_summary.txt",
            "sweep_analysis.xlsx",
            "best_equity_curve.png",
        } <= names
        assert plt.get_fignums() == []

    def test_info(self, capsys):
        assert main(["--info", "--pattern", "W"]) == 0
        assert "Total Combinations" in capsys.readouterr().out

    def test_missing_data_argument(self):
        assert main(["--pattern", "W"]) == 1

    def test_missing_data_file(self, tmp_path):
        assert main(["--data", str(tmp_path / "missing.json"), "--output-dir", str(tmp_path)]) == 1

    def test_malformed_data(self, tmp_path):
        data = tmp_path / "bad.json"
        data.write_text(json.dumps({"not": "a list"}), encoding="utf-8")
        assert main(["--data", str(data), "--output-dir", str(tmp_path)]) == 1

    def test_missing_config(self, tmp_path):
        assert main(["--config", str(tmp_path / "missing.json"), "--info"]) == 1

    def test_unknown_pattern(self):
        assert main(["--info", "--pattern", "Triangle"]) == 1
