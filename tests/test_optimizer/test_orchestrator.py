"""Tests for strategy workers and the backtest orchestrator."""
import json
import math

import pytest

from kline_backtest.data_processor import save_klines_json
from kline_backtest.models import (
    DoublePatternParams,
    MarketType,
    PatternKind,
    ReversalPatternParams,
    StrategyConfig,
)
from pattern_optimizer.engine.metrics_calculator import MetricsCalculator
from pattern_optimizer.orchestrator import worker
from pattern_optimizer.orchestrator.master import BacktestOrchestrator, calculate_safe_workers
from pattern_optimizer.orchestrator.worker import (
    get_worker_info,
    init_worker_data,
    process_strategy,
    run_strategy,
)


def _make_config(params, tp=2.0, sl=1.5):
    return StrategyConfig(
        take_profit_multiplier=tp,
        stop_loss_multiplier=sl,
        risk_per_trade=0.01,
        starting_equity=1000.0,
        market_type=MarketType.SPOT,
        pattern_params=params,
    )


W_CONFIG = _make_config(DoublePatternParams(PatternKind.W, 3, 5))
M_CONFIG = _make_config(DoublePatternParams(PatternKind.M, 3, 5))
REVERSAL_CONFIG = _make_config(ReversalPatternParams(3, 3), tp=2.0, sl=1.0)

STRATEGIES = [W_CONFIG, M_CONFIG, REVERSAL_CONFIG]


# ==========================================
# Worker
# ==========================================


class TestWorker:
    """Single strategy runs."""

    def test_run_strategy(self, w_candles):
        result = run_strategy(w_candles, W_CONFIG)

        assert result.error is None
        assert result.win_count == 1
        assert result.final_equity == pytest.approx(1010.0)
        assert result.equity_curve == [pytest.approx(1010.0)]

    def test_failure_becomes_error_result(self, w_candles, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("detector exploded")

        monkeypatch.setattr(worker, "create_trades", explode)

        result = run_strategy(w_candles, W_CONFIG)

        assert result.error == "detector exploded"
        assert math.isnan(result.win_ratio)
        assert result.final_equity == 1000.0

    def test_runs_are_independent(self, w_candles):
        first = run_strategy(w_candles, W_CONFIG)
        second = run_strategy(w_candles, W_CONFIG)

        assert first.final_equity == second.final_equity
        assert second.equity_curve == first.equity_curve

    def test_process_strategy_requires_init(self, monkeypatch):
        monkeypatch.setattr(worker, "_WORKER_CANDLES", None)

        index, result = process_strategy((3, W_CONFIG))

        assert index == 3
        assert result.error == "Worker not initialized"

    def test_init_from_candles(self, w_candles, monkeypatch):
        monkeypatch.setattr(worker, "_WORKER_CANDLES", None)
        monkeypatch.setattr(worker, "_WORKER_POTENTIAL_ONLY", False)

        init_worker_data(candles=w_candles)
        index, result = process_strategy((0, W_CONFIG))

        assert index == 0
        assert result.win_count == 1
        info = get_worker_info()
        assert info["data_loaded"]
        assert info["candles"] == len(w_candles)

    def test_init_from_file(self, tmp_path, w_candles, monkeypatch):
        monkeypatch.setattr(worker, "_WORKER_CANDLES", None)
        monkeypatch.setattr(worker, "_WORKER_POTENTIAL_ONLY", False)
        path = save_klines_json(w_candles, tmp_path / "BTCUSDT-1m.json")

        init_worker_data(data_path=path, potential_only=True)

        info = get_worker_info()
        assert info["candles"] == len(w_candles)
        assert info["potential_only"] is True

    def test_init_needs_a_source(self):
        with pytest.raises(ValueError):
            init_worker_data()


# ==========================================
# Orchestrator
# ==========================================


class TestBacktestOrchestrator:
    """Sweep execution and result files."""

    def test_sequential_results_in_order(self, w_candles):
        results = BacktestOrchestrator(w_candles, STRATEGIES).run()

        assert [r.config for r in results] == STRATEGIES
        assert results[0].win_count == 1
        assert results[0].final_equity == pytest.approx(1010.0)
        assert results[1].closed_count == 0
        assert math.isnan(results[1].win_ratio)

    def test_progress_sink_receives_final_100(self, w_candles):
        events = []

        BacktestOrchestrator(
            w_candles,
            STRATEGIES,
            progress_sink=lambda pct, sid: events.append((pct, sid)),
            sweep_id=2,
        ).run()

        assert events[-1] == (100.0, 2)
        percents = [pct for pct, _ in events]
        assert percents == sorted(percents)

    def test_failing_config_does_not_abort_sweep(self, w_candles, monkeypatch):
        original = worker.create_trades

        def create_trades(candles, config, *args, **kwargs):
            if config.pattern_kind is PatternKind.M:
                raise RuntimeError("bad M")
            return original(candles, config, *args, **kwargs)

        monkeypatch.setattr(worker, "create_trades", create_trades)

        results = BacktestOrchestrator(w_candles, STRATEGIES).run()

        assert [r.error for r in results] == [None, "bad M", None]

    def test_parallel_matches_sequential(self, w_candles):
        sequential = BacktestOrchestrator(w_candles, STRATEGIES).run()
        parallel = BacktestOrchestrator(w_candles, STRATEGIES, num_workers=2).run()

        assert [r.config for r in parallel] == STRATEGIES
        assert [r.final_equity for r in parallel] == [r.final_equity for r in sequential]

    def test_parallel_from_data_file(self, tmp_path, w_candles):
        path = save_klines_json(w_candles, tmp_path / "BTCUSDT-1m.json")
        events = []

        results = BacktestOrchestrator(
            w_candles,
            STRATEGIES,
            progress_sink=lambda pct, sid: events.append(pct),
            num_workers=2,
            data_path=path,
        ).run()

        assert results[0].win_count == 1
        assert events[-1] == 100.0

    def test_invalid_workers(self, w_candles):
        with pytest.raises(ValueError):
            BacktestOrchestrator(w_candles, STRATEGIES, num_workers=0)

    def test_save_results(self, tmp_path, w_candles):
        orchestrator = BacktestOrchestrator(w_candles, STRATEGIES, metrics=MetricsCalculator(1))
        orchestrator.run()

        paths = orchestrator.save_results(tmp_path / "out", prefix="btc")

        assert set(paths) == {"csv", "json", "best_params", "summary"}
        assert paths["csv"].name == "btc_results.csv"
        with open(paths["json"]) as f:
            records = json.load(f)
        assert len(records) == 3
        assert records[1]["win_ratio"] is None
        assert records[0]["equity_curve"] == [pytest.approx(1010.0)]
        with open(paths["best_params"]) as f:
            best = json.load(f)
        assert best["pattern"] in ("W", "Bull Reversal")
        assert "PATTERN STRATEGY SWEEP RESULTS" in paths["summary"].read_text(encoding="utf-8")

    def test_save_without_results(self, tmp_path, w_candles):
        orchestrator = BacktestOrchestrator(w_candles, [])
        orchestrator.run()
        assert orchestrator.save_results(tmp_path) == {}

    def test_results_frame(self, w_candles):
        orchestrator = BacktestOrchestrator(w_candles, STRATEGIES)
        orchestrator.run()

        df = orchestrator.results_frame()

        assert len(df) == 3
        assert list(df["pattern"]) == ["W", "M", "Bull Reversal"]


def test_calculate_safe_workers():
    assert calculate_safe_workers(available_ram_gb=1.0) == 1
    assert calculate_safe_workers(available_ram_gb=64.0) >= 1
