"""
Backtest Orchestrator for Pattern Strategy Optimization.

Runs every strategy configuration of a sweep against one shared, read-only
candle sequence. Configurations run strictly one at a time by default;
with num_workers > 1 they are spread over a multiprocessing Pool whose
workers each cache the candles once.
"""

import json
import math
import psutil
from datetime import datetime
from multiprocessing import Pool, cpu_count
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from kline_backtest.models import Candle, StrategyConfig, StrategyResult
from pattern_optimizer.config import print_status
from pattern_optimizer.engine.metrics_calculator import MetricsCalculator, results_to_frame
from pattern_optimizer.orchestrator.progress import ProgressAggregator, ProgressSink
from pattern_optimizer.orchestrator.worker import init_worker_data, process_strategy, run_strategy


class BacktestOrchestrator:
    """
    Runs a strategy sweep.

    Coordinates:
    - Sequential or pooled execution of the configurations
    - Progress aggregation across the whole sweep
    - Results collection (in configuration order)
    - Ranking and result files
    """

    def __init__(
        self,
        candles: Sequence[Candle],
        strategies: Sequence[StrategyConfig],
        progress_sink: Optional[ProgressSink] = None,
        sweep_id: int = 0,
        num_workers: int = 1,
        potential_only: bool = False,
        data_path: Optional[Path] = None,
        metrics: Optional[MetricsCalculator] = None,
    ):
        """
        Initialize BacktestOrchestrator.

        Args:
            candles: Candle sequence shared by every run
            strategies: Configurations to run, in order
            progress_sink: Callable(percent, sweep_id) for overall progress
            sweep_id: Identifier passed to the progress sink
            num_workers: 1 runs sequentially, > 1 uses a process pool
            potential_only: Trade unconfirmed patterns
            data_path: Kline file pool workers load instead of receiving
                the candles from the parent process
            metrics: Ranking calculator (default: 1 closed trade minimum)
        """
        if num_workers < 1:
            raise ValueError(f"num_workers must be >= 1, got {num_workers}")

        self.candles = candles
        self.strategies = list(strategies)
        self.progress_sink = progress_sink
        self.sweep_id = sweep_id
        self.num_workers = num_workers
        self.potential_only = potential_only
        self.data_path = data_path
        self.metrics = metrics or MetricsCalculator()

        # State
        self._results: List[StrategyResult] = []
        self._start_time: Optional[datetime] = None

    def _get_memory_usage(self) -> str:
        """Get current memory usage."""
        process = psutil.Process()
        mem = process.memory_info().rss / (1024 * 1024 * 1024)  # GB
        return f"{mem:.2f} GB"

    def run(self) -> List[StrategyResult]:
        """
        Run every configuration.

        Returns:
            One StrategyResult per configuration, in configuration order
        """
        total = len(self.strategies)
        self._start_time = datetime.now()

        print_status(
            f"Running {total:,} strategies on {len(self.candles):,} candles "
            f"({'sequential' if self.num_workers == 1 else f'{self.num_workers} workers'})",
            "HEADER",
        )

        aggregator = None
        if self.progress_sink is not None:
            aggregator = ProgressAggregator(total, self.progress_sink, self.sweep_id).start()

        try:
            if self.num_workers == 1 or total <= 1:
                self._results = self._run_sequential(aggregator)
            else:
                self._results = self._run_parallel(aggregator)
        finally:
            if aggregator is not None:
                aggregator.close()

        elapsed = datetime.now() - self._start_time
        errors = sum(1 for r in self._results if r.error)
        traded = sum(1 for r in self._results if r.has_closed_trades)
        print_status(f"Sweep complete in {elapsed} | Memory: {self._get_memory_usage()}", "SUCCESS")
        print_status(f"Strategies with closed trades: {traded:,}/{total:,}", "INFO")
        if errors:
            print_status(f"{errors:,} strategies failed", "WARNING")

        return self._results

    def _run_sequential(self, aggregator: Optional[ProgressAggregator]) -> List[StrategyResult]:
        results = []
        progress = aggregator.report if aggregator is not None else None

        for config in self.strategies:
            results.append(run_strategy(self.candles, config, progress, self.potential_only))
            if aggregator is not None:
                aggregator.complete_config()

        return results

    def _run_parallel(self, aggregator: Optional[ProgressAggregator]) -> List[StrategyResult]:
        """
        Run configurations over a process pool.

        Only per-configuration completion is reported from the pool.
        """
        results: List[Optional[StrategyResult]] = [None] * len(self.strategies)

        # Workers load the file themselves when a path is known (avoids pickling the candles)
        if self.data_path is not None:
            initargs = (self.data_path, None, self.potential_only)
        else:
            initargs = (None, list(self.candles), self.potential_only)

        print_status(f"Creating pool with {self.num_workers} workers...", "INFO")

        with Pool(
            processes=self.num_workers,
            initializer=init_worker_data,
            initargs=initargs,
        ) as pool:
            for index, result in pool.imap_unordered(process_strategy, enumerate(self.strategies)):
                results[index] = result
                if aggregator is not None:
                    aggregator.complete_config()

        return results

    @property
    def results(self) -> List[StrategyResult]:
        return list(self._results)

    def results_frame(self) -> pd.DataFrame:
        """Results as a DataFrame, one row per configuration."""
        return results_to_frame(self._results)

    def save_results(self, output_dir: Path, prefix: str = "sweep", top_n: int = 20) -> Dict[str, Path]:
        """
        Save results: full CSV, JSON with equity curves, best params, summary.

        Args:
            output_dir: Output directory (created if missing)
            prefix: File name prefix
            top_n: Strategies listed in the summary report

        Returns:
            Dict of written file paths
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        paths: Dict[str, Path] = {}

        df = self.results_frame()
        if len(df) == 0:
            print_status("No results to save", "WARNING")
            return paths

        # Full results (equity curves go to JSON only)
        csv_path = output_dir / f"{prefix}_results.csv"
        df.drop(columns=["equity_curve"]).to_csv(csv_path, index=False)
        paths["csv"] = csv_path
        print_status(f"Full results saved: {csv_path}", "SUCCESS")

        json_path = output_dir / f"{prefix}_results.json"
        with open(json_path, "w") as f:
            json.dump([_json_safe(r.to_dict()) for r in self._results], f, indent=2)
        paths["json"] = json_path
        print_status(f"Results with equity curves saved: {json_path}", "SUCCESS")

        best_params = self.metrics.get_best_params(df)
        if best_params:
            best_path = output_dir / f"{prefix}_best_params.json"
            with open(best_path, "w") as f:
                json.dump(best_params, f, indent=2)
            paths["best_params"] = best_path
            print_status(f"Best params saved: {best_path}", "SUCCESS")

        report = self.metrics.generate_summary_report(df, top_n=top_n)
        report_path = output_dir / f"{prefix}_summary.txt"
        with open(report_path, "w", encoding="utf-8") as f:
            f.write(report)
        paths["summary"] = report_path
        print_status(f"Summary report saved: {report_path}", "SUCCESS")

        return paths


def _json_safe(record: Dict[str, Any]) -> Dict[str, Any]:
    """NaN ratios -> null so the file stays strict JSON."""
    return {
        key: None if isinstance(value, float) and math.isnan(value) else value
        for key, value in record.items()
    }


def calculate_safe_workers(available_ram_gb: Optional[float] = None, per_worker_mb: int = 500) -> int:
    """
    Calculate safe number of workers based on available RAM and CPUs.

    Args:
        available_ram_gb: RAM to plan for (default: total system memory)
        per_worker_mb: Estimated memory per worker process
    """
    if available_ram_gb is None:
        available_ram_gb = psutil.virtual_memory().total / (1024 ** 3)

    reserve_gb = 2  # OS + master process
    usable_mb = (available_ram_gb - reserve_gb) * 1024

    max_by_ram = int(usable_mb / per_worker_mb)
    max_by_cpu = max(1, cpu_count() - 1)

    safe = min(max_by_ram, max_by_cpu)
    return max(1, safe)
