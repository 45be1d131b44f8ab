#!/usr/bin/env python3
"""
Pattern Strategy Optimizer CLI.

Usage:
    # Run a sweep with the default ranges
    python -m pattern_optimizer.run_optimizer --data BTCUSDT-1m.json --pattern W

    # W and M together, ranges from a JSON file, 4 workers, Excel report
    python -m pattern_optimizer.run_optimizer --data BTCUSDT-1m.json --pattern W M \
        --config sweep.json --workers 4 --excel

    # Show parameter grid info
    python -m pattern_optimizer.run_optimizer --info --pattern "Bull Reversal"
"""

import argparse
import logging
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from kline_backtest.data_processor import KlineIngestor
from kline_backtest.models import MalformedCandleError, MarketType
from pattern_optimizer.config import (
    DEFAULT_OUTPUT_DIR,
    SweepConfig,
    build_strategies,
    load_sweep_config,
    print_progress_bar,
    print_status,
)


def show_info(sweep: SweepConfig) -> None:
    """Show parameter grid information for every pattern of the sweep."""
    from pattern_optimizer.engine.parameter_grid import ParameterGrid, print_grid_info

    for pattern in sweep.patterns:
        grid = ParameterGrid(
            pattern,
            take_profit=sweep.take_profit,
            stop_loss=sweep.stop_loss,
            size_a=sweep.size_a,
            size_b=sweep.size_b,
            risk=sweep.risk,
            starting_equity=sweep.starting_equity,
            market_type=sweep.market_type,
        )
        print_grid_info(grid, num_workers=sweep.num_workers)
        print()


def console_progress(percent: float, sweep_id: int) -> None:
    """Progress sink printing a progress bar."""
    print_progress_bar(percent, prefix=f"Sweep {sweep_id}", suffix=f"{percent:6.2f}%")


def run_sweep(
    data_path: Path,
    sweep: SweepConfig,
    excel: bool = False,
    plot_best: bool = False,
    strict: bool = True,
) -> Path:
    """
    Run a sweep and write its outputs.

    Args:
        data_path: Kline JSON / CSV file
        sweep: Sweep configuration
        excel: Also write an Excel report
        plot_best: Also save the equity chart of the best strategy
        strict: Fail on malformed klines instead of dropping them

    Returns:
        Path to the output directory used for this run
    """
    from pattern_optimizer.orchestrator.master import BacktestOrchestrator
    from pattern_optimizer.engine.metrics_calculator import MetricsCalculator

    candles = KlineIngestor(strict=strict).load_candles(data_path)
    print_status(f"Loaded {len(candles):,} candles from {data_path}", "SUCCESS")

    strategies = build_strategies(sweep)
    print_status(f"Total strategies: {len(strategies):,}", "SUCCESS")

    # Create run-specific subdirectory
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    patterns = "_".join(p.name for p in sweep.patterns)
    run_output_dir = sweep.output_dir / f"{patterns}_{len(strategies)}strategies_{timestamp}"
    run_output_dir.mkdir(parents=True, exist_ok=True)
    print_status(f"Output directory: {run_output_dir}", "INFO")

    metrics = MetricsCalculator(min_closed_trades=sweep.min_closed_trades)
    orchestrator = BacktestOrchestrator(
        candles,
        strategies,
        progress_sink=console_progress,
        num_workers=sweep.num_workers,
        potential_only=sweep.potential_only,
        data_path=data_path if strict else None,
        metrics=metrics,
    )
    orchestrator.run()
    orchestrator.save_results(run_output_dir, top_n=sweep.top_n)

    df = orchestrator.results_frame()
    print("\n" + metrics.generate_summary_report(df, top_n=min(sweep.top_n, 10)))

    if excel:
        from pattern_optimizer.reports.excel_generator import ExcelReportGenerator

        output_path = ExcelReportGenerator(run_output_dir, metrics).generate_report(df, top_n=sweep.top_n)
        print_status(f"Excel report generated: {output_path}", "SUCCESS")

    if plot_best:
        import matplotlib.pyplot as plt

        from kline_backtest.analysis.visualizer import plot_result

        ranked = metrics.rank_results(df, top_n=1)
        if len(ranked) > 0:
            best = orchestrator.results[int(ranked.index[0])]
            chart_path = run_output_dir / "best_equity_curve.png"
            fig = plot_result(best, save_path=chart_path)
            plt.close(fig)
            print_status(f"Equity chart saved: {chart_path}", "SUCCESS")
        else:
            print_status("No ranked strategy to plot", "WARNING")

    return run_output_dir


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Chart pattern strategy optimizer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run a W sweep with default ranges
  python -m pattern_optimizer.run_optimizer --data BTCUSDT-1m.json --pattern W

  # Futures market, ranges from JSON, 4 workers, Excel report
  python -m pattern_optimizer.run_optimizer --data BTCUSDT-1m.json --config sweep.json \\
      --market futures --workers 4 --excel

  # Show grid info
  python -m pattern_optimizer.run_optimizer --info --pattern W M
        """
    )

    parser.add_argument("--data", type=Path, help="Kline file (.json or .csv)")
    parser.add_argument("--config", type=Path, default=None, help="Sweep configuration JSON")
    parser.add_argument(
        "--pattern",
        nargs="+",
        default=None,
        help='Pattern(s) to sweep: W, M, "Bull Reversal" (default: from config)'
    )
    parser.add_argument(
        "--market",
        choices=[m.value for m in MarketType],
        default=None,
        help="Market type (default: from config)"
    )
    parser.add_argument("--workers", type=int, default=None, help="Parallel workers (1 = sequential)")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help=f"Base output directory (default: {DEFAULT_OUTPUT_DIR})"
    )
    parser.add_argument("--potential", action="store_true", help="Trade unconfirmed patterns")
    parser.add_argument("--lenient", action="store_true", help="Drop malformed klines instead of failing")
    parser.add_argument("--excel", action="store_true", help="Also write an Excel report")
    parser.add_argument("--plot", action="store_true", help="Save the best strategy's equity chart")
    parser.add_argument("--info", action="store_true", help="Show parameter grid info and exit")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level (default: WARNING)"
    )

    return parser.parse_args(argv)


def apply_overrides(sweep: SweepConfig, args: argparse.Namespace) -> SweepConfig:
    """CLI arguments take precedence over the configuration file."""
    overrides = {}
    if args.pattern:
        overrides["patterns"] = args.pattern
    if args.market:
        overrides["market_type"] = args.market
    if args.workers is not None:
        overrides["num_workers"] = args.workers
    if args.output_dir is not None:
        overrides["output_dir"] = args.output_dir
    if args.potential:
        overrides["potential_only"] = True
    return replace(sweep, **overrides) if overrides else sweep


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        sweep = apply_overrides(load_sweep_config(args.config), args)
    except (FileNotFoundError, ValueError) as e:
        print_status(str(e), "ERROR")
        return 1

    if args.info:
        show_info(sweep)
        return 0

    if args.data is None:
        print_status("--data is required to run a sweep", "ERROR")
        return 1

    print_status(f"Patterns: {', '.join(p.value for p in sweep.patterns)}", "HEADER")
    print_status(f"Market: {sweep.market_type.value} | Workers: {sweep.num_workers}", "INFO")
    print_status(f"Base output: {sweep.output_dir}", "INFO")

    try:
        run_sweep(args.data, sweep, excel=args.excel, plot_best=args.plot, strict=not args.lenient)
    except (FileNotFoundError, MalformedCandleError) as e:
        print_status(str(e), "ERROR")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
