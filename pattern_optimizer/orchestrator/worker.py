"""
Worker for Pattern Strategy Optimization.

Runs one strategy configuration end to end:
trade factory -> trade resolver -> statistics.

Also usable as a multiprocessing Pool worker: the candle sequence is
loaded once per process by the Pool initializer and shared read-only by
every configuration that process runs.
"""

import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from kline_backtest.analysis.metrics import compute_strategy_result, error_result, format_result
from kline_backtest.data_processor import KlineIngestor
from kline_backtest.models import AccountState, Candle, StrategyConfig, StrategyResult
from kline_backtest.trade_factory import create_trades
from kline_backtest.trade_resolver import resolve_trades

logger = logging.getLogger(__name__)

# ================================
# MODULE-LEVEL CACHE
# ================================
# Loaded once per worker process via initializer
_WORKER_CANDLES: Optional[List[Candle]] = None
_WORKER_POTENTIAL_ONLY: bool = False


def run_strategy(
    candles: Sequence[Candle],
    config: StrategyConfig,
    progress: Optional[Callable[[float], None]] = None,
    potential_only: bool = False,
) -> StrategyResult:
    """
    Backtest a single strategy configuration.

    Each run owns its trades and AccountState; the candles are only read.
    Any exception is logged and returned as an error result so that one
    configuration never aborts a sweep.

    Args:
        candles: Full candle sequence
        config: Strategy configuration
        progress: Optional callback receiving this run's percentage (0-100)
        potential_only: Trade unconfirmed patterns

    Returns:
        StrategyResult (error set on failure)
    """
    try:
        account = AccountState(equity=config.starting_equity)
        trades = create_trades(candles, config, progress, potential_only)
        resolve_trades(candles, trades, config, account, progress)
        result = compute_strategy_result(config, trades, account)
        logger.debug(format_result(result))
        return result

    except Exception as e:
        logger.exception(f"Strategy run failed for {config.to_dict()}")
        return error_result(config, str(e))


def init_worker_data(
    data_path: Optional[Path] = None,
    candles: Optional[List[Candle]] = None,
    potential_only: bool = False,
) -> None:
    """
    Initialize worker with cached candles.

    Called once per worker process via Pool initializer. Pass either a
    kline file path (loaded by the worker itself) or the candles.

    Args:
        data_path: Kline JSON / CSV file
        candles: Candle sequence
        potential_only: Trade unconfirmed patterns
    """
    global _WORKER_CANDLES, _WORKER_POTENTIAL_ONLY

    if candles is None:
        if data_path is None:
            raise ValueError("init_worker_data needs data_path or candles")
        candles = KlineIngestor().load_candles(data_path)

    _WORKER_CANDLES = candles
    _WORKER_POTENTIAL_ONLY = potential_only

    logger.debug(f"[Worker {os.getpid()}] Initialized with {len(_WORKER_CANDLES):,} candles")


def process_strategy(task: Tuple[int, StrategyConfig]) -> Tuple[int, StrategyResult]:
    """
    Process one (index, config) task against the cached candles.

    Args:
        task: Position of the config in the sweep and the config itself

    Returns:
        (index, StrategyResult)
    """
    index, config = task

    if _WORKER_CANDLES is None:
        return index, error_result(config, "Worker not initialized")

    return index, run_strategy(_WORKER_CANDLES, config, potential_only=_WORKER_POTENTIAL_ONLY)


def get_worker_info() -> Dict[str, Any]:
    """
    Get information about current worker state.

    Returns:
        Dict with worker info
    """
    return {
        "pid": os.getpid(),
        "data_loaded": _WORKER_CANDLES is not None,
        "candles": len(_WORKER_CANDLES) if _WORKER_CANDLES is not None else 0,
        "potential_only": _WORKER_POTENTIAL_ONLY,
    }
