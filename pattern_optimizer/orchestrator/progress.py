"""
Progress Aggregator for strategy sweeps.

Producers (the strategy runs) push per-configuration progress onto an
unbounded queue and never block. A background thread owns the count of
completed configurations and republishes the overall sweep percentage
to a sink callable(percent, sweep_id).
"""

import logging
import queue
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

ProgressSink = Callable[[float, int], None]

_PROGRESS = "progress"
_COMPLETED = "completed"
_STOP = "stop"


def overall_progress(fraction: float, completed: int, total: int) -> float:
    """
    Overall sweep percentage.

    Args:
        fraction: Progress of the running configuration (0-100)
        completed: Configurations already finished
        total: Configurations in the sweep

    Returns:
        Percentage in [0, 100]
    """
    if total <= 0:
        return 100.0
    pct = (fraction + completed * 100.0) / (total * 100.0) * 100.0
    return min(max(pct, 0.0), 100.0)


class ProgressAggregator:
    """
    Background aggregator of per-configuration progress.

    Usage:
        with ProgressAggregator(len(strategies), sink) as progress:
            run(..., progress=progress.report)
            progress.complete_config()
    """

    def __init__(self, total: int, sink: ProgressSink, sweep_id: int = 0):
        """
        Initialize ProgressAggregator.

        Args:
            total: Number of configurations in the sweep
            sink: Callable receiving (overall_percent, sweep_id)
            sweep_id: Identifier passed through to the sink
        """
        self.total = total
        self.sink = sink
        self.sweep_id = sweep_id
        self._queue: "queue.Queue" = queue.Queue()
        self._thread = threading.Thread(
            target=self._run,
            name=f"sweep-progress-{sweep_id}",
            daemon=True,
        )

    def start(self) -> "ProgressAggregator":
        self._thread.start()
        return self

    def report(self, fraction: float) -> None:
        """Progress (0-100) of the configuration currently running."""
        self._queue.put_nowait((_PROGRESS, fraction))

    def complete_config(self) -> None:
        """Mark one configuration as finished."""
        self._queue.put_nowait((_COMPLETED, None))

    def close(self, timeout: Optional[float] = None) -> None:
        """Drain pending messages, emit a final 100 and stop the thread."""
        if not self._thread.is_alive():
            return
        self._queue.put_nowait((_STOP, None))
        self._thread.join(timeout)

    def __enter__(self) -> "ProgressAggregator":
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _run(self) -> None:
        completed = 0
        while True:
            kind, value = self._queue.get()
            if kind == _STOP:
                break
            if kind == _COMPLETED:
                completed += 1
                fraction = 0.0
            else:
                fraction = value
            self._emit(overall_progress(fraction, completed, self.total))

        self._emit(100.0)

    def _emit(self, percent: float) -> None:
        try:
            self.sink(percent, self.sweep_id)
        except Exception:
            logger.exception("Progress sink failed")
