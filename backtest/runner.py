from __future__ import annotations

"""Cancellable background execution of a backtest.

The run happens on a ``ThreadPoolExecutor`` worker. ``cancel()`` sets a
``threading.Event`` that the orchestrator checks between bars: the bar in
flight finishes, then ``BacktestCancelled`` is raised from ``result()``.
No partial result is ever returned.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional, Sequence, Tuple

from util.logger import get_logger
from .engine import BacktestEngine
from .errors import BacktestCancelled
from .models import BacktestConfig, BacktestResult, Bar

logger = get_logger(__name__)


class BacktestTask:
    def __init__(self, engine: BacktestEngine, config: BacktestConfig,
                 bars: Optional[Sequence[Bar]] = None,
                 executor: Optional[ThreadPoolExecutor] = None):
        self.engine = engine
        self.config = config
        self.bars = bars
        self._cancel_event = threading.Event()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix='backtest')
        self._future: Optional[Future] = None
        self._lock = threading.Lock()
        self._progress: Tuple[int, int] = (0, 0)

    def _on_progress(self, done: int, total: int) -> None:
        with self._lock:
            self._progress = (done, total)

    def _run(self) -> BacktestResult:
        return self.engine.run(self.config, cancel_event=self._cancel_event,
                               progress_callback=self._on_progress, bars=self.bars)

    def start(self) -> 'BacktestTask':
        if self._future is not None:
            raise RuntimeError("BacktestTask already started")
        logger.info("Starting background backtest for %s", self.config.symbol)
        self._future = self._executor.submit(self._run)
        if self._owns_executor:
            self._future.add_done_callback(lambda _f: self._executor.shutdown(wait=False))
        return self

    def cancel(self) -> None:
        """Request cooperative cancellation; takes effect before the next bar."""
        self._cancel_event.set()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def progress(self) -> Tuple[int, int]:
        """(bars processed, total bars); total is 0 until the first bar completes."""
        with self._lock:
            return self._progress

    def done(self) -> bool:
        return self._future is not None and self._future.done()

    def result(self, timeout: Optional[float] = None) -> BacktestResult:
        """Block for the result; re-raises ``BacktestCancelled`` or the run's error."""
        if self._future is None:
            raise RuntimeError("BacktestTask not started")
        return self._future.result(timeout=timeout)


def run_in_background(engine: BacktestEngine, config: BacktestConfig,
                      bars: Optional[Sequence[Bar]] = None) -> BacktestTask:
    return BacktestTask(engine, config, bars=bars).start()


__all__ = ['BacktestTask', 'BacktestCancelled', 'run_in_background']
