import unittest
import threading
import sys
import os

import pandas as pd

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from backtest.engine import BacktestEngine
from backtest.errors import BacktestCancelled
from backtest.models import BacktestConfig, Bar
from backtest.runner import BacktestTask, run_in_background
from blocks.models import Block


def make_bars(n):
    dates = pd.date_range('2024-01-02', periods=n, freq='B')
    return [Bar(date=d, open=100, high=101, low=99, close=100) for d in dates]


class BlockingEngine(BacktestEngine):
    """Pauses on the second bar until the test releases it."""

    def __init__(self):
        super().__init__(data_handler=object(), validate=False)
        self.reached = threading.Event()
        self.release = threading.Event()

    def run(self, config, cancel_event=None, progress_callback=None, bars=None):
        def progress(done, total):
            progress_callback(done, total)
            if done == 2:
                self.reached.set()
                self.release.wait(5)

        return super().run(config, cancel_event=cancel_event, progress_callback=progress, bars=bars)


class TestBacktestTask(unittest.TestCase):
    def setUp(self):
        self.config = BacktestConfig('AAPL', '2024-01-01', '2024-12-31', 10_000,
                                     [Block.from_dict({'type': 'MARKET_BUY', 'ticker': 'AAPL', 'quantity': 1})])

    def test_runs_to_completion(self):
        task = run_in_background(BacktestEngine(data_handler=object(), validate=False), self.config,
                                 bars=make_bars(5))
        result = task.result(timeout=5)
        self.assertTrue(task.done())
        self.assertEqual(len(result.equity_curve), 5)
        self.assertEqual(task.progress, (5, 5))

    def test_cancel_mid_run(self):
        engine = BlockingEngine()
        task = BacktestTask(engine, self.config, bars=make_bars(10)).start()
        self.assertTrue(engine.reached.wait(5))
        task.cancel()
        engine.release.set()
        with self.assertRaises(BacktestCancelled) as cm:
            task.result(timeout=5)
        self.assertEqual(cm.exception.bars_processed, 2)
        self.assertTrue(task.cancel_requested)
        self.assertEqual(task.progress, (2, 10))

    def test_result_before_start(self):
        task = BacktestTask(BacktestEngine(data_handler=object()), self.config)
        with self.assertRaises(RuntimeError):
            task.result()
        self.assertFalse(task.done())

    def test_start_twice(self):
        task = run_in_background(BacktestEngine(data_handler=object(), validate=False), self.config,
                                 bars=make_bars(2))
        with self.assertRaises(RuntimeError):
            task.start()
        task.result(timeout=5)


if __name__ == '__main__':  # pragma: no cover
    unittest.main()
