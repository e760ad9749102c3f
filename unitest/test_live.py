import unittest
from unittest.mock import MagicMock, patch
import sys
import os

import pandas as pd

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from backtest.live import LiveStrategyRunner
from backtest.models import Bar, OrderSide
from backtest.portfolio import Portfolio
from blocks.base import ActionType, ExecutionMode, PortfolioSnapshot
from blocks.executor import execute_strategy
from blocks.models import Block


def bar(day, close, low=None):
    return Bar(date=pd.Timestamp(day), open=close, high=close, low=low if low is not None else close, close=close)


def make_blocks(*specs):
    return [Block.from_dict(spec, index=i) for i, spec in enumerate(specs)]


class TestLiveStrategyRunner(unittest.TestCase):
    def test_paper_trading_with_portfolio(self):
        portfolio = Portfolio(1_000)
        runner = LiveStrategyRunner(make_blocks(
            {'type': 'BUY_ON_DIP', 'ticker': 'AAPL', 'quantity': 5, 'threshold': 5},
            {'type': 'TAKE_PROFIT', 'percentage': 10},
        ), portfolio)

        runner.on_bar(bar('2024-01-02', 100))
        actions = runner.on_bar(bar('2024-01-03', 90))
        self.assertEqual(actions[0].type, ActionType.BUY)
        self.assertIn('AAPL', portfolio.positions)
        self.assertAlmostEqual(portfolio.cash, 1_000 - 5 * 90)

        actions = runner.on_bar(bar('2024-01-04', 100))
        self.assertEqual(actions[1].type, ActionType.SELL)
        self.assertEqual(portfolio.positions, {})
        self.assertEqual([t.side for t in portfolio.trades], [OrderSide.BUY, OrderSide.SELL])
        self.assertEqual(runner.peak_equity, 1_050)

    def test_contexts_are_live_mode_and_skips_not_forwarded(self):
        sink = MagicMock()
        sink.snapshot.return_value = PortfolioSnapshot(cash=10_000, total_equity=10_000)
        runner = LiveStrategyRunner(make_blocks(
            {'id': 'lim', 'type': 'LIMIT_BUY', 'ticker': 'AAPL', 'quantity': 1, 'price': 90},
            {'id': 'sl', 'type': 'STOP_LOSS', 'percentage': 5},
        ), sink)

        with patch('backtest.live.execute_strategy', wraps=execute_strategy) as spy:
            actions = runner.on_bar(bar('2024-01-02', 100, low=95))
        context = spy.call_args[0][1]
        self.assertIs(context.mode, ExecutionMode.LIVE)
        self.assertEqual(actions[0].type, ActionType.PLACE_ORDER)
        self.assertEqual(actions[1].type, ActionType.SKIP)
        sink.mark_to_market.assert_called_once_with(100)
        sink.apply.assert_called_once()
        self.assertIs(sink.apply.call_args[0][0], actions[0])

    def test_portfolio_sink_warns_on_place_order(self):
        portfolio = Portfolio(1_000)
        runner = LiveStrategyRunner(make_blocks(
            {'id': 'lim', 'type': 'LIMIT_BUY', 'ticker': 'AAPL', 'quantity': 1, 'price': 90},
        ), portfolio)

        with self.assertLogs('backtest.portfolio', level='WARNING') as logs:
            actions = runner.on_bar(bar('2024-01-02', 100))
        self.assertEqual(actions[0].type, ActionType.PLACE_ORDER)
        self.assertIn('cannot queue orders', logs.output[0])
        self.assertEqual(portfolio.trades, [])
        self.assertEqual(portfolio.cash, 1_000)

    def test_history_bounded(self):
        runner = LiveStrategyRunner([], Portfolio(100), max_history=3)
        for i in range(5):
            runner.on_bar(bar(f'2024-01-0{i + 1}', 10 + i))
        self.assertEqual(runner.price_history, [12, 13, 14])

    def test_out_of_order_bar_rejected(self):
        runner = LiveStrategyRunner([], Portfolio(100))
        runner.on_bar(bar('2024-01-03', 10))
        with self.assertRaises(ValueError):
            runner.on_bar(bar('2024-01-02', 10))

    def test_invalid_max_history(self):
        with self.assertRaises(ValueError):
            LiveStrategyRunner([], Portfolio(100), max_history=0)


if __name__ == '__main__':  # pragma: no cover
    unittest.main()
