import unittest
import sys
import os

import pandas as pd

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from backtest.errors import OrderStateError
from backtest.models import Bar, Order, OrderSide, OrderStatus, OrderType
from backtest.orders import (
    MAX_SLIPPAGE, check_gap_fill, estimate_slippage, get_gap_fill_price,
    resolve_order_fill, simulate_order_fill,
)


def make_bar(o, h, l, c, day='2024-01-02', volume=1_000_000):
    return Bar(date=pd.Timestamp(day), open=o, high=h, low=l, close=c, volume=volume)


def make_order(order_type, side, price=None, quantity=5):
    return Order(id='O1', symbol='AAPL', type=order_type, side=side, quantity=quantity, price=price)


class TestSimulateOrderFill(unittest.TestCase):
    def test_market_fills_at_close(self):
        res = simulate_order_fill(make_order(OrderType.MARKET, OrderSide.BUY), make_bar(100, 105, 95, 102))
        self.assertTrue(res.filled)
        self.assertEqual(res.fill_price, 102)

    def test_limit_buy_touch(self):
        order = make_order(OrderType.LIMIT, OrderSide.BUY, price=140)
        miss = simulate_order_fill(order, make_bar(145, 150, 141, 148))
        self.assertFalse(miss.filled)
        hit = simulate_order_fill(order, make_bar(145, 150, 139, 148))
        self.assertTrue(hit.filled)
        self.assertEqual(hit.fill_price, 140)

    def test_limit_sell_touch(self):
        order = make_order(OrderType.LIMIT, OrderSide.SELL, price=110)
        self.assertFalse(simulate_order_fill(order, make_bar(100, 109, 98, 105)).filled)
        res = simulate_order_fill(order, make_bar(100, 112, 98, 105))
        self.assertTrue(res.filled)
        self.assertEqual(res.fill_price, 110)

    def test_stop_sell_slippage(self):
        order = make_order(OrderType.STOP, OrderSide.SELL, price=100)
        res = simulate_order_fill(order, make_bar(101, 102, 95, 96))
        self.assertTrue(res.filled)
        self.assertAlmostEqual(res.fill_price, 99.9)

    def test_stop_sell_clamped_to_low(self):
        order = make_order(OrderType.STOP, OrderSide.SELL, price=100)
        res = simulate_order_fill(order, make_bar(101, 102, 99.95, 100.5))
        self.assertTrue(res.filled)
        self.assertAlmostEqual(res.fill_price, 99.95)

    def test_stop_buy_clamped_to_high(self):
        order = make_order(OrderType.STOP, OrderSide.BUY, price=100)
        res = simulate_order_fill(order, make_bar(99, 100.05, 98, 99.5))
        self.assertTrue(res.filled)
        self.assertAlmostEqual(res.fill_price, 100.05)

    def test_stop_not_triggered(self):
        order = make_order(OrderType.STOP, OrderSide.SELL, price=90)
        self.assertFalse(simulate_order_fill(order, make_bar(100, 102, 95, 96)).filled)

    def test_stop_limit_exact_price(self):
        order = make_order(OrderType.STOP_LIMIT, OrderSide.SELL, price=100)
        res = simulate_order_fill(order, make_bar(101, 102, 95, 96))
        self.assertTrue(res.filled)
        self.assertEqual(res.fill_price, 100)

    def test_missing_price(self):
        for kind in (OrderType.LIMIT, OrderType.STOP, OrderType.STOP_LIMIT):
            res = simulate_order_fill(make_order(kind, OrderSide.BUY, price=None), make_bar(100, 105, 95, 102))
            self.assertFalse(res.filled)
            self.assertIn('missing price', res.reason)

    def test_terminal_orders_not_reevaluated(self):
        order = make_order(OrderType.MARKET, OrderSide.BUY)
        order.fill(100)
        res = simulate_order_fill(order, make_bar(100, 105, 95, 102))
        self.assertFalse(res.filled)
        self.assertEqual(res.reason, 'Order already filled')

        cancelled = make_order(OrderType.LIMIT, OrderSide.BUY, price=1)
        cancelled.cancel(reason='test')
        self.assertFalse(simulate_order_fill(cancelled, make_bar(1, 1, 1, 1)).filled)


class TestOrderTransitions(unittest.TestCase):
    def test_terminal_state_is_final(self):
        order = make_order(OrderType.LIMIT, OrderSide.BUY, price=10)
        order.fill(10, pd.Timestamp('2024-01-02'), 'filled')
        self.assertEqual(order.status, OrderStatus.FILLED)
        self.assertEqual(order.fill_price, 10)
        with self.assertRaises(OrderStateError):
            order.cancel()
        with self.assertRaises(OrderStateError):
            order.fill(11)


class TestGapFills(unittest.TestCase):
    def setUp(self):
        self.prev = make_bar(100, 101, 99, 100, day='2024-01-02')

    def test_limit_buy_gap_down(self):
        order = make_order(OrderType.LIMIT, OrderSide.BUY, price=95)
        bar = make_bar(90, 92, 89, 91, day='2024-01-03')
        self.assertTrue(check_gap_fill(order, bar, self.prev))
        self.assertEqual(get_gap_fill_price(order, bar), 90)

    def test_stop_sell_gap_down(self):
        order = make_order(OrderType.STOP, OrderSide.SELL, price=95)
        bar = make_bar(90, 92, 89, 91, day='2024-01-03')
        self.assertTrue(check_gap_fill(order, bar, self.prev))
        self.assertAlmostEqual(get_gap_fill_price(order, bar), 90 * 0.999)

    def test_no_gap(self):
        order = make_order(OrderType.LIMIT, OrderSide.BUY, price=95)
        bar = make_bar(100, 101, 94, 96, day='2024-01-03')
        self.assertFalse(check_gap_fill(order, bar, self.prev))

    def test_resolve_uses_gap_only_when_enabled(self):
        order = make_order(OrderType.LIMIT, OrderSide.BUY, price=95)
        bar = make_bar(90, 92, 89, 91, day='2024-01-03')
        plain = resolve_order_fill(order, bar, self.prev, allow_gap_fills=False)
        self.assertEqual(plain.fill_price, 95)
        gapped = resolve_order_fill(order, bar, self.prev, allow_gap_fills=True)
        self.assertEqual(gapped.fill_price, 90)
        self.assertIn('Gap fill', gapped.reason)
        # no previous bar -> intrabar rules
        self.assertEqual(resolve_order_fill(order, bar, None, allow_gap_fills=True).fill_price, 95)


class TestEstimateSlippage(unittest.TestCase):
    def test_base_slippage(self):
        bar = make_bar(100, 100.5, 99.5, 100)
        self.assertAlmostEqual(estimate_slippage(bar, 100, 1_000_000), 0.0005)

    def test_capped(self):
        bar = make_bar(100, 120, 80, 100)
        self.assertEqual(estimate_slippage(bar, 500_000, 1_000_000), MAX_SLIPPAGE)

    def test_zero_volume(self):
        self.assertEqual(estimate_slippage(make_bar(1, 1, 1, 1), 10, 0), MAX_SLIPPAGE)


if __name__ == '__main__':  # pragma: no cover
    unittest.main()
