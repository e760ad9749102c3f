import unittest
import sys
import os

import numpy as np
import pandas as pd

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from util.indicators import (
    IndicatorCache, sma, ema, rsi, macd,
    detect_crossover, detect_macd_crossover, detect_ma_crossover, last_value,
)


class TestMovingAverages(unittest.TestCase):
    def test_sma_warmup_and_values(self):
        out = sma([1, 2, 3, 4, 5], 3)
        self.assertEqual(len(out), 5)
        self.assertTrue(np.isnan(out.iloc[0]))
        self.assertTrue(np.isnan(out.iloc[1]))
        self.assertAlmostEqual(out.iloc[2], 2.0)
        self.assertAlmostEqual(out.iloc[4], 4.0)

    def test_sma_short_input_all_nan(self):
        out = sma([1, 2], 5)
        self.assertEqual(len(out), 2)
        self.assertTrue(out.isna().all())

    def test_ema_seeded_with_sma(self):
        out = ema([2, 4, 6, 8], 3)
        self.assertTrue(out.iloc[:2].isna().all())
        self.assertAlmostEqual(out.iloc[2], 4.0)
        # (8 - 4) * 0.5 + 4
        self.assertAlmostEqual(out.iloc[3], 6.0)

    def test_series_input_not_mutated(self):
        prices = pd.Series([10.0, 11.0, 12.0, 13.0], index=[5, 6, 7, 8])
        before = prices.copy()
        out = ema(prices, 2)
        pd.testing.assert_series_equal(prices, before)
        self.assertEqual(list(out.index), [0, 1, 2, 3])

    def test_non_positive_period_raises(self):
        with self.assertRaises(ValueError):
            sma([1, 2, 3], 0)
        with self.assertRaises(ValueError):
            ema([1, 2, 3], -1)
        with self.assertRaises(ValueError):
            macd([1, 2, 3], fast=0)


class TestRSI(unittest.TestCase):
    def test_first_value_at_period(self):
        prices = list(range(1, 21))
        out = rsi(prices, 14)
        self.assertEqual(len(out), 20)
        self.assertTrue(out.iloc[:14].isna().all())
        self.assertFalse(np.isnan(out.iloc[14]))

    def test_equal_gain_and_loss_is_fifty(self):
        out = rsi([10, 11, 10, 11, 10], 4)
        self.assertAlmostEqual(out.iloc[4], 50.0)

    def test_monotonic_rise_near_hundred(self):
        out = rsi(list(range(100, 130)), 14)
        self.assertGreater(out.iloc[-1], 99.0)
        self.assertLessEqual(out.iloc[-1], 100.0)

    def test_bounds(self):
        rng = np.random.default_rng(7)
        prices = 100 + np.cumsum(rng.normal(0, 1, 200))
        out = rsi(prices, 14).dropna()
        self.assertTrue(((out >= 0) & (out <= 100)).all())


class TestMACD(unittest.TestCase):
    def setUp(self):
        rng = np.random.default_rng(3)
        self.prices = 50 + np.cumsum(rng.normal(0, 0.5, 80))

    def test_warmup_lengths(self):
        res = macd(self.prices)
        self.assertEqual(len(res.macd), 80)
        # MACD line available from slow-1, signal from slow-1 + signal-1
        self.assertTrue(res.macd.iloc[:25].isna().all())
        self.assertFalse(np.isnan(res.macd.iloc[25]))
        self.assertTrue(res.signal.iloc[:33].isna().all())
        self.assertFalse(np.isnan(res.signal.iloc[33]))

    def test_histogram_identity(self):
        res = macd(self.prices)
        diff = (res.macd - res.signal - res.histogram).dropna()
        self.assertTrue((diff.abs() < 1e-12).all())


class TestCrossover(unittest.TestCase):
    def test_bullish_and_bearish(self):
        fast = [1, 1, 3, 3, 1]
        slow = [2, 2, 2, 2, 2]
        out = detect_crossover(fast, slow)
        self.assertEqual(out.tolist(), [0, 0, 1, 0, -1])

    def test_index_zero_and_nan_are_zero(self):
        out = detect_crossover([np.nan, 1, 3], [2, 2, 2])
        self.assertEqual(out.tolist(), [0, 0, 1])

    def test_length_mismatch(self):
        with self.assertRaises(ValueError):
            detect_crossover([1, 2], [1, 2, 3])

    def test_ma_and_macd_wrappers(self):
        prices = [10] * 10 + [20] * 10
        fast, slow = sma(prices, 2), sma(prices, 4)
        self.assertEqual(int(detect_ma_crossover(fast, slow).max()), 1)
        res = macd(np.linspace(10, 20, 60))
        self.assertEqual(len(detect_macd_crossover(res)), 60)

    def test_last_value(self):
        self.assertIsNone(last_value(pd.Series([], dtype=float)))
        self.assertIsNone(last_value(pd.Series([1.0, np.nan])))
        self.assertEqual(last_value(pd.Series([1.0, 2.0])), 2.0)


class TestIndicatorCache(unittest.TestCase):
    def test_cached_results_identical(self):
        prices = list(np.linspace(1, 30, 40))
        cache = IndicatorCache()
        first = rsi(prices, 14, cache=cache)
        second = rsi(prices, 14, cache=cache)
        plain = rsi(prices, 14)
        pd.testing.assert_series_equal(first, plain)
        pd.testing.assert_series_equal(second, plain)
        self.assertEqual(cache.hits, 1)
        self.assertEqual(cache.misses, 1)

    def test_hits_are_copies(self):
        cache = IndicatorCache()
        out = sma([1, 2, 3], 2, cache=cache)
        out.iloc[2] = 999.0
        again = sma([1, 2, 3], 2, cache=cache)
        self.assertAlmostEqual(again.iloc[2], 2.5)

    def test_key_includes_data_and_periods(self):
        cache = IndicatorCache()
        a = sma([1, 2, 3], 2, cache=cache)
        b = sma([1, 2, 4], 2, cache=cache)
        c = sma([1, 2, 3], 3, cache=cache)
        self.assertNotAlmostEqual(a.iloc[2], b.iloc[2])
        self.assertAlmostEqual(c.iloc[2], 2.0)
        self.assertEqual(len(cache), 3)

    def test_lru_eviction(self):
        cache = IndicatorCache(max_entries=2)
        sma([1, 2, 3], 1, cache=cache)
        sma([1, 2, 3], 2, cache=cache)
        sma([1, 2, 3], 3, cache=cache)
        self.assertEqual(len(cache), 2)
        cache.clear()
        self.assertEqual(len(cache), 0)
        self.assertEqual(cache.hits, 0)


if __name__ == '__main__':  # pragma: no cover
    unittest.main()
