"""Technical indicator helpers used by the signal blocks.

Every function takes a numeric price sequence (list, ndarray or
``pd.Series``) and returns a positional ``pd.Series`` with the same length
as the input. Positions inside the warm-up window hold ``NaN`` ("not yet
available"), never zero.

Design goals:
  * Stateless pure functions (easy to unit test / reuse across runs)
  * Optional memoisation through an explicit, caller-owned
    ``IndicatorCache``; results are identical with or without it
  * Crossover detectors return +1 (bullish) / -1 (bearish) / 0

NOTE: Inputs are never mutated; cache hits hand back copies.
"""
from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Hashable, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

Number = float | int
PriceInput = Sequence[Number] | np.ndarray | pd.Series

RSI_LOSS_FLOOR = 0.00001


@dataclass(slots=True)
class MACDResult:
    macd: pd.Series
    signal: pd.Series
    histogram: pd.Series

    def copy(self) -> 'MACDResult':
        return MACDResult(self.macd.copy(), self.signal.copy(), self.histogram.copy())


class IndicatorCache:
    """Small LRU memo for indicator results.

    Keys are ``(indicator name, full input tuple, all periods)`` so two runs
    over different data can never collide. One instance per backtest run;
    nothing is shared at module level.
    """

    def __init__(self, max_entries: int = 256):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._store: 'OrderedDict[Hashable, Any]' = OrderedDict()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(name: str, values: np.ndarray, *periods: int) -> Tuple:
        return (name, tuple(values.tolist()), tuple(periods))

    def get(self, key: Hashable) -> Any:
        if key not in self._store:
            self.misses += 1
            return None
        self.hits += 1
        self._store.move_to_end(key)
        return _copy_result(self._store[key])

    def put(self, key: Hashable, value: Any) -> None:
        self._store[key] = _copy_result(value)
        self._store.move_to_end(key)
        while len(self._store) > self.max_entries:
            self._store.popitem(last=False)

    def clear(self) -> None:
        self._store.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._store)


def _copy_result(value: Any) -> Any:
    if isinstance(value, (pd.Series, MACDResult)):
        return value.copy()
    return value


def _as_array(prices: PriceInput) -> np.ndarray:
    if isinstance(prices, pd.Series):
        return prices.to_numpy(dtype=float)
    return np.asarray(prices, dtype=float)


def _check_period(period: int, label: str = "period") -> None:
    if int(period) <= 0:
        raise ValueError(f"{label} must be a positive integer, got {period}")


def _cached(cache: Optional[IndicatorCache], key: Tuple, compute):
    if cache is None:
        return compute()
    hit = cache.get(key)
    if hit is not None:
        return hit
    result = compute()
    cache.put(key, result)
    return result


# ---------- moving averages ----------

def sma(prices: PriceInput, period: int, cache: Optional[IndicatorCache] = None) -> pd.Series:
    """Simple moving average of the trailing ``period`` values."""
    _check_period(period)
    values = _as_array(prices)

    def compute() -> pd.Series:
        s = pd.Series(values, dtype=float)
        return s.rolling(window=period, min_periods=period).mean()

    return _cached(cache, IndicatorCache.make_key('SMA', values, period), compute)


def _ema_values(values: np.ndarray, period: int) -> np.ndarray:
    out = np.full(len(values), np.nan)
    if len(values) < period:
        return out
    multiplier = 2.0 / (period + 1)
    ema_val = values[:period].sum() / period
    out[period - 1] = ema_val
    for i in range(period, len(values)):
        ema_val = (values[i] - ema_val) * multiplier + ema_val
        out[i] = ema_val
    return out


def ema(prices: PriceInput, period: int, cache: Optional[IndicatorCache] = None) -> pd.Series:
    """Exponential moving average seeded with the SMA of the first ``period`` values.

    ``ema[i] = (price[i] - ema[i-1]) * 2/(period+1) + ema[i-1]``
    """
    _check_period(period)
    values = _as_array(prices)
    return _cached(
        cache,
        IndicatorCache.make_key('EMA', values, period),
        lambda: pd.Series(_ema_values(values, period), dtype=float),
    )


# ---------- oscillators ----------

def _rsi_values(values: np.ndarray, period: int) -> np.ndarray:
    out = np.full(len(values), np.nan)
    if len(values) < period + 1:
        return out

    changes = np.diff(values)
    gains = np.clip(changes, 0, None)
    losses = np.clip(-changes, 0, None)

    avg_gain = gains[:period].sum() / period
    avg_loss = losses[:period].sum() / period
    rs = avg_gain / (avg_loss or RSI_LOSS_FLOOR)
    out[period] = 100 - 100 / (1 + rs)

    for i in range(period, len(changes)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        rs = avg_gain / (avg_loss or RSI_LOSS_FLOOR)
        out[i + 1] = 100 - 100 / (1 + rs)
    return out


def rsi(prices: PriceInput, period: int = 14, cache: Optional[IndicatorCache] = None) -> pd.Series:
    """Relative Strength Index with Wilder smoothing.

    The first value is available at index ``period`` (it needs ``period``
    deltas). A zero average loss is floored to ``1e-5`` so a monotonic rise
    reads close to 100 rather than dividing by zero.
    """
    _check_period(period)
    values = _as_array(prices)
    return _cached(
        cache,
        IndicatorCache.make_key('RSI', values, period),
        lambda: pd.Series(_rsi_values(values, period), dtype=float),
    )


def macd(
    prices: PriceInput,
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
    cache: Optional[IndicatorCache] = None,
) -> MACDResult:
    """MACD line, signal line and histogram.

    The signal line is the EMA of the available MACD values, re-aligned onto
    the original positions.
    """
    _check_period(fast, "fast")
    _check_period(slow, "slow")
    _check_period(signal, "signal")
    values = _as_array(prices)

    def compute() -> MACDResult:
        line = _ema_values(values, fast) - _ema_values(values, slow)
        available = ~np.isnan(line)
        signal_line = np.full(len(values), np.nan)
        signal_line[available] = _ema_values(line[available], signal)
        return MACDResult(
            macd=pd.Series(line, dtype=float),
            signal=pd.Series(signal_line, dtype=float),
            histogram=pd.Series(line - signal_line, dtype=float),
        )

    return _cached(cache, IndicatorCache.make_key('MACD', values, fast, slow, signal), compute)


# ---------- crossovers ----------

def detect_crossover(fast: PriceInput, slow: PriceInput) -> pd.Series:
    """Per-position crossover signal of ``fast`` against ``slow``.

    +1 when fast was <= slow on the previous position and is now above,
    -1 for the inverse, 0 otherwise (including index 0 and any position
    where one of the four inputs is unavailable).
    """
    f = pd.Series(_as_array(fast), dtype=float)
    s = pd.Series(_as_array(slow), dtype=float)
    if len(f) != len(s):
        raise ValueError("fast and slow series must have the same length")

    prev_f, prev_s = f.shift(1), s.shift(1)
    complete = f.notna() & s.notna() & prev_f.notna() & prev_s.notna()
    bullish = complete & (prev_f <= prev_s) & (f > s)
    bearish = complete & (prev_f >= prev_s) & (f < s)
    return pd.Series(np.where(bullish, 1, np.where(bearish, -1, 0)), dtype=int)


def detect_macd_crossover(result: MACDResult) -> pd.Series:
    """MACD line crossing its signal line."""
    return detect_crossover(result.macd, result.signal)


def detect_ma_crossover(fast_ma: PriceInput, slow_ma: PriceInput) -> pd.Series:
    """Fast moving average crossing the slow one (golden / death cross)."""
    return detect_crossover(fast_ma, slow_ma)


def last_value(series: pd.Series) -> Optional[float]:
    """Last element of an indicator series, ``None`` when unavailable."""
    if series.empty:
        return None
    value = series.iloc[-1]
    if pd.isna(value):
        return None
    return float(value)


__all__ = [
    'MACDResult',
    'IndicatorCache',
    'sma',
    'ema',
    'rsi',
    'macd',
    'detect_crossover',
    'detect_macd_crossover',
    'detect_ma_crossover',
    'last_value',
]
