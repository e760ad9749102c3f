"""Indicator-signal blocks (RSI, MACD cross, moving-average cross)."""
