from __future__ import annotations

"""Exception hierarchy for environment failures and misuse.

Expected domain conditions (insufficient cash, unmet signals, missing block
params) never raise; they surface as SKIP actions or cancelled orders.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from blocks.validator import ValidationResult


class BacktestError(Exception):
    """Base class for backtest failures."""


class InvalidConfigError(BacktestError, ValueError):
    """Backtest configuration is unusable (non-positive capital, bad dates...)."""


class NoHistoricalDataError(BacktestError):
    def __init__(self, symbol: str, start: str | None = None, end: str | None = None):
        self.symbol = symbol
        self.start = start
        self.end = end
        span = f" between {start} and {end}" if start or end else ""
        super().__init__(f"No historical data for {symbol}{span}")


class DataSourceError(BacktestError):
    """The historical data source failed (network, vendor error, bad file)."""


class StrategyValidationError(BacktestError):
    def __init__(self, result: 'ValidationResult'):
        self.result = result
        messages = "; ".join(issue.message for issue in result.errors)
        super().__init__(f"Strategy is invalid: {messages}")


class BacktestCancelled(BacktestError):
    """Raised after a cooperative cancellation; no partial result is returned."""

    def __init__(self, bars_processed: int = 0):
        self.bars_processed = bars_processed
        super().__init__(f"Backtest cancelled after {bars_processed} bars")


class OrderStateError(BacktestError):
    """An order was asked to leave a terminal state."""


__all__ = [
    'BacktestError',
    'InvalidConfigError',
    'NoHistoricalDataError',
    'DataSourceError',
    'StrategyValidationError',
    'BacktestCancelled',
    'OrderStateError',
]
