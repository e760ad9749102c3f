from __future__ import annotations

"""Live-mode strategy evaluation.

The same block engine as the backtest, but actions are handed to an external
portfolio holder (``PortfolioSink``) instead of the orchestrator's ledger.
``backtest.portfolio.Portfolio`` satisfies the protocol, which is what the
paper-trading path and the tests use.
"""

from typing import Any, List, Optional, Protocol, Sequence

import pandas as pd

from blocks.base import Action, ActionType, ExecutionContext, ExecutionMode, PortfolioSnapshot
from blocks.executor import execute_strategy
from blocks.models import Block
from util.indicators import IndicatorCache
from util.logger import get_logger
from .models import Bar

logger = get_logger(__name__)


class PortfolioSink(Protocol):  # structural typing
    def mark_to_market(self, price: float) -> None:
        ...  # pragma: no cover

    def snapshot(self, total_equity: Optional[float] = None) -> PortfolioSnapshot:
        ...  # pragma: no cover

    def apply(self, action: Action, bar: Bar) -> Any:
        """Apply a BUY / SELL / PLACE_ORDER action; return value is sink specific.

        A sink without an order book (``Portfolio``) drops PLACE_ORDER with a
        warning.
        """
        ...  # pragma: no cover


class LiveStrategyRunner:
    """Feeds bars one at a time and forwards actionable results to a sink.

    ``max_history`` bounds the close history kept for indicators (None keeps
    everything, which matches backtest results exactly).
    """

    def __init__(self, blocks: Sequence[Block], sink: PortfolioSink,
                 use_indicator_cache: bool = True, max_history: Optional[int] = None):
        if max_history is not None and max_history <= 0:
            raise ValueError("max_history must be positive")
        self.blocks = list(blocks)
        self.sink = sink
        self.max_history = max_history
        self.cache = IndicatorCache() if use_indicator_cache else None
        self.price_history: List[float] = []
        self.previous_bar: Optional[Bar] = None
        self.peak_equity = 0.0

    def on_bar(self, bar: Bar) -> List[Action]:
        if self.previous_bar is not None and bar.date <= self.previous_bar.date:
            raise ValueError(f"Bar {bar.date} is not after previous bar {self.previous_bar.date}")

        self.price_history.append(bar.close)
        if self.max_history is not None and len(self.price_history) > self.max_history:
            del self.price_history[:-self.max_history]

        self.sink.mark_to_market(bar.close)
        snapshot = self.sink.snapshot()
        self.peak_equity = max(self.peak_equity, snapshot.total_equity)

        context = ExecutionContext(
            current_bar=bar,
            previous_bar=self.previous_bar,
            portfolio=snapshot,
            indicators={'prices': pd.Series(self.price_history, dtype=float)},
            mode=ExecutionMode.LIVE,
            peak_equity=self.peak_equity,
            cache=self.cache,
        )
        actions = execute_strategy(self.blocks, context)
        for action in actions:
            if action.type is ActionType.SKIP:
                continue
            logger.info("Live %s %s x%s @ %s (%s)", action.type.value, action.symbol,
                        action.quantity, action.price, action.reason)
            self.sink.apply(action, bar)

        self.previous_bar = bar
        return actions


__all__ = ['PortfolioSink', 'LiveStrategyRunner']
