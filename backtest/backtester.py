from __future__ import annotations

import threading
from typing import Callable, Dict, List, Optional, Sequence

import pandas as pd

from blocks.base import Action, ActionType, ExecutionContext, ExecutionMode
from blocks.executor import execute_strategy
from blocks.models import Block
from util.indicators import IndicatorCache
from util.logger import get_logger
from .errors import BacktestCancelled, InvalidConfigError, NoHistoricalDataError
from .models import (
    BacktestResult,
    Bar,
    EquityPoint,
    Order,
    OrderSide,
)
from .orders import resolve_order_fill
from .performance import compute_performance_metrics
from .portfolio import Portfolio

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int], None]


class Backtester:
    """Bar-by-bar replay of one block strategy over one symbol.

    Per bar: record the close, mark positions, update the peak equity,
    resolve pending orders, evaluate the strategy once, apply its actions,
    record the equity point. Every ``run`` starts from a clean state, so the
    same inputs always give the same result.
    """

    def __init__(self,
                 blocks: Sequence[Block],
                 initial_capital: float,
                 symbol: str = "",
                 allow_gap_fills: bool = False,
                 use_indicator_cache: bool = True,
                 one_pending_per_block: bool = False):
        if initial_capital is None or initial_capital <= 0:
            raise InvalidConfigError(f"initial_capital must be positive, got {initial_capital}")
        self.blocks = list(blocks)
        self.initial_capital = float(initial_capital)
        self.symbol = symbol
        self.allow_gap_fills = allow_gap_fills
        self.use_indicator_cache = use_indicator_cache
        self.one_pending_per_block = one_pending_per_block
        self._reset()

    def _reset(self) -> None:
        self.portfolio = Portfolio(self.initial_capital)
        self.pending: List[Order] = []
        self.orders: List[Order] = []
        self.equity_curve: List[EquityPoint] = []
        self.daily_returns: List[float] = []
        self.peak_equity = self.initial_capital
        self.price_history: List[float] = []
        self.cache = IndicatorCache() if self.use_indicator_cache else None

    # --- pending orders ---
    def _process_pending_orders(self, bar: Bar, previous_bar: Optional[Bar]) -> None:
        still_pending: List[Order] = []
        for order in self.pending:
            result = resolve_order_fill(order, bar, previous_bar, self.allow_gap_fills)
            if not result.filled:
                still_pending.append(order)
                continue

            fill = self.portfolio.buy if order.side is OrderSide.BUY else self.portfolio.sell
            trade = fill(order.symbol, order.quantity, result.fill_price, bar.date,
                         block_type=order.source_block_type or order.type.value,
                         order_type=order.type, reason=result.reason)
            if trade is not None:
                order.fill(result.fill_price, bar.date, result.reason)
                logger.debug("Order %s filled at %.4f (%s)", order.id, result.fill_price, result.reason)
            else:
                why = ("insufficient cash" if order.side is OrderSide.BUY
                       else "no position to cover the sell")
                order.cancel(bar.date, f"Cancelled on fill: {why}")
                logger.warning("Order %s cancelled on %s: %s", order.id, bar.date, why)
        self.pending = still_pending

    def _place_order(self, action: Action, bar: Bar) -> None:
        if not action.symbol or not action.quantity or action.order_type is None:
            logger.warning("Ignoring malformed PLACE_ORDER from %s: %s", action.block_id, action.reason)
            return
        if self.one_pending_per_block and any(o.source_block_id == action.block_id for o in self.pending):
            logger.debug("Block %s already has a pending order, ignoring", action.block_id)
            return

        order = Order(
            id=f"O{len(self.orders) + 1}",
            symbol=action.symbol,
            type=action.order_type,
            side=action.side or OrderSide.BUY,
            quantity=action.quantity,
            price=action.price,
            created_at=bar.date,
            source_block_id=action.block_id,
            source_block_type=action.block_type,
        )
        self.orders.append(order)
        self.pending.append(order)
        logger.debug("Order %s placed: %s %s x%s @ %s", order.id, order.side.value,
                     order.type.value, order.quantity, order.price)

    # --- main loop ---
    def _context(self, bar: Bar, previous_bar: Optional[Bar], total_equity: float) -> ExecutionContext:
        return ExecutionContext(
            current_bar=bar,
            previous_bar=previous_bar,
            portfolio=self.portfolio.snapshot(total_equity),
            indicators={'prices': pd.Series(self.price_history, dtype=float)},
            mode=ExecutionMode.BACKTEST,
            peak_equity=self.peak_equity,
            cache=self.cache,
        )

    def _step(self, bar: Bar, previous_bar: Optional[Bar]) -> None:
        self.price_history.append(bar.close)
        self.portfolio.mark_to_market(bar.close)

        total_equity = self.portfolio.total_equity()
        self.peak_equity = max(self.peak_equity, total_equity)

        self._process_pending_orders(bar, previous_bar)

        # context reflects the ledger after fills, equity as marked before them
        context = self._context(bar, previous_bar, total_equity)
        for action in execute_strategy(self.blocks, context):
            if action.type is ActionType.PLACE_ORDER:
                self._place_order(action, bar)
            elif action.is_trade:
                self.portfolio.apply(action, bar)

        equity = self.portfolio.total_equity()
        if self.equity_curve:
            prev = self.equity_curve[-1].equity
            self.daily_returns.append((equity - prev) / prev * 100 if prev else 0.0)
        self.equity_curve.append(EquityPoint(bar.date, equity, self.portfolio.cash,
                                             len(self.portfolio.positions)))

    def run(self,
            bars: Sequence[Bar],
            cancel_event: Optional[threading.Event] = None,
            progress_callback: Optional[ProgressCallback] = None) -> BacktestResult:
        if not bars:
            raise NoHistoricalDataError(self.symbol or "<unknown>")
        self._reset()
        total = len(bars)
        logger.info("Backtest %s: %d bars, %d blocks, capital %.2f",
                    self.symbol or "-", total, len(self.blocks), self.initial_capital)

        previous_bar: Optional[Bar] = None
        for i, bar in enumerate(bars):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Backtest cancelled after %d/%d bars", i, total)
                raise BacktestCancelled(i)
            self._step(bar, previous_bar)
            previous_bar = bar
            if progress_callback is not None:
                progress_callback(i + 1, total)

        metrics = compute_performance_metrics(self.portfolio.trades, self.equity_curve,
                                              self.daily_returns, self.initial_capital)
        logger.info("Backtest %s done: final equity %.2f (%+.2f%%), %d trades",
                    self.symbol or "-", metrics.final_equity, metrics.total_return_percent,
                    metrics.total_trades)
        return BacktestResult(
            trades=list(self.portfolio.trades),
            metrics=metrics,
            equity_curve=list(self.equity_curve),
            daily_returns=list(self.daily_returns),
            orders=list(self.orders),
        )


def order_status_counts(orders: Sequence[Order]) -> Dict[str, int]:
    """Count orders per status, e.g. ``{'FILLED': 3, 'PENDING': 1}``."""
    summary: Dict[str, int] = {}
    for order in orders:
        summary[order.status.value] = summary.get(order.status.value, 0) + 1
    return summary


__all__ = ['Backtester', 'ProgressCallback', 'order_status_counts']
