from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Optional

import pandas as pd

from blocks.base import Action, ActionType, PortfolioSnapshot
from util.logger import get_logger
from .models import Bar, OrderSide, OrderType, Position, Trade

logger = get_logger(__name__)


class Portfolio:
    """Cash + positions ledger mutated by the orchestrator (or a live runner).

    Positions keep insertion order so "the first open position" is stable.
    A position reaching zero quantity is removed. ``buy`` / ``sell`` return
    ``None`` and leave state untouched when the fill cannot be honoured.
    """

    def __init__(self, capital: float):
        self.cash = float(capital)
        self.positions: Dict[str, Position] = {}
        self.trades: List[Trade] = []
        self._trade_seq = 0

    # --- valuation ---
    def mark_to_market(self, price: float) -> None:
        for pos in self.positions.values():
            pos.mark(price)

    def total_equity(self) -> float:
        return self.cash + sum(pos.current_price * pos.quantity for pos in self.positions.values())

    def snapshot(self, total_equity: Optional[float] = None) -> PortfolioSnapshot:
        equity = self.total_equity() if total_equity is None else total_equity
        return PortfolioSnapshot(
            cash=self.cash,
            positions=tuple(replace(p) for p in self.positions.values()),
            total_equity=equity,
        )

    # --- fills ---
    def _next_trade_id(self) -> str:
        self._trade_seq += 1
        return f"T{self._trade_seq}"

    def buy(self, symbol: str, quantity: float, price: float, date: pd.Timestamp,
            block_type: str = "", order_type: OrderType = OrderType.MARKET, reason: str = "") -> Optional[Trade]:
        cost = quantity * price
        if quantity <= 0 or cost > self.cash:
            return None
        self.cash -= cost

        pos = self.positions.get(symbol)
        if pos is None:
            self.positions[symbol] = Position(symbol, quantity, price, current_price=price)
        else:
            total_qty = pos.quantity + quantity
            pos.avg_price = (pos.avg_price * pos.quantity + cost) / total_qty
            pos.quantity = total_qty
            pos.mark(pos.current_price)

        trade = Trade(self._next_trade_id(), symbol, OrderSide.BUY, quantity, price, date,
                      block_type=block_type, order_type=order_type, reason=reason)
        self.trades.append(trade)
        return trade

    def sell(self, symbol: str, quantity: float, price: float, date: pd.Timestamp,
             block_type: str = "", order_type: OrderType = OrderType.MARKET, reason: str = "") -> Optional[Trade]:
        pos = self.positions.get(symbol)
        if pos is None or quantity <= 0 or pos.quantity < quantity:
            return None
        self.cash += quantity * price
        pnl = (price - pos.avg_price) * quantity

        pos.quantity -= quantity
        if pos.quantity <= 0:
            del self.positions[symbol]
        else:
            pos.mark(pos.current_price)

        trade = Trade(self._next_trade_id(), symbol, OrderSide.SELL, quantity, price, date,
                      block_type=block_type, order_type=order_type, pnl=pnl, reason=reason)
        self.trades.append(trade)
        return trade

    # --- PortfolioSink ---
    def apply(self, action: Action, bar: Bar) -> Optional[Trade]:
        """Apply a BUY / SELL action at its own price.

        The ledger keeps no order book: PLACE_ORDER is dropped with a warning
        and SKIP is ignored.
        """
        if action.type is ActionType.PLACE_ORDER:
            logger.warning("Portfolio cannot queue orders, dropping %s %s order from %s",
                           action.order_type.value if action.order_type else "?", action.symbol, action.block_id)
            return None
        if action.type not in (ActionType.BUY, ActionType.SELL):
            return None
        if not action.symbol or not action.quantity or not action.price:
            logger.warning("Ignoring malformed %s action from %s: %s",
                           action.type.value, action.block_id, action.reason)
            return None

        fill = self.buy if action.type is ActionType.BUY else self.sell
        trade = fill(action.symbol, action.quantity, action.price, bar.date,
                     block_type=action.block_type or "",
                     order_type=action.order_type or OrderType.MARKET,
                     reason=action.reason)
        if trade is None:
            logger.debug("%s %s x%s @ %.4f not honoured (cash %.2f)", action.type.value,
                         action.symbol, action.quantity, action.price, self.cash)
        return trade


__all__ = ['Portfolio']
