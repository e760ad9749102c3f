from __future__ import annotations

"""Core datamodel objects used by the backtest orchestrator.

Lightweight dataclasses standardise the in-memory representation of bars,
orders, positions, trades and equity points.

Design principles:
  * Immutable public snapshot objects (``Bar``, ``Trade``, ``EquityPoint``)
    are created once and never mutated. ``Order`` and ``Position`` are owned
    and mutated by the orchestrator only.
  * Serialization friendly: ``as_dict()`` returns primitive types (dates are
    left as ``pandas.Timestamp``).
  * ``Order`` status is a terminal-state machine: PENDING -> FILLED or
    PENDING -> CANCELLED, nothing leaves a terminal state.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import pandas as pd

from .errors import OrderStateError

if TYPE_CHECKING:  # pragma: no cover
    from blocks.models import Block


class OrderType(str, Enum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"
    STOP = "STOP"
    STOP_LIMIT = "STOP_LIMIT"


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    FILLED = "FILLED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset({OrderStatus.FILLED, OrderStatus.CANCELLED})


@dataclass(frozen=True, slots=True)
class Bar:
    date: pd.Timestamp
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> 'Bar':
        return cls(
            date=pd.Timestamp(raw['date']),
            open=float(raw['open']),
            high=float(raw['high']),
            low=float(raw['low']),
            close=float(raw['close']),
            volume=float(raw.get('volume', 0) or 0),
        )

    def as_dict(self) -> Dict[str, Any]:  # pragma: no cover - trivial
        return {
            'date': self.date,
            'open': self.open,
            'high': self.high,
            'low': self.low,
            'close': self.close,
            'volume': self.volume,
        }


@dataclass(slots=True)
class Order:
    id: str
    symbol: str
    type: OrderType
    side: OrderSide
    quantity: float
    price: Optional[float] = None       # limit / stop level; None for MARKET
    status: OrderStatus = OrderStatus.PENDING
    created_at: Optional[pd.Timestamp] = None
    source_block_id: Optional[str] = None
    source_block_type: Optional[str] = None
    fill_price: Optional[float] = None
    closed_at: Optional[pd.Timestamp] = None
    reason: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def fill(self, price: float, when: Optional[pd.Timestamp] = None, reason: str = "") -> None:
        self._close(OrderStatus.FILLED, when, reason)
        self.fill_price = float(price)

    def cancel(self, when: Optional[pd.Timestamp] = None, reason: str = "") -> None:
        self._close(OrderStatus.CANCELLED, when, reason)

    def _close(self, status: OrderStatus, when: Optional[pd.Timestamp], reason: str) -> None:
        if self.is_terminal:
            raise OrderStateError(
                f"Order {self.id} is already {self.status.value}, cannot move to {status.value}"
            )
        self.status = status
        self.closed_at = when
        self.reason = reason

    def as_dict(self) -> Dict[str, Any]:  # pragma: no cover - trivial
        return {
            'id': self.id,
            'symbol': self.symbol,
            'type': self.type.value,
            'side': self.side.value,
            'quantity': self.quantity,
            'price': self.price,
            'status': self.status.value,
            'created_at': self.created_at,
            'source_block_id': self.source_block_id,
            'source_block_type': self.source_block_type,
            'fill_price': self.fill_price,
            'closed_at': self.closed_at,
            'reason': self.reason,
        }


@dataclass(slots=True)
class Position:
    symbol: str
    quantity: float
    avg_price: float
    current_price: float
    unrealized_pl: float = 0.0
    unrealized_pl_percent: float = 0.0

    @property
    def market_value(self) -> float:
        return self.current_price * self.quantity

    def mark(self, price: float) -> None:
        self.current_price = float(price)
        self.unrealized_pl = (self.current_price - self.avg_price) * self.quantity
        self.unrealized_pl_percent = (
            (self.current_price - self.avg_price) / self.avg_price * 100 if self.avg_price else 0.0
        )

    def as_dict(self) -> Dict[str, Any]:  # pragma: no cover - trivial
        return {
            'symbol': self.symbol,
            'quantity': self.quantity,
            'avg_price': self.avg_price,
            'current_price': self.current_price,
            'unrealized_pl': self.unrealized_pl,
            'unrealized_pl_percent': self.unrealized_pl_percent,
        }


@dataclass(frozen=True, slots=True)
class Trade:
    id: str
    symbol: str
    side: OrderSide
    quantity: float
    price: float
    date: pd.Timestamp
    block_type: str              # type of the block that produced the action / order
    order_type: OrderType = OrderType.MARKET
    pnl: Optional[float] = None  # realised PnL, SELL trades only
    reason: str = ""

    def as_dict(self) -> Dict[str, Any]:  # pragma: no cover - trivial
        return {
            'id': self.id,
            'symbol': self.symbol,
            'side': self.side.value,
            'quantity': self.quantity,
            'price': self.price,
            'date': self.date,
            'block_type': self.block_type,
            'order_type': self.order_type.value,
            'pnl': self.pnl,
            'reason': self.reason,
        }


@dataclass(frozen=True, slots=True)
class EquityPoint:
    date: pd.Timestamp
    equity: float
    cash: float = 0.0
    positions: int = 0

    def as_dict(self) -> Dict[str, Any]:  # pragma: no cover - trivial
        return {
            'date': self.date,
            'equity': self.equity,
            'cash': self.cash,
            'positions': self.positions,
        }


@dataclass(slots=True)
class PerformanceMetrics:
    total_return: float = 0.0
    total_return_percent: float = 0.0
    sharpe_ratio: float = 0.0
    max_drawdown: float = 0.0
    max_drawdown_percent: float = 0.0
    win_rate: float = 0.0
    total_trades: int = 0
    profit_factor: float = 0.0
    final_equity: float = 0.0
    closed_trades: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            'total_return': self.total_return,
            'total_return_percent': self.total_return_percent,
            'sharpe_ratio': self.sharpe_ratio,
            'max_drawdown': self.max_drawdown,
            'max_drawdown_percent': self.max_drawdown_percent,
            'win_rate': self.win_rate,
            'total_trades': self.total_trades,
            'profit_factor': self.profit_factor,
            'final_equity': self.final_equity,
            'closed_trades': self.closed_trades,
        }


@dataclass(slots=True)
class BacktestConfig:
    symbol: str
    start_date: str
    end_date: str
    initial_capital: float
    blocks: List['Block'] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            'symbol': self.symbol,
            'start_date': self.start_date,
            'end_date': self.end_date,
            'initial_capital': self.initial_capital,
            'blocks': [b.as_dict() for b in self.blocks],
        }


@dataclass(slots=True)
class BacktestResult:
    trades: List[Trade]
    metrics: PerformanceMetrics
    equity_curve: List[EquityPoint]
    daily_returns: List[float]
    orders: List[Order] = field(default_factory=list)

    def history_frame(self) -> pd.DataFrame:
        """Equity curve as a DataFrame (``date, equity, cash, positions, return_pct``)."""
        if not self.equity_curve:
            return pd.DataFrame(columns=['date', 'equity', 'cash', 'positions', 'return_pct'])
        df = pd.DataFrame([p.as_dict() for p in self.equity_curve])
        # first bar has no return
        df['return_pct'] = [float('nan')] + list(self.daily_returns)
        return df

    def trades_frame(self) -> pd.DataFrame:
        if not self.trades:
            return pd.DataFrame(columns=['id', 'symbol', 'side', 'quantity', 'price', 'date',
                                         'block_type', 'order_type', 'pnl', 'reason'])
        return pd.DataFrame([t.as_dict() for t in self.trades])

    def as_dict(self) -> Dict[str, Any]:
        return {
            'trades': [t.as_dict() for t in self.trades],
            'metrics': self.metrics.as_dict(),
            'equity_curve': [p.as_dict() for p in self.equity_curve],
            'daily_returns': list(self.daily_returns),
            'orders': [o.as_dict() for o in self.orders],
        }


__all__ = [
    'OrderType',
    'OrderSide',
    'OrderStatus',
    'TERMINAL_STATUSES',
    'Bar',
    'Order',
    'Position',
    'Trade',
    'EquityPoint',
    'PerformanceMetrics',
    'BacktestConfig',
    'BacktestResult',
]
