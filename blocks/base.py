from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Tuple, Type

import pandas as pd

from backtest.models import Bar, OrderSide, OrderType, Position
from util.indicators import IndicatorCache
from .models import Block, BlockParamError, BlockType, parse_params


class ActionType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    PLACE_ORDER = "PLACE_ORDER"
    SKIP = "SKIP"


@dataclass(frozen=True, slots=True)
class Action:
    """Outcome of evaluating one block; ``reason`` is the audit trail."""

    type: ActionType
    reason: str
    symbol: str = ""
    quantity: Optional[float] = None
    price: Optional[float] = None
    order_type: Optional[OrderType] = None
    side: Optional[OrderSide] = None     # PLACE_ORDER only; BUY when omitted
    block_id: Optional[str] = None
    block_type: Optional[str] = None

    @property
    def is_trade(self) -> bool:
        return self.type in (ActionType.BUY, ActionType.SELL)

    def as_dict(self) -> Dict[str, Any]:  # pragma: no cover - trivial
        return {
            'type': self.type.value,
            'symbol': self.symbol,
            'quantity': self.quantity,
            'price': self.price,
            'order_type': self.order_type.value if self.order_type else None,
            'side': self.side.value if self.side else None,
            'reason': self.reason,
            'block_id': self.block_id,
            'block_type': self.block_type,
        }


def skip(reason: str, symbol: str = "") -> Action:
    return Action(ActionType.SKIP, reason, symbol=symbol)


@dataclass(frozen=True, slots=True)
class PortfolioSnapshot:
    cash: float
    positions: Tuple[Position, ...] = ()
    total_equity: float = 0.0

    @property
    def first_position(self) -> Optional[Position]:
        # single-symbol strategies: exits always address the first holding
        return self.positions[0] if self.positions else None


class ExecutionMode(str, Enum):
    BACKTEST = "backtest"
    LIVE = "live"


@dataclass(frozen=True, slots=True)
class ExecutionContext:
    current_bar: Bar
    portfolio: PortfolioSnapshot
    previous_bar: Optional[Bar] = None
    indicators: Dict[str, pd.Series] = field(default_factory=dict)
    mode: ExecutionMode = ExecutionMode.BACKTEST
    peak_equity: float = 0.0
    cache: Optional[IndicatorCache] = None

    def series(self, name: str = 'prices') -> Optional[pd.Series]:
        return self.indicators.get(name)


class BlockHandler(ABC):
    """Evaluates one block kind against an execution context.

    ``evaluate`` parses the block's params into ``params_cls`` first; a
    missing or malformed field becomes a SKIP action, so ``handle`` can rely
    on a complete typed record.
    """

    block_type: ClassVar[BlockType]
    params_cls: ClassVar[Type]

    def evaluate(self, block: Block, context: ExecutionContext) -> Action:
        try:
            params = parse_params(self.block_type, block.params)
        except BlockParamError as exc:
            return skip(str(exc))
        return self.handle(params, context)

    @abstractmethod
    def handle(self, params, context: ExecutionContext) -> Action:  # pragma: no cover
        raise NotImplementedError


__all__ = [
    'ActionType',
    'Action',
    'skip',
    'PortfolioSnapshot',
    'ExecutionMode',
    'ExecutionContext',
    'BlockHandler',
]
