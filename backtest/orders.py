from __future__ import annotations

"""Order fill simulation against OHLC bars.

Conservative fill assumptions so backtests stay pessimistic:
  * MARKET fills at the bar close
  * LIMIT fills at the limit price, never better, once the bar touches it
  * STOP fills 0.1% past the stop (adverse), clamped inside the bar range
  * STOP_LIMIT triggers like STOP but fills exactly at its price
The gap path (``check_gap_fill`` / ``get_gap_fill_price``) covers bars that
open beyond the order level.
"""

from dataclasses import dataclass
from typing import Optional

from util.logger import get_logger
from .models import Bar, Order, OrderSide, OrderType

logger = get_logger(__name__)

STOP_SLIPPAGE = 0.001
BASE_SLIPPAGE = 0.0005
MAX_SLIPPAGE = 0.01


@dataclass(frozen=True, slots=True)
class FillResult:
    filled: bool
    fill_price: Optional[float] = None
    reason: str = ""


def _has_price(order: Order) -> bool:
    return order.price is not None and order.price != 0


def simulate_order_fill(order: Order, bar: Bar, previous_bar: Optional[Bar] = None) -> FillResult:
    """Decide whether ``order`` fills on ``bar`` and at what price.

    ``previous_bar`` is accepted for symmetry with the gap path; the
    intrabar rules only look at the current bar.
    """
    if order.is_terminal:
        return FillResult(False, reason=f"Order already {order.status.value.lower()}")

    side = order.side
    level = order.price

    if order.type is OrderType.MARKET:
        return FillResult(True, bar.close, "Market order filled at close price")

    if order.type is OrderType.LIMIT:
        if not _has_price(order):
            return FillResult(False, reason="Limit order missing price")
        if side is OrderSide.BUY and bar.low <= level:
            return FillResult(True, level, f"Limit buy filled: low {bar.low:.2f} <= {level:.2f}")
        if side is OrderSide.SELL and bar.high >= level:
            return FillResult(True, level, f"Limit sell filled: high {bar.high:.2f} >= {level:.2f}")
        touched = bar.low if side is OrderSide.BUY else bar.high
        return FillResult(False, reason=f"Limit {side.value.lower()} not reached: price {touched:g} vs limit {level:g}")

    if order.type is OrderType.STOP:
        if not _has_price(order):
            return FillResult(False, reason="Stop order missing price")
        slippage = level * STOP_SLIPPAGE
        if side is OrderSide.SELL and bar.low <= level:
            price = max(level - slippage, bar.low)
            return FillResult(True, price, f"Stop loss triggered: low {bar.low:.2f} <= {level:.2f}")
        if side is OrderSide.BUY and bar.high >= level:
            price = min(level + slippage, bar.high)
            return FillResult(True, price, f"Stop buy triggered: high {bar.high:.2f} >= {level:.2f}")
        touched = bar.low if side is OrderSide.SELL else bar.high
        return FillResult(False, reason=f"Stop {side.value.lower()} not triggered: price {touched:g} vs stop {level:g}")

    if order.type is OrderType.STOP_LIMIT:
        if not _has_price(order):
            return FillResult(False, reason="Stop limit order missing price")
        # single price level: triggers like a stop, fills at the level itself
        if side is OrderSide.SELL and bar.low <= level:
            return FillResult(True, level, f"Stop limit sell triggered: low {bar.low:.2f} <= {level:.2f}")
        if side is OrderSide.BUY and bar.high >= level:
            return FillResult(True, level, f"Stop limit buy triggered: high {bar.high:.2f} >= {level:.2f}")
        return FillResult(False, reason=f"Stop limit {side.value.lower()} not triggered")

    return FillResult(False, reason=f"Unknown order type: {order.type}")


def check_gap_fill(order: Order, bar: Bar, previous_bar: Bar) -> bool:
    """True when the bar's open already jumped past the order level."""
    if order.type is OrderType.MARKET:
        return True
    if not _has_price(order):
        return False

    level = order.price
    gap_up = bar.open > previous_bar.close
    gap_down = bar.open < previous_bar.close

    if order.type is OrderType.LIMIT:
        if order.side is OrderSide.BUY and gap_down:
            return bar.open <= level
        if order.side is OrderSide.SELL and gap_up:
            return bar.open >= level

    if order.type in (OrderType.STOP, OrderType.STOP_LIMIT):
        if order.side is OrderSide.SELL and gap_down:
            return bar.open <= level
        if order.side is OrderSide.BUY and gap_up:
            return bar.open >= level

    return False


def get_gap_fill_price(order: Order, bar: Bar) -> float:
    """Fill price for an order filled on the opening gap."""
    if order.type is OrderType.MARKET or not _has_price(order):
        return bar.open

    level = order.price
    if order.type is OrderType.LIMIT:
        if order.side is OrderSide.BUY:
            return min(level, bar.open)
        return max(level, bar.open)

    # stops become market orders at the open
    slippage = bar.open * STOP_SLIPPAGE
    if order.side is OrderSide.SELL:
        return bar.open - slippage
    return bar.open + slippage


def resolve_order_fill(
    order: Order,
    bar: Bar,
    previous_bar: Optional[Bar] = None,
    allow_gap_fills: bool = False,
) -> FillResult:
    """Gap path first (when enabled and a previous bar exists), then intrabar rules."""
    if order.is_terminal:
        return simulate_order_fill(order, bar, previous_bar)
    if allow_gap_fills and previous_bar is not None and check_gap_fill(order, bar, previous_bar):
        price = get_gap_fill_price(order, bar)
        logger.debug("Gap fill %s %s at %.4f (open %.4f, prev close %.4f)",
                     order.id, order.type.value, price, bar.open, previous_bar.close)
        return FillResult(True, price, f"Gap fill at open {bar.open:.2f}")
    return simulate_order_fill(order, bar, previous_bar)


def estimate_slippage(bar: Bar, order_size: float, average_volume: float) -> float:
    """Rough slippage fraction (0.001 == 0.1%) from volume participation and range.

    Base 0.05%; participation above 1% of average volume adds 1% per unit of
    participation; intrabar range above 2% of close adds a tenth of the
    range. Capped at 1%.
    """
    if average_volume <= 0:
        return MAX_SLIPPAGE
    participation = order_size / average_volume
    volatility = (bar.high - bar.low) / bar.close if bar.close else 0.0

    slippage = BASE_SLIPPAGE
    if participation > 0.01:
        slippage += participation * 0.01
    if volatility > 0.02:
        slippage += volatility * 0.1
    return min(slippage, MAX_SLIPPAGE)


__all__ = [
    'FillResult',
    'simulate_order_fill',
    'check_gap_fill',
    'get_gap_fill_price',
    'resolve_order_fill',
    'estimate_slippage',
]
