from __future__ import annotations

"""Signal blocks driven by the indicator library.

Each block reads the ``prices`` series from the context, requires a minimum
history, then emits BUY on a bullish signal or SELL of the first open
position on a bearish one. A bullish signal on a block without
ticker/quantity degrades to SKIP.
"""

from typing import Optional

import pandas as pd

from backtest.models import OrderType
from util import indicators
from ..base import Action, ActionType, BlockHandler, ExecutionContext, skip
from ..exit.sell_blocks import sell_position
from ..models import BlockType, MACDCrossParams, MACrossParams, RSISignalParams


def _prices(context: ExecutionContext, needed: int) -> Optional[pd.Series]:
    prices = context.series('prices')
    if prices is None or len(prices) < needed:
        return None
    return prices


def _signal_buy(params, context: ExecutionContext, reason: str) -> Action:
    if not params.ticker or not params.quantity:
        return skip(f"{reason} (no ticker/quantity configured)")
    return Action(ActionType.BUY, reason, symbol=params.ticker, quantity=params.quantity,
                  price=context.current_bar.close, order_type=OrderType.MARKET)


def _signal_sell(context: ExecutionContext, reason: str) -> Optional[Action]:
    position = context.portfolio.first_position
    if position is None:
        return None
    return sell_position(position, context.current_bar.close, reason)


class RSISignalBlock(BlockHandler):
    """Oversold at ``threshold`` buys, overbought at ``100 - threshold`` sells."""

    block_type = BlockType.RSI_SIGNAL
    params_cls = RSISignalParams

    def handle(self, params: RSISignalParams, context: ExecutionContext) -> Action:
        prices = _prices(context, params.period + 1)
        if prices is None:
            return skip("Insufficient price history for RSI calculation")

        current = indicators.last_value(indicators.rsi(prices, params.period, cache=context.cache))
        if current is None:
            return skip("RSI not yet calculated")

        if current <= params.threshold:
            return _signal_buy(params, context, f"RSI oversold: {current:.2f} <= {params.threshold:g}")

        overbought = 100 - params.threshold
        if current >= overbought:
            action = _signal_sell(context, f"RSI overbought: {current:.2f} >= {overbought:g}")
            if action is not None:
                return action
        return skip(f"RSI neutral: {current:.2f}")


class MACDCrossBlock(BlockHandler):
    block_type = BlockType.MACD_CROSS
    params_cls = MACDCrossParams

    def handle(self, params: MACDCrossParams, context: ExecutionContext) -> Action:
        prices = _prices(context, params.min_history)
        if prices is None:
            return skip("Insufficient price history for MACD calculation")

        result = indicators.macd(prices, params.fast, params.slow, params.signal, cache=context.cache)
        signal = int(indicators.detect_macd_crossover(result).iloc[-1])
        if signal == 1:
            return _signal_buy(params, context, "MACD bullish crossover detected")
        if signal == -1:
            action = _signal_sell(context, "MACD bearish crossover detected")
            if action is not None:
                return action
        return skip("No MACD crossover")


class MACrossBlock(BlockHandler):
    """SMA(period) against SMA(2 * period)."""

    block_type = BlockType.MA_CROSS
    params_cls = MACrossParams

    def handle(self, params: MACrossParams, context: ExecutionContext) -> Action:
        fast_period, slow_period = params.period, params.period * 2
        prices = _prices(context, slow_period)
        if prices is None:
            return skip("Insufficient price history for MA crossover")

        fast = indicators.sma(prices, fast_period, cache=context.cache)
        slow = indicators.sma(prices, slow_period, cache=context.cache)
        signal = int(indicators.detect_ma_crossover(fast, slow).iloc[-1])
        if signal == 1:
            return _signal_buy(params, context, f"MA crossover: {fast_period} crossed above {slow_period}")
        if signal == -1:
            action = _signal_sell(context, f"MA crossover: {fast_period} crossed below {slow_period}")
            if action is not None:
                return action
        return skip("No MA crossover")


__all__ = ['RSISignalBlock', 'MACDCrossBlock', 'MACrossBlock']
