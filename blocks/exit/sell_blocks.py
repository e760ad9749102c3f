from __future__ import annotations

from backtest.models import OrderType, Position
from ..base import Action, ActionType, BlockHandler, ExecutionContext, skip
from ..models import BlockType, MarketSellParams, StopLossParams, TakeProfitParams


def sell_position(position: Position, price: float, reason: str,
                  order_type: OrderType = OrderType.MARKET) -> Action:
    """SELL action closing the whole ``position`` at ``price``."""
    return Action(ActionType.SELL, reason, symbol=position.symbol,
                  quantity=position.quantity, price=price, order_type=order_type)


class MarketSellBlock(BlockHandler):
    block_type = BlockType.MARKET_SELL
    params_cls = MarketSellParams

    def handle(self, params: MarketSellParams, context: ExecutionContext) -> Action:
        position = context.portfolio.first_position
        if position is None:
            return skip("No position to sell")
        return sell_position(position, context.current_bar.close, "Market sell executed at close price")


class TakeProfitBlock(BlockHandler):
    block_type = BlockType.TAKE_PROFIT
    params_cls = TakeProfitParams

    def handle(self, params: TakeProfitParams, context: ExecutionContext) -> Action:
        position = context.portfolio.first_position
        if position is None:
            return skip("No position to sell")

        close = context.current_bar.close
        gain = (close - position.avg_price) / position.avg_price * 100
        if gain >= params.percentage:
            return sell_position(position, close,
                                 f"Take profit triggered: {gain:.2f}% >= {params.percentage:g}%")
        return skip(f"No position reached {params.percentage:g}% profit", position.symbol)


class StopLossBlock(BlockHandler):
    block_type = BlockType.STOP_LOSS
    params_cls = StopLossParams

    def handle(self, params: StopLossParams, context: ExecutionContext) -> Action:
        position = context.portfolio.first_position
        if position is None:
            return skip("No position to sell")

        close = context.current_bar.close
        loss = (position.avg_price - close) / position.avg_price * 100
        if loss >= params.percentage:
            return sell_position(position, close,
                                 f"Stop loss triggered: {loss:.2f}% loss >= {params.percentage:g}%",
                                 order_type=OrderType.STOP)
        return skip(f"No position hit {params.percentage:g}% stop loss", position.symbol)


__all__ = ['sell_position', 'MarketSellBlock', 'TakeProfitBlock', 'StopLossBlock']
