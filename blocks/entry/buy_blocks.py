from __future__ import annotations

from backtest.models import OrderType
from ..base import Action, ActionType, BlockHandler, ExecutionContext, skip
from ..models import BlockType, BuyOnDipParams, LimitBuyParams, MarketBuyParams


class MarketBuyBlock(BlockHandler):
    block_type = BlockType.MARKET_BUY
    params_cls = MarketBuyParams

    def handle(self, params: MarketBuyParams, context: ExecutionContext) -> Action:
        close = context.current_bar.close
        cost = close * params.quantity
        cash = context.portfolio.cash
        if cost > cash:
            return skip(f"Insufficient funds: need {cost:.2f}, have {cash:.2f}", params.ticker)
        return Action(ActionType.BUY, "Market buy executed at close price",
                      symbol=params.ticker, quantity=params.quantity, price=close,
                      order_type=OrderType.MARKET)


class BuyOnDipBlock(BlockHandler):
    """Buy when the close dropped at least ``threshold`` percent from the previous close."""

    block_type = BlockType.BUY_ON_DIP
    params_cls = BuyOnDipParams

    def handle(self, params: BuyOnDipParams, context: ExecutionContext) -> Action:
        prev = context.previous_bar
        if prev is None:
            return skip("No previous bar for dip detection", params.ticker)

        close = context.current_bar.close
        drop = (prev.close - close) / prev.close * 100
        if drop >= params.threshold:
            return Action(ActionType.BUY,
                          f"Dip detected: {drop:.2f}% drop >= {params.threshold:g}% threshold",
                          symbol=params.ticker, quantity=params.quantity, price=close,
                          order_type=OrderType.MARKET)
        return skip(f"No dip: {drop:.2f}% drop < {params.threshold:g}% threshold", params.ticker)


class LimitBuyBlock(BlockHandler):
    """Buy at the limit when the bar already traded through it, otherwise queue an order."""

    block_type = BlockType.LIMIT_BUY
    params_cls = LimitBuyParams

    def handle(self, params: LimitBuyParams, context: ExecutionContext) -> Action:
        low = context.current_bar.low
        if low <= params.price:
            return Action(ActionType.BUY,
                          f"Limit buy triggered: low {low:.2f} <= {params.price:.2f}",
                          symbol=params.ticker, quantity=params.quantity, price=params.price,
                          order_type=OrderType.LIMIT)
        return Action(ActionType.PLACE_ORDER, f"Limit buy order placed at {params.price:.2f}",
                      symbol=params.ticker, quantity=params.quantity, price=params.price,
                      order_type=OrderType.LIMIT)


__all__ = ['MarketBuyBlock', 'BuyOnDipBlock', 'LimitBuyBlock']
