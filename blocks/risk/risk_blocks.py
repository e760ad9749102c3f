from __future__ import annotations

from ..base import Action, BlockHandler, ExecutionContext, skip
from ..exit.sell_blocks import sell_position
from ..models import BlockType, MaxDrawdownParams, PositionSizeParams

# Executor stops evaluating the strategy after a SELL whose reason carries this tag.
CIRCUIT_BREAKER_TAG = "MAX_DRAWDOWN"


class PositionSizeBlock(BlockHandler):
    """Reports the allocation cap; it does not resize later BUY actions."""

    block_type = BlockType.POSITION_SIZE
    params_cls = PositionSizeParams

    def handle(self, params: PositionSizeParams, context: ExecutionContext) -> Action:
        max_position = context.portfolio.cash * params.percentage / 100
        return skip(f"Position size set to {params.percentage:g}% (max: ${max_position:.2f})")


class MaxDrawdownBlock(BlockHandler):
    block_type = BlockType.MAX_DRAWDOWN
    params_cls = MaxDrawdownParams

    def handle(self, params: MaxDrawdownParams, context: ExecutionContext) -> Action:
        peak = context.peak_equity
        if not peak:
            return skip("Peak equity not tracked")

        drawdown = (peak - context.portfolio.total_equity) / peak * 100
        if drawdown >= params.percentage:
            position = context.portfolio.first_position
            if position is None:
                return skip(f"Drawdown {drawdown:.2f}% >= {params.percentage:g}% but no position to sell")
            return sell_position(
                position, context.current_bar.close,
                f"{CIRCUIT_BREAKER_TAG} triggered: {drawdown:.2f}% >= {params.percentage:g}%",
            )
        return skip(f"Drawdown {drawdown:.2f}% < {params.percentage:g}%")


__all__ = ['CIRCUIT_BREAKER_TAG', 'PositionSizeBlock', 'MaxDrawdownBlock']
