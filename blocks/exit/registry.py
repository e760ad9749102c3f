from __future__ import annotations

"""Registry for exit blocks."""

from typing import Dict, Type

from ..base import BlockHandler
from ..models import BlockType
from .sell_blocks import MarketSellBlock, StopLossBlock, TakeProfitBlock

EXIT_BLOCKS: Dict[BlockType, Type[BlockHandler]] = {
    BlockType.MARKET_SELL: MarketSellBlock,
    BlockType.TAKE_PROFIT: TakeProfitBlock,
    BlockType.STOP_LOSS: StopLossBlock,
}

__all__ = ['EXIT_BLOCKS']
