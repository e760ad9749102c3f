from __future__ import annotations

"""Registry for entry blocks."""

from typing import Dict, Type

from ..base import BlockHandler
from ..models import BlockType
from .buy_blocks import BuyOnDipBlock, LimitBuyBlock, MarketBuyBlock

ENTRY_BLOCKS: Dict[BlockType, Type[BlockHandler]] = {
    BlockType.MARKET_BUY: MarketBuyBlock,
    BlockType.BUY_ON_DIP: BuyOnDipBlock,
    BlockType.LIMIT_BUY: LimitBuyBlock,
}

__all__ = ['ENTRY_BLOCKS']
