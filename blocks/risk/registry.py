from __future__ import annotations

"""Registry for risk blocks."""

from typing import Dict, Type

from ..base import BlockHandler
from ..models import BlockType
from .risk_blocks import MaxDrawdownBlock, PositionSizeBlock

RISK_BLOCKS: Dict[BlockType, Type[BlockHandler]] = {
    BlockType.POSITION_SIZE: PositionSizeBlock,
    BlockType.MAX_DRAWDOWN: MaxDrawdownBlock,
}

__all__ = ['RISK_BLOCKS']
