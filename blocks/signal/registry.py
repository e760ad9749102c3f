from __future__ import annotations

"""Registry for indicator-signal blocks."""

from typing import Dict, Type

from ..base import BlockHandler
from ..models import BlockType
from .indicator_blocks import MACDCrossBlock, MACrossBlock, RSISignalBlock

SIGNAL_BLOCKS: Dict[BlockType, Type[BlockHandler]] = {
    BlockType.RSI_SIGNAL: RSISignalBlock,
    BlockType.MACD_CROSS: MACDCrossBlock,
    BlockType.MA_CROSS: MACrossBlock,
}

__all__ = ['SIGNAL_BLOCKS']
