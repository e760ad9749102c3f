from __future__ import annotations

"""Closed dispatch table from block kind to handler instance.

Assembled from the per-category registries; importing this module fails if
any ``BlockType`` is left without a handler.
"""

from typing import Dict

from .base import BlockHandler
from .entry.registry import ENTRY_BLOCKS
from .exit.registry import EXIT_BLOCKS
from .models import BlockType
from .risk.registry import RISK_BLOCKS
from .signal.registry import SIGNAL_BLOCKS

BLOCK_HANDLERS: Dict[BlockType, BlockHandler] = {
    kind: handler_cls()
    for group in (ENTRY_BLOCKS, EXIT_BLOCKS, SIGNAL_BLOCKS, RISK_BLOCKS)
    for kind, handler_cls in group.items()
}

_unhandled = set(BlockType) - set(BLOCK_HANDLERS)
if _unhandled:
    raise RuntimeError(f"Block types without handler: {sorted(t.value for t in _unhandled)}")


def get_handler(block_type: BlockType | str) -> BlockHandler:
    kind = BlockType.resolve(block_type)
    if kind is None:
        raise ValueError(f"Unknown block type: {block_type}")
    return BLOCK_HANDLERS[kind]


__all__ = ['BLOCK_HANDLERS', 'get_handler']
