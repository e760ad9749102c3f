from __future__ import annotations

"""Block execution engine.

``execute_block`` dispatches one block through ``BLOCK_HANDLERS``;
``execute_strategy`` evaluates a block list once, in order, and stops early
only after a drawdown circuit-breaker SELL. Nothing here raises for domain
conditions: unknown kinds and missing params come back as SKIP actions.
"""

from dataclasses import replace
from typing import List, Sequence

from util.logger import get_logger
from .base import Action, ActionType, ExecutionContext, skip
from .models import Block
from .registry import BLOCK_HANDLERS
from .risk.risk_blocks import CIRCUIT_BREAKER_TAG

logger = get_logger(__name__)


def execute_block(block: Block, context: ExecutionContext) -> Action:
    if block.params is None:
        action = skip(f"Block {block.type} has no parameters")
    else:
        kind = block.block_type
        handler = BLOCK_HANDLERS.get(kind) if kind is not None else None
        if handler is None:
            action = skip(f"Unknown block type: {block.type}", str(block.params.get('ticker') or ''))
        else:
            action = handler.evaluate(block, context)

    action = replace(action, block_id=block.id, block_type=block.type)
    logger.debug("[%s] %s %s -> %s", context.current_bar.date, block.id, block.type, action.reason)
    return action


def is_circuit_breaker(action: Action) -> bool:
    return action.type is ActionType.SELL and CIRCUIT_BREAKER_TAG in action.reason


def execute_strategy(blocks: Sequence[Block], context: ExecutionContext) -> List[Action]:
    actions: List[Action] = []
    for block in blocks:
        action = execute_block(block, context)
        actions.append(action)
        if is_circuit_breaker(action):
            logger.info("Circuit breaker on %s: %s", context.current_bar.date, action.reason)
            break
    return actions


__all__ = ['execute_block', 'execute_strategy', 'is_circuit_breaker']
