from __future__ import annotations

"""Bundled example strategies, expressed as block-dict lists.

The ticker is filled in at load time so one preset works for any symbol.
Signal blocks that are meant to open positions are tagged ``ENTRY``.
"""

from typing import Any, Dict, List

from .models import Block, BlockType

_TICKER_KINDS = {
    BlockType.MARKET_BUY,
    BlockType.BUY_ON_DIP,
    BlockType.LIMIT_BUY,
    BlockType.RSI_SIGNAL,
    BlockType.MACD_CROSS,
    BlockType.MA_CROSS,
}

PRESET_STRATEGIES: Dict[str, Dict[str, Any]] = {
    'dip_buyer': {
        'description': 'Buy 3% dips, take profit at 8%, stop at 5%',
        'blocks': [
            {'type': 'POSITION_SIZE', 'percentage': 25},
            {'type': 'BUY_ON_DIP', 'quantity': 10, 'threshold': 3},
            {'type': 'TAKE_PROFIT', 'percentage': 8},
            {'type': 'STOP_LOSS', 'percentage': 5},
            {'type': 'MAX_DRAWDOWN', 'percentage': 20},
        ],
    },
    'rsi_reversion': {
        'description': 'RSI(14) 30/70 mean reversion with a 7% stop',
        'blocks': [
            {'type': 'RSI_SIGNAL', 'category': 'ENTRY', 'period': 14, 'threshold': 30, 'quantity': 10},
            {'type': 'STOP_LOSS', 'percentage': 7},
            {'type': 'MAX_DRAWDOWN', 'percentage': 25},
        ],
    },
    'macd_trend': {
        'description': 'MACD(12,26,9) crossovers with take profit / stop loss',
        'blocks': [
            {'type': 'MACD_CROSS', 'category': 'ENTRY', 'fast': 12, 'slow': 26, 'signal': 9,
             'period': 26, 'quantity': 10},
            {'type': 'TAKE_PROFIT', 'percentage': 15},
            {'type': 'STOP_LOSS', 'percentage': 8},
            {'type': 'MAX_DRAWDOWN', 'percentage': 20},
        ],
    },
    'golden_cross': {
        'description': 'SMA(20) vs SMA(40) crossover, 10% stop, 15% drawdown breaker',
        'blocks': [
            {'type': 'MA_CROSS', 'category': 'ENTRY', 'period': 20, 'quantity': 10},
            {'type': 'STOP_LOSS', 'percentage': 10},
            {'type': 'MAX_DRAWDOWN', 'percentage': 15},
        ],
    },
}


def list_presets() -> List[str]:
    return sorted(PRESET_STRATEGIES)


def get_preset_blocks(name: str, ticker: str) -> List[Block]:
    key = name.lower()
    if key not in PRESET_STRATEGIES:
        raise ValueError(f"Unknown preset strategy: {name}")

    blocks = []
    for i, raw in enumerate(PRESET_STRATEGIES[key]['blocks']):
        spec = dict(raw)
        if BlockType.resolve(spec['type']) in _TICKER_KINDS:
            spec['ticker'] = ticker
        spec.setdefault('id', f"{key}_{i + 1}")
        blocks.append(Block.from_dict(spec, index=i))
    return blocks


__all__ = ['PRESET_STRATEGIES', 'list_presets', 'get_preset_blocks']
