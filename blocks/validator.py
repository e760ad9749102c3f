from __future__ import annotations

"""Static checks over a block list before it is run.

Four passes (structure, parameters, logic/ordering, risk coverage) append
to shared ``errors`` / ``warnings`` lists. ``valid`` depends on errors only;
warnings never block a run.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .models import Block, BlockCategory, BlockType

NA = 'N/A'


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    block_id: str
    block_type: str
    message: str
    severity: str               # 'error' / 'warning'

    def as_dict(self) -> Dict[str, Any]:  # pragma: no cover - trivial
        return {
            'block_id': self.block_id,
            'block_type': self.block_type,
            'message': self.message,
            'severity': self.severity,
        }


@dataclass(slots=True)
class ValidationResult:
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def error(self, block_id: str, block_type: str, message: str) -> None:
        self.errors.append(ValidationIssue(block_id, block_type, message, 'error'))

    def warn(self, block_id: str, block_type: str, message: str) -> None:
        self.warnings.append(ValidationIssue(block_id, block_type, message, 'warning'))

    def as_dict(self) -> Dict[str, Any]:
        return {
            'valid': self.valid,
            'errors': [e.as_dict() for e in self.errors],
            'warnings': [w.as_dict() for w in self.warnings],
        }


def _num(params: Mapping[str, Any], key: str) -> Optional[float]:
    """Numeric param or None when absent / not numeric."""
    value = params.get(key)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _category_is(block: Block, *categories: BlockCategory) -> bool:
    return block.category in categories


# ---------- pass 1: structure ----------

def _check_structure(blocks: Sequence[Block], result: ValidationResult) -> None:
    if not any(_category_is(b, BlockCategory.ENTRY) for b in blocks):
        result.error(NA, 'STRUCTURE', 'Strategy missing entry block (MARKET_BUY or BUY_ON_DIP)')
    if not any(_category_is(b, BlockCategory.EXIT) for b in blocks):
        result.warn(NA, 'STRUCTURE', 'Strategy missing explicit exit block (MARKET_SELL or TAKE_PROFIT)')

    seen, duplicates = set(), []
    for b in blocks:
        if b.type in seen and b.type not in duplicates:
            duplicates.append(b.type)
        seen.add(b.type)
    if duplicates:
        result.warn(NA, 'STRUCTURE', f"Duplicate block types detected: {', '.join(duplicates)}")


# ---------- pass 2: parameters ----------

def _check_entry_params(block: Block, params: Mapping[str, Any], result: ValidationResult, label: str) -> None:
    if not params.get('ticker'):
        result.error(block.id, block.type, f'{label} missing ticker symbol')
    quantity = _num(params, 'quantity')
    if not quantity or quantity <= 0:
        result.error(block.id, block.type, f'{label} missing or invalid quantity')


def _check_block_params(block: Block, result: ValidationResult) -> None:
    params = block.params
    if not params:
        result.warn(block.id, block.type, 'Block has no parameters')
        return

    kind = block.block_type
    pct = _num(params, 'percentage')

    if kind in (BlockType.MARKET_BUY, BlockType.BUY_ON_DIP):
        _check_entry_params(block, params, result, 'Entry block')
        if kind is BlockType.BUY_ON_DIP and not _num(params, 'threshold'):
            result.error(block.id, block.type, 'BUY_ON_DIP missing threshold parameter')

    elif kind is BlockType.LIMIT_BUY:
        _check_entry_params(block, params, result, 'Limit buy')
        price = _num(params, 'price')
        if not price or price <= 0:
            result.error(block.id, block.type, 'Limit buy missing or invalid limit price')

    elif kind is BlockType.TAKE_PROFIT:
        if not pct:
            result.error(block.id, block.type, 'Take profit missing percentage parameter')

    elif kind is BlockType.STOP_LOSS:
        if not pct or pct <= 0:
            result.error(block.id, block.type, 'Stop loss missing or invalid percentage')
        if pct and pct > 50:
            result.warn(block.id, block.type, f'Stop loss percentage very high ({pct:g}%), consider reducing')

    elif kind is BlockType.RSI_SIGNAL:
        period = _num(params, 'period')
        threshold = _num(params, 'threshold')
        if not period or period < 1:
            result.error(block.id, block.type, 'RSI signal missing or invalid period')
        if not threshold:
            result.error(block.id, block.type, 'RSI signal missing threshold (overbought/oversold level)')
        elif threshold < 0 or threshold > 100:
            result.error(block.id, block.type, 'RSI threshold must be between 0 and 100')

    elif kind in (BlockType.MACD_CROSS, BlockType.MA_CROSS):
        if params.get('period') in (None, ''):
            result.warn(block.id, block.type, f'{block.type} missing period parameter, using defaults')
        for key in ('period', 'fast', 'slow', 'signal'):
            if params.get(key) in (None, ''):
                continue
            value = _num(params, key)
            if value is None or value < 1:
                result.error(block.id, block.type, f'{block.type} {key} must be a positive integer')

    elif kind is BlockType.POSITION_SIZE:
        if not pct or pct <= 0:
            result.error(block.id, block.type, 'Position size missing or invalid percentage')
        if pct and pct > 100:
            result.error(block.id, block.type, 'Position size cannot exceed 100% of portfolio')
        if pct and pct > 50:
            result.warn(block.id, block.type, f'Position size very large ({pct:g}%), consider diversification')

    elif kind is BlockType.MAX_DRAWDOWN:
        if not pct or pct <= 0:
            result.error(block.id, block.type, 'Max drawdown missing or invalid percentage')
        if pct and pct > 50:
            result.warn(block.id, block.type, f'Max drawdown very high ({pct:g}%), consider tighter risk control')


# ---------- pass 3: logic / ordering ----------

def _check_logic(blocks: Sequence[Block], result: ValidationResult) -> None:
    first_entry = next((i for i, b in enumerate(blocks)
                        if _category_is(b, BlockCategory.ENTRY, BlockCategory.ORDERS)), None)
    first_exit = next((i for i, b in enumerate(blocks) if _category_is(b, BlockCategory.EXIT)), None)
    if first_entry is not None and first_exit is not None and first_exit < first_entry:
        b = blocks[first_exit]
        result.warn(b.id, b.type, 'Exit block appears before entry block - verify strategy logic')

    exits = [b for b in blocks if _category_is(b, BlockCategory.EXIT)]
    if sum(1 for b in exits if b.block_type is BlockType.TAKE_PROFIT) > 1:
        result.warn(NA, 'TAKE_PROFIT', 'Multiple take profit blocks detected - only one will execute')
    if sum(1 for b in exits if b.block_type is BlockType.MARKET_SELL) > 1:
        result.warn(NA, 'MARKET_SELL', 'Multiple market sell blocks detected - verify strategy logic')

    tickers: List[str] = []
    for b in blocks:
        ticker = (b.params or {}).get('ticker')
        if ticker and ticker not in tickers:
            tickers.append(ticker)
    if len(tickers) > 1:
        result.warn(NA, 'LOGIC', f"Multiple ticker symbols detected: {', '.join(map(str, tickers))}"
                                 " - strategy should focus on one symbol")


# ---------- pass 4: risk coverage ----------

def _check_risk(blocks: Sequence[Block], result: ValidationResult) -> None:
    kinds = {b.block_type for b in blocks}
    if BlockType.STOP_LOSS not in kinds:
        result.warn(NA, 'RISK', 'No stop loss block - consider adding for risk management')
    if BlockType.MAX_DRAWDOWN not in kinds:
        result.warn(NA, 'RISK', 'No max drawdown limit - consider adding for portfolio protection')
    if BlockType.POSITION_SIZE not in kinds:
        result.warn(NA, 'RISK', 'No position sizing block - using default 100% allocation')

    sizing = next((b for b in blocks if b.block_type is BlockType.POSITION_SIZE), None)
    if sizing is not None:
        pct = _num(sizing.params or {}, 'percentage')
        if pct and pct > 50:
            result.warn(sizing.id, 'POSITION_SIZE', 'Position size exceeds 50% of portfolio - high concentration risk')


def validate_strategy(blocks: Sequence[Block]) -> ValidationResult:
    result = ValidationResult()
    if not blocks:
        result.error(NA, NA, 'Strategy has no blocks')
        return result

    _check_structure(blocks, result)
    for block in blocks:
        _check_block_params(block, result)
    _check_logic(blocks, result)
    _check_risk(blocks, result)
    return result


def get_validation_summary(result: ValidationResult) -> str:
    if result.valid and not result.warnings:
        return 'Strategy is valid with no warnings'

    def plural(n: int, word: str) -> str:
        return f"{n} {word}{'' if n == 1 else 's'} found"

    parts = []
    if not result.valid:
        parts.append(plural(len(result.errors), 'error'))
    if result.warnings:
        parts.append(plural(len(result.warnings), 'warning'))
    return ', '.join(parts)


__all__ = [
    'ValidationIssue',
    'ValidationResult',
    'validate_strategy',
    'get_validation_summary',
]
