from __future__ import annotations

"""Block datamodel: kinds, categories and per-kind typed parameters.

A ``Block`` keeps the sparse ``params`` mapping supplied by the authoring
surface (the validator inspects those raw values). Handlers never read the
mapping directly; they go through ``parse_params`` which produces the frozen
parameter record registered for the block kind, or raises
``BlockParamError`` when a required field is absent.
"""

from dataclasses import MISSING, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Type


class BlockType(str, Enum):
    MARKET_BUY = "MARKET_BUY"
    BUY_ON_DIP = "BUY_ON_DIP"
    LIMIT_BUY = "LIMIT_BUY"
    MARKET_SELL = "MARKET_SELL"
    TAKE_PROFIT = "TAKE_PROFIT"
    STOP_LOSS = "STOP_LOSS"
    RSI_SIGNAL = "RSI_SIGNAL"
    MACD_CROSS = "MACD_CROSS"
    MA_CROSS = "MA_CROSS"
    POSITION_SIZE = "POSITION_SIZE"
    MAX_DRAWDOWN = "MAX_DRAWDOWN"

    @classmethod
    def resolve(cls, raw: Any) -> Optional['BlockType']:
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw).upper())
        except ValueError:
            return None


class BlockCategory(str, Enum):
    ENTRY = "ENTRY"
    EXIT = "EXIT"
    ORDERS = "ORDERS"
    INDICATORS = "INDICATORS"
    LOGIC = "LOGIC"
    RISK = "RISK"


DEFAULT_CATEGORY: Dict[BlockType, BlockCategory] = {
    BlockType.MARKET_BUY: BlockCategory.ENTRY,
    BlockType.BUY_ON_DIP: BlockCategory.ENTRY,
    BlockType.LIMIT_BUY: BlockCategory.ORDERS,
    BlockType.MARKET_SELL: BlockCategory.EXIT,
    BlockType.TAKE_PROFIT: BlockCategory.EXIT,
    BlockType.STOP_LOSS: BlockCategory.EXIT,
    BlockType.RSI_SIGNAL: BlockCategory.INDICATORS,
    BlockType.MACD_CROSS: BlockCategory.INDICATORS,
    BlockType.MA_CROSS: BlockCategory.INDICATORS,
    BlockType.POSITION_SIZE: BlockCategory.RISK,
    BlockType.MAX_DRAWDOWN: BlockCategory.RISK,
}


class BlockParamError(ValueError):
    """A block's params cannot be turned into its typed parameter record."""

    def __init__(self, block_type: str, message: str):
        self.block_type = block_type
        super().__init__(message)


@dataclass(frozen=True)
class Block:
    id: str
    type: str                                 # raw kind string; see ``block_type``
    category: Optional[BlockCategory] = None
    params: Optional[Mapping[str, Any]] = field(default_factory=dict)
    label: str = ""

    @property
    def block_type(self) -> Optional[BlockType]:
        return BlockType.resolve(self.type)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], index: int = 0) -> 'Block':
        """Build from a YAML / JSON mapping.

        ``category`` (or the legacy ``protocol`` key) is optional and falls
        back to the default category of the kind. ``params`` may be given as
        a nested mapping or inline next to ``type``.
        """
        kind = str(raw.get('type', '')).upper()
        block_id = str(raw.get('id') or f"{kind.lower()}_{index + 1}")
        category_raw = raw.get('category', raw.get('protocol'))
        if category_raw is not None:
            category = BlockCategory(str(category_raw).upper())
        else:
            resolved = BlockType.resolve(kind)
            category = DEFAULT_CATEGORY.get(resolved) if resolved else None

        if 'params' in raw:
            params = raw['params']
            params = dict(params) if params is not None else None
        else:
            reserved = {'id', 'type', 'category', 'protocol', 'label'}
            params = {k: v for k, v in raw.items() if k not in reserved}
        return cls(id=block_id, type=kind, category=category, params=params,
                   label=str(raw.get('label', '')))

    def as_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type,
            'category': self.category.value if self.category else None,
            'params': dict(self.params) if self.params is not None else None,
            'label': self.label,
        }


# ---------- typed parameter records ----------
# Fields without a default are required. A required field holding None, ""
# or 0 counts as missing; an optional field falls back to its default only
# when absent / None. Integer fields (periods) must be positive.

@dataclass(frozen=True, slots=True)
class MarketBuyParams:
    ticker: str
    quantity: float


@dataclass(frozen=True, slots=True)
class BuyOnDipParams:
    ticker: str
    quantity: float
    threshold: float


@dataclass(frozen=True, slots=True)
class LimitBuyParams:
    ticker: str
    quantity: float
    price: float


@dataclass(frozen=True, slots=True)
class MarketSellParams:
    ticker: str = ""


@dataclass(frozen=True, slots=True)
class TakeProfitParams:
    percentage: float


@dataclass(frozen=True, slots=True)
class StopLossParams:
    percentage: float


@dataclass(frozen=True, slots=True)
class RSISignalParams:
    period: int = 14
    threshold: float = 30
    ticker: str = ""
    quantity: float = 0


@dataclass(frozen=True, slots=True)
class MACDCrossParams:
    fast: int = 12
    slow: int = 26
    signal: int = 9
    ticker: str = ""
    quantity: float = 0

    @property
    def min_history(self) -> int:
        return self.slow + self.signal


@dataclass(frozen=True, slots=True)
class MACrossParams:
    period: int = 50
    ticker: str = ""
    quantity: float = 0


@dataclass(frozen=True, slots=True)
class PositionSizeParams:
    percentage: float


@dataclass(frozen=True, slots=True)
class MaxDrawdownParams:
    percentage: float


PARAMS_BY_TYPE: Dict[BlockType, Type] = {
    BlockType.MARKET_BUY: MarketBuyParams,
    BlockType.BUY_ON_DIP: BuyOnDipParams,
    BlockType.LIMIT_BUY: LimitBuyParams,
    BlockType.MARKET_SELL: MarketSellParams,
    BlockType.TAKE_PROFIT: TakeProfitParams,
    BlockType.STOP_LOSS: StopLossParams,
    BlockType.RSI_SIGNAL: RSISignalParams,
    BlockType.MACD_CROSS: MACDCrossParams,
    BlockType.MA_CROSS: MACrossParams,
    BlockType.POSITION_SIZE: PositionSizeParams,
    BlockType.MAX_DRAWDOWN: MaxDrawdownParams,
}

_COERCE = {'float': float, 'int': int, 'str': str}


def _is_missing(value: Any) -> bool:
    return value is None or value == "" or value == 0


def parse_params(block_type: BlockType, raw: Optional[Mapping[str, Any]]):
    """Turn a sparse params mapping into the typed record for ``block_type``.

    Unknown keys are ignored. Raises ``BlockParamError`` for a missing
    required field or a value that cannot be coerced.
    """
    params_cls = PARAMS_BY_TYPE[block_type]
    raw = raw or {}
    values: Dict[str, Any] = {}
    missing = []
    for f in fields(params_cls):
        value = raw.get(f.name)
        required = f.default is MISSING and f.default_factory is MISSING
        if required and _is_missing(value):
            missing.append(f.name)
            continue
        if value is None:
            continue
        coerce = _COERCE[str(f.type)]
        try:
            values[f.name] = coerce(value)
        except (TypeError, ValueError) as exc:
            raise BlockParamError(block_type.value, f"{block_type.value} invalid {f.name}: {value!r}") from exc
        if str(f.type) == 'int' and values[f.name] <= 0:
            raise BlockParamError(block_type.value, f"{block_type.value} {f.name} must be positive, got {value!r}")
    if missing:
        raise BlockParamError(block_type.value, f"{block_type.value} missing {' or '.join(missing)}")
    return params_cls(**values)


__all__ = [
    'BlockType',
    'BlockCategory',
    'DEFAULT_CATEGORY',
    'BlockParamError',
    'Block',
    'MarketBuyParams',
    'BuyOnDipParams',
    'LimitBuyParams',
    'MarketSellParams',
    'TakeProfitParams',
    'StopLossParams',
    'RSISignalParams',
    'MACDCrossParams',
    'MACrossParams',
    'PositionSizeParams',
    'MaxDrawdownParams',
    'PARAMS_BY_TYPE',
    'parse_params',
]
