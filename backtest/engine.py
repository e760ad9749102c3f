from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from blocks.validator import ValidationResult, validate_strategy
from util.logger import get_logger
from util.market_data_handler import MarketDataHandler
from .backtester import Backtester, ProgressCallback
from .errors import InvalidConfigError, NoHistoricalDataError, StrategyValidationError
from .models import BacktestConfig, BacktestResult, Bar

logger = get_logger(__name__)


def check_config(config: BacktestConfig) -> None:
    if not config.symbol:
        raise InvalidConfigError("symbol is required")
    if config.initial_capital is None or config.initial_capital <= 0:
        raise InvalidConfigError(f"initial_capital must be positive, got {config.initial_capital}")
    try:
        start, end = pd.to_datetime(config.start_date), pd.to_datetime(config.end_date)
    except (TypeError, ValueError) as e:
        raise InvalidConfigError(f"Invalid date range {config.start_date!r} - {config.end_date!r}") from e
    if start > end:
        raise InvalidConfigError(f"start_date {config.start_date} is after end_date {config.end_date}")


class BacktestEngine:
    """Config -> validated strategy -> bars -> ``BacktestResult``.

    The engine refuses to run a strategy whose validation has errors;
    warnings are logged and never block a run.
    """

    def __init__(self, data_handler: Optional[MarketDataHandler] = None,
                 validate: bool = True, allow_gap_fills: bool = False):
        self.data_handler = data_handler or MarketDataHandler()
        self.validate = validate
        self.allow_gap_fills = allow_gap_fills

    def validate_blocks(self, config: BacktestConfig) -> ValidationResult:
        result = validate_strategy(config.blocks)
        for w in result.warnings:
            logger.warning("Strategy warning [%s %s]: %s", w.block_id, w.block_type, w.message)
        if not result.valid:
            for e in result.errors:
                logger.error("Strategy error [%s %s]: %s", e.block_id, e.block_type, e.message)
            raise StrategyValidationError(result)
        return result

    def load_bars(self, config: BacktestConfig) -> List[Bar]:
        bars = self.data_handler.get_bars(config.symbol, config.start_date, config.end_date)
        if not bars:
            raise NoHistoricalDataError(config.symbol, config.start_date, config.end_date)
        return bars

    def run(self, config: BacktestConfig,
            cancel_event: Optional[threading.Event] = None,
            progress_callback: Optional[ProgressCallback] = None,
            bars: Optional[Sequence[Bar]] = None) -> BacktestResult:
        """Run one backtest. ``bars`` bypasses the data handler (CSV / tests)."""
        check_config(config)
        if self.validate:
            self.validate_blocks(config)
        if bars is None:
            bars = self.load_bars(config)
        elif not bars:
            raise NoHistoricalDataError(config.symbol, config.start_date, config.end_date)

        bt = Backtester(config.blocks, config.initial_capital, symbol=config.symbol,
                        allow_gap_fills=self.allow_gap_fills)
        return bt.run(bars, cancel_event=cancel_event, progress_callback=progress_callback)


def run_experiments(configs: Sequence[BacktestConfig],
                    data_handler: Optional[MarketDataHandler] = None,
                    **engine_kwargs: Any) -> List[Dict[str, Any]]:
    """Run several configs one after another; each run owns its own state.

    Returns one ``{'config', 'result'}`` dict per config, in order.
    """
    engine = BacktestEngine(data_handler=data_handler, **engine_kwargs)
    results = []
    for cfg in configs:
        res = engine.run(cfg)
        results.append({'config': cfg, 'result': res})
    return results


__all__ = ['check_config', 'BacktestEngine', 'run_experiments']
