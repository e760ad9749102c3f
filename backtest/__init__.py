"""Backtest core: data model, order simulator, orchestrator, metrics, engine."""

__all__ = [
    "models",
    "errors",
    "orders",
    "portfolio",
    "backtester",
    "performance",
    "engine",
    "runner",
    "live",
]
