"""Shared helpers: indicator library, historical data source, logging, config."""

__all__ = [
    "indicators",
    "market_data_handler",
    "logger",
    "config_loader",
]
