"""
Configuration loader utility.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv


_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(slots=True)
class Settings:
    log_level: str = "INFO"
    log_file: Optional[str] = None
    disable_proxies: bool = True
    data_cache: bool = True


class ConfigLoader:
    """Handles loading configuration from ``.env`` and YAML files."""

    def __init__(self, config_dir: str = "configs"):
        self.config_dir = Path(config_dir)

        # Load environment variables
        env_file = self.config_dir / ".env"
        if env_file.exists():
            load_dotenv(env_file)

    def load_yaml(self, path: str | Path) -> Dict[str, Any]:
        """Load a YAML file; relative names are resolved against ``config_dir``."""
        config_file = Path(path)
        if not config_file.is_absolute() and not config_file.exists():
            config_file = self.config_dir / config_file

        if not config_file.exists():
            raise FileNotFoundError(f"Config not found: {config_file}")

        with open(config_file, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}

    def get_config_value(self, key: str, default: Any = None) -> Any:
        """Get configuration value from environment or default."""
        return os.getenv(key, default)

    def get_bool(self, key: str, default: bool) -> bool:
        raw = os.getenv(key)
        if raw is None:
            return default
        return raw.strip().lower() in _TRUTHY

    def load_backtest_settings(self) -> Settings:
        return Settings(
            log_level=self.get_config_value("LOG_LEVEL", "INFO"),
            log_file=self.get_config_value("LOG_FILE"),
            disable_proxies=self.get_bool("BACKTEST_DISABLE_PROXIES", True),
            data_cache=self.get_bool("BACKTEST_DATA_CACHE", True),
        )


__all__ = ['Settings', 'ConfigLoader']
