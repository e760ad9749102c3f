"""
Logging setup for the backtester.

Library modules only call ``get_logger(__name__)``, so records arrive under
``backtest.*``, ``blocks.*`` and ``util.*``. Handlers are installed once, by
the CLI (or a test), through ``setup_logging``. Per-action and per-fill
detail is DEBUG; run summaries are INFO.
"""

import logging
import os
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# chatty below WARNING: akshare's HTTP stack and matplotlib's font manager
NOISY_LOGGERS = ('urllib3', 'requests', 'matplotlib', 'PIL')


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """Configure the root logger with a console and an optional UTF-8 file handler.

    ``level`` / ``log_file`` default to the ``LOG_LEVEL`` / ``LOG_FILE``
    environment variables. Calling it again replaces the previous handlers.
    Third-party loggers in ``NOISY_LOGGERS`` are held at WARNING unless the
    run itself is at DEBUG.
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_file = log_file or os.getenv("LOG_FILE")
    numeric_level = getattr(logging, level_name, logging.INFO)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    third_party_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
