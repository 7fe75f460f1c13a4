"""
Logging for the market_scanner logger hierarchy: console, optional run log,
and an alerts file that only receives CRITICAL records (reconciliation
problems).
"""

from __future__ import annotations
import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _file_handler(path: Path, formatter: logging.Formatter, level: int = logging.NOTSET) -> logging.FileHandler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(formatter)
    handler.setLevel(level)
    return handler


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Path] = None,
    log_file: Optional[str] = None,
    alerts_file: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the package logger. Files are written under log_dir when given.
    Never log API keys or secrets.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger("market_scanner")
    root.setLevel(log_level)
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_dir:
        log_dir = Path(log_dir)
        if log_file:
            root.addHandler(_file_handler(log_dir / log_file, formatter))
        if alerts_file:
            root.addHandler(_file_handler(log_dir / alerts_file, formatter, logging.CRITICAL))

    # python-binance and urllib3 are chatty at DEBUG
    for noisy in ("urllib3", "binance"):
        logging.getLogger(noisy).setLevel(max(log_level, logging.WARNING))

    return root
