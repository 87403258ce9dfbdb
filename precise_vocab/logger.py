"""Logging for generation runs: one log file per run plus plain console output."""

import logging
import sys
from datetime import datetime

import config

DEFAULT_LOGGER_NAME = "precise_vocab"


def log_file_name(kind: str = "run", label: str | None = None, timestamp: datetime | None = None) -> str:
    """File name such as ``run_20260131_143022.log`` or ``batch_kitchen_20260131_143022.log``."""
    stamp = (timestamp or datetime.now()).strftime("%Y%m%d_%H%M%S")
    parts = [kind, label, stamp] if label else [kind, stamp]
    return "_".join(parts) + ".log"


def resolve_level(verbose: bool = False) -> int:
    """DEBUG when verbose, otherwise the configured level name."""
    if verbose:
        return logging.DEBUG
    level = getattr(logging, config.LOG_LEVEL.upper(), None)
    return level if isinstance(level, int) else logging.INFO


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    log_file: str | None = None,
    level: int = logging.INFO,
) -> logging.Logger:
    """
    Configure the generator's logger.

    Everything at ``level`` and above goes to ``config.LOGS_DIR / log_file``
    with timestamps; the console gets bare messages, so batch progress lines
    read the same on screen as in the orchestrator's history.

    Args:
        name: Logger name
        log_file: Log file name; a timestamped ``run_*.log`` if None
        level: Logging level

    Returns:
        Configured logger
    """
    config.LOGS_DIR.mkdir(parents=True, exist_ok=True)
    log_path = config.LOGS_DIR / (log_file or log_file_name())

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(config.LOG_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter("%(message)s"))

    for handler in (file_handler, console_handler):
        handler.setLevel(level)
        logger.addHandler(handler)

    logger.info(f"Log file: {log_path}")
    return logger


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    return logging.getLogger(name)


def setup_batch_logger(label: str, level: int = logging.INFO) -> logging.Logger:
    """Logger for a requests-file run, logging to ``batch_<label>_<time>.log``."""
    return setup_logger(log_file=log_file_name("batch", label), level=level)
