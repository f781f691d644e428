"""Logging setup for the PFFL CLI tools and handlers.

Engine modules log to 'pffl.<module>' loggers and never configure handlers
themselves; entry points call setup_logging() once.
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

ROOT_LOGGER = 'pffl'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
CONSOLE_FORMAT = '%(levelname)s: %(message)s'


def _log_level(level: Optional[int]) -> int:
    """Explicit level, else $PFFL_LOG_LEVEL (a name such as DEBUG), else INFO."""
    if level is not None:
        return level
    name = os.environ.get('PFFL_LOG_LEVEL', 'INFO').upper()
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.INFO


def setup_logging(
    log_dir: Optional[Path] = None,
    level: Optional[int] = None,
    log_to_file: bool = True,
    log_to_console: bool = True,
    run_name: str = 'pffl',
) -> logging.Logger:
    """
    Attach file and console handlers to the 'pffl' logger.

    Calling it again closes and replaces the handlers from the previous call, so a
    script can reconfigure without duplicating output.

    Args:
        log_dir: Directory for log files (default: $PFFL_LOG_DIR or ./logs)
        level: Logging level (default: $PFFL_LOG_LEVEL or INFO)
        log_to_file: Write a timestamped <run_name>_YYYYmmdd_HHMMSS.log file
        log_to_console: Echo to stdout in a short format
        run_name: Prefix for the log file name, e.g. 'gw3'

    Returns:
        The configured 'pffl' logger

    Example:
        from pffl.logging_config import setup_logging
        logger = setup_logging(run_name='gw3')
        logger.info("Scoring gameweek 3")
    """
    level = _log_level(level)
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    for old in logger.handlers:
        old.close()
    logger.handlers = []

    handlers: list[logging.Handler] = []
    if log_to_file:
        log_dir = Path(log_dir or os.environ.get('PFFL_LOG_DIR', 'logs'))
        log_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        file_handler = logging.FileHandler(log_dir / f'{run_name}_{stamp}.log')
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        handlers.append(file_handler)
    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        handlers.append(console_handler)

    for handler in handlers:
        handler.setLevel(level)
        logger.addHandler(handler)
    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """
    Logger under the pffl namespace.

    get_logger('scorer') and get_logger('pffl.scorer') return the same logger.
    """
    if name != ROOT_LOGGER and not name.startswith(f'{ROOT_LOGGER}.'):
        name = f'{ROOT_LOGGER}.{name}'
    return logging.getLogger(name)
