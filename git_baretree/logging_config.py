"""Logging configuration for git-baretree"""
import logging
import sys
from pathlib import Path

from git_baretree.constants import LOG_DIR_NAME, LOG_FILE_NAME

DEBUG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _log_file_handler() -> logging.Handler:
    """Handler writing a fresh debug log to ~/.git-baretree/ on each run."""
    log_dir = Path.home() / LOG_DIR_NAME
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_dir / LOG_FILE_NAME, mode='w')
    handler.setFormatter(logging.Formatter(DEBUG_FORMAT, DATE_FORMAT))
    return handler


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """
    Configure the root logger for one migration run.

    Args:
        verbose: Show INFO messages (which files moved, which links were written)
        debug: Show DEBUG messages and keep a log file of the run
    """
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(
        logging.Formatter(DEBUG_FORMAT, DATE_FORMAT) if debug else logging.Formatter('[%(name)s] %(message)s')
    )
    root_logger.addHandler(console_handler)

    if debug:
        root_logger.addHandler(_log_file_handler())


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, named without the package prefix (e.g. "migration")."""
    for prefix in ('git_baretree.', 'services.'):
        if name.startswith(prefix):
            name = name[len(prefix):]
    return logging.getLogger(name)
