"""Logging configuration for worktree-keeper"""
import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

LOG_DIR = Path.home() / '.worktree-keeper'
LOG_FILE_NAME = 'worktree-keeper.log'

DETAILED_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
SHORT_FORMAT = '[%(name)s] %(levelname)s %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class ColoredFormatter(logging.Formatter):
    """Colors the level name when the target stream is a terminal."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, fmt: str, datefmt: Optional[str] = None, stream: Optional[TextIO] = None):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.stream = stream or sys.stderr

    def format(self, record):
        color = self.COLORS.get(record.levelname)
        if color and self.stream.isatty():
            # Copy so other handlers keep the plain level name
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def _console_handler(level: int, debug: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    fmt = DETAILED_FORMAT if debug else SHORT_FORMAT
    handler.setFormatter(ColoredFormatter(fmt, datefmt=DATE_FORMAT, stream=sys.stderr))
    return handler


def _file_handler(log_file: Path) -> logging.Handler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, mode='w')  # Overwrite each run
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(fmt=DETAILED_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(verbose: bool = False, debug: bool = False) -> Optional[Path]:
    """
    Configure logging for the application.

    Args:
        verbose: If True, show INFO level messages
        debug: If True, show DEBUG level messages with timestamps and also
            write them to ~/.worktree-keeper/worktree-keeper.log

    Returns:
        Path of the debug log file, or None when not in debug mode
    """
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    log_file = None
    if debug:
        log_file = LOG_DIR / LOG_FILE_NAME
        root_logger.addHandler(_file_handler(log_file))
    root_logger.addHandler(_console_handler(level, debug))

    # Commands are already logged by the executors; GitPython repeating each one is noise
    logging.getLogger('git').setLevel(logging.INFO if debug else logging.WARNING)

    return log_file


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for the specified module.

    Args:
        name: Name of the module (typically __name__)

    Returns:
        Logger instance
    """
    # Keep "services." so services.git.* does not land under GitPython's "git" logger
    if name.startswith('worktree_keeper.'):
        name = name.replace('worktree_keeper.', '', 1)

    return logging.getLogger(name)
