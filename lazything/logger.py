"""
Logging for lazything.

Everything logs through the `lazything` logger tree. The CLI attaches one
console handler (compact symbols by default, a timestamped coloured layout
with -v, JSON lines with --json-logs) and optionally a debug-level file
handler. ProgressReporter draws the per-stage progress bar.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, TextIO

LOGGER_NAME = 'lazything'

RESET = "\033[0m"

LEVEL_STYLES = {
    logging.DEBUG: "\033[2;36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;31m",
}

# Attributes every LogRecord carries; anything else came in through `extra`
_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {'message', 'asctime'}


def supports_color(stream: TextIO) -> bool:
    isatty = getattr(stream, 'isatty', None)
    return bool(isatty and isatty())


# =============================================================================
# Formatters
# =============================================================================

class CompactFormatter(logging.Formatter):
    """One symbol and the message, for everyday CLI output."""

    SYMBOLS = {
        logging.DEBUG: '·',
        logging.INFO: '→',
        logging.WARNING: '⚠',
        logging.ERROR: '✗',
        logging.CRITICAL: '‼',
    }

    def format(self, record: logging.LogRecord) -> str:
        symbol = self.SYMBOLS.get(record.levelno, '?')
        return f"{symbol} {record.getMessage()}"


class ColoredFormatter(logging.Formatter):
    """
    Timestamped layout for verbose runs.

        13:35:47 │ INFO    │ hunter │ Found: 12 repository

    Logger names are shown relative to the package.
    """

    FORMAT = "%(asctime)s │ %(levelname)s │ %(name)s │ %(message)s"
    DATEFMT = "%H:%M:%S"

    def __init__(self, use_colors: bool = True):
        super().__init__(self.FORMAT, self.DATEFMT)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        # Handlers share the record; decorate a copy
        record = logging.makeLogRecord(record.__dict__)
        record.name = record.name.replace(LOGGER_NAME + '.', '', 1)
        record.levelname = f"{record.levelname:<7}"

        if self.use_colors:
            style = LEVEL_STYLES.get(record.levelno, '')
            record.levelname = f"{style}{record.levelname}{RESET}"

        return super().format(record)


class JSONFormatter(logging.Formatter):
    """One JSON object per line, including fields passed via `extra`."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        entry.update(
            (key, value) for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS
        )
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


# =============================================================================
# Setup
# =============================================================================

def setup_logger(
    name: str = LOGGER_NAME,
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    json_output: bool = False,
    colored: bool = True,
    compact: bool = False,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Replace the handlers of the lazything logger.

    Args:
        name: Logger name
        level: Console level
        log_file: Also log everything (DEBUG and up) to this file
        json_output: JSON lines on console and in the file
        colored: Colour the level column when the stream is a terminal
        compact: Symbol-prefixed messages only
        stream: Console stream (default: stdout)

    Returns:
        Configured logger instance
    """
    stream = stream or sys.stdout

    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.DEBUG if log_file else level)
    logger.propagate = False

    console = logging.StreamHandler(stream)
    console.setLevel(level)
    if json_output:
        console.setFormatter(JSONFormatter())
    elif compact:
        console.setFormatter(CompactFormatter())
    else:
        console.setFormatter(ColoredFormatter(use_colors=colored and supports_color(stream)))
    logger.addHandler(console)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            JSONFormatter() if json_output
            else logging.Formatter("%(asctime)s | %(levelname)-7s | %(name)s | %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    return logging.getLogger(name)


def set_level(level: str):
    """Change the console level by name ('debug', 'info', 'warning', ...)."""
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    logger = logging.getLogger(LOGGER_NAME)
    for handler in logger.handlers:
        if not isinstance(handler, logging.FileHandler):
            handler.setLevel(log_level)
    if not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        logger.setLevel(log_level)


# =============================================================================
# Progress Reporting
# =============================================================================

class ProgressReporter:
    """
    Single-line progress bar for one pipeline stage.

    Usage:
        with ProgressReporter(len(hits), "Checking dates") as progress:
            progress.update(done)
    """

    def __init__(
        self,
        total: int,
        prefix: str = "Working",
        bar_width: int = 30,
        stream: Optional[TextIO] = None,
    ):
        self.total = total
        self.prefix = prefix
        self.bar_width = bar_width
        self.stream = stream or sys.stdout
        self.completed = 0

    def start(self):
        self._draw()

    def update(self, completed: int):
        """Move the bar to an absolute completed count."""
        self.completed = min(completed, self.total)
        self._draw()

    def finish(self):
        self.stream.write("\n")
        self.stream.flush()

    def _draw(self):
        ratio = self.completed / self.total if self.total else 1.0
        filled = int(self.bar_width * ratio)
        bar = '█' * filled + '░' * (self.bar_width - filled)
        self.stream.write(f"\r{self.prefix} │{bar}│ {self.completed}/{self.total} ({ratio:.0%})")
        self.stream.flush()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *args):
        self.finish()
