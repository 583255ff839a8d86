"""Logging configuration for gitlane.

Workers, refresh threads and the UI thread all log, so every record carries
its thread name. While the TUI owns the terminal nothing goes to stderr:
the main log and the command log are written under ``~/.gitlane``.
"""
import logging
import sys
from pathlib import Path
from typing import Optional

# Logger that ActionLog writes user actions and executed commands to
COMMAND_LOGGER = "commands"

THREADED_FORMAT = "%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s"
COMMAND_FORMAT = "%(asctime)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# GitPython logs every spawned process at DEBUG
NOISY_LOGGERS = ("git.cmd", "git.util", "asyncio")


class ColoredFormatter(logging.Formatter):
    """Colours the level name when stderr is a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;35m",
    }
    RESET = "\033[0m"

    def format(self, record):
        color = self.COLORS.get(record.levelname)
        if color is None or not sys.stderr.isatty():
            return super().format(record)
        # Colour a copy so other handlers still see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def get_log_dir() -> Path:
    """Directory holding the log files and persisted state."""
    return Path.home() / ".gitlane"


def _file_handler(path: Path, fmt: str) -> logging.FileHandler:
    handler = logging.FileHandler(path, mode="w")  # Overwrite each run
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=DATE_FORMAT))
    return handler


def setup_logging(
    verbose: bool = False,
    debug: bool = False,
    tui_mode: bool = False,
    log_file: Optional[Path] = None,
) -> None:
    """
    Configure logging for the application.

    Args:
        verbose: If True, show INFO level messages
        debug: If True, show DEBUG level messages, thread names and GitPython's process log
        tui_mode: If True, log to files only (the TUI owns the terminal)
        log_file: Override for the main log file; the command log sits beside it
    """
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(logging.DEBUG if tui_mode else level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)

    command_logger = logging.getLogger(COMMAND_LOGGER)
    for handler in command_logger.handlers[:]:
        command_logger.removeHandler(handler)

    if tui_mode or debug:
        if log_file is None:
            log_dir = get_log_dir()
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file = log_dir / "gitlane.log"
        root_logger.addHandler(_file_handler(log_file, THREADED_FORMAT))
        # Commands also get a file of their own, still propagating to the main log
        command_logger.addHandler(
            _file_handler(log_file.with_name("commands.log"), COMMAND_FORMAT)
        )

    if not tui_mode:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        fmt = THREADED_FORMAT if debug else "[%(name)s] %(message)s"
        console_handler.setFormatter(ColoredFormatter(fmt=fmt, datefmt=DATE_FORMAT))
        root_logger.addHandler(console_handler)


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, named without the package prefix."""
    for prefix in ("gitlane.", "services."):
        if name.startswith(prefix):
            name = name[len(prefix):]
    return logging.getLogger(name)
