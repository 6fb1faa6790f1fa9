"""
Logging for liqauction.

All loggers hang off the `liqauction` root, one child per subsystem
(ledger, commit_reveal, protection, settlement, cleanup, engine, events).
Console output is colored with colorlog; the CLI can add a plain-text file.

Library users get console logging on first use. The CLI calls
setup_logging() to pick a level and optionally a log directory.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import colorlog

ROOT_NAME = "liqauction"
LOG_FILE = "liqauction.log"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

CONSOLE_FORMAT = "%(log_color)s%(asctime)s %(levelname)-8s%(reset)s [%(name)s] %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"

LEVEL_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


class LiqAuctionLogger:
    """Owns handler setup for the `liqauction` logger tree."""

    _initialized = False
    _log_dir: Optional[Path] = None

    @classmethod
    def setup(
        cls,
        level: int = logging.INFO,
        log_dir: Optional[str] = None,
        log_to_file: bool = True,
    ):
        """
        Attach handlers to the root `liqauction` logger. Runs once until reset().

        Args:
            level: Minimum level for every handler
            log_dir: Where liqauction.log goes; ./logs when omitted
            log_to_file: Add the file handler
        """
        if cls._initialized:
            return

        root = logging.getLogger(ROOT_NAME)
        root.setLevel(level)
        root.handlers.clear()

        console = colorlog.StreamHandler(sys.stdout)
        console.setLevel(level)
        console.setFormatter(colorlog.ColoredFormatter(
            CONSOLE_FORMAT, datefmt=DATE_FORMAT, log_colors=LEVEL_COLORS
        ))
        root.addHandler(console)

        if log_to_file:
            cls._log_dir = Path(log_dir or "logs")
            cls._log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(cls._log_dir / LOG_FILE)
            file_handler.setLevel(level)
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
            root.addHandler(file_handler)

        cls._initialized = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Child logger `liqauction.<name>`; sets up console logging if nobody has."""
        if not cls._initialized:
            cls.setup(log_to_file=False)
        return logging.getLogger(f"{ROOT_NAME}.{name}")

    @classmethod
    def reset(cls) -> None:
        """Allow setup() to run again with new settings."""
        cls._initialized = False
        cls._log_dir = None


def get_logger(name: str) -> logging.Logger:
    return LiqAuctionLogger.get_logger(name)


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[str] = None,
    log_to_file: bool = True,
):
    """Configure logging, replacing any earlier setup"""
    LiqAuctionLogger.reset()
    LiqAuctionLogger.setup(level=level, log_dir=log_dir, log_to_file=log_to_file)
