"""Logging configuration for Thread Harvester.

Console output goes to stderr so stdout carries only the record dumps.
When a logs directory is given, every record also lands in ``harvester.log``
and the source and database packages get a file of their own.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MAIN_LOG_FILE = "harvester.log"
DEBUG_LOG_FILE = "harvester_debug.log"

# Extra files per package; records still propagate to the main file
COMPONENT_LOG_FILES: Dict[str, str] = {
    "sources.log": "harvester.api",
    "database.log": "harvester.db",
}

# Chatty third-party loggers capped at WARNING unless debugging
QUIET_LOGGERS = ("urllib3", "sqlalchemy.engine")


class LogManager:
    """Installs and removes the harvester's log handlers."""

    def __init__(self, log_level: int = logging.INFO,
                 logs_dir: Optional[Path] = None,
                 console: bool = True,
                 enable_debug_file: bool = False):
        """Configure the root logger.

        Args:
            log_level: Level for the console and the regular log files
            logs_dir: Directory for log files, or None for console only
            console: Whether to log to stderr
            enable_debug_file: Also write everything at DEBUG to ``harvester_debug.log``
        """
        self.log_level = log_level
        self.logs_dir = Path(logs_dir) if logs_dir else None
        self.enable_debug_file = enable_debug_file and self.logs_dir is not None
        self._attached: List[tuple] = []

        if self.logs_dir:
            self.logs_dir.mkdir(exist_ok=True, parents=True)

        self._install(console)
        logging.getLogger(__name__).debug(
            f"Logging to {'stderr' if console else 'no console'}"
            f"{f' and {self.logs_dir}' if self.logs_dir else ''} at {logging.getLevelName(log_level)}"
        )

    def _install(self, console: bool):
        root = logging.root
        # Replace whatever an earlier basicConfig or LogManager left behind
        for handler in root.handlers[:]:
            root.removeHandler(handler)
        root.setLevel(logging.DEBUG if self.enable_debug_file else self.log_level)

        if self.log_level > logging.DEBUG:
            for name in QUIET_LOGGERS:
                logging.getLogger(name).setLevel(logging.WARNING)

        if console:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
            self._attach(root, handler, self.log_level)

        if not self.logs_dir:
            return

        self._attach(root, self._file_handler(MAIN_LOG_FILE), self.log_level)
        for filename, logger_name in COMPONENT_LOG_FILES.items():
            self._attach(logging.getLogger(logger_name), self._file_handler(filename), self.log_level)

        if self.enable_debug_file:
            self._attach(root, self._file_handler(DEBUG_LOG_FILE), logging.DEBUG)

    def _file_handler(self, filename: str) -> logging.FileHandler:
        handler = logging.FileHandler(self.logs_dir / filename)
        handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, datefmt=DATE_FORMAT))
        return handler

    def _attach(self, target: logging.Logger, handler: logging.Handler, level: int):
        handler.setLevel(level)
        target.addHandler(handler)
        self._attached.append((target, handler))

    def get_logger(self, name: str) -> logging.Logger:
        return logging.getLogger(name)

    def close(self):
        """Detach and close every handler this manager installed."""
        for target, handler in self._attached:
            target.removeHandler(handler)
            handler.close()
        self._attached = []
