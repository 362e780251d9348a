# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Logging setup for antigravity-workflows.

Components log through ``logging.getLogger("agw.<component>")``. The CLI
calls :func:`configure_logging` once to attach handlers to the ``agw``
logger. Diagnostics go to stderr so that command output on stdout stays
clean.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional

ROOT_LOGGER = "agw"


class AGWLogger:
    """
    Handler configuration for the ``agw`` logger tree.

    Features:
    - Console logging on stderr
    - Optional file logging with rotation
    - Level changes at runtime
    """

    def __init__(
        self,
        name: str = ROOT_LOGGER,
        level: str = "WARNING",
        log_dir: Optional[Path] = None,
        console_output: bool = True,
        file_output: bool = False,
    ):
        self.name = name
        self.logger = logging.getLogger(name)
        self.log_file: Optional[Path] = None

        # Reconfiguring replaces handlers from a previous run
        self.logger.handlers.clear()
        self.logger.setLevel(self._parse_level(level))

        console_formatter = logging.Formatter(
            fmt="[%(asctime)s] [%(name)s:%(levelname)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        file_formatter = logging.Formatter(
            fmt="%(asctime)s | %(name)s | %(levelname)s | %(filename)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        if console_output:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(console_formatter)
            console_handler.setLevel(self._parse_level(level))
            self.logger.addHandler(console_handler)

        if file_output:
            if log_dir is None:
                log_dir = Path.home() / ".agw" / "logs"

            log_dir.mkdir(parents=True, exist_ok=True)
            self.log_file = log_dir / f"{name}.log"

            # Rotate after 10MB, keep 5 backup files
            file_handler = RotatingFileHandler(
                self.log_file,
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding="utf-8",
            )
            file_handler.setFormatter(file_formatter)
            file_handler.setLevel(logging.DEBUG)
            self.logger.addHandler(file_handler)
            # File handler receives everything the logger lets through
            self.logger.setLevel(logging.DEBUG)

    @staticmethod
    def _parse_level(level: str) -> int:
        """Convert string level to logging constant"""
        levels = {
            "DEBUG": logging.DEBUG,
            "INFO": logging.INFO,
            "WARNING": logging.WARNING,
            "ERROR": logging.ERROR,
            "CRITICAL": logging.CRITICAL,
        }
        return levels.get(level.upper(), logging.WARNING)

    def close(self):
        """Detach and close all handlers"""
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()


_loggers: Dict[str, AGWLogger] = {}


def configure_logging(
    level: Optional[str] = None,
    log_to_file: bool = False,
    log_dir: Optional[Path] = None,
    name: str = ROOT_LOGGER,
) -> AGWLogger:
    """
    Configure (or reconfigure) handlers for a logger tree.

    Args:
        level: Log level; falls back to AGW_LOG_LEVEL, then WARNING
        log_to_file: Also write a rotating log file
        log_dir: Directory for the log file (default ~/.agw/logs)
        name: Logger name to configure

    Returns:
        AGWLogger instance
    """
    previous = _loggers.pop(name, None)
    if previous is not None:
        previous.close()

    log_level = level or os.getenv("AGW_LOG_LEVEL", "WARNING")
    _loggers[name] = AGWLogger(
        name=name,
        level=log_level,
        log_dir=log_dir,
        file_output=log_to_file,
    )
    return _loggers[name]
