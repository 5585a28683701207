"""
Logging utility with console and file output.

Implements ILogger interface for dependency injection. Components that are
not handed a logger build a bare `Logger()`, which attaches to the named
logger as already configured by the driver instead of replacing its handlers.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from cbc_timing_oracle.core.interfaces import ILogger


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class Logger(ILogger):
    """
    Concrete implementation of logging functionality.

    Passing any of level, log_file or console (re)configures the named
    logger; passing none of them reuses its current handlers, falling back
    to INFO on the console when it has none yet.

    Example:
        >>> cli_logger = Logger(level="DEBUG", log_file="logs/attack.log")
        >>> component_logger = Logger()  # same handlers as cli_logger
    """

    def __init__(
        self,
        name: str = "PaddingOracle",
        level: Optional[str] = None,
        log_file: Optional[str] = None,
        console: Optional[bool] = None
    ):
        """
        Initialize logger.

        Args:
            name: Logger name
            level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_file: Optional file path for log output
            console: Whether to log to console
        """
        self.logger = logging.getLogger(name)

        explicit = level is not None or log_file is not None or console is not None
        if explicit or not self.logger.handlers:
            self._configure(level or "INFO", log_file, True if console is None else console)

    def _configure(self, level: str, log_file: Optional[str], console: bool) -> None:
        self.logger.setLevel(getattr(logging, level.upper()))
        self.close()

        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

        if console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)

        if log_file:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

        if not self.logger.handlers:
            # Silent logger: keep records away from logging's last-resort handler
            self.logger.addHandler(logging.NullHandler())

    def close(self) -> None:
        """Detach and close every handler of the named logger."""
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

    def debug(self, message: str) -> None:
        """Log debug message."""
        self.logger.debug(message)

    def info(self, message: str) -> None:
        """Log info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log error message."""
        self.logger.error(message)
