"""Module to handle logging to the console."""

import logging
import os


NOTICE = 25


class ColorFilter(logging.Filter):
    """A logging filter that colors messages by level."""

    # pylint: disable=too-few-public-methods

    colors = {
        logging.DEBUG: "\u001b[2m",
        logging.INFO: "",
        NOTICE: "\u001b[32m",
        logging.WARNING: "\u001b[33m",
        logging.ERROR: "\u001b[31m",
        logging.CRITICAL: "\u001b[31m",
    }

    reset = "\u001b[39;22m"

    def __init__(self, enabled: bool = True):
        super().__init__()
        self.enabled = enabled

    def filter(self, record):
        color = self.colors.get(record.levelno, "") if self.enabled else ""
        record.color = color
        record.colorreset = self.reset if color else ""
        return True


def setup_logging(verbose: bool = False):
    """Set up console logging for the command line tool."""
    root_logger = logging.getLogger(__name__.rpartition(".")[0])

    # Re-entrant: only adjust the level if we've been here before
    if logging.getLevelName("NOTICE") == NOTICE and root_logger.handlers:
        root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
        return

    logging.addLevelName(NOTICE, "NOTICE")

    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter("%(color)s%(message)s%(colorreset)s"))
    handler.addFilter(
        ColorFilter(enabled=handler.stream.isatty() and "NO_COLOR" not in os.environ)
    )

    # Set these handlers on the root logger of this module
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)


class LoggingMixin:
    """A mixin class for logging."""

    # pylint: disable=too-few-public-methods

    @property
    def logger(self) -> logging.Logger:
        """Create and return a logger for instance or class."""
        if not hasattr(self, "_logger") or not self._logger:
            self._logger = logging.getLogger(
                f"{self.__class__.__module__}.{self.__class__.__name__}"
            )
        return self._logger
