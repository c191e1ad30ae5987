"""Logging setup for fx-lsp, in the JupyterLab ``[L time module]`` style."""

from __future__ import annotations

import logging
import sys
from typing import ClassVar

_PACKAGE = "fx_lsp"


class PlainFormatter(logging.Formatter):
    """Formats records as ``[L YYYY-MM-DD HH:MM:SS.mmm module] message``."""

    LEVEL_CODES: ClassVar[dict[str, str]] = {
        "DEBUG": "D",
        "INFO": "I",
        "WARNING": "W",
        "ERROR": "E",
        "CRITICAL": "C",
    }

    def _timestamp(self, record: logging.LogRecord) -> str:
        ct = self.converter(record.created)
        return (
            f"{ct.tm_year:04d}-{ct.tm_mon:02d}-{ct.tm_mday:02d} "
            f"{ct.tm_hour:02d}:{ct.tm_min:02d}:{ct.tm_sec:02d}.{int(record.msecs):03d}"
        )

    def _module_name(self, record: logging.LogRecord) -> str:
        # Strip the package prefix so nested modules read as "_analyzer.aggregator"
        name = record.name
        if name.startswith(f"{_PACKAGE}."):
            return name[len(_PACKAGE) + 1 :]
        if name == _PACKAGE:
            return "FxLSP"
        return name

    def _prefix(self, record: logging.LogRecord) -> str:
        level_code = self.LEVEL_CODES.get(record.levelname, record.levelname[0])
        return f"[{level_code} {self._timestamp(record)} {self._module_name(record)}]"

    def format(self, record: logging.LogRecord) -> str:
        message = f"{self._prefix(record)} {record.getMessage()}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


class ColoredFormatter(PlainFormatter):
    """Same layout as :class:`PlainFormatter`, with the prefix colored by level."""

    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET: ClassVar[str] = "\033[0m"

    def _prefix(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        return f"{color}{super()._prefix(record)}{self.RESET}"


def setup_colored_logging(level: int = logging.INFO) -> None:
    """Configure root logging for fx-lsp.

    Colors are only used when stderr is a terminal; LSP clients reading stderr
    get the plain layout.

    Args:
        level: The logging level to use (e.g., logging.INFO, logging.DEBUG)
    """
    supports_color = hasattr(sys.stderr, "isatty") and sys.stderr.isatty()
    formatter = ColoredFormatter() if supports_color else PlainFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
