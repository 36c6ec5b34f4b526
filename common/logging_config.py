# common/logging_config.py
# -*- coding: utf-8 -*-
"""
Logging configuration for the installers.

Console output carries a level symbol (✅ ❌ ⚠️ ℹ️ 🐛 🔥) so that long
installer runs read like the coloured status lines of a shell installer.
An optional log file receives the same records without symbols, together
with the captured output of commands run through
``common.command_utils.run_logged``.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

from settings.config_models import SYMBOLS_DEFAULT

SIMPLE_LOG_FORMAT_WITH_PREFIX_PLACEHOLDER = (
    "{log_prefix}%(asctime)s - %(levelname)s - %(symbol)s %(message)s"
)
SIMPLE_LOG_FORMAT_NO_PREFIX = "%(asctime)s - %(levelname)s - %(symbol)s %(message)s"
FILE_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


class SymbolFormatter(logging.Formatter):
    """
    A custom formatter that adds symbols to log messages based on the log level.
    """

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        symbols: Optional[Dict[str, str]] = None,
    ):
        super().__init__(fmt, datefmt)
        self.symbols = symbols or SYMBOLS_DEFAULT

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno == logging.DEBUG:
            record.symbol = self.symbols.get("debug", "🐛")
        elif record.levelno == logging.INFO:
            record.symbol = self.symbols.get("info", "ℹ️")
        elif record.levelno == logging.WARNING:
            record.symbol = self.symbols.get("warning", "⚠️")
        elif record.levelno == logging.ERROR:
            record.symbol = self.symbols.get("error", "❌")
        elif record.levelno == logging.CRITICAL:
            record.symbol = self.symbols.get("critical", "🔥")
        else:
            record.symbol = ""

        return super().format(record)


def resolve_log_level(log_level: Optional[str] = None) -> int:
    """
    Translate a level name (or the ``LOG_LEVEL`` environment variable) into
    a numeric logging level, falling back to INFO for unknown names.
    """
    level_name = (log_level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    numeric_level = getattr(logging, level_name, None)
    if not isinstance(numeric_level, int):
        return logging.INFO
    return numeric_level


def setup_logging(
    log_level: int = logging.INFO,
    log_file: Optional[str] = None,
    log_to_console: bool = True,
    log_prefix: Optional[str] = None,
    symbols: Optional[Dict[str, str]] = None,
) -> logging.Logger:
    """
    Configures the root logger for an installer run.

    Parameters:
        log_level: The logging level to configure.
        log_file: Optional file path. Records are appended to it without
            symbols; parent directories are created.
        log_to_console: Whether to log to stdout.
        log_prefix: Optional prefix for console records.
        symbols: Optional mapping overriding the level symbols.

    Returns:
        The ``infra_installer`` logger.
    """
    handlers: List[logging.Handler] = []

    actual_prefix = (
        (log_prefix.strip() + " ")
        if log_prefix and log_prefix.strip()
        else ""
    )
    if actual_prefix:
        console_format = SIMPLE_LOG_FORMAT_WITH_PREFIX_PLACEHOLDER.format(
            log_prefix=actual_prefix
        )
    else:
        console_format = SIMPLE_LOG_FORMAT_NO_PREFIX

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(
            SymbolFormatter(
                fmt=console_format,
                datefmt="%Y-%m-%d %H:%M:%S",
                symbols=symbols,
            )
        )
        handlers.append(console_handler)

    if log_file:
        try:
            log_file_path = Path(log_file)
            log_file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(
                log_file_path, mode="a", encoding="utf-8"
            )
            file_handler.setFormatter(
                logging.Formatter(FILE_LOG_FORMAT, "%Y-%m-%d %H:%M:%S")
            )
            handlers.append(file_handler)
        except OSError as e:
            print(
                f"Warning: Could not create file handler for log file {log_file}: {e}",
                file=sys.stderr,
            )

    if not handlers:  # pragma: no cover
        handlers.append(logging.StreamHandler(sys.stdout))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    for handler in handlers:
        handler.setLevel(log_level)
        root_logger.addHandler(handler)

    logger = logging.getLogger("infra_installer")
    logger.debug(
        f"Logging configured. Level: {logging.getLevelName(log_level)}. "
        f"Log file: {log_file or 'none'}"
    )
    return logger


def add_file_handler(log_file: str) -> logging.Handler:
    """
    Attach an additional plain-text file handler to the root logger.

    Used by installers that keep a per-run log file (the Ansible installer
    writes ``/tmp/ansible_install_<timestamp>.log``). The caller removes the
    handler with :func:`remove_handler` when it is done.
    """
    log_file_path = Path(log_file)
    log_file_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file_path, mode="a", encoding="utf-8")
    handler.setFormatter(
        logging.Formatter(FILE_LOG_FORMAT, "%Y-%m-%d %H:%M:%S")
    )
    logging.getLogger().addHandler(handler)
    return handler


def remove_handler(handler: logging.Handler) -> None:
    logging.getLogger().removeHandler(handler)
    handler.close()
