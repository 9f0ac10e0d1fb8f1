#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Core utility functions for the project.

This module provides helper functions for:
- Logging setup (symbol and colour formatting).
- Redaction of registered secrets from every log line.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from provision.config_models import SYMBOLS_DEFAULT

module_logger = logging.getLogger(__name__)

SIMPLE_LOG_FORMAT_WITH_PREFIX_PLACEHOLDER = "{log_prefix}%(asctime)s - %(levelname)s - %(symbol)s %(name)s - %(message)s"
SIMPLE_LOG_FORMAT_NO_PREFIX = (
    "%(asctime)s - %(levelname)s - %(symbol)s %(name)s - %(message)s"
)

REDACTED = "********"
REVEAL_SECRETS_EXTRA = "reveal_secrets"

ANSI_COLOURS: Dict[int, str] = {
    logging.DEBUG: "\033[0;36m",
    logging.INFO: "\033[0;32m",
    logging.WARNING: "\033[1;33m",
    logging.ERROR: "\033[0;31m",
    logging.CRITICAL: "\033[0;31m",
}
ANSI_RESET = "\033[0m"


class SymbolFormatter(logging.Formatter):
    """
    A formatter that adds a symbol per log level and, optionally, colours
    the level name.
    """

    def __init__(
        self,
        fmt=None,
        datefmt=None,
        style="%",
        validate=True,
        symbols=None,
        use_colour: bool = False,
    ):
        super().__init__(fmt, datefmt, style, validate)
        self.symbols = symbols or SYMBOLS_DEFAULT
        self.use_colour = use_colour

    def format(self, record):
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

        formatted = super().format(record)
        if self.use_colour and record.levelno in ANSI_COLOURS:
            formatted = formatted.replace(
                record.levelname,
                f"{ANSI_COLOURS[record.levelno]}{record.levelname}{ANSI_RESET}",
                1,
            )
        return formatted


class SecretRedactingFilter(logging.Filter):
    """
    Masks registered secret values in log records.

    Records logged with ``extra={"reveal_secrets": True}`` pass through
    untouched.
    """

    def __init__(self, secrets: Optional[Iterable[str]] = None):
        super().__init__()
        self._secrets: Set[str] = set()
        for secret in secrets or []:
            self.add_secret(secret)

    def add_secret(self, secret: Optional[str]) -> None:
        # Very short values would mask unrelated text.
        if secret and len(secret) >= 4:
            self._secrets.add(secret)

    def redact(self, text: str) -> str:
        for secret in sorted(self._secrets, key=len, reverse=True):
            text = text.replace(secret, REDACTED)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, REVEAL_SECRETS_EXTRA, False) or not self._secrets:
            return True
        message = record.getMessage()
        redacted = self.redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


_REDACTION_FILTER = SecretRedactingFilter()


def get_redaction_filter() -> SecretRedactingFilter:
    """Returns the process-wide filter attached by setup_logging()."""
    return _REDACTION_FILTER


def setup_logging(
    log_level: int = logging.INFO,
    log_file: Optional[str] = None,
    log_to_console: bool = True,
    log_format_str: Optional[str] = None,
    log_prefix: Optional[str] = None,
    symbols: Optional[Dict[str, str]] = None,
) -> None:
    """
    Configures root logging for the provisioner.

    Console output is coloured when stdout is a terminal. Every handler gets
    the shared SecretRedactingFilter.

    Parameters:
    log_level: int
        The logging level to configure. Defaults to logging.INFO.
    log_file: Optional[str]
        Also append log lines to this file.
    log_to_console: bool
        Whether to log to stdout.
    log_format_str: Optional[str]
        Custom format string; may contain a ``{log_prefix}`` placeholder.
    log_prefix: Optional[str]
        String prepended to every line.
    symbols: Optional[Dict[str, str]]
        Level symbols. Defaults to SYMBOLS_DEFAULT.
    """
    handlers: List[logging.Handler] = []
    file_handler: Optional[logging.Handler] = None
    if log_file:
        try:
            log_file_path = Path(log_file)
            log_file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file_path, mode="a")
            handlers.append(file_handler)
        except OSError as e:
            print(
                f"Warning: Could not create file handler for log file {log_file}: {e}",
                file=sys.stderr,
            )

    console_handler: Optional[logging.Handler] = None
    if log_to_console or not handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        handlers.append(console_handler)

    actual_prefix = (
        (log_prefix.strip() + " ")
        if log_prefix and log_prefix.strip()
        else ""
    )

    if log_format_str:
        if "{log_prefix}" in log_format_str:
            final_format_str = log_format_str.format(log_prefix=actual_prefix)
        else:
            final_format_str = actual_prefix + log_format_str
    elif actual_prefix:
        final_format_str = SIMPLE_LOG_FORMAT_WITH_PREFIX_PLACEHOLDER.format(
            log_prefix=actual_prefix
        )
    else:
        final_format_str = SIMPLE_LOG_FORMAT_NO_PREFIX

    is_tty = bool(getattr(sys.stdout, "isatty", lambda: False)())
    for handler in handlers:
        handler.setFormatter(
            SymbolFormatter(
                fmt=final_format_str,
                datefmt="%Y-%m-%d %H:%M:%S",
                symbols=symbols,
                use_colour=handler is console_handler and is_tty,
            )
        )
        handler.addFilter(_REDACTION_FILTER)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    for handler in handlers:
        root_logger.addHandler(handler)

    module_logger.debug(
        f"Logging configured. Level: {logging.getLevelName(log_level)}. Format: '{final_format_str}'"
    )
