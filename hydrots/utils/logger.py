"""Logging for hydrots.

Every module binds an adapter with ``setup_logger("<routine>")`` so that records
from the void detector, the spline interpolator or the drought extractor carry
their routine name in one shared log. The level and file can be overridden with
``HYDROTS_LOG_LEVEL`` and ``HYDROTS_LOG_FILE``; ``NO_COLOR`` and ``NO_EMOJI``
plain the console output.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
import os
from pathlib import Path
import sys
from typing import Any

_DEFAULT_LOGGER_NAME = "hydrots"
_DEFAULT_LOG_DIR = "logs"
_DEFAULT_LOG_FILENAME = "hydrots.log"
_ROTATE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
_ROTATE_BACKUP_COUNT = 5
_CONFIGURED_FLAG = "_hydrots_configured"

_LEVEL_EMOJIS: dict[int, str] = {
    logging.DEBUG: "🐞  ",
    logging.INFO: "💧  ",
    logging.WARNING: "⚠️  ",
    logging.ERROR: "❌  ",
    logging.CRITICAL: "🚨  ",
}

_LEVEL_COLORS: dict[int, str] = {
    logging.DEBUG: "\x1b[38;5;244m",  # Grey
    logging.INFO: "\x1b[38;5;39m",  # Blue
    logging.WARNING: "\x1b[38;5;214m",  # Orange
    logging.ERROR: "\x1b[38;5;196m",  # Red
    logging.CRITICAL: "\x1b[48;5;196;38;5;231m",  # White on Red
}
_RESET_COLOR = "\x1b[0m"


class EmojiFormatter(logging.Formatter):
    """Formatter adding an emoji prefix, the routine context and optional color."""

    def __init__(self, *, use_color: bool = True, use_emoji: bool = True):
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(func_ctx)s | %(emoji)s%(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self.use_color = use_color
        self.use_emoji = use_emoji

    def format(self, record: logging.LogRecord) -> str:
        """Formats the record, joining stray positional args when %-formatting fails."""
        if not hasattr(record, "func_ctx"):
            record.func_ctx = "-"  # type: ignore[attr-defined]

        if record.args:
            try:
                _ = record.msg % record.args
            except (TypeError, ValueError):
                record.msg = " ".join([str(record.msg), *(str(a) for a in record.args)])
                record.args = ()

        record.emoji = _LEVEL_EMOJIS.get(record.levelno, "➡️  ") if self.use_emoji else ""
        formatted = super().format(record)

        if self.use_color and (color := _LEVEL_COLORS.get(record.levelno)):
            return f"{color}{formatted}{_RESET_COLOR}"
        return formatted


def _determine_log_level(explicit_level: int | str | None) -> int:
    """Resolve the level from an explicit value, HYDROTS_LOG_LEVEL, or INFO."""
    if isinstance(explicit_level, int):
        return explicit_level
    level_str = str(explicit_level or os.getenv("HYDROTS_LOG_LEVEL", "INFO")).upper()
    return getattr(logging, level_str, logging.INFO)


def get_logger(name: str = _DEFAULT_LOGGER_NAME, *, level: int | str | None = None) -> logging.Logger:
    """Shared base logger with a console handler; ``level`` is reapplied when given."""
    logger = logging.getLogger(name)
    log_level = _determine_log_level(level)

    if getattr(logger, _CONFIGURED_FLAG, False):
        if level is not None:
            logger.setLevel(log_level)
        return logger

    logger.setLevel(log_level)
    logger.propagate = False

    use_color = sys.stdout.isatty() and os.getenv("NO_COLOR") is None
    use_emoji = os.getenv("NO_EMOJI") is None

    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(EmojiFormatter(use_color=use_color, use_emoji=use_emoji))
        logger.addHandler(stream_handler)

    setattr(logger, _CONFIGURED_FLAG, True)
    logger.debug(
        "Logger '%s' initialized at level %s (color=%s, emoji=%s).",
        name,
        logging.getLevelName(log_level),
        use_color,
        use_emoji,
    )
    return logger


class _FunctionContextAdapter(logging.LoggerAdapter):
    """LoggerAdapter that stamps every record with the bound ``func_ctx``."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        if self.extra is not None:
            kwargs.setdefault("extra", {})["func_ctx"] = self.extra.get("func_ctx", "-")
        return msg, kwargs


def setup_logger(
    function_name: str,
    *,
    level: int | str | None = None,
    logger_name: str = _DEFAULT_LOGGER_NAME,
    log_file: str | Path | None = None,
    rotate: bool = True,
    max_bytes: int = _ROTATE_MAX_BYTES,
    backup_count: int = _ROTATE_BACKUP_COUNT,
) -> logging.LoggerAdapter:
    """Return a logger adapter bound to a routine name.

    The log file path is taken from ``log_file``, then ``HYDROTS_LOG_FILE``,
    then ``logs/hydrots.log``. Filesystem failures while attaching the rotating
    handler are logged and the adapter keeps working with console output only.

    """
    base_logger = get_logger(logger_name, level=level)

    effective_log_file = (
        log_file or os.getenv("HYDROTS_LOG_FILE") or Path(_DEFAULT_LOG_DIR) / _DEFAULT_LOG_FILENAME
    )

    try:
        Path(effective_log_file).parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        base_logger.exception("Failed to create log directory for %s", effective_log_file)
        rotate = False

    if rotate:
        abs_log_path = str(Path(effective_log_file).resolve())
        handler_exists = any(
            isinstance(h, RotatingFileHandler) and h.baseFilename == abs_log_path
            for h in base_logger.handlers
        )
        if not handler_exists:
            try:
                rfh = RotatingFileHandler(
                    abs_log_path,
                    maxBytes=max_bytes,
                    backupCount=backup_count,
                    encoding="utf-8",
                )
                rfh.setFormatter(EmojiFormatter(use_color=False, use_emoji=False))
                base_logger.addHandler(rfh)
                base_logger.debug(
                    "Added rotating file handler for %s (max=%d bytes, backups=%d)",
                    abs_log_path,
                    max_bytes,
                    backup_count,
                )
            except OSError:
                base_logger.exception("Could not add rotating file handler for %s", abs_log_path)

    return _FunctionContextAdapter(base_logger, {"func_ctx": function_name})


__all__ = ["get_logger", "setup_logger", "EmojiFormatter"]
