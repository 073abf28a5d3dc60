"""
Logging setup for publish runs.

Two loggers are configured per run:

- ``draft_publisher``: console output through Rich plus an optional run log
  file (JSON lines or plain text) in the configured log directory
- ``draft_publisher.llm``: one JSON line per model exchange, written to its
  own file so prompts and responses stay out of the run log

Structured fields are passed with ``log_event(logger, msg, key=value)`` and
end up as top-level keys of the JSON line.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
import re
from typing import Any

from rich.logging import RichHandler

from ..config import LoggingConfig

PACKAGE_LOGGER = "draft_publisher"

_URL_RE = re.compile(r"https?://[^\s\"'<>)]+")

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


def setup_logging(cfg: LoggingConfig, log_dir: Path | None) -> logging.Logger:
    level = _level_from_string(cfg.level)
    logger = _fresh_logger(PACKAGE_LOGGER, level)

    if cfg.console:
        console = RichHandler(rich_tracebacks=True, show_time=False, show_path=False)
        console.setLevel(level)
        console.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(console)

    if cfg.file and log_dir is not None:
        formatter = JsonlFormatter() if cfg.format == "jsonl" else _plain_formatter()
        logger.addHandler(_file_handler(log_dir / cfg.filename, level, formatter))

    return logger


def setup_llm_logger(cfg: LoggingConfig, log_dir: Path | None) -> logging.Logger | None:
    """Return the exchange logger, or None when exchange logging is off."""
    if not cfg.llm_log_enabled or log_dir is None:
        return None
    level = _level_from_string(cfg.level)
    logger = _fresh_logger(f"{PACKAGE_LOGGER}.llm", level)
    logger.addHandler(_file_handler(log_dir / cfg.llm_log_file, level, JsonlFormatter()))
    return logger


def log_event(logger: logging.Logger | None, message: str, **fields: Any) -> None:
    if logger is None:
        return
    logger.info(message, extra=fields)


def redact_text(text: str, mode: str) -> str:
    """Apply a redaction mode: ``none``, ``redact_urls`` or ``redact_content``."""
    if mode == "redact_content":
        return ""
    if mode == "redact_urls":
        return _URL_RE.sub("[REDACTED_URL]", text)
    return text


def truncate_text(text: str, max_chars: int = 20000) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "...(truncated)"


class JsonlFormatter(logging.Formatter):
    """One JSON object per record, with ``extra`` fields merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS:
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def _fresh_logger(name: str, level: int) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = False
    return logger


def _file_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _plain_formatter() -> logging.Formatter:
    return logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")


def _level_from_string(level: str) -> int:
    return getattr(logging, level.upper(), logging.INFO)
