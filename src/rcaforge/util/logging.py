"""Logging helpers with secret redaction."""

from __future__ import annotations

import logging
import os
import re
from typing import Iterable

_REDACTIONS = [
    (re.compile(r"Bearer\s+[A-Za-z0-9\-_.]+"), "Bearer [REDACTED]"),
    (re.compile(r"\bsk-[A-Za-z0-9\-_]{8,}"), "[REDACTED]"),
    (re.compile(r"(?i)(api[_-]?key[\"']?\s*[:=]\s*[\"']?)[^\s\"',}]+"), r"\1[REDACTED]"),
]

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def redact(text: str, extra_secrets: Iterable[str] | None = None) -> str:
    """Mask bearer tokens, API keys and any explicitly listed secrets."""
    redacted = text
    for pattern, replacement in _REDACTIONS:
        redacted = pattern.sub(replacement, redacted)
    for secret in extra_secrets or ():
        if secret:
            redacted = redacted.replace(secret, "[REDACTED]")
    return redacted


def clip(text: str, max_chars: int) -> str:
    """Shorten text for log lines, noting how much was dropped."""
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    return f"{text[:max_chars]}...[{len(text) - max_chars} more chars]"


def _level_from_env() -> int:
    name = os.environ.get("RCA_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str) -> logging.Logger:
    """Return a logger for ``name`` with one stream handler attached.

    The level is read from ``RCA_LOG_LEVEL`` when the logger is first set up.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(_level_from_env())
    return logger
