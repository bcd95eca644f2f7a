"""
core/logger.py
Structured JSON logging for production, readable lines for debug.
Secrets (bearer tokens, API keys) are masked before any handler sees them.
"""

import json
import logging
import re
import sys
import time
from typing import Any
from bhasha.core.config import settings


class RedactionFilter(logging.Filter):
    """Mask credentials that end up in log messages (URLs, headers)."""

    PATTERNS = [
        (re.compile(r"Bearer\s+[A-Za-z0-9._\-]+"), "Bearer [REDACTED]"),
        (re.compile(r"(api[_-]?key[\"']?\s*[:=]\s*[\"']?)[A-Za-z0-9_\-]{16,}", re.I), r"\1[REDACTED]"),
        (re.compile(r"(key=)[A-Za-z0-9_\-]{20,}"), r"\1[REDACTED]"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self.redact(record.msg)
        if record.args:
            record.args = tuple(
                self.redact(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True

    def redact(self, message: str) -> str:
        for pattern, replacement in self.PATTERNS:
            message = pattern.sub(replacement, message)
        return message


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "level": record.levelname,
            "module": record.module,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            log_obj["exc"] = self.formatException(record.exc_info)
        return json.dumps(log_obj, ensure_ascii=False)


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        if not settings.DEBUG:
            handler.setFormatter(JSONFormatter())
        else:
            handler.setFormatter(
                logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
            )
        handler.addFilter(RedactionFilter())
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    return logger
