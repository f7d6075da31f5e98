"""Logging filters that scrub sensitive content."""

from __future__ import annotations

import logging
import re

_SENSITIVE_PATTERN = re.compile(
    r"(Bearer\s+[\w\.~+/-]+=*|access_token\"\s*:\s*\"[^\"]+\")",
    re.IGNORECASE,
)
_EMAIL_PATTERN = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
_PHONE_PATTERN = re.compile(r"(?<![\w-])\+?\d{2,4}[\s-]?\d{3,4}[\s-]?\d{4}(?![\w-])")


def redact(message: str) -> str:
    """Replace tokens, e-mail addresses and phone numbers with markers."""
    message = _SENSITIVE_PATTERN.sub("**REDACTED**", message)
    message = _EMAIL_PATTERN.sub("**EMAIL**", message)
    return _PHONE_PATTERN.sub("**PHONE**", message)


class SensitiveFilter(logging.Filter):
    """Scrub sensitive values from log messages and their arguments."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(
                redact(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        return True


__all__ = ["SensitiveFilter", "redact"]
