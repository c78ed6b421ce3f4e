"""
Logging setup shared by the API process and scripts.

Log records carry structured context through `extra={...}`. Credentials must
never reach the log output, so a filter masks header values such as
authorization and cookie wherever they appear in that context.
"""

import logging
from typing import Any

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

REDACTED = "[REDACTED]"

REDACTED_KEYS = frozenset({
    "authorization",
    "cookie",
    "set-cookie",
    "svix-signature",
})

# Attributes every LogRecord has; anything else came in through extra
_STANDARD_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: REDACTED if str(key).lower() in REDACTED_KEYS else _redact(item)
            for key, item in value.items()
        }
    return value


class RedactingFilter(logging.Filter):
    """Masks credential headers passed to the logger via extra."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in list(record.__dict__.items()):
            if key in _STANDARD_RECORD_ATTRS:
                continue
            if key.lower() in REDACTED_KEYS:
                setattr(record, key, REDACTED)
            elif isinstance(value, dict):
                setattr(record, key, _redact(value))
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with the service format and redaction filter."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)

    redacting_filter = RedactingFilter()
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RedactingFilter) for f in handler.filters):
            handler.addFilter(redacting_filter)
