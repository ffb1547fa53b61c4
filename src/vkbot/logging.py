from __future__ import annotations

import errno
import logging
import re
import sys
from typing import Any

import structlog


ACCESS_TOKEN_PARAM_RE = re.compile(r"access_token=[^&\s\"']+")
VK_TOKEN_RE = re.compile(r"\bvk1\.a\.[A-Za-z0-9_-]+")
LEGACY_TOKEN_RE = re.compile(r"\b[0-9a-f]{85}\b")

_NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def redact_tokens(text: str) -> str:
    redacted = ACCESS_TOKEN_PARAM_RE.sub("access_token=[REDACTED]", text)
    redacted = VK_TOKEN_RE.sub("[REDACTED_TOKEN]", redacted)
    return LEGACY_TOKEN_RE.sub("[REDACTED_TOKEN]", redacted)


def redact_token_processor(_, __, event_dict):
    """Processor to redact VK access tokens from log messages."""
    message = str(event_dict.get("event", ""))
    redacted = redact_tokens(message)
    if redacted != message:
        event_dict["event"] = redacted
    return event_dict


class RedactTokenFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True
        redacted = redact_tokens(message)
        if redacted != message:
            record.msg = redacted
            record.args = ()
        return True


class SafeStreamHandler(logging.StreamHandler):
    def handleError(self, record: logging.LogRecord) -> None:
        exc = sys.exc_info()[1]
        if isinstance(exc, BrokenPipeError) or (
            isinstance(exc, OSError) and exc.errno == errno.EPIPE
        ):
            try:
                self.stream.close()
            except Exception:
                pass
            return
        super().handleError(record)


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)


def setup_logging(
    *, debug: bool = False, cache_logger_on_first_use: bool = True
) -> None:
    """Configure structlog with console output and token redaction."""

    structlog.configure(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            redact_token_processor,
            structlog.dev.ConsoleRenderer(colors=True)
            if debug
            else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=cache_logger_on_first_use,
    )

    handler = SafeStreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.addFilter(RedactTokenFilter())
    logging.basicConfig(
        handlers=[handler],
        level=logging.DEBUG if debug else logging.INFO,
        force=True,
    )

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
