"""
Structured logging for the yield agent.

Provider keys never reach the log stream and unsigned calldata is shortened
so a discovery run stays readable. Tool calls bind their id into the
context so every line a tool produces can be traced back to it.
"""

import logging
import re
import sys
from contextlib import contextmanager
from typing import Any, Iterator, MutableMapping, Optional

import structlog

from .config import settings

REDACTED = "***"
CALLDATA_PREVIEW_CHARS = 74  # selector plus the first argument word

_SECRET_KEYS = {"x-api-key", "x-cg-demo-api-key", "x-cg-pro-api-key", "authorization", "api_key"}
_CALLDATA_RE = re.compile(r"^0x[0-9a-fA-F]+$")
_QUIET_LOGGERS = ("httpcore", "httpx", "asyncio")


def _scrub(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: REDACTED if str(k).lower() in _SECRET_KEYS else _scrub(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(_scrub(v) for v in value)
    if isinstance(value, str) and len(value) > CALLDATA_PREVIEW_CHARS and _CALLDATA_RE.match(value):
        return f"{value[:CALLDATA_PREVIEW_CHARS]}...({(len(value) - 2) // 2} bytes)"
    return value


def scrub_event(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Mask provider API keys and shorten long hex calldata in event fields."""
    for key in list(event_dict):
        if key == "event":
            continue
        if key.lower() in _SECRET_KEYS:
            event_dict[key] = REDACTED
        else:
            event_dict[key] = _scrub(event_dict[key])
    return event_dict


def _use_console(level: int, log_format: str) -> bool:
    fmt = log_format.lower()
    if fmt == "console":
        return True
    if fmt == "json":
        return False
    return level == logging.DEBUG


def setup_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Configure structlog and route the stdlib loggers used across the package through it.

    Args:
        log_level: Override log level (default: settings.log_level)
        log_format: Override renderer choice (default: settings.log_format)
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    console = _use_console(level, log_format or settings.log_format)

    pre_chain: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        scrub_event,
    ]
    if not console:
        pre_chain.append(structlog.processors.format_exc_info)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            # Module loggers use stdlib logging; give their records the same chain
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.dev.ConsoleRenderer() if console else structlog.processors.JSONRenderer(),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


@contextmanager
def tool_call_context(tool_call_id: str, tool_name: str) -> Iterator[None]:
    """Bind the tool call id and name to every log line emitted inside the block."""
    with structlog.contextvars.bound_contextvars(tool_call_id=tool_call_id, tool=tool_name):
        yield
