"""Structlog setup.

Events go to stdout (colored console in development, JSON otherwise) and to
two rotating JSON files under the log directory: everything, and errors
only. Every event carries the request context and has credentials redacted
before it is rendered.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor

from coursemart.core.context import get_context


if TYPE_CHECKING:
    from coursemart.config.settings import Settings


# Any event key containing one of these is redacted
SENSITIVE_KEYS = (
    "password",
    "secret",
    "token",
    "signature",
    "authorization",
    "cookie",
    "credentials",
)
REDACTED = "[redacted]"

NOISY_LOGGERS = ("uvicorn.access", "cassandra", "httpx", "httpcore")


def _is_sensitive(key: str) -> bool:
    key = key.lower()
    return any(marker in key for marker in SENSITIVE_KEYS)


def _redact(key: str, value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _redact(k, v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [_redact(key, v) for v in value]
    if value is not None and _is_sensitive(key):
        return REDACTED
    return value


def redact_sensitive(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Replace password, token, signature and similar values."""
    return {k: _redact(k, v) for k, v in event_dict.items()}


def add_request_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Merge request_id, account_id and actor_type without overriding explicit keys."""
    for key, value in get_context().items():
        event_dict.setdefault(key, value)
    return event_dict


def _shared_processors(settings: "Settings") -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_request_context,
        redact_sensitive,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if settings.log_include_caller_info:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            )
        )
    return processors


def _file_handler(path: Path, level: int, settings: "Settings") -> RotatingFileHandler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        filename=path,
        maxBytes=settings.log_file_max_bytes,
        backupCount=settings.log_file_backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    return handler


def configure_structlog(settings: "Settings", log_dir: Path | str | None = None) -> None:
    """Route structlog and stdlib logging through the same handlers.

    Args:
        settings: Application settings (level, format, file rotation).
        log_dir: Directory for the JSON log files, ./logs when omitted.
    """
    level = logging.getLevelName(settings.log_level.upper())
    log_dir = Path(log_dir or "logs")
    pre_chain = _shared_processors(settings)

    def formatter(renderer: Processor) -> structlog.stdlib.ProcessorFormatter:
        return structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=pre_chain,
        )

    if settings.log_format == "json":
        console_renderer: Processor = structlog.processors.JSONRenderer()
    else:
        console_renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        )

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(formatter(console_renderer))

    handlers: list[logging.Handler] = [console]
    for suffix, file_level in (("log", level), ("error.log", logging.ERROR)):
        handler = _file_handler(log_dir / f"{settings.app_name}.{suffix}", file_level, settings)
        handler.setFormatter(
            formatter(structlog.processors.JSONRenderer()),
        )
        handlers.append(handler)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    for handler in handlers:
        root.addHandler(handler)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance."""
    return structlog.get_logger(name)
