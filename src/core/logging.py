"""
Structured logging configuration using structlog.

Development renders colored console lines, production renders JSON.
Request-scoped values (request id, user text, extracted filters, raw LLM
payloads) are bound with bind_context() and merged into every event, so a
failure logged at the route carries the whole pipeline state.

Usage:
    from core.logging import configure_logging, get_logger

    configure_logging(json_logs=False)
    logger = get_logger(__name__)
    logger.info("Candidates fetched", count=42)
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor


# LLM payloads and candidate dumps can be huge; cap each rendered value.
DEFAULT_MAX_VALUE_LENGTH = 2000


def _truncate_value(value: Any, max_length: int) -> Any:
    if isinstance(value, str):
        if len(value) > max_length:
            return value[:max_length] + f"...[{len(value) - max_length} more chars]"
        return value
    if isinstance(value, (dict, list, tuple)):
        rendered = repr(value)
        if len(rendered) > max_length:
            return rendered[:max_length] + f"...[{len(rendered) - max_length} more chars]"
    return value


def truncate_long_values(max_length: int = DEFAULT_MAX_VALUE_LENGTH) -> Processor:
    """Build a processor that shortens oversized event values."""

    def processor(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        for key, value in list(event_dict.items()):
            if key == "event":
                continue
            event_dict[key] = _truncate_value(value, max_length)
        return event_dict

    return processor


def configure_logging(
    json_logs: bool = False,
    log_level: str = "INFO",
    include_timestamp: bool = True,
    max_value_length: int = DEFAULT_MAX_VALUE_LENGTH,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        json_logs: If True, output JSON format (for production).
                   If False, output colored console format (for development).
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        include_timestamp: Whether to include timestamp in logs
        max_value_length: Longest rendered value before truncation
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        truncate_long_values(max_value_length),
    ]

    if include_timestamp:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_logs:
        shared_processors.append(structlog.processors.format_exc_info)
        # Korean user text stays readable in JSON logs
        shared_processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))
    else:
        shared_processors.append(structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        ))

    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
        force=True,
    )

    # Reduce noise from third-party libraries
    for noisy in ("httpx", "httpcore", "openai", "hpack", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__). If None, returns root logger.
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """
    Bind context variables to all subsequent logs in the current context.

    The recommendation pipeline binds its intermediate state here so the
    route-level failure log can report it without threading it through.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables (end of request)."""
    structlog.contextvars.clear_contextvars()
