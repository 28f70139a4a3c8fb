"""Structured logging built on Loguru.

This module configures Loguru for applications built on AutoStar and for the
library's own events (route registration, schema registration, request and
response validation failures).

Features:
- **Structured logging**: JSON lines output with a consistent schema
- **Rich console output**: Development-friendly formatting with inline context
- **Standard library integration**: Captures uvicorn and other stdlib loggers
- **Redaction**: Configured context keys are never printed verbatim

Formatter types:
- **console**: Human-readable with inline context (development)
- **json**: Generic structured format (staging and production)
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Final, Protocol, cast

from loguru import logger

from autostar.core.constants import REDACTED


class _LoggingState:
    """Simple state holder to track if logging has been configured."""

    def __init__(self) -> None:
        self.configured = False
        self.sensitive_fields: frozenset[str] = frozenset()


_state = _LoggingState()


class LogConfigProtocol(Protocol):
    """Protocol for log configuration objects."""

    @property
    def log_level(self) -> str:
        """Logging level."""
        ...

    @property
    def log_formatter_type(self) -> str | None:
        """Log formatter type."""
        ...

    @property
    def sensitive_fields(self) -> list[str]:
        """Context keys to redact."""
        ...


class SettingsProtocol(Protocol):
    """Protocol for settings objects that setup_logging can accept."""

    @property
    def debug(self) -> bool:
        """Debug mode flag."""
        ...

    @property
    def log_config(self) -> LogConfigProtocol:
        """Log configuration."""
        ...


DEFAULT_LOG_FORMAT: Final[str] = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{message}"
)
MAX_FIELD_VALUE_LENGTH: Final[int] = 100

# Context fields shown first, in this order
PRIORITY_FIELDS: Final[tuple[str, ...]] = (
    "method",
    "path",
    "status_code",
    "route",
    "field",
    "source",
)


def _escape(value: object) -> str:
    return str(value).replace("{", "{{").replace("}", "}}")


def _format_priority_field(field: str, value: object) -> str:
    """Format a priority field for display.

    Args:
        field: The field name.
        value: The field value.

    Returns:
        str: Formatted value.
    """
    if field == "status_code":
        status_str = str(value)
        if status_str.startswith("2"):
            return f"<green>{value}</green>"
        if status_str.startswith("4"):
            return f"<red>{value}</red>"
        if status_str.startswith("5"):
            return f"<red><bold>{value}</bold></red>"
    return _escape(value)


def _format_extra_field(key: str, value: object) -> str:
    """Format an extra field for display, redacting sensitive keys.

    Args:
        key: The field name.
        value: The field value.

    Returns:
        str: Formatted ``key=value`` pair.
    """
    str_value = str(value)
    if key.lower() in _state.sensitive_fields:
        str_value = REDACTED
    elif len(str_value) > MAX_FIELD_VALUE_LENGTH:
        str_value = str_value[: MAX_FIELD_VALUE_LENGTH - 3] + "..."
    return f"{_escape(key)}={_escape(str_value)}"


def _format_context_fields(extra: dict[str, Any]) -> list[str]:
    """Format all context fields from extra data.

    Args:
        extra: Extra fields from the log record.

    Returns:
        list[str]: List of formatted context parts.
    """
    context_parts = [
        f"<yellow>{_format_priority_field(field, extra[field])}</yellow>"
        for field in PRIORITY_FIELDS
        if extra.get(field) is not None
    ]
    context_parts.extend(
        f"<dim>{_format_extra_field(key, value)}</dim>"
        for key, value in extra.items()
        if key not in PRIORITY_FIELDS and not key.startswith("_") and value is not None
    )
    return context_parts


def format_console_with_context(record: dict[str, Any]) -> str:
    """Format log record for console with all context fields visible.

    Args:
        record: Loguru record to format.

    Returns:
        str: Loguru format string for the record.
    """
    try:
        timestamp = record["time"].strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        parts = [
            f"<green>{timestamp}</green>",
            f"<level>{record['level'].name: <8}</level>",
            f"<cyan>{record['name']}:{record['function']}:{record['line']}</cyan>",
        ]

        context_parts = _format_context_fields(record.get("extra", {}))
        if context_parts:
            parts.append(" ".join(f"[{part}]" for part in context_parts))

        parts.append(_escape(record.get("message", "")))

        if record.get("exception"):
            parts.append("\n{{exception}}")

        return " | ".join(parts) + "\n"
    except (AttributeError, TypeError, ValueError, KeyError):
        return DEFAULT_LOG_FORMAT + "\n"


class InterceptHandler(logging.Handler):
    """Intercept standard logging and redirect to Loguru.

    Used for uvicorn and any other library logging through the standard
    ``logging`` module.
    """

    def emit(self, record: logging.LogRecord) -> None:
        """Forward log record to Loguru.

        Args:
            record: Standard library LogRecord to forward.
        """
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def serialize_for_json(record: dict[str, Any]) -> str:
    """Format log record as a JSON line.

    Args:
        record: Loguru record to format.

    Returns:
        str: JSON-formatted log entry with newline.
    """
    log_entry: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "logger": record["name"],
        "function": record["function"],
        "line": record["line"],
    }

    if extra := record.get("extra", {}):
        log_entry.update({k: v for k, v in extra.items() if not k.startswith("_")})

    if exc := record.get("exception"):
        log_entry["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value) if exc.value else None,
        }

    return json.dumps(log_entry, default=str) + "\n"


# Formatter registry
LOG_FORMATTERS: dict[str, Any] = {
    "console": None,  # Loguru console sink with format_console_with_context
    "json": serialize_for_json,
}

# uvicorn logging configuration routing every uvicorn logger through Loguru
UVICORN_LOG_CONFIG: Final[dict[str, Any]] = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {
        "default": {"class": "autostar.core.logging.InterceptHandler"},
    },
    "loggers": {
        "uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
        "uvicorn.error": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
        "uvicorn.access": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
    },
}


def setup_logging(settings: SettingsProtocol) -> None:
    """Configure Loguru with the selected formatter.

    Args:
        settings: Application settings containing log configuration.

    Note:
        This function ensures it's only called once using module state.
    """
    if _state.configured:
        return

    logger.remove()

    log_config = settings.log_config
    _state.sensitive_fields = frozenset(
        field.lower() for field in log_config.sensitive_fields
    )

    formatter_type = log_config.log_formatter_type or "console"
    formatter = LOG_FORMATTERS.get(formatter_type)

    if formatter is None:
        logger.add(
            sys.stdout,
            format=cast("Any", format_console_with_context),
            level=log_config.log_level,
            colorize=True,
            diagnose=settings.debug,
            backtrace=settings.debug,
        )
    else:

        def structured_sink(message: object) -> None:
            """Sink that writes formatted structured logs."""
            record = getattr(message, "record", None)
            if record is not None:
                sys.stdout.write(formatter(record))
                sys.stdout.flush()

        logger.add(
            structured_sink,
            level=log_config.log_level,
            diagnose=False,
            backtrace=False,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    logger.info(
        "Logging configured with {} formatter",
        formatter_type,
        formatter_type=formatter_type,
        log_level=log_config.log_level,
    )

    _state.configured = True


def get_logger(name: str) -> Any:  # noqa: ANN401 - loguru's Logger type is stub-only
    """Get a logger instance with the given name.

    Args:
        name: Logger name, typically __name__.

    Returns:
        Logger instance bound with the name.
    """
    return logger.bind(logger_name=name)
