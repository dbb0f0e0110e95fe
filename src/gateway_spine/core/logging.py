"""
Structured logging for gateway-spine.

Log lines are observational only; nothing in the provisioning core reads
them back. Every event goes to the process output streams and to two
append-only files so an operator can grep a long batch afterwards.

Architecture:
    ::

        logger = get_logger(__name__)
        logger.info("api.created", api_id="weather-api")
              │
              ▼
        structlog chain: contextvars → level → logger name → timestamp
              │
              ▼  (ProcessorFormatter, one per handler)
        ┌──────────────┬──────────────┬────────────────────┬──────────────────┐
        │ stdout       │ stderr       │ <run>_info.log     │ <run>_error.log  │
        │ < ERROR      │ >= ERROR     │ >= level (append)  │ >= ERROR (append)│
        └──────────────┴──────────────┴────────────────────┴──────────────────┘

    Console format renders ``[INFO] 2025-01-01T00:00:00Z - api.created api_id=weather-api``;
    JSON format renders one object per line.

Usage:
    configure_logging(level="INFO", log_dir="logs", run_name="provision")
    log = get_logger(__name__)
    with LogContext(row=3, api_id="weather-api"):
        log.info("operation.created", operation_id="get-forecast")

Tags:
    logging, structlog, observability, gateway-spine

Doc-Types:
    - API Reference
    - Observability Guide
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Handlers installed by configure_logging, so a reconfigure can replace them.
_installed_handlers: list[logging.Handler] = []
_configured = False


class _BelowLevel(logging.Filter):
    def __init__(self, level: int):
        super().__init__()
        self._level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self._level


def _render_line(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> str:
    """``[LEVEL] timestamp - event key=value ...``"""
    level = str(event_dict.pop("level", method_name)).upper()
    timestamp = event_dict.pop("timestamp", "")
    event = event_dict.pop("event", "")
    event_dict.pop("logger", None)
    exc = event_dict.pop("exception", None)
    pairs = " ".join(f"{key}={value}" for key, value in event_dict.items())
    line = f"[{level}] {timestamp} - {event}"
    if pairs:
        line = f"{line} {pairs}"
    if exc:
        line = f"{line}\n{exc}"
    return line


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def configure_logging(
    level: str = "INFO",
    format: Literal["console", "json"] = "console",
    log_dir: str | Path | None = None,
    run_name: str = "gateway",
    force: bool = False,
) -> None:
    """
    Configure structlog and the stdlib handlers behind it.

    Subsequent calls are no-ops unless ``force=True``.

    Args:
        level: Minimum level (DEBUG, INFO, WARNING, ERROR)
        format: ``console`` for ``[LEVEL] ts - msg`` lines, ``json`` for JSON lines
        log_dir: Directory for the append-only log files; ``None`` disables files
        run_name: File name prefix (``<run_name>_info.log``/``<run_name>_error.log``)
        force: Reconfigure even if already configured
    """
    global _configured

    if _configured and not force:
        return

    log_level = getattr(logging, level.upper())
    shared = _shared_processors()

    renderer: Processor
    if format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = _render_line

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handlers: list[logging.Handler] = []

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(log_level)
    stdout_handler.addFilter(_BelowLevel(logging.ERROR))
    handlers.append(stdout_handler)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(max(log_level, logging.ERROR))
    handlers.append(stderr_handler)

    if log_dir is not None:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        info_file = logging.FileHandler(directory / f"{run_name}_info.log", mode="a", encoding="utf-8")
        info_file.setLevel(log_level)
        handlers.append(info_file)
        error_file = logging.FileHandler(directory / f"{run_name}_error.log", mode="a", encoding="utf-8")
        error_file.setLevel(logging.ERROR)
        handlers.append(error_file)

    root = logging.getLogger()
    shutdown_logging()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
        _installed_handlers.append(handler)
    root.setLevel(log_level)

    # One line per management call is noise next to our own step events.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Re-resolved per call so that a forced reconfigure reaches module-level loggers.
        cache_logger_on_first_use=False,
    )

    _configured = True


def shutdown_logging() -> None:
    """Detach and close the handlers installed by :func:`configure_logging`."""
    root = logging.getLogger()
    while _installed_handlers:
        handler = _installed_handlers.pop()
        root.removeHandler(handler)
        handler.close()


def is_configured() -> bool:
    """Check if logging has been configured."""
    return _configured


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context."""
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(row=4, api_id="orders"):
            logger.info("api.created")
        # row/api_id unbound here
    """

    def __init__(self, **kwargs: Any):
        self._context = {k: v for k, v in kwargs.items() if v is not None}

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args: Any) -> None:
        unbind_context(*self._context.keys())


__all__ = [
    "configure_logging",
    "shutdown_logging",
    "is_configured",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
