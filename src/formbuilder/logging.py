"""Structlog configuration for package-wide logging."""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog

from formbuilder.settings import Settings, get_settings

if TYPE_CHECKING:
    from structlog.typing import EventDict

_LOGGING_CONFIGURED = False
_MAX_FORMULA_LOG_LENGTH = 120


def _flatten_extra(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Merge stdlib-style `extra={...}` payloads into the event.

    Args:
        logger: The logger instance (unused).
        method_name: The logging method name (unused).
        event_dict: The original event dictionary.

    Returns:
        The event dictionary with the `extra` keys lifted to the top level.
    """
    extra = event_dict.pop("extra", None)
    if isinstance(extra, dict):
        for key, value in extra.items():
            event_dict.setdefault(key, value)
    return event_dict


def _truncate_formula(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Keep author-supplied formulas short in log lines."""
    formula = event_dict.get("formula")
    if isinstance(formula, str) and len(formula) > _MAX_FORMULA_LOG_LENGTH:
        event_dict["formula"] = formula[:_MAX_FORMULA_LOG_LENGTH] + "..."
    return event_dict


def _rename_event_key(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Expose the event text under `message`."""
    if "event" in event_dict:
        event_dict["message"] = event_dict.pop("event")
    return event_dict


def configure_logging(*, settings: Settings | None = None, force: bool = False) -> None:
    """Configure structlog and stdlib logging once for the package.

    Args:
        settings: Settings to read log level, format and file from. Defaults to
            the cached settings.
        force: Reconfigure even if logging was already configured.
    """
    global _LOGGING_CONFIGURED  # noqa: PLW0603

    if _LOGGING_CONFIGURED and not force:
        return

    config = settings or get_settings()
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file, encoding="utf-8"))

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=handlers,
        force=force,
    )

    renderer: Any = structlog.processors.JSONRenderer()
    if not config.log_json:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            _flatten_extra,
            _truncate_formula,
            _rename_event_key,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _LOGGING_CONFIGURED = True


def get_logger(name: str = "formbuilder", **context: Any) -> structlog.BoundLogger:
    """Return package logger, configuring logging lazily.

    Args:
        name: Logger name.
        **context: Key/value pairs bound to every event of the returned logger.

    Returns:
        structlog.BoundLogger: The (optionally bound) logger.
    """
    if not _LOGGING_CONFIGURED:
        configure_logging()
    bound = structlog.get_logger(name)
    return bound.bind(**context) if context else bound
