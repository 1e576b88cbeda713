"""
structlog setup for the registry.

Every record carries an ISO timestamp, the level, the emitting module (``logger``)
and ``event_type``. Inside caller_context() (entered by ContextCaller.acting_as
for every API call) records also carry ``caller``.

No verification_registry imports here; everything else imports this module.
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from structlog._config import BoundLoggerLazyProxy
from structlog.contextvars import bound_contextvars, merge_contextvars


def _rename_event(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """structlog's positional 'event' becomes event_type."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    return event_dict


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """
    (Re)configure structlog. Defaults come from LOG_LEVEL (INFO) and LOG_FORMAT
    (json; anything else renders for the console). main() calls this again with
    the resolved settings.
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).strip().upper()
    fmt = (fmt or os.getenv("LOG_FORMAT", "json")).strip().lower()
    renderer: Any
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    structlog.configure(
        processors=[
            merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            _rename_event,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level_name, logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


if not structlog.is_configured():
    configure_logging()


def get_logger(name: str) -> Any:
    """Logger for a module: ``logger = get_logger(__name__)``."""
    # structlog.get_logger(logger=...) collides with wrap_logger's own ``logger``
    # parameter, so build the same lazy proxy get_logger would return.
    return BoundLoggerLazyProxy(None, initial_values={"logger": name})


@contextmanager
def caller_context(caller: Any) -> Iterator[None]:
    """Attach ``caller`` to every record logged in this context (thread or task)."""
    with bound_contextvars(caller=str(caller)):
        yield
