"""Structured logging configuration using structlog."""

from __future__ import annotations

import logging
import sys
from contextlib import AbstractContextManager
from typing import Any

import structlog


def setup_logging(level: str = "info", json_output: bool = True) -> None:
    """Configure structlog for output to stderr.

    The server logs JSON; the CLI passes ``json_output=False`` for a
    human-readable renderer so stdout stays clean for query results.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    renderer: Any = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name."""
    return structlog.get_logger(component=component)  # type: ignore[return-value]


def query_context(query: str, kind: str, name: str, namespace: str | None) -> AbstractContextManager[Any]:
    """Bind the query target to every log line emitted inside the block."""
    return structlog.contextvars.bound_contextvars(query=query, kind=kind, target=name, namespace=namespace)
