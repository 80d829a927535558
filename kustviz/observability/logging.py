"""Structured logging configuration using structlog.

Call :func:`setup_logging` once before running a discovery.  Every crawl
binds a ``crawl_id`` and ``root`` into structlog's context variables via
:func:`crawl_context`, so log lines emitted by the resolver, provider
adapters and graph builder can be correlated back to the crawl that caused
them, even when siblings are visited concurrently.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import uuid4

import structlog


def setup_logging(level: str = "info", fmt: str = "json") -> None:
    """Configure structlog.

    Args:
        level: Minimum severity (``debug``, ``info``, ``warning``, ``error``).
        fmt:   ``json`` for machine-readable lines on stderr, ``console`` for
               coloured human-readable output during local debugging.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    renderer: structlog.types.Processor
    if fmt == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

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


@contextmanager
def crawl_context(root: str) -> Iterator[str]:
    """Bind a fresh ``crawl_id`` and the root reference for the block's duration.

    Yields the generated crawl id.
    """
    crawl_id = uuid4().hex[:12]
    with structlog.contextvars.bound_contextvars(crawl_id=crawl_id, root=root):
        yield crawl_id
