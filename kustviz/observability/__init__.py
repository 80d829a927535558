"""Observability helpers: structlog setup and Prometheus collectors."""

from kustviz.observability.logging import crawl_context, get_logger, setup_logging

__all__ = ["crawl_context", "get_logger", "setup_logging"]
