"""Build a :class:`KustvizConfig` from ``KUSTVIZ_*`` environment variables.

Unset variables fall back to the dataclass defaults.  Enumerated settings
are case-insensitive and stored lower-cased; unknown values raise
``ValueError`` so a typo fails at startup instead of mid-crawl.
"""

from __future__ import annotations

import os
from collections.abc import Collection

from kustviz.models.config import CrawlConfig, KustvizConfig, LogConfig, ProviderConfig

_PREFIX = "KUSTVIZ_"

RESOLVER_STRATEGIES = ("api", "heuristic")
LOG_LEVELS = ("debug", "info", "warning", "error")
LOG_FORMATS = ("json", "console")


def _env(key: str, default: str = "") -> str:
    return os.environ.get(_PREFIX + key, default)


def _number(key: str, default: float, cast: type[int] | type[float]) -> int | float:
    raw = _env(key)
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{_PREFIX}{key} must be a number, got {raw!r}") from None


def _bounded_int(key: str, default: int, low: int, high: int) -> int:
    return min(high, max(low, int(_number(key, default, int))))


def _choice(key: str, default: str, allowed: Collection[str], what: str) -> str:
    value = _env(key, default).strip().lower()
    if value not in allowed:
        raise ValueError(f"Invalid {what}: {value!r}. Expected one of: {', '.join(allowed)}")
    return value


def load_config() -> KustvizConfig:
    """Read the current environment into a fresh config."""
    return KustvizConfig(
        providers=ProviderConfig(
            github_token=_env("GITHUB_TOKEN"),
            gitlab_token=_env("GITLAB_TOKEN"),
            http_timeout=float(_number("HTTP_TIMEOUT", 15.0, float)),
        ),
        crawl=CrawlConfig(
            max_concurrency=_bounded_int("CRAWL_MAX_CONCURRENCY", 4, low=1, high=16),
            resolver_strategy=_choice("RESOLVER_STRATEGY", "api", RESOLVER_STRATEGIES, "resolver strategy"),
        ),
        log=LogConfig(
            level=_choice("LOG_LEVEL", "info", LOG_LEVELS, "log level"),
            format=_choice("LOG_FORMAT", "json", LOG_FORMATS, "log format"),
        ),
    )
