"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ProviderConfig:
    """Hosting-provider credentials.

    Empty tokens are valid; requests are then sent unauthenticated and
    subject to the provider's lower anonymous rate limit.
    """

    github_token: str = ""
    gitlab_token: str = ""
    http_timeout: float = 15.0


@dataclass
class CrawlConfig:
    """Git crawler configuration."""

    max_concurrency: int = 4
    resolver_strategy: str = "api"  # "api" | "heuristic"


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"
    format: str = "json"  # "json" | "console"


@dataclass
class KustvizConfig:
    """Top-level kustviz configuration."""

    providers: ProviderConfig = field(default_factory=ProviderConfig)
    crawl: CrawlConfig = field(default_factory=CrawlConfig)
    log: LogConfig = field(default_factory=LogConfig)
