"""Exception taxonomy for the discovery pipeline.

Only root-level failures escape :meth:`kustviz.crawler.GitCrawler.crawl`;
everything raised while visiting a child reference is captured as the
``error`` text of the corresponding configuration unit.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kustviz.models.kustomize import RemoteLocator


class KustvizError(Exception):
    """Base class for every error raised by kustviz."""


class MalformedReference(KustvizError):
    """A reference string could not be classified or decomposed."""

    def __init__(self, reference: str, reason: str) -> None:
        super().__init__(f"Malformed reference {reference!r}: {reason}")
        self.reference = reference
        self.reason = reason


class NoMatchingBranch(KustvizError):
    """No known branch or tag name prefixes an ambiguous path."""

    def __init__(self, path: str) -> None:
        super().__init__(f"No matching branch found in path: {path}")
        self.path = path


class FetchError(KustvizError):
    """Base class for failures reported by a content fetcher."""


class NotFound(FetchError):
    def __init__(self, locator: RemoteLocator) -> None:
        super().__init__(f"Not found: {locator.url}")
        self.locator = locator


class RateLimited(FetchError):
    """The provider refused the request because a rate limit was exhausted.

    ``reset_at`` is the provider-advertised quota reset time (if any) and
    ``retry_after`` the advisory delay in seconds (if any).  Neither is acted
    upon inside kustviz; retrying is a caller concern.
    """

    def __init__(
        self,
        provider: str,
        reset_at: datetime | None = None,
        retry_after: float | None = None,
    ) -> None:
        msg = f"{provider} rate limit reached"
        if reset_at is not None:
            msg += f"; resets at {reset_at.astimezone(UTC).strftime('%H:%M:%S')} UTC"
        elif retry_after is not None:
            msg += f"; retry after {retry_after:g}s"
        msg += ". Configure an API token to raise the limit."
        super().__init__(msg)
        self.provider = provider
        self.reset_at = reset_at
        self.retry_after = retry_after


class ProviderError(FetchError):
    def __init__(self, provider: str, status_code: int | None, detail: str = "") -> None:
        status = f"HTTP {status_code}" if status_code is not None else "transport error"
        super().__init__(f"{provider} API error: {status}{': ' + detail if detail else ''}")
        self.provider = provider
        self.status_code = status_code
        self.detail = detail


class InvalidKustomization(KustvizError):
    """A kustomization file was fetched but is not a YAML mapping."""

    def __init__(self, locator: RemoteLocator, reason: str) -> None:
        super().__init__(f"Invalid kustomization at {locator.url}: {reason}")
        self.locator = locator
        self.reason = reason


class CrawlCancelled(KustvizError):
    """Raised between fetches once :meth:`GitCrawler.cancel` has been called."""

    def __init__(self) -> None:
        super().__init__("Crawl cancelled")
