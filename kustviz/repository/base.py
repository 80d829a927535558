"""Provider capabilities consumed by the resolver and the crawler.

RefLister       -- enumerates a repository's branch and tag names.
ContentFetcher  -- retrieves the raw bytes of one file at a locator.
ProviderClient  -- shared httpx plumbing for one hosting provider: auth
                   headers, status-code mapping to the fetch error
                   taxonomy, and metrics.  Implements both capabilities.
ProviderRouter  -- dispatches to the right ProviderClient by provider, so
                   callers never care which adapter served a locator.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import httpx

from kustviz.errors import FetchError, NotFound, ProviderError, RateLimited
from kustviz.models.kustomize import Provider, RemoteLocator, RepoInfo
from kustviz.observability.logging import get_logger
from kustviz.observability.metrics import fetches_total, ref_listings_total

_log = get_logger("repository")


class RefLister(ABC):
    @abstractmethod
    async def list_branches_and_tags(self, repo_info: RepoInfo) -> list[str]:
        """Return every branch name followed by every tag name."""


class ContentFetcher(ABC):
    @abstractmethod
    async def fetch(self, locator: RemoteLocator) -> bytes:
        """Return the raw bytes of the file at *locator*.

        Raises:
            NotFound:      the file (or repository, or ref) does not exist.
            RateLimited:   the provider quota is exhausted.
            ProviderError: any other non-success response or transport failure.
        """


class ProviderClient(RefLister, ContentFetcher):
    """Base class for provider adapters sharing one ``httpx.AsyncClient``.

    Subclasses implement :meth:`_fetch`, :meth:`_list_names` and
    :meth:`_auth_headers`; this class wraps them with error mapping and
    metrics.  The token is optional: without it requests go out anonymously.
    """

    provider: Provider

    def __init__(self, client: httpx.AsyncClient, token: str = "") -> None:
        self._client = client
        self._token = token

    async def fetch(self, locator: RemoteLocator) -> bytes:
        try:
            data = await self._fetch(locator)
        except NotFound:
            fetches_total.labels(provider=self.provider.value, outcome="not_found").inc()
            raise
        except RateLimited as exc:
            fetches_total.labels(provider=self.provider.value, outcome="rate_limited").inc()
            _log.warning("provider_rate_limited", provider=self.provider.value, reset_at=str(exc.reset_at))
            raise
        except FetchError:
            fetches_total.labels(provider=self.provider.value, outcome="error").inc()
            raise
        fetches_total.labels(provider=self.provider.value, outcome="ok").inc()
        return data

    async def list_branches_and_tags(self, repo_info: RepoInfo) -> list[str]:
        ref_listings_total.labels(provider=self.provider.value).inc()
        names = await self._list_names(repo_info, "branches")
        try:
            names.extend(await self._list_names(repo_info, "tags"))
        except FetchError as exc:
            # Tags only widen the match set; branches alone are still usable.
            _log.warning("tag_listing_failed", repo=repo_info.slug, error=str(exc))
        _log.debug("refs_listed", repo=repo_info.slug, count=len(names))
        return names

    @abstractmethod
    async def _fetch(self, locator: RemoteLocator) -> bytes: ...

    @abstractmethod
    async def _list_names(self, repo_info: RepoInfo, kind: str) -> list[str]:
        """All names of *kind* (``branches`` or ``tags``), every page."""

    @abstractmethod
    def _auth_headers(self) -> dict[str, str]: ...

    def _rate_limit_error(self, response: httpx.Response) -> RateLimited | None:
        """Map a throttling response to :class:`RateLimited`, else ``None``."""
        if response.status_code != 429:
            return None
        return self._rate_limited_from_headers(response, "RateLimit-Reset")

    def _rate_limited_from_headers(self, response: httpx.Response, reset_header: str) -> RateLimited:
        reset_at = None
        reset = response.headers.get(reset_header, "")
        if reset.isdigit():
            reset_at = datetime.fromtimestamp(int(reset), tz=UTC)
        retry_after = None
        retry = response.headers.get("Retry-After", "")
        if retry.isdigit():
            retry_after = float(retry)
        return RateLimited(self.provider.value, reset_at=reset_at, retry_after=retry_after)

    async def _get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        locator: RemoteLocator | None = None,
    ) -> httpx.Response:
        """GET *url*, returning only successful responses.

        A 404 becomes :class:`NotFound` when *locator* is given (file
        fetches); for listings it is an ordinary :class:`ProviderError`.
        """
        headers = self._auth_headers()
        try:
            response = await self._client.get(url, params=params, headers=headers)
        except httpx.TimeoutException as exc:
            raise ProviderError(self.provider.value, None, "request timed out") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(self.provider.value, None, str(exc)) from exc

        if response.is_success:
            return response
        limited = self._rate_limit_error(response)
        if limited is not None:
            raise limited
        if response.status_code == 404 and locator is not None:
            raise NotFound(locator)
        raise ProviderError(self.provider.value, response.status_code, response.text[:200])

    def _unexpected(self, response: httpx.Response) -> ProviderError:
        return ProviderError(self.provider.value, response.status_code, "unexpected response body")

    def _json(self, response: httpx.Response) -> Any:
        """Decoded JSON body; a non-JSON 200 (proxy or SSO page) is a provider error."""
        try:
            return response.json()
        except ValueError as exc:
            raise self._unexpected(response) from exc

    def _names(self, response: httpx.Response) -> list[str]:
        """``name`` of every item in a branch or tag listing page."""
        try:
            return [str(item["name"]) for item in self._json(response)]
        except (KeyError, TypeError) as exc:
            raise self._unexpected(response) from exc


class ProviderRouter(RefLister, ContentFetcher):
    """Routes each call to the adapter registered for its provider."""

    def __init__(self, clients: Mapping[Provider, ProviderClient]) -> None:
        self._clients = dict(clients)

    def _client_for(self, provider: Provider) -> ProviderClient:
        client = self._clients.get(provider)
        if client is None:
            raise ProviderError(provider.value, None, "no client configured for provider")
        return client

    async def fetch(self, locator: RemoteLocator) -> bytes:
        return await self._client_for(locator.provider).fetch(locator)

    async def list_branches_and_tags(self, repo_info: RepoInfo) -> list[str]:
        return await self._client_for(repo_info.provider).list_branches_and_tags(repo_info)
