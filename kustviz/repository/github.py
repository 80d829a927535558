"""GitHub adapter: contents API for files, REST listings for branches and tags."""

from __future__ import annotations

import base64
from urllib.parse import quote

import httpx

from kustviz.errors import NotFound, ProviderError, RateLimited
from kustviz.models.kustomize import Provider, RemoteLocator, RepoInfo
from kustviz.repository.base import ProviderClient

_PER_PAGE = 100


def api_base(host: str) -> str:
    """REST root for *host*: api.github.com, or ``/api/v3`` on Enterprise Server."""
    if host == "github.com":
        return "https://api.github.com"
    return f"https://{host}/api/v3"


class GitHubClient(ProviderClient):
    """Reads files through ``GET /repos/{owner}/{repo}/contents/{path}?ref=``.

    The JSON response carries base64 content.  Files over 1 MB come back
    with an empty ``content`` and ``encoding: none``; those are re-read from
    ``download_url``.
    """

    provider = Provider.GITHUB

    def _auth_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _rate_limit_error(self, response: httpx.Response) -> RateLimited | None:
        # GitHub reports primary limits as 403 with X-RateLimit-Remaining: 0
        # and secondary limits as 403/429 with Retry-After.
        if response.status_code not in (403, 429):
            return None
        exhausted = response.headers.get("X-RateLimit-Remaining") == "0"
        if response.status_code == 429 or exhausted or "Retry-After" in response.headers:
            return self._rate_limited_from_headers(response, "X-RateLimit-Reset")
        return None

    async def _fetch(self, locator: RemoteLocator) -> bytes:
        url = f"{api_base(locator.host)}/repos/{locator.owner}/{locator.repo}/contents/{quote(locator.path)}"
        response = await self._get(url, params={"ref": locator.ref}, locator=locator)
        data = self._json(response)
        # A directory yields a JSON list; only files carry content.
        if not isinstance(data, dict) or data.get("type", "file") != "file":
            raise NotFound(locator)

        content = data.get("content") or ""
        if data.get("encoding") == "base64" and content:
            try:
                return base64.b64decode(content)
            except ValueError as exc:
                raise ProviderError(self.provider.value, response.status_code, "undecodable content") from exc

        download_url = data.get("download_url")
        if not download_url:
            raise ProviderError(self.provider.value, response.status_code, "file has no content")
        raw = await self._get(download_url, locator=locator)
        return raw.content

    async def _list_names(self, repo_info: RepoInfo, kind: str) -> list[str]:
        url: str | None = f"{api_base(repo_info.host)}/repos/{repo_info.slug}/{kind}"
        params: dict[str, int] | None = {"per_page": _PER_PAGE}
        names: list[str] = []
        while url:
            response = await self._get(url, params=params)
            names.extend(self._names(response))
            # The "next" link already carries per_page and page.
            url = response.links.get("next", {}).get("url")
            params = None
        return names
