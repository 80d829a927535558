"""GitLab adapter: raw-file API for files, repository listings for branches and tags.

Works against gitlab.com and self-hosted instances alike; the API root is
always ``https://<host>/api/v4`` and projects are addressed by their
URL-encoded full path (``group%2Fsubgroup%2Fproject``).
"""

from __future__ import annotations

from urllib.parse import quote

from kustviz.models.kustomize import Provider, RemoteLocator, RepoInfo
from kustviz.repository.base import ProviderClient

_PER_PAGE = 100


def project_url(host: str, slug: str) -> str:
    return f"https://{host}/api/v4/projects/{quote(slug, safe='')}"


class GitLabClient(ProviderClient):
    provider = Provider.GITLAB

    def _auth_headers(self) -> dict[str, str]:
        if self._token:
            return {"PRIVATE-TOKEN": self._token}
        return {}

    async def _fetch(self, locator: RemoteLocator) -> bytes:
        slug = f"{locator.owner}/{locator.repo}"
        url = f"{project_url(locator.host, slug)}/repository/files/{quote(locator.path, safe='')}/raw"
        response = await self._get(url, params={"ref": locator.ref}, locator=locator)
        return response.content

    async def _list_names(self, repo_info: RepoInfo, kind: str) -> list[str]:
        url = f"{project_url(repo_info.host, repo_info.slug)}/repository/{kind}"
        names: list[str] = []
        page = "1"
        while page:
            response = await self._get(url, params={"per_page": _PER_PAGE, "page": page})
            names.extend(self._names(response))
            # Empty on the last page.
            page = response.headers.get("X-Next-Page", "").strip()
        return names
