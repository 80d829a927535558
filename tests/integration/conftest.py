"""Shared fixtures for kustviz integration tests.

Provides in-memory stand-ins for the provider capabilities (file fetcher,
branch/tag lister) so crawl-to-graph pipelines run without touching GitHub
or GitLab.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from kustviz.crawler import GitCrawler
from kustviz.errors import NotFound
from kustviz.models.kustomize import Provider, RemoteLocator, RepoInfo
from kustviz.repository.base import ContentFetcher, RefLister
from kustviz.repository.resolver import BranchResolver, RefListResolver

# ---------------------------------------------------------------------------
# Reference helpers
# ---------------------------------------------------------------------------


def github_url(slug: str, path: str = "", ref: str = "main") -> str:
    """Kustomize-style GitHub URL, e.g. ``https://github.com/org/app//base?ref=main``."""
    base = f"https://github.com/{slug}"
    if path:
        base = f"{base}//{path}"
    return f"{base}?ref={ref}"


def make_locator(
    slug: str,
    path: str = "",
    ref: str = "main",
    provider: Provider = Provider.GITHUB,
    host: str = "github.com",
) -> RemoteLocator:
    owner, _, repo = slug.rpartition("/")
    return RemoteLocator(provider=provider, host=host, owner=owner, repo=repo, ref=ref, path=path)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeFetcher(ContentFetcher):
    """Serves kustomization files from a dict keyed by file-locator URL.

    Every fetch is recorded in ``calls``; ``errors`` maps a file URL to the
    exception to raise instead of serving content.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.files: dict[str, bytes] = {}
        self.errors: dict[str, Exception] = {}
        self.calls: list[RemoteLocator] = []
        self.on_fetch: Callable[[RemoteLocator], None] | None = None
        self._delay = delay

    def add(
        self,
        slug: str,
        path: str,
        content: str,
        ref: str = "main",
        filename: str = "kustomization.yaml",
        provider: Provider = Provider.GITHUB,
        host: str = "github.com",
    ) -> None:
        locator = make_locator(slug, path, ref, provider, host).file(filename)
        self.files[locator.url] = content.encode()

    def fail(self, slug: str, path: str, exc: Exception, ref: str = "main") -> None:
        self.errors[make_locator(slug, path, ref).file("kustomization.yaml").url] = exc

    def fetched_paths(self) -> list[str]:
        return [call.path for call in self.calls]

    async def fetch(self, locator: RemoteLocator) -> bytes:
        self.calls.append(locator)
        if self.on_fetch is not None:
            self.on_fetch(locator)
        if self._delay:
            await asyncio.sleep(self._delay)
        if locator.url in self.errors:
            raise self.errors[locator.url]
        try:
            return self.files[locator.url]
        except KeyError:
            raise NotFound(locator) from None


class FakeRefLister(RefLister):
    """Returns fixed branch/tag names per repository slug and counts calls."""

    def __init__(self, names: dict[str, list[str]] | None = None) -> None:
        self.names = names or {}
        self.calls: list[RepoInfo] = []

    async def list_branches_and_tags(self, repo_info: RepoInfo) -> list[str]:
        self.calls.append(repo_info)
        await asyncio.sleep(0)
        return list(self.names.get(repo_info.slug, []))


def make_crawler(
    fetcher: FakeFetcher,
    resolver: BranchResolver | None = None,
    max_concurrency: int = 1,
) -> GitCrawler:
    return GitCrawler(fetcher, resolver or RefListResolver(FakeRefLister()), max_concurrency=max_concurrency)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def fetcher() -> FakeFetcher:
    """Empty fetcher; tests add the files they need."""
    return FakeFetcher()


@pytest.fixture()
def app_repo(fetcher: FakeFetcher) -> FakeFetcher:
    """A prod overlay over a shared base plus a monitoring component in another repo.

    github.com/org/app
        overlays/prod -> resources ../../base, deployment-patch.yaml
                         components https://github.com/org/shared//components/monitoring
        base          -> resources service.yaml, deployment.yaml
    github.com/org/shared
        components/monitoring (kind: Component)
    """
    fetcher.add(
        "org/app",
        "overlays/prod",
        f"""
resources:
  - ../../base
  - deployment-patch.yaml
components:
  - {github_url("org/shared", "components/monitoring")}
""",
    )
    fetcher.add(
        "org/app",
        "base",
        """
resources:
  - service.yaml
  - deployment.yaml
""",
    )
    fetcher.add(
        "org/shared",
        "components/monitoring",
        """
apiVersion: kustomize.config.k8s.io/v1alpha1
kind: Component
""",
    )
    return fetcher
