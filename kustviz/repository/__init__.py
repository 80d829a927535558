"""Repository access: provider adapters, ref listing and branch/path resolution.

Exports:
    ContentFetcher, RefLister -- capabilities consumed by the crawler/resolver.
    ProviderClient            -- httpx-backed base for provider adapters.
    GitHubClient, GitLabClient
    ProviderRouter            -- dispatches by provider.
    BranchResolver, RefListResolver, HeuristicResolver, find_longest_match
    build_provider_router     -- factory used by the pipeline bootstrap.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from kustviz.models.kustomize import Provider
from kustviz.repository.base import ContentFetcher, ProviderClient, ProviderRouter, RefLister
from kustviz.repository.github import GitHubClient
from kustviz.repository.gitlab import GitLabClient
from kustviz.repository.resolver import (
    BranchResolver,
    HeuristicResolver,
    RefListResolver,
    find_longest_match,
    heuristic_splits,
)

if TYPE_CHECKING:
    import httpx

    from kustviz.models.config import ProviderConfig

__all__ = [
    "BranchResolver",
    "ContentFetcher",
    "GitHubClient",
    "GitLabClient",
    "HeuristicResolver",
    "ProviderClient",
    "ProviderRouter",
    "RefListResolver",
    "RefLister",
    "build_provider_router",
    "find_longest_match",
    "heuristic_splits",
]


def build_provider_router(client: httpx.AsyncClient, config: ProviderConfig) -> ProviderRouter:
    """Create a router with one adapter per provider sharing *client*."""
    return ProviderRouter(
        {
            Provider.GITHUB: GitHubClient(client, token=config.github_token),
            Provider.GITLAB: GitLabClient(client, token=config.gitlab_token),
        }
    )
