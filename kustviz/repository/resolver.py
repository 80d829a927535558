"""Branch/path disambiguation for remote paths that embed a branch name.

A path such as ``components/new-base/environments/demo/overlay`` taken from
a ``/-/tree/`` URL may name branch ``components/new-base`` with subdirectory
``environments/demo/overlay``, or branch ``components`` with everything else
as the path.  Two strategies share the :class:`BranchResolver` contract:

RefListResolver   -- authoritative: lists the repository's branches and tags
                     and picks the longest name that prefixes the path.
HeuristicResolver -- no I/O: proposes 3-, 2- and 1-segment branch splits,
                     longest first, for the caller to probe.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from kustviz.errors import NoMatchingBranch
from kustviz.observability.logging import get_logger

if TYPE_CHECKING:
    from kustviz.models.kustomize import RepoInfo
    from kustviz.repository.base import RefLister

_log = get_logger("repository.resolver")

_HEURISTIC_MAX_SEGMENTS = 3


def find_longest_match(names: list[str], path: str) -> tuple[str, str]:
    """Return ``(ref, remaining_path)`` for the longest *names* entry prefixing *path*.

    This is deliberately stricter than a plain string-prefix test: a name
    only matches on a segment boundary, so ``main`` prefixes
    ``main/overlay`` but not ``main-feature/overlay``.  Length is measured in
    characters.  When two distinct names of equal maximal length both match,
    the first one in *names* wins.

    Raises:
        NoMatchingBranch: if *names* is empty or no name prefixes *path*.
    """
    path = path.strip("/")
    best = ""
    for name in names:
        if not name or len(name) <= len(best):
            continue
        if path == name or path.startswith(name + "/"):
            best = name

    if not best:
        raise NoMatchingBranch(path)

    remaining = path[len(best) :].lstrip("/")
    _log.debug("branch_resolved", ref=best, path=remaining)
    return best, remaining


def heuristic_splits(path: str, max_segments: int = _HEURISTIC_MAX_SEGMENTS) -> list[tuple[str, str]]:
    """Candidate ``(ref, remaining_path)`` splits, most branch segments first."""
    segments = [s for s in path.strip("/").split("/") if s]
    if not segments:
        raise NoMatchingBranch(path)
    splits = []
    for count in range(min(max_segments, len(segments)), 0, -1):
        splits.append(("/".join(segments[:count]), "/".join(segments[count:])))
    return splits


class BranchResolver(ABC):
    """Splits an ambiguous ``branch/path`` string for one repository."""

    @abstractmethod
    async def candidates(self, repo_info: RepoInfo, path: str) -> list[tuple[str, str]]:
        """Ordered ``(ref, path)`` splits, best first.  Never empty.

        Raises:
            NoMatchingBranch: if no split is possible.
        """

    async def resolve(self, repo_info: RepoInfo, path: str) -> tuple[str, str]:
        """The single best ``(ref, path)`` split."""
        return (await self.candidates(repo_info, path))[0]

    def clear(self) -> None:  # noqa: B027
        """Drop per-crawl state.  Stateless resolvers have nothing to drop."""


class RefListResolver(BranchResolver):
    """Longest-match against the repository's real branch and tag names.

    Listings are cached per repository for the lifetime of the resolver
    (one crawl); concurrent callers for the same repository share a single
    in-flight listing.  Listing failures propagate to the caller.
    """

    def __init__(self, ref_lister: RefLister) -> None:
        self._ref_lister = ref_lister
        self._listings: dict[str, asyncio.Task[list[str]]] = {}

    async def candidates(self, repo_info: RepoInfo, path: str) -> list[tuple[str, str]]:
        names = await self._names(repo_info)
        return [find_longest_match(names, path)]

    async def _names(self, repo_info: RepoInfo) -> list[str]:
        key = repo_info.cache_key
        task = self._listings.get(key)
        if task is None:
            task = asyncio.ensure_future(self._ref_lister.list_branches_and_tags(repo_info))
            self._listings[key] = task
        try:
            return await asyncio.shield(task)
        except Exception:
            # Do not pin a failed listing; the next crawl may succeed.
            if self._listings.get(key) is task:
                del self._listings[key]
            raise

    def clear(self) -> None:
        """Forget cached listings (called at the start of every crawl)."""
        self._listings.clear()


class HeuristicResolver(BranchResolver):
    """Guesses the branch length when no live ref listing is available.

    Real branch names containing slashes (``release/v1``, ``feat/sub/x``)
    are a minority but common, so splits with more branch segments are
    proposed first; the crawler probes them in order and keeps the first
    one whose kustomization exists.
    """

    def __init__(self, max_segments: int = _HEURISTIC_MAX_SEGMENTS) -> None:
        self._max_segments = max_segments

    async def candidates(self, repo_info: RepoInfo, path: str) -> list[tuple[str, str]]:
        return heuristic_splits(path, self._max_segments)
