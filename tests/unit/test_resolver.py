"""Unit tests for branch/path disambiguation."""

from __future__ import annotations

import asyncio

import pytest

from kustviz.errors import NoMatchingBranch, ProviderError
from kustviz.models.kustomize import Provider, RepoInfo
from kustviz.repository.base import RefLister
from kustviz.repository.resolver import (
    HeuristicResolver,
    RefListResolver,
    find_longest_match,
    heuristic_splits,
)

_REPO = RepoInfo(provider=Provider.GITLAB, host="gitlab.com", owner="org", repo="infra", ref="main")


class _CountingLister(RefLister):
    def __init__(self, names: list[str], fail: bool = False) -> None:
        self.names = names
        self.fail = fail
        self.calls = 0

    async def list_branches_and_tags(self, repo_info: RepoInfo) -> list[str]:
        self.calls += 1
        await asyncio.sleep(0.01)
        if self.fail:
            raise ProviderError("gitlab", 500, "boom")
        return list(self.names)


# ---------------------------------------------------------------------------
# find_longest_match
# ---------------------------------------------------------------------------


class TestFindLongestMatch:
    def test_exact_branch(self) -> None:
        assert find_longest_match(["main", "develop"], "main") == ("main", "")

    def test_branch_with_path(self) -> None:
        assert find_longest_match(["main", "develop"], "develop/overlays/prod") == ("develop", "overlays/prod")

    def test_longest_wins(self) -> None:
        names = ["main", "main-feature", "main-feature-x"]
        assert find_longest_match(names, "main-feature-x/base") == ("main-feature-x", "base")

    def test_slash_branch_beats_its_prefix(self) -> None:
        names = ["components", "components/new-base"]
        assert find_longest_match(names, "components/new-base/environments/demo/overlay") == (
            "components/new-base",
            "environments/demo/overlay",
        )

    def test_name_must_end_on_segment_boundary(self) -> None:
        assert find_longest_match(["main", "main-feature"], "main/overlay") == ("main", "overlay")
        with pytest.raises(NoMatchingBranch):
            find_longest_match(["main"], "main-feature/overlay")

    def test_leading_and_trailing_slashes(self) -> None:
        assert find_longest_match(["release/v1"], "/release/v1/apps/") == ("release/v1", "apps")

    def test_tags_are_matched_like_branches(self) -> None:
        assert find_longest_match(["v1.0", "v1.0.0"], "v1.0.0/deploy") == ("v1.0.0", "deploy")
        assert find_longest_match(["v1.0", "v1.0.0"], "v1.0/deploy") == ("v1.0", "deploy")

    def test_equal_length_first_wins(self) -> None:
        # Distinct names of equal length cannot both prefix one path on a
        # segment boundary, so duplicates are the only tie in practice.
        assert find_longest_match(["main", "main"], "main/x") == ("main", "x")

    def test_no_match_raises(self) -> None:
        with pytest.raises(NoMatchingBranch, match="No matching branch found in path"):
            find_longest_match(["main", "develop"], "feature/x")

    def test_empty_names_raise(self) -> None:
        with pytest.raises(NoMatchingBranch):
            find_longest_match([], "main/x")


# ---------------------------------------------------------------------------
# Heuristic splits
# ---------------------------------------------------------------------------


class TestHeuristic:
    def test_splits_longest_first(self) -> None:
        assert heuristic_splits("a/b/c/d") == [("a/b/c", "d"), ("a/b", "c/d"), ("a", "b/c/d")]

    def test_short_path(self) -> None:
        assert heuristic_splits("main") == [("main", "")]

    def test_empty_path_raises(self) -> None:
        with pytest.raises(NoMatchingBranch):
            heuristic_splits("/")

    async def test_resolver_returns_first_split(self) -> None:
        resolver = HeuristicResolver(max_segments=2)
        assert await resolver.resolve(_REPO, "feature/x/envs") == ("feature/x", "envs")


# ---------------------------------------------------------------------------
# RefListResolver
# ---------------------------------------------------------------------------


class TestRefListResolver:
    async def test_resolves_against_listing(self) -> None:
        resolver = RefListResolver(_CountingLister(["main", "feature", "feature/new-base"]))
        assert await resolver.resolve(_REPO, "feature/new-base/envs/demo") == ("feature/new-base", "envs/demo")

    async def test_listing_cached_per_repository(self) -> None:
        lister = _CountingLister(["main"])
        resolver = RefListResolver(lister)
        await resolver.resolve(_REPO, "main/a")
        await resolver.resolve(_REPO, "main/b")
        assert lister.calls == 1

    async def test_cache_ignores_ref(self) -> None:
        lister = _CountingLister(["main"])
        resolver = RefListResolver(lister)
        await resolver.resolve(_REPO, "main/a")
        other_ref = RepoInfo(Provider.GITLAB, "gitlab.com", "org", "infra", "develop")
        await resolver.resolve(other_ref, "main/b")
        assert lister.calls == 1

    async def test_concurrent_callers_share_one_listing(self) -> None:
        lister = _CountingLister(["main"])
        resolver = RefListResolver(lister)
        results = await asyncio.gather(*(resolver.resolve(_REPO, f"main/{i}") for i in range(5)))
        assert [path for _, path in results] == ["0", "1", "2", "3", "4"]
        assert lister.calls == 1

    async def test_failed_listing_not_cached(self) -> None:
        lister = _CountingLister(["main"], fail=True)
        resolver = RefListResolver(lister)
        with pytest.raises(ProviderError):
            await resolver.resolve(_REPO, "main/a")
        lister.fail = False
        assert await resolver.resolve(_REPO, "main/a") == ("main", "a")
        assert lister.calls == 2

    async def test_clear_forgets_listings(self) -> None:
        lister = _CountingLister(["main"])
        resolver = RefListResolver(lister)
        await resolver.resolve(_REPO, "main/a")
        resolver.clear()
        await resolver.resolve(_REPO, "main/a")
        assert lister.calls == 2
