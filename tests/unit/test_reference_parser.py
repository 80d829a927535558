"""Unit tests for reference parsing, path joining and plain-manifest detection."""

from __future__ import annotations

import pytest
from hypothesis import assume, given
from hypothesis import strategies as st

from kustviz.errors import MalformedReference
from kustviz.models.kustomize import Provider, ReferenceType, RemoteLocator
from kustviz.parser.reference import (
    canonical_url,
    is_plain_yaml,
    is_remote_reference,
    join_path,
    parse_reference,
    resolve_relative,
    strip_ref_prefix,
)

# ---------------------------------------------------------------------------
# Relative references
# ---------------------------------------------------------------------------


class TestRelative:
    @pytest.mark.parametrize("ref", ["./base", "../../base", "base", "components/monitoring"])
    def test_classified_relative(self, ref: str) -> None:
        parsed = parse_reference(ref)
        assert parsed.type == ReferenceType.RELATIVE
        assert parsed.relative_path == ref
        assert parsed.repo_info is None
        assert parsed.locator is None

    def test_string_form(self) -> None:
        assert str(parse_reference("./base")) == "relative:./base"

    def test_at_sign_in_relative_path_is_not_ssh(self) -> None:
        assert parse_reference("overlays/team@prod").type == ReferenceType.RELATIVE

    @pytest.mark.parametrize("ref", ["", "   "])
    def test_empty_is_malformed(self, ref: str) -> None:
        with pytest.raises(MalformedReference):
            parse_reference(ref)


# ---------------------------------------------------------------------------
# Remote references
# ---------------------------------------------------------------------------


class TestRemote:
    def test_double_slash_github(self) -> None:
        parsed = parse_reference("https://github.com/owner/repo//kustomize/base?ref=develop")
        assert parsed.type == ReferenceType.REMOTE
        assert parsed.repo_info is not None
        assert parsed.repo_info.provider == Provider.GITHUB
        assert parsed.repo_info.owner == "owner"
        assert parsed.repo_info.repo == "repo"
        assert parsed.repo_info.ref == "develop"
        assert parsed.path == "kustomize/base"
        assert parsed.ref_explicit

    def test_ssh_rewritten_to_https(self) -> None:
        parsed = parse_reference("git@github.com:owner/repo.git//kustomize/base?ref=develop")
        assert parsed.repo_info is not None
        assert parsed.repo_info.host == "github.com"
        assert parsed.repo_info.slug == "owner/repo"
        assert parsed.repo_info.ref == "develop"
        assert parsed.path == "kustomize/base"

    def test_gitlab_subgroups(self) -> None:
        parsed = parse_reference("https://gitlab.com/group/subgroup/project//deploy/overlay?ref=main")
        assert parsed.repo_info is not None
        assert parsed.repo_info.provider == Provider.GITLAB
        assert parsed.repo_info.owner == "group/subgroup"
        assert parsed.repo_info.repo == "project"
        assert parsed.path == "deploy/overlay"

    def test_plain_url_defaults_ref(self) -> None:
        parsed = parse_reference("https://github.com/owner/repo/deploy/base")
        assert parsed.repo_info is not None
        assert parsed.repo_info.ref == "main"
        assert not parsed.ref_explicit
        assert parsed.path == "deploy/base"

    def test_slash_branch_in_ref(self) -> None:
        parsed = parse_reference(
            "https://github.com/org/repo//components/nodeset?ref=cjt/cleaning/test-nodeset-component"
        )
        assert parsed.repo_info is not None
        assert parsed.repo_info.ref == "cjt/cleaning/test-nodeset-component"
        assert parsed.path == "components/nodeset"

    def test_version_parameter(self) -> None:
        parsed = parse_reference("https://github.com/org/repo//base?version=v1.2.0")
        assert parsed.repo_info is not None
        assert parsed.repo_info.ref == "v1.2.0"

    def test_heads_marker_discarded(self) -> None:
        parsed = parse_reference("https://gitlab.com/org/repo//base?ref=heads")
        assert parsed.repo_info is not None
        assert parsed.repo_info.ref == "main"
        assert not parsed.ref_explicit

    def test_kustomization_filename_stripped(self) -> None:
        parsed = parse_reference("https://github.com/org/repo//base/kustomization.yaml?ref=main")
        assert parsed.path == "base"

    def test_gitlab_tree_with_ref_drops_branch_prefix(self) -> None:
        parsed = parse_reference(
            "https://gitlab.example.com/g/p/-/tree/feature/x/envs/demo?ref_type=heads&ref=feature/x"
        )
        assert parsed.repo_info is not None
        assert parsed.repo_info.host == "gitlab.example.com"
        assert parsed.repo_info.ref == "feature/x"
        assert parsed.path == "envs/demo"
        assert not parsed.ambiguous

    def test_gitlab_tree_without_ref_is_ambiguous(self) -> None:
        parsed = parse_reference("https://gitlab.com/g/p/-/tree/components/new-base/envs/demo")
        assert parsed.ambiguous
        assert parsed.path == "components/new-base/envs/demo"
        assert parsed.locator is None

    def test_github_tree_without_ref_is_ambiguous(self) -> None:
        parsed = parse_reference("https://github.com/o/r/tree/release/v1/apps/web")
        assert parsed.ambiguous
        assert parsed.repo_info is not None
        assert parsed.repo_info.slug == "o/r"
        assert parsed.path == "release/v1/apps/web"

    def test_string_form(self) -> None:
        url = "https://github.com/o/r//base?ref=main"
        assert str(parse_reference(url)) == f"remote:{url}"

    @pytest.mark.parametrize(
        "ref",
        [
            "https://bitbucket.org/o/r//base",
            "https://github.com/owner",
            "https://github.com/",
        ],
    )
    def test_malformed_remote(self, ref: str) -> None:
        with pytest.raises(MalformedReference):
            parse_reference(ref)

    def test_is_remote_reference(self) -> None:
        assert is_remote_reference("https://github.com/o/r")
        assert is_remote_reference("git@gitlab.com:g/p.git")
        assert not is_remote_reference("../base")


# ---------------------------------------------------------------------------
# Canonical URLs
# ---------------------------------------------------------------------------


class TestCanonicalUrl:
    def test_spellings_converge(self) -> None:
        a = canonical_url("https://github.com/o/r//base?ref=main")
        b = canonical_url("git@github.com:o/r.git//base/?ref=main")
        c = canonical_url("https://GitHub.com/o/r/base")
        assert a == b == c == "https://github.com/o/r//base?ref=main"

    def test_trailing_slash_on_ref_ignored(self) -> None:
        assert canonical_url("https://github.com/o/r//base?ref=main/") == canonical_url(
            "https://github.com/o/r//base?ref=main"
        )
        locator = RemoteLocator(Provider.GITHUB, "github.com", "o", "r", "release/v1/", "base")
        assert locator == RemoteLocator(Provider.GITHUB, "github.com", "o", "r", "release/v1", "base")

    def test_relative_and_ambiguous_have_none(self) -> None:
        assert canonical_url("../base") is None
        assert canonical_url("https://gitlab.com/g/p/-/tree/main/base") is None
        assert canonical_url("https://bitbucket.org/o/r") is None


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------


class TestPaths:
    @pytest.mark.parametrize(
        ("base", "rel", "expected"),
        [
            ("overlays/prod", "../../base", "base"),
            ("overlays/prod", "./patches", "overlays/prod/patches"),
            ("a", "..", "."),
            ("", "../x", "x"),
            (".", "base", "base"),
            ("a/b", "./c/", "a/b/c"),
        ],
    )
    def test_join_path(self, base: str, rel: str, expected: str) -> None:
        assert join_path(base, rel) == expected

    def test_resolve_relative_keeps_repo_and_ref(self) -> None:
        parent = RemoteLocator(Provider.GITLAB, "gitlab.com", "g/s", "p", "release/v1", "overlays/prod")
        child = resolve_relative(parent, "../../base/kustomization.yaml")
        assert child == RemoteLocator(Provider.GITLAB, "gitlab.com", "g/s", "p", "release/v1", "base")

    def test_resolve_relative_to_repo_root(self) -> None:
        parent = RemoteLocator(Provider.GITHUB, "github.com", "o", "r", "main", "base")
        assert resolve_relative(parent, "..").path == ""

    @pytest.mark.parametrize(
        ("entry", "expected"),
        [
            ("deployment.yaml", True),
            ("svc.yml", True),
            ("manifests/Deployment.YAML", True),
            ("kustomization.yaml", False),
            ("base/kustomization.yml", False),
            ("base", False),
            ("https://github.com/o/r//base?ref=main", False),
        ],
    )
    def test_is_plain_yaml(self, entry: str, expected: bool) -> None:
        assert is_plain_yaml(entry) is expected

    def test_strip_ref_prefix(self) -> None:
        assert strip_ref_prefix("feature/x/envs", "feature/x") == "envs"
        assert strip_ref_prefix("feature/x", "feature/x") == ""
        assert strip_ref_prefix("feature-x/envs", "feature") == "feature-x/envs"


# ---------------------------------------------------------------------------
# Property-based recovery
# ---------------------------------------------------------------------------

_segment = st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789-_", min_size=1, max_size=10).filter(
    lambda s: s not in {"tree", "blob", "-", "heads"}
)
_path = st.lists(_segment, min_size=0, max_size=4).map("/".join)
_ref = st.lists(_segment, min_size=1, max_size=3).map("/".join)


class TestRecoveryProperties:
    @given(owner=_segment, repo=_segment, ref=_ref, path=_path)
    def test_double_slash_recovers_components(self, owner: str, repo: str, ref: str, path: str) -> None:
        assume(path)
        parsed = parse_reference(f"https://github.com/{owner}/{repo}//{path}?ref={ref}")
        assert parsed.repo_info is not None
        assert parsed.repo_info.owner == owner
        assert parsed.repo_info.repo == repo
        assert parsed.repo_info.ref == ref
        assert parsed.path == path

    @given(owner=_segment, repo=_segment, path=_path)
    def test_plain_url_recovers_with_default_ref(self, owner: str, repo: str, path: str) -> None:
        url = f"https://gitlab.com/{owner}/{repo}"
        if path:
            url = f"{url}/{path}"
        parsed = parse_reference(url)
        assert parsed.repo_info is not None
        assert parsed.repo_info.slug == f"{owner}/{repo}"
        assert parsed.repo_info.ref == "main"
        assert parsed.path == path

    @given(owner=_segment, repo=_segment, ref=_ref, path=_path)
    def test_locator_url_round_trips(self, owner: str, repo: str, ref: str, path: str) -> None:
        locator = RemoteLocator(Provider.GITHUB, "github.com", owner, repo, ref, path)
        assert parse_reference(locator.url).locator == locator
