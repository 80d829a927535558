"""Core data structures for kustomization units, references and locators."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any
from urllib.parse import quote


class ReferenceType(StrEnum):
    """How a raw reference string was classified by the parser."""

    RELATIVE = "relative"
    REMOTE = "remote"


class Provider(StrEnum):
    """Supported Git hosting providers."""

    GITHUB = "github"
    GITLAB = "gitlab"


class NodeRole(StrEnum):
    """Declared role of a kustomization unit.

    Also used as the reference kind on edges: the field of the referencing
    kustomization (``resources``, ``bases``, ``components``) the entry was
    listed under.
    """

    RESOURCE = "resource"
    BASE = "base"
    COMPONENT = "component"


class Origin(StrEnum):
    LOCAL = "local"
    REMOTE = "remote"


DEFAULT_REFS: dict[Provider, str] = {
    Provider.GITHUB: "main",
    Provider.GITLAB: "main",
}

KUSTOMIZATION_FILENAMES = ("kustomization.yaml", "kustomization.yml")

# Kustomization fields that reference other units, in crawl order.
REFERENCE_FIELDS: tuple[tuple[str, NodeRole], ...] = (
    ("resources", NodeRole.RESOURCE),
    ("bases", NodeRole.BASE),
    ("components", NodeRole.COMPONENT),
)


@dataclass(frozen=True)
class RepoInfo:
    """A repository on a hosting provider, plus the ref to read it at."""

    provider: Provider
    host: str
    owner: str
    repo: str
    ref: str

    @property
    def slug(self) -> str:
        """``owner/repo`` (owner may itself contain slashes on GitLab)."""
        return f"{self.owner}/{self.repo}"

    @property
    def cache_key(self) -> str:
        """Ref-independent identity, used to cache branch/tag listings."""
        return f"{self.provider}:{self.host}/{self.slug}"


@dataclass(frozen=True)
class RemoteLocator:
    """Canonical {provider, host, owner, repo, ref, path} address of remote content.

    Two locators are equivalent iff every field is equal; ``path`` is stored
    without leading or trailing slashes so that trivially different spellings
    compare equal.
    """

    provider: Provider
    host: str
    owner: str
    repo: str
    ref: str
    path: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", self.path.strip("/"))
        object.__setattr__(self, "ref", self.ref.strip("/"))
        object.__setattr__(self, "host", self.host.lower())

    @classmethod
    def from_repo(cls, repo_info: RepoInfo, path: str = "") -> RemoteLocator:
        return cls(
            provider=repo_info.provider,
            host=repo_info.host,
            owner=repo_info.owner,
            repo=repo_info.repo,
            ref=repo_info.ref,
            path=path,
        )

    @property
    def repo_info(self) -> RepoInfo:
        return RepoInfo(
            provider=self.provider,
            host=self.host,
            owner=self.owner,
            repo=self.repo,
            ref=self.ref,
        )

    @property
    def url(self) -> str:
        """Kustomize-style remote URL: ``https://host/owner/repo//path?ref=ref``."""
        base = f"https://{self.host}/{self.owner}/{self.repo}"
        if self.path:
            base = f"{base}//{self.path}"
        return f"{base}?ref={quote(self.ref, safe='/')}"

    def file(self, filename: str) -> RemoteLocator:
        """Locator of *filename* inside this directory."""
        path = f"{self.path}/{filename}" if self.path else filename
        return RemoteLocator(self.provider, self.host, self.owner, self.repo, self.ref, path)

    def with_path(self, path: str) -> RemoteLocator:
        return RemoteLocator(self.provider, self.host, self.owner, self.repo, self.ref, path)


@dataclass(frozen=True)
class KustomizeReference:
    """Parsed form of one ``resources``/``bases``/``components`` entry.

    For ``remote`` references ``repo_info`` is always populated.  When
    ``ambiguous`` is set, ``path`` still begins with a branch name of unknown
    length (e.g. a ``/-/tree/<branch>/<path>`` URL with no ``ref=``) and must
    be split by a branch resolver before it can be fetched.
    """

    type: ReferenceType
    raw: str
    relative_path: str = ""
    repo_info: RepoInfo | None = None
    path: str = ""
    ref_explicit: bool = False
    ambiguous: bool = False

    def __str__(self) -> str:
        if self.type == ReferenceType.RELATIVE:
            return f"relative:{self.relative_path}"
        return f"remote:{self.raw}"

    @property
    def locator(self) -> RemoteLocator | None:
        """Canonical locator, or ``None`` for relative or ambiguous references."""
        if self.repo_info is None or self.ambiguous:
            return None
        return RemoteLocator.from_repo(self.repo_info, self.path)


@dataclass
class ConfigurationUnit:
    """One kustomization directory -- a node of the dependency graph.

    ``aliases`` records raw remote reference strings that the crawler
    resolved to this unit; the graph builder links through them when the
    string alone cannot be normalized without I/O.
    """

    id: str
    path: str
    role: NodeRole
    raw_content: dict[str, Any] = field(default_factory=dict)
    origin: Origin = Origin.REMOTE
    remote_locator: RemoteLocator | None = None
    loaded: bool = True
    error: str | None = None
    aliases: set[str] = field(default_factory=set, compare=False)

    @property
    def key(self) -> str:
        """Lookup key: the canonical locator URL for remote units, the path otherwise."""
        if self.remote_locator is not None:
            return self.remote_locator.url
        return self.path

    @property
    def label(self) -> str:
        if self.path in ("", "."):
            return "."
        return self.path.rsplit("/", 1)[-1]

    def references(self) -> Iterator[tuple[NodeRole, Any]]:
        """Yield ``(kind, entry)`` for every declared reference, in crawl order.

        Entries are yielded as found in the document; callers must skip
        anything that is not a string.
        """
        for field_name, kind in REFERENCE_FIELDS:
            entries = self.raw_content.get(field_name) or []
            if not isinstance(entries, list):
                continue
            for entry in entries:
                yield kind, entry


@dataclass(frozen=True)
class DependencyEdge:
    """A directed reference from one unit to another.

    ``reference_kind`` is how the *source* declared the reference, which is
    not necessarily the target's final role.
    """

    id: str
    source: str
    target: str
    reference_kind: NodeRole
    label: str
