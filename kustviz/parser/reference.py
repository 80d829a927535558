"""Reference parsing for kustomization ``resources``/``bases``/``components`` entries.

Everything in this module is pure string manipulation: no network I/O is
performed, and the only failure mode is :class:`MalformedReference`.

Supported remote spellings::

    https://github.com/owner/repo//path?ref=branch      (kustomize double-slash)
    https://github.com/owner/repo/path?ref=branch       (plain)
    https://github.com/owner/repo/tree/<branch>/<path>  (browser URL, ambiguous)
    https://gitlab.com/group/sub/project//path?ref=x    (GitLab subgroups)
    https://gitlab.example.com/g/p/-/tree/<branch>/<path>
    git@github.com:owner/repo.git//path?ref=branch      (SSH, rewritten to HTTPS)
"""

from __future__ import annotations

import re
from urllib.parse import parse_qs, unquote, urlsplit

from kustviz.errors import MalformedReference
from kustviz.models.kustomize import (
    DEFAULT_REFS,
    KUSTOMIZATION_FILENAMES,
    KustomizeReference,
    Provider,
    ReferenceType,
    RemoteLocator,
    RepoInfo,
)

_SSH_RE = re.compile(r"^(?:ssh://)?[\w.-]+@(?P<host>[\w-]+(?:\.[\w-]+)+)(?::\d+)?[:/](?P<rest>.+)$")

# GitLab emits ``ref_type=heads`` next to tree URLs; some tools copy the bare
# marker into ``ref=`` as well.  It never names a real ref.
_NON_REF_VALUES = {"heads"}

_TREE_MARKERS = ("tree", "blob")


def parse_reference(reference: str) -> KustomizeReference:
    """Classify *reference* as relative or remote and decompose remote URLs.

    Raises:
        MalformedReference: if the string is empty, or looks remote but its
            host or repository path cannot be decomposed.
    """
    if reference is None or not reference.strip():
        raise MalformedReference(reference or "", "empty reference")
    value = reference.strip()

    if not value.startswith(("http://", "https://")):
        ssh = _SSH_RE.match(value)
        if ssh is None:
            return KustomizeReference(
                type=ReferenceType.RELATIVE,
                raw=reference,
                relative_path=value,
            )
        value = f"https://{ssh.group('host')}/{ssh.group('rest')}"

    return _parse_remote(value, raw=reference)


def is_remote_reference(reference: str) -> bool:
    """Cheap check used before deciding whether to parse or to join a path."""
    value = reference.strip()
    return value.startswith(("http://", "https://")) or _SSH_RE.match(value) is not None


def _provider_for_host(host: str, reference: str) -> Provider:
    if "github" in host:
        return Provider.GITHUB
    if "gitlab" in host:
        return Provider.GITLAB
    raise MalformedReference(reference, f"unsupported host {host!r} (expected GitHub or GitLab)")


def _query_ref(query: str) -> str | None:
    params = parse_qs(query)
    for key in ("ref", "version"):
        for value in params.get(key, []):
            value = value.strip()
            if value and value not in _NON_REF_VALUES:
                return value
    return None


def _parse_remote(url: str, raw: str) -> KustomizeReference:
    parts = urlsplit(url)
    host = parts.netloc.rsplit("@", 1)[-1].split(":", 1)[0].lower()
    if not host:
        raise MalformedReference(raw, "missing host")
    provider = _provider_for_host(host, raw)
    ref = _query_ref(parts.query)
    path = unquote(parts.path).lstrip("/")

    tree: list[str] | None = None
    if "//" in path:
        repo_part, subpath = path.split("//", 1)
        repo_segments = [s for s in repo_part.split("/") if s]
        if len(repo_segments) < 2:
            raise MalformedReference(raw, "missing owner or repository")
        owner, repo = "/".join(repo_segments[:-1]), repo_segments[-1]
    else:
        segments = [s for s in path.split("/") if s]
        if provider == Provider.GITLAB and "-" in segments:
            marker = segments.index("-")
            repo_segments, rest = segments[:marker], segments[marker + 1 :]
        else:
            repo_segments, rest = segments[:2], segments[2:]
        if len(repo_segments) < 2:
            raise MalformedReference(raw, "missing owner or repository")
        owner, repo = "/".join(repo_segments[:-1]), repo_segments[-1]
        if rest and rest[0] in _TREE_MARKERS:
            tree = rest[1:]
            subpath = ""
        else:
            subpath = "/".join(rest)

    repo = repo.removesuffix(".git")
    if not owner or not repo:
        raise MalformedReference(raw, "missing owner or repository")

    ambiguous = False
    if tree is not None:
        branch_and_path = "/".join(tree)
        if ref is not None:
            subpath = strip_ref_prefix(branch_and_path, ref)
        elif branch_and_path:
            subpath = branch_and_path
            ambiguous = True

    return KustomizeReference(
        type=ReferenceType.REMOTE,
        raw=raw,
        repo_info=RepoInfo(
            provider=provider,
            host=host,
            owner=owner,
            repo=repo,
            ref=ref or DEFAULT_REFS[provider],
        ),
        path=strip_kustomization_file(subpath.strip("/")),
        ref_explicit=ref is not None,
        ambiguous=ambiguous,
    )


def strip_ref_prefix(path: str, ref: str) -> str:
    """Drop a leading ``ref/`` from *path* when it is there."""
    path = path.strip("/")
    if path == ref:
        return ""
    if path.startswith(ref + "/"):
        return path[len(ref) + 1 :]
    return path


def strip_kustomization_file(path: str) -> str:
    """Point a path at its directory when it names a kustomization file."""
    head, _, tail = path.rpartition("/")
    if tail.lower() in KUSTOMIZATION_FILENAMES:
        return head
    return path


def is_plain_yaml(entry: str) -> bool:
    """True for a bare manifest file such as ``deploy.yaml``.

    A reference to ``kustomization.yaml``/``.yml`` itself is not a plain
    manifest: it names the unit of its directory.
    """
    lower = entry.split("?", 1)[0].rstrip("/").lower()
    if not lower.endswith((".yaml", ".yml")):
        return False
    return lower.rsplit("/", 1)[-1] not in KUSTOMIZATION_FILENAMES


def join_path(base: str, relative: str) -> str:
    """Segment-wise join: ``.`` is a no-op and ``..`` pops one segment.

    Returns ``"."`` when the result is the root.  ``..`` above the root is
    clamped at the root.
    """
    parts = [p for p in base.split("/") if p and p != "."]
    for part in relative.split("/"):
        if not part or part == ".":
            continue
        if part == "..":
            if parts:
                parts.pop()
        else:
            parts.append(part)
    return "/".join(parts) or "."


def resolve_relative(parent: RemoteLocator, relative: str) -> RemoteLocator:
    """Locator of *relative* joined onto *parent*, same repository and ref."""
    joined = strip_kustomization_file(join_path(parent.path, relative))
    return parent.with_path("" if joined == "." else joined)


def canonical_url(reference: str) -> str | None:
    """Canonical locator URL for *reference* when it can be derived without I/O.

    Returns ``None`` for relative references, ambiguous tree/blob URLs and
    strings the parser rejects.
    """
    try:
        parsed = parse_reference(reference)
    except MalformedReference:
        return None
    locator = parsed.locator
    return locator.url if locator is not None else None
