"""Assemble a :class:`DependencyGraph` from crawled or local configuration units.

The builder performs no I/O.  Every ``resources``/``bases``/``components``
entry of every unit becomes one edge; targets that were never loaded are
represented by virtual nodes:

remote-N   -- a remote reference with no crawled unit behind it (not loaded,
              no error: the crawl simply did not reach it).
missing-N  -- a relative reference whose directory has no unit (not loaded,
              error ``target not found``).

After linking, :func:`correct_roles` assigns each node the strongest role
any incoming edge declares for it.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import replace

from kustviz.errors import MalformedReference
from kustviz.graph.models import DependencyGraph
from kustviz.models.kustomize import (
    ConfigurationUnit,
    DependencyEdge,
    KustomizeReference,
    NodeRole,
    RemoteLocator,
)
from kustviz.observability.logging import get_logger
from kustviz.parser.reference import (
    is_plain_yaml,
    join_path,
    parse_reference,
    resolve_relative,
    strip_kustomization_file,
)

_log = get_logger("graph.builder")

TARGET_NOT_FOUND = "target not found"

_ROLE_PRIORITY = (NodeRole.COMPONENT, NodeRole.BASE)


def correct_roles(nodes: Sequence[ConfigurationUnit], edges: Sequence[DependencyEdge]) -> dict[str, NodeRole]:
    """Final role per node id from the kinds of its incoming edges.

    ``component`` beats ``base``, which beats ``resource``.  A node referenced
    only as a resource (or not at all) keeps the role it was crawled with.
    """
    incoming: dict[str, set[NodeRole]] = defaultdict(set)
    for edge in edges:
        incoming[edge.target].add(edge.reference_kind)

    roles: dict[str, NodeRole] = {}
    for node in nodes:
        kinds = incoming.get(node.id, set())
        roles[node.id] = next((role for role in _ROLE_PRIORITY if role in kinds), node.role)
    return roles


def edge_label(entry: str, remote: bool) -> str:
    """Remote edges show the last URL path segment; relative edges the entry itself."""
    if not remote:
        return entry
    path = entry.split("?", 1)[0].rstrip("/")
    return path.rsplit("/", 1)[-1].removesuffix(".git")


class DependencyGraphBuilder:
    """Builds a graph from a node list.  Input nodes are never mutated."""

    def build(self, nodes: Sequence[ConfigurationUnit]) -> DependencyGraph:
        index: dict[str, ConfigurationUnit] = {}
        for node in nodes:
            index[node.key] = node
        aliases = {alias: node for node in index.values() for alias in node.aliases}

        state = _BuildState(index=index, aliases=aliases)
        for source in list(index.values()):
            for kind, entry in source.references():
                if not isinstance(entry, str):
                    continue
                if kind != NodeRole.COMPONENT and is_plain_yaml(entry):
                    continue
                state.link(source, kind, entry)

        all_nodes = [*index.values(), *state.virtual.values()]
        roles = correct_roles(all_nodes, state.edges)
        corrected: dict[str, ConfigurationUnit] = {}
        for node in all_nodes:
            role = roles[node.id]
            if role != node.role:
                _log.debug("role_corrected", node=node.id, old=node.role.value, new=role.value)
                node = replace(node, role=role)
            corrected[node.key] = node

        root_path = nodes[0].key if nodes else None
        _log.info(
            "graph_built",
            nodes=len(corrected),
            edges=len(state.edges),
            virtual=len(state.virtual),
        )
        return DependencyGraph(nodes=corrected, edges=state.edges, root_path=root_path)


class _BuildState:
    """Mutable scratch space for one :meth:`DependencyGraphBuilder.build` call."""

    def __init__(self, index: dict[str, ConfigurationUnit], aliases: dict[str, ConfigurationUnit]) -> None:
        self.index = index
        self.aliases = aliases
        self.virtual: dict[str, ConfigurationUnit] = {}
        self.edges: list[DependencyEdge] = []
        self._remote_count = 0
        self._missing_count = 0

    def link(self, source: ConfigurationUnit, kind: NodeRole, entry: str) -> None:
        try:
            parsed = parse_reference(entry)
        except MalformedReference as exc:
            _log.warning("reference_skipped", node=source.id, entry=entry, reason=exc.reason)
            return

        if parsed.repo_info is not None:
            target = self._remote_target(parsed, kind)
        else:
            target = self._relative_target(source, parsed.relative_path)

        self.edges.append(
            DependencyEdge(
                id=f"edge-{len(self.edges) + 1}",
                source=source.id,
                target=target.id,
                reference_kind=kind,
                label=edge_label(entry, remote=parsed.repo_info is not None),
            )
        )

    def _lookup(self, key: str) -> ConfigurationUnit | None:
        return self.index.get(key) or self.virtual.get(key)

    def _remote_target(self, parsed: KustomizeReference, kind: NodeRole) -> ConfigurationUnit:
        aliased = self.aliases.get(parsed.raw)
        if aliased is not None:
            return aliased

        assert parsed.repo_info is not None
        locator = parsed.locator or RemoteLocator.from_repo(parsed.repo_info, parsed.path)
        existing = self._lookup(locator.url)
        if existing is not None:
            return existing

        self._remote_count += 1
        node = ConfigurationUnit(
            id=f"remote-{self._remote_count}",
            path=locator.path or locator.repo,
            role=NodeRole.COMPONENT if kind == NodeRole.COMPONENT else NodeRole.BASE,
            remote_locator=locator,
            loaded=False,
        )
        self.virtual[node.key] = node
        _log.debug("remote_target_unloaded", node=node.id, target=node.key)
        return node

    def _relative_target(self, source: ConfigurationUnit, relative: str) -> ConfigurationUnit:
        locator = None
        if source.remote_locator is not None:
            locator = resolve_relative(source.remote_locator, relative)
            key = locator.url
            path = locator.path or "."
        else:
            path = strip_kustomization_file(join_path(source.path, relative)) or "."
            key = path

        existing = self._lookup(key)
        if existing is not None:
            return existing

        self._missing_count += 1
        node = ConfigurationUnit(
            id=f"missing-{self._missing_count}",
            path=path,
            role=NodeRole.BASE,
            origin=source.origin,
            remote_locator=locator,
            loaded=False,
            error=TARGET_NOT_FOUND,
        )
        self.virtual[key] = node
        _log.warning("edge_target_missing", source=source.id, target=key)
        return node
