"""Data structures for the kustomization dependency graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from kustviz.models.kustomize import ConfigurationUnit, DependencyEdge


@dataclass(frozen=True)
class DependencyGraph:
    """Nodes indexed by lookup key plus the ordered edge list.

    Built once by :class:`kustviz.graph.DependencyGraphBuilder`; nothing in
    kustviz mutates a graph after that.
    """

    nodes: dict[str, ConfigurationUnit] = field(default_factory=dict)
    edges: list[DependencyEdge] = field(default_factory=list)
    root_path: str | None = None
    _by_id: dict[str, ConfigurationUnit] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_id", {node.id: node for node in self.nodes.values()})

    @property
    def root(self) -> ConfigurationUnit | None:
        if self.root_path is None:
            return None
        return self.nodes.get(self.root_path)

    def node_by_id(self, node_id: str) -> ConfigurationUnit | None:
        return self._by_id.get(node_id)

    def out_edges(self, node_id: str) -> list[DependencyEdge]:
        return [edge for edge in self.edges if edge.source == node_id]

    def parents(self, node_id: str) -> list[str]:
        """Ids of nodes referencing *node_id*, deduplicated, in edge order."""
        return list(dict.fromkeys(edge.source for edge in self.edges if edge.target == node_id))

    def children(self, node_id: str) -> list[str]:
        """Ids of nodes *node_id* references, deduplicated, in edge order."""
        return list(dict.fromkeys(edge.target for edge in self.out_edges(node_id)))


@dataclass(frozen=True)
class NodeDetails:
    """Everything a detail view shows for one node."""

    id: str
    label: str
    type: str
    path: str
    content: dict[str, Any]
    parents: list[str] = field(default_factory=list)
    children: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "type": self.type,
            "path": self.path,
            "content": self.content,
            "parents": list(self.parents),
            "children": list(self.children),
        }
