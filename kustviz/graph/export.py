"""JSON-ready views of a dependency graph.

:func:`export_graph` produces the element-list document consumed by graph
front ends (one ``{"group": "nodes"|"edges", "data": {...}}`` entry per
element); :func:`node_details` produces the per-node detail view.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from kustviz.graph.models import DependencyGraph, NodeDetails
from kustviz.models.kustomize import ConfigurationUnit, DependencyEdge


@dataclass(frozen=True)
class GraphExport:
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created: str = field(default_factory=lambda: datetime.now(tz=UTC).isoformat())
    elements: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "created": self.created, "elements": list(self.elements)}


def export_graph(graph: DependencyGraph) -> GraphExport:
    """Nodes first (index order), then edges (edge-list order)."""
    elements = [_node_element(node) for node in graph.nodes.values()]
    elements.extend(_edge_element(edge) for edge in graph.edges)
    return GraphExport(elements=elements)


def node_details(graph: DependencyGraph, node_id: str) -> NodeDetails:
    """Detail view for *node_id*.

    Raises:
        KeyError: if the graph has no node with that id.
    """
    node = graph.node_by_id(node_id)
    if node is None:
        raise KeyError(node_id)
    return NodeDetails(
        id=node.id,
        label=node.label,
        type=node.role.value,
        path=node.path,
        content=node.raw_content,
        parents=graph.parents(node_id),
        children=graph.children(node_id),
    )


def _node_element(node: ConfigurationUnit) -> dict[str, Any]:
    return {
        "group": "nodes",
        "data": {
            "id": node.id,
            "label": node.label,
            "type": node.role.value,
            "path": node.path,
            "origin": node.origin.value,
            "loaded": node.loaded,
            "error": node.error,
            "remoteUrl": node.remote_locator.url if node.remote_locator is not None else None,
        },
    }


def _edge_element(edge: DependencyEdge) -> dict[str, Any]:
    return {
        "group": "edges",
        "data": {
            "id": edge.id,
            "source": edge.source,
            "target": edge.target,
            "edgeType": edge.reference_kind.value,
            "label": edge.label,
        },
    }
