"""Reference-cycle detection over an assembled dependency graph."""

from __future__ import annotations

from kustviz.graph.models import DependencyGraph
from kustviz.observability.logging import get_logger
from kustviz.observability.metrics import cycles_detected_total

_log = get_logger("graph.cycles")


def detect_cycles(graph: DependencyGraph) -> list[list[str]]:
    """Return every cycle closed during a depth-first walk of *graph*.

    Each cycle is a list of node ids running from the re-entered node back to
    itself, e.g. ``["a", "b", "c", "a"]``.  Roots are tried in node-index
    order and out-edges in edge-list order.  Nodes finished by an earlier
    walk are not re-entered, and cycles reachable through several entry
    points are not deduplicated.
    """
    adjacency: dict[str, list[str]] = {node.id: [] for node in graph.nodes.values()}
    for edge in graph.edges:
        adjacency.setdefault(edge.source, []).append(edge.target)

    visited: set[str] = set()
    on_stack: set[str] = set()
    path: list[str] = []
    cycles: list[list[str]] = []

    def walk(node_id: str) -> None:
        visited.add(node_id)
        on_stack.add(node_id)
        path.append(node_id)
        for target in adjacency.get(node_id, []):
            if target in on_stack:
                start = path.index(target)
                cycles.append([*path[start:], target])
            elif target not in visited:
                walk(target)
        path.pop()
        on_stack.discard(node_id)

    for node_id in adjacency:
        if node_id not in visited:
            walk(node_id)

    if cycles:
        cycles_detected_total.inc(len(cycles))
        _log.warning("cycles_detected", count=len(cycles))
    return cycles
