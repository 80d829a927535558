"""Kustomization dependency graph: assembly, role correction, cycles and export.

Built purely from configuration units (no I/O), so the same code serves
remote crawls and local file sets.
"""

from kustviz.graph.builder import DependencyGraphBuilder, correct_roles
from kustviz.graph.cycles import detect_cycles
from kustviz.graph.export import GraphExport, export_graph, node_details
from kustviz.graph.models import DependencyGraph, NodeDetails

__all__ = [
    "DependencyGraph",
    "DependencyGraphBuilder",
    "GraphExport",
    "NodeDetails",
    "correct_roles",
    "detect_cycles",
    "export_graph",
    "node_details",
]
