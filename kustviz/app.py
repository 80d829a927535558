"""Pipeline bootstrap for kustviz.

Wires the components for one discovery in dependency order:
config → logging → HTTP client → provider router → branch resolver
       → crawler → graph builder → cycle detector → export

:func:`discover` runs the remote pipeline; :func:`discover_local` runs the
same graph stages over an in-memory set of kustomization files.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from kustviz.config import load_config
from kustviz.crawler import GitCrawler, units_from_local_files
from kustviz.graph import DependencyGraph, DependencyGraphBuilder, GraphExport, detect_cycles, export_graph
from kustviz.models.config import KustvizConfig
from kustviz.models.kustomize import ConfigurationUnit
from kustviz.observability.logging import get_logger, setup_logging
from kustviz.repository import (
    BranchResolver,
    HeuristicResolver,
    ProviderRouter,
    RefListResolver,
    build_provider_router,
)

_log = get_logger("app")


@dataclass
class DiscoveryResult:
    """Outcome of one discovery run."""

    graph: DependencyGraph
    cycles: list[list[str]]
    export: GraphExport

    def to_dict(self) -> dict[str, Any]:
        return {**self.export.to_dict(), "cycles": [list(cycle) for cycle in self.cycles]}


def build_resolver(strategy: str, router: ProviderRouter) -> BranchResolver:
    """``api`` lists real branches and tags; ``heuristic`` guesses and probes."""
    if strategy == "heuristic":
        return HeuristicResolver()
    if strategy == "api":
        return RefListResolver(router)
    raise ValueError(f"Invalid resolver strategy: {strategy}")


async def discover(
    root_reference: str,
    config: KustvizConfig | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> DiscoveryResult:
    """Crawl *root_reference* and assemble its dependency graph.

    When *config* is omitted it is loaded from ``KUSTVIZ_*`` environment
    variables and logging is configured from it.  A caller-supplied
    *http_client* is used as-is and left open.

    Root failures (malformed root URL, unresolvable branch, missing or
    invalid root kustomization, provider errors at the root) propagate.
    """
    if config is None:
        config = load_config()
        setup_logging(config.log.level, config.log.format)

    owns_client = http_client is None
    client = http_client or httpx.AsyncClient(timeout=config.providers.http_timeout, follow_redirects=True)
    try:
        router = build_provider_router(client, config.providers)
        resolver = build_resolver(config.crawl.resolver_strategy, router)
        crawler = GitCrawler(router, resolver, max_concurrency=config.crawl.max_concurrency)
        nodes = await crawler.crawl(root_reference)
    finally:
        if owns_client:
            await client.aclose()

    return _assemble(nodes)


def discover_local(files: Mapping[str, str]) -> DiscoveryResult:
    """Assemble the graph of an already-read local file set (relative path → text)."""
    return _assemble(units_from_local_files(files))


def _assemble(nodes: Sequence[ConfigurationUnit]) -> DiscoveryResult:
    graph = DependencyGraphBuilder().build(nodes)
    cycles = detect_cycles(graph)
    _log.info("discovery_complete", nodes=len(graph.nodes), edges=len(graph.edges), cycles=len(cycles))
    return DiscoveryResult(graph=graph, cycles=cycles, export=export_graph(graph))
