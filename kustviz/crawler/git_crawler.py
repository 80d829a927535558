"""Recursive discovery of kustomization units across GitHub/GitLab repositories.

Starting from a root overlay URL the crawler fetches ``kustomization.yaml``,
follows every ``resources``, ``bases`` and ``components`` entry, and returns
the flat list of discovered units (root first).  Edges are not produced here;
the graph builder derives them from each unit's ``raw_content``.

Memoization:
    Every canonical target is visited at most once per crawl.  The visited
    map holds a future per key that resolves as soon as the unit exists, i.e.
    before its children are visited, so reference cycles terminate and
    concurrent discoverers of the same target share one fetch.

Crawl scope:
    All mutable state (visited map, node list, id counter, cancel flag)
    lives in a :class:`_CrawlState` created by each :meth:`GitCrawler.crawl`
    call.  When one sibling visit fails, the remaining siblings are cancelled
    and awaited before the failure propagates, so nothing from an aborted
    crawl is still running when the next one starts.

Failure model:
    Failures at the root propagate.  Below the root, a target that cannot be
    resolved, fetched or parsed becomes an error unit, except a missing
    ``resources`` target, which is dropped silently (its directory may hold
    plain manifests rather than a kustomization).
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import yaml

from kustviz.errors import (
    CrawlCancelled,
    FetchError,
    InvalidKustomization,
    MalformedReference,
    NoMatchingBranch,
    NotFound,
)
from kustviz.models.kustomize import (
    KUSTOMIZATION_FILENAMES,
    ConfigurationUnit,
    NodeRole,
    Origin,
    RemoteLocator,
)
from kustviz.observability.logging import crawl_context, get_logger
from kustviz.observability.metrics import crawl_duration_seconds, crawl_nodes_total
from kustviz.parser.reference import (
    is_plain_yaml,
    parse_reference,
    resolve_relative,
    strip_kustomization_file,
)

if TYPE_CHECKING:
    from collections.abc import Coroutine

    from kustviz.repository.base import ContentFetcher
    from kustviz.repository.resolver import BranchResolver

_log = get_logger("crawler")

# Failures that turn a child target into an error unit instead of aborting.
_NODE_ERRORS = (FetchError, InvalidKustomization, NoMatchingBranch)


@dataclass
class _Visit:
    """Outcome of visiting one canonical target: a unit, or the miss that was cached."""

    node: ConfigurationUnit | None
    error: Exception | None = None


@dataclass
class _CrawlState:
    """Everything one crawl mutates; never shared between crawls."""

    semaphore: asyncio.Semaphore
    cancelled: asyncio.Event = field(default_factory=asyncio.Event)
    visited: dict[str, asyncio.Future[_Visit]] = field(default_factory=dict)
    prefetched: dict[str, dict[str, Any]] = field(default_factory=dict)
    nodes: list[ConfigurationUnit] = field(default_factory=list)
    counter: int = 0

    def next_id(self) -> str:
        self.counter += 1
        return f"node-{self.counter}"

    def settled(self, key: str, visit: _Visit) -> None:
        future: asyncio.Future[_Visit] = asyncio.get_running_loop().create_future()
        future.set_result(visit)
        self.visited[key] = future


class GitCrawler:
    """Crawls a kustomization tree through a :class:`ContentFetcher`.

    One instance can run any number of crawls one after another; each
    :meth:`crawl` gets fresh state, and :meth:`cancel` only affects the crawl
    that is running when it is called.
    """

    def __init__(
        self,
        fetcher: ContentFetcher,
        resolver: BranchResolver,
        max_concurrency: int = 4,
    ) -> None:
        self._fetcher = fetcher
        self._resolver = resolver
        self._max_concurrency = max(1, max_concurrency)
        self._active: _CrawlState | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def crawl(self, root_reference: str) -> list[ConfigurationUnit]:
        """Discover every unit reachable from *root_reference*.

        Raises:
            MalformedReference: the root is not a parseable remote URL.
            NoMatchingBranch:   the root's branch could not be resolved.
            FetchError:         the root kustomization could not be fetched.
            InvalidKustomization: the root document is not a YAML mapping.
            CrawlCancelled:     :meth:`cancel` was called mid-crawl.
        """
        state = _CrawlState(semaphore=asyncio.Semaphore(self._max_concurrency))
        self._active = state
        self._resolver.clear()
        start = time.monotonic()
        with crawl_context(root_reference):
            _log.info("crawl_started")
            try:
                root = await self._crawl_root(state, root_reference)
                await self._visit_children(state, root)
            finally:
                crawl_duration_seconds.observe(time.monotonic() - start)
                if self._active is state:
                    self._active = None
            _log.info("crawl_finished", nodes=len(state.nodes))
        return list(state.nodes)

    def cancel(self) -> None:
        """Abort the running crawl before its next fetch.  No-op when idle."""
        if self._active is not None:
            self._active.cancelled.set()

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    async def _crawl_root(self, state: _CrawlState, root_reference: str) -> ConfigurationUnit:
        parsed = parse_reference(root_reference)
        if parsed.repo_info is None:
            raise MalformedReference(root_reference, "root reference must be a remote repository URL")
        locator = await self._locate_remote(state, root_reference)

        future: asyncio.Future[_Visit] = asyncio.get_running_loop().create_future()
        state.visited[locator.url] = future
        try:
            root = await self._load(state, locator, NodeRole.RESOURCE)
        except BaseException:
            future.cancel()
            raise
        root.aliases.add(root_reference)
        self._register(state, root)
        future.set_result(_Visit(root))
        return root

    async def _visit_children(self, state: _CrawlState, node: ConfigurationUnit) -> None:
        entries = [(kind, entry) for kind, entry in node.references() if self._follows(node, kind, entry)]
        if not entries:
            return
        if self._max_concurrency == 1:
            for kind, entry in entries:
                await self._visit(state, node, kind, entry)
        else:
            await _run_all([self._visit(state, node, kind, entry) for kind, entry in entries])

    def _follows(self, node: ConfigurationUnit, kind: NodeRole, entry: Any) -> bool:
        if not isinstance(entry, str):
            _log.warning("reference_skipped", node=node.id, kind=kind.value, reason="not a string")
            return False
        if kind != NodeRole.COMPONENT and is_plain_yaml(entry):
            _log.debug("reference_skipped", node=node.id, entry=entry, reason="plain manifest")
            return False
        return True

    async def _visit(self, state: _CrawlState, parent: ConfigurationUnit, kind: NodeRole, entry: str) -> None:
        parsed = None
        try:
            parsed = parse_reference(entry)
            if parsed.repo_info is None:
                if parent.remote_locator is None:
                    raise MalformedReference(entry, "relative reference without a remote parent")
                locator = resolve_relative(parent.remote_locator, parsed.relative_path)
            else:
                locator = await self._locate_remote(state, entry)
        except MalformedReference as exc:
            _log.warning("reference_skipped", node=parent.id, entry=entry, reason=exc.reason)
            return
        except _NODE_ERRORS as exc:
            # Ambiguous branch that no listing or probe could settle.
            assert parsed is not None and parsed.repo_info is not None
            unresolved = RemoteLocator.from_repo(parsed.repo_info, parsed.path)
            await self._record_failure(state, unresolved, kind, entry, exc)
            return

        alias = entry if parsed.repo_info is not None else None
        await self._visit_locator(state, locator, kind, alias)

    async def _visit_locator(
        self, state: _CrawlState, locator: RemoteLocator, kind: NodeRole, alias: str | None
    ) -> None:
        key = locator.url
        existing = state.visited.get(key)
        if existing is not None:
            # A probe may have prefetched a target another sibling claimed first.
            state.prefetched.pop(key, None)
            await self._reuse(state, key, existing, kind, alias)
            return

        future: asyncio.Future[_Visit] = asyncio.get_running_loop().create_future()
        state.visited[key] = future
        try:
            node = await self._load(state, locator, kind)
        except _NODE_ERRORS as exc:
            if isinstance(exc, NotFound) and kind == NodeRole.RESOURCE:
                _log.debug("resource_missing", target=key)
                future.set_result(_Visit(None, exc))
                return
            node = self._error_node(state, locator, kind, exc)
            self._add_alias(node, alias)
            self._register(state, node)
            future.set_result(_Visit(node))
            return
        except BaseException:
            future.cancel()
            raise

        self._add_alias(node, alias)
        self._register(state, node)
        future.set_result(_Visit(node))
        await self._visit_children(state, node)

    async def _reuse(
        self,
        state: _CrawlState,
        key: str,
        future: asyncio.Future[_Visit],
        kind: NodeRole,
        alias: str | None,
    ) -> None:
        # Shielded: cancelling this waiter must not cancel the owner's future.
        visit = await asyncio.shield(future)
        if visit.node is not None:
            self._add_alias(visit.node, alias)
            return
        if kind == NodeRole.RESOURCE:
            return
        # A missing resource reached again as a base or component is a broken
        # reference; materialize it once from the cached miss.
        current = state.visited[key]
        if current is not future:
            await self._reuse(state, key, current, kind, alias)
            return
        assert isinstance(visit.error, NotFound)
        node = self._error_node(state, visit.error.locator, kind, visit.error)
        self._add_alias(node, alias)
        self._register(state, node)
        state.settled(key, _Visit(node))

    async def _record_failure(
        self, state: _CrawlState, locator: RemoteLocator, kind: NodeRole, alias: str, exc: Exception
    ) -> None:
        key = locator.url
        existing = state.visited.get(key)
        if existing is not None:
            await self._reuse(state, key, existing, kind, alias)
            return
        node = self._error_node(state, locator, kind, exc)
        self._add_alias(node, alias)
        self._register(state, node)
        state.settled(key, _Visit(node))

    # ------------------------------------------------------------------
    # Resolution and loading
    # ------------------------------------------------------------------

    async def _locate_remote(self, state: _CrawlState, reference: str) -> RemoteLocator:
        """Canonical locator for a remote *reference*, splitting ambiguous branches."""
        parsed = parse_reference(reference)
        locator = parsed.locator
        if locator is not None:
            return locator

        repo = parsed.repo_info
        assert repo is not None
        candidates = [
            RemoteLocator(repo.provider, repo.host, repo.owner, repo.repo, ref, strip_kustomization_file(path))
            for ref, path in await self._resolver.candidates(repo, parsed.path)
        ]
        if len(candidates) == 1:
            return candidates[0]

        for candidate in candidates:
            if candidate.url in state.visited:
                return candidate
        # Probe in order; the first split whose kustomization exists wins.
        for candidate in candidates:
            try:
                state.prefetched[candidate.url] = await self._read_kustomization(state, candidate)
            except NotFound:
                continue
            _log.debug("branch_probed", ref=candidate.ref, path=candidate.path)
            return candidate
        return candidates[0]

    async def _load(self, state: _CrawlState, locator: RemoteLocator, kind: NodeRole) -> ConfigurationUnit:
        content = state.prefetched.pop(locator.url, None)
        if content is None:
            content = await self._read_kustomization(state, locator)
        return ConfigurationUnit(
            id=state.next_id(),
            path=locator.path or ".",
            role=kind,
            raw_content=content,
            origin=Origin.REMOTE,
            remote_locator=locator,
        )

    async def _read_kustomization(self, state: _CrawlState, locator: RemoteLocator) -> dict[str, Any]:
        for filename in KUSTOMIZATION_FILENAMES:
            file_locator = locator.file(filename)
            if state.cancelled.is_set():
                raise CrawlCancelled()
            try:
                async with state.semaphore:
                    data = await self._fetcher.fetch(file_locator)
            except NotFound:
                continue
            return _parse_document(file_locator, data)
        raise NotFound(locator)

    # ------------------------------------------------------------------
    # Node bookkeeping
    # ------------------------------------------------------------------

    @staticmethod
    def _error_node(
        state: _CrawlState, locator: RemoteLocator, kind: NodeRole, exc: Exception
    ) -> ConfigurationUnit:
        return ConfigurationUnit(
            id=f"{state.next_id()}-error",
            path=locator.path or ".",
            role=kind,
            raw_content={},
            origin=Origin.REMOTE,
            remote_locator=locator,
            loaded=False,
            error=str(exc),
        )

    @staticmethod
    def _register(state: _CrawlState, node: ConfigurationUnit) -> None:
        state.nodes.append(node)
        if node.loaded:
            crawl_nodes_total.labels(status="loaded").inc()
            _log.info("node_loaded", node=node.id, target=node.key, role=node.role.value)
        else:
            crawl_nodes_total.labels(status="error").inc()
            _log.warning("node_error", node=node.id, target=node.key, error=node.error)

    @staticmethod
    def _add_alias(node: ConfigurationUnit, alias: str | None) -> None:
        if alias:
            node.aliases.add(alias)


async def _run_all(coros: list[Coroutine[Any, Any, None]]) -> None:
    """Run *coros* concurrently; on the first failure cancel and drain the rest."""
    tasks = [asyncio.ensure_future(coro) for coro in coros]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def _parse_document(locator: RemoteLocator, data: bytes) -> dict[str, Any]:
    try:
        document = yaml.safe_load(data)
    except yaml.YAMLError as exc:
        raise InvalidKustomization(locator, f"invalid YAML: {exc}") from exc
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise InvalidKustomization(locator, f"expected a mapping, got {type(document).__name__}")
    return document
