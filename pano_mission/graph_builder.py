"""
Graph builder for exploring the walkable panorama network.

This module provides the GraphBuilder class that resolves a start
panorama, explores its neighbourhood breadth-first and classifies the
topology of every panorama it discovers.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Deque,
    Dict,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    TypeVar,
)

import numpy as np
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .cache_manager import PanoramaCache, get_default_cache
from .config import ScanConfig
from .geometry_utils import GeometryUtils
from .providers.base import (
    PanoramaMetadata,
    PanoramaProvider,
    ProviderError,
    TransientProviderError,
)
from .types import FloatPair, GraphStats, PanoLink, PanoNode, PanoramaGraph

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[int, int, str], None]

# Street View asks clients to stay around five requests per second.
MIN_REQUEST_DELAY_S = 0.2

MAX_FETCH_ATTEMPTS = 3

# Turning more than this away from the entry heading makes a 2-link node a corner.
CORNER_ANGLE_THRESHOLD_DEG = 60.0

_POLL_INTERVAL_S = 0.05

# Provider calls still running after their build stopped waiting for them.
_abandoned_lock = threading.Lock()
_abandoned_requests: Set["Future[Any]"] = set()


def abandoned_request_count() -> int:
    """Number of timed-out or cancelled provider calls still running."""
    with _abandoned_lock:
        return len(_abandoned_requests)


def _track_abandoned(future: "Future[Any]") -> None:
    with _abandoned_lock:
        _abandoned_requests.add(future)
    future.add_done_callback(_forget_abandoned)


def _forget_abandoned(future: "Future[Any]") -> None:
    with _abandoned_lock:
        _abandoned_requests.discard(future)


class StartPanoramaUnavailableError(Exception):
    """Raised when the start coordinate cannot seed a usable graph."""


class GraphBuildCancelled(Exception):
    """Raised when a build is cancelled; no partial graph is produced."""


class CancelToken:
    """Cooperative cancellation signal shared between a caller and a build."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise GraphBuildCancelled("Graph build was cancelled")

    def sleep(self, seconds: float) -> None:
        """Wait for ``seconds`` unless cancelled first."""
        if seconds > 0 and self._event.wait(seconds):
            raise GraphBuildCancelled("Graph build was cancelled")
        self.raise_if_cancelled()


@dataclass
class ScanMetrics:
    """Counters collected while scanning."""

    nodes_scanned: int = 0
    requests_made: int = 0
    cache_hits: int = 0
    failed_fetches: int = 0
    retries: int = 0
    abandoned_requests: int = 0
    elapsed_ms: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "nodesScanned": self.nodes_scanned,
            "requestsMade": self.requests_made,
            "cacheHits": self.cache_hits,
            "failedFetches": self.failed_fetches,
            "retries": self.retries,
            "abandonedRequests": self.abandoned_requests,
            "elapsedMs": self.elapsed_ms,
        }


@dataclass
class GraphBuildResult:
    """Result of one scan: the graph plus how it was obtained."""

    graph: PanoramaGraph
    metrics: ScanMetrics = field(default_factory=ScanMetrics)


@dataclass(frozen=True)
class _QueueItem:
    pano_id: str
    depth: int
    parent_heading: Optional[float] = None


def analyze_topology(
    links: Sequence[PanoLink], parent_heading: Optional[float]
) -> Tuple[bool, bool, bool]:
    """
    Classify a node from its outgoing links.

    Args:
        links: Valid outgoing links of the node
        parent_heading: Heading of the link used to reach the node,
            None for the start node

    Returns:
        Tuple of (is_dead_end, is_intersection, is_corner)
    """
    is_dead_end = len(links) <= 1
    is_intersection = len(links) >= 3

    is_corner = False
    if parent_heading is not None and len(links) == 2:
        deviations = [
            abs(GeometryUtils.heading_difference(parent_heading, link.heading))
            for link in links
        ]
        is_corner = min(deviations) > CORNER_ANGLE_THRESHOLD_DEG

    return is_dead_end, is_intersection, is_corner


def filter_links(pano_id: str, links: Sequence[PanoLink]) -> Tuple[PanoLink, ...]:
    """Drop links with blank or self-referencing targets and normalize headings."""

    valid: List[PanoLink] = []
    for link in links:
        target = (link.target_pano_id or "").strip()
        if not target or target == pano_id:
            continue
        valid.append(
            PanoLink(
                target_pano_id=target,
                heading=GeometryUtils.normalize_heading(link.heading),
                description=link.description,
            )
        )
    return tuple(valid)


def calculate_graph_stats(nodes: Sequence[PanoNode], max_depth: int) -> GraphStats:
    """Aggregate topology counts for a set of nodes."""

    if not nodes:
        return GraphStats(max_depth=max_depth)

    link_counts = np.array([len(node.links) for node in nodes], dtype=float)
    return GraphStats(
        total_nodes=len(nodes),
        dead_ends=sum(1 for node in nodes if node.is_dead_end),
        intersections=sum(1 for node in nodes if node.is_intersection),
        corners=sum(1 for node in nodes if node.is_corner),
        max_depth=max_depth,
        avg_links=round(float(link_counts.mean()), 1),
    )


class GraphBuilder:
    """
    Explores the panorama network around a coordinate.

    Issues at most one provider request at a time, paces uncached requests,
    retries transient failures and prunes the subtree of any panorama that
    still cannot be fetched.
    """

    def __init__(
        self,
        provider: PanoramaProvider,
        cache: Optional[PanoramaCache] = None,
        min_request_delay: float = MIN_REQUEST_DELAY_S,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the graph builder.

        Args:
            provider: Panorama data provider
            cache: Panorama cache; the process-wide cache when omitted
            min_request_delay: Lower bound for the pause between requests
            clock: Monotonic clock used for pacing and metrics
        """
        self.provider = provider
        self.cache = cache if cache is not None else get_default_cache()
        self.min_request_delay = max(0.0, min_request_delay)
        self._clock = clock

    def build_graph(
        self,
        start_coordinates: FloatPair,
        options: Optional[ScanConfig] = None,
        cancel_token: Optional[CancelToken] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> GraphBuildResult:
        """
        Build the panorama graph reachable from ``start_coordinates``.

        Raises:
            StartPanoramaUnavailableError: No usable start panorama exists
            GraphBuildCancelled: The cancel token fired during the build
        """
        return _GraphBuild(
            builder=self,
            start_coordinates=start_coordinates,
            options=options or ScanConfig(),
            cancel_token=cancel_token or CancelToken(),
            on_progress=on_progress,
        ).run()


class _GraphBuild:
    """State of a single build; one instance per ``build_graph`` call."""

    def __init__(
        self,
        builder: GraphBuilder,
        start_coordinates: FloatPair,
        options: ScanConfig,
        cancel_token: CancelToken,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        self.provider = builder.provider
        self.cache = builder.cache if options.use_cache else None
        self.clock = builder._clock
        self.request_delay = max(options.request_delay_s, builder.min_request_delay)
        self.options = options
        self.start_coordinates = start_coordinates
        self.token = cancel_token
        self.on_progress = on_progress
        self.metrics = ScanMetrics()
        self._last_request_at: Optional[float] = None
        self._executor: Optional[ThreadPoolExecutor] = None

    def run(self) -> GraphBuildResult:
        started = self.clock()
        self._executor = self._new_executor()
        try:
            graph = self._explore()
        finally:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self.metrics.elapsed_ms = int((self.clock() - started) * 1000)

        logger.info(
            "Scanned %d panoramas to depth %d (%d requests, %d cache hits, %d failures)",
            len(graph.nodes),
            graph.max_depth,
            self.metrics.requests_made,
            self.metrics.cache_hits,
            self.metrics.failed_fetches,
        )
        return GraphBuildResult(graph=graph, metrics=self.metrics)

    def _explore(self) -> PanoramaGraph:
        self.token.raise_if_cancelled()
        lat, lng = self.start_coordinates
        max_nodes = self.options.max_nodes
        max_depth = self.options.max_depth
        self._report(0, max_nodes, "Looking for the start panorama...")

        start = self._resolve_start(lat, lng)
        start_pano_id = start.pano_id

        nodes: Dict[str, PanoNode] = {}
        visited: Set[str] = set()
        queued: Set[str] = {start_pano_id}
        queue: Deque[_QueueItem] = deque([_QueueItem(start_pano_id, 0)])
        reached_depth = 0

        while queue and len(nodes) < max_nodes:
            self.token.raise_if_cancelled()
            item = queue.popleft()
            queued.discard(item.pano_id)

            if item.pano_id in visited or item.depth > max_depth:
                continue
            visited.add(item.pano_id)

            metadata = start if item.depth == 0 else self._fetch(item.pano_id)
            if metadata is None:
                self.metrics.failed_fetches += 1
                logger.warning(
                    "Pruning subtree of panorama %s at depth %d: fetch failed",
                    item.pano_id,
                    item.depth,
                )
                continue

            node = self._to_node(metadata, item)
            if item.depth == 0 and not node.links:
                raise StartPanoramaUnavailableError(
                    f"Start panorama {start_pano_id} near ({lat:.6f}, {lng:.6f}) has "
                    "no navigable links; it is probably an indoor or isolated panorama"
                )

            nodes[node.pano_id] = node
            self.metrics.nodes_scanned += 1
            reached_depth = max(reached_depth, item.depth)
            self._report(
                len(nodes),
                max_nodes,
                f"Scanning... {len(nodes)} panoramas (depth {item.depth})",
            )

            if item.depth >= max_depth:
                continue
            for link in node.links:
                target = link.target_pano_id
                if target in visited or target in queued:
                    continue
                queue.append(_QueueItem(target, item.depth + 1, link.heading))
                queued.add(target)

        stats = calculate_graph_stats(list(nodes.values()), reached_depth)
        self._report(len(nodes), len(nodes), f"Done! {len(nodes)} panoramas")
        return PanoramaGraph(
            nodes=nodes,
            start_pano_id=start_pano_id,
            start_coordinates=(float(lat), float(lng)),
            max_depth=reached_depth,
            stats=stats,
        )

    def _resolve_start(self, lat: float, lng: float) -> PanoramaMetadata:
        radius = self.options.search_radius_m
        try:
            start = self._request(
                self.provider.find_nearest_panorama, lat, lng, radius
            )
        except (ProviderError, FutureTimeoutError) as exc:
            raise StartPanoramaUnavailableError(
                f"Could not look up a panorama near ({lat:.6f}, {lng:.6f}): {exc}"
            ) from exc

        if start is None or not start.pano_id:
            raise StartPanoramaUnavailableError(
                f"No panorama found within {radius:.0f}m of ({lat:.6f}, {lng:.6f})"
            )

        logger.info(
            "Start panorama for (%.6f, %.6f) resolved: %s", lat, lng, start.pano_id
        )
        if self.cache is not None:
            self.cache.put(start)
        return start

    def _fetch(self, pano_id: str) -> Optional[PanoramaMetadata]:
        """Fetch metadata cache-first; None when the panorama is unavailable."""
        if self.cache is not None:
            cached = self.cache.get(pano_id)
            if cached is not None:
                self.metrics.cache_hits += 1
                return cached

        try:
            metadata = self._request(self.provider.get_panorama_metadata, pano_id)
        except FutureTimeoutError:
            logger.warning(
                "Timed out after %.1fs fetching panorama %s",
                self.options.request_timeout_s,
                pano_id,
            )
            return None
        except ProviderError as exc:
            logger.warning("Provider failed for panorama %s: %s", pano_id, exc)
            return None

        if metadata is not None and self.cache is not None:
            self.cache.put(metadata)
        return metadata

    def _request(self, func: Callable[..., T], *args) -> T:
        """Run one paced provider request, retrying transient failures."""
        retrying = Retrying(
            stop=stop_after_attempt(MAX_FETCH_ATTEMPTS),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            retry=retry_if_exception_type(TransientProviderError),
            sleep=self.token.sleep,
            before_sleep=self._before_retry,
            reraise=True,
        )
        return retrying(self._paced_call, func, *args)

    def _before_retry(self, retry_state: RetryCallState) -> None:
        self.metrics.retries += 1
        outcome = retry_state.outcome
        logger.warning(
            "Retrying provider request (attempt %d) after: %s",
            retry_state.attempt_number,
            outcome.exception() if outcome else "unknown error",
        )

    def _paced_call(self, func: Callable[..., T], *args) -> T:
        if self._last_request_at is not None:
            elapsed = self.clock() - self._last_request_at
            self.token.sleep(self.request_delay - elapsed)
        self.token.raise_if_cancelled()

        self.metrics.requests_made += 1
        self._last_request_at = self.clock()
        future = self._executor.submit(func, *args)
        return self._await(future)

    def _await(self, future: "Future[T]") -> T:
        """Wait for a pending request, observing cancellation and the timeout."""
        deadline = self.clock() + self.options.request_timeout_s
        while True:
            if self.token.cancelled:
                self._abandon(future)
                raise GraphBuildCancelled("Graph build was cancelled")
            remaining = deadline - self.clock()
            if remaining <= 0:
                self._abandon(future)
                raise FutureTimeoutError()
            done, _ = wait([future], timeout=min(_POLL_INTERVAL_S, remaining))
            if done:
                return future.result()

    @staticmethod
    def _new_executor() -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=1, thread_name_prefix="pano-fetch")

    def _abandon(self, future: "Future[Any]") -> None:
        """Stop waiting for ``future`` and free the build from its worker.

        A call that already started cannot be interrupted, so its worker is
        left to finish on its own and later requests get a fresh one.
        """
        if future.cancel() or future.done():
            return
        _track_abandoned(future)
        self.metrics.abandoned_requests += 1
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._executor = self._new_executor()
        logger.warning(
            "Abandoned a provider call that is still running (%d in flight)",
            abandoned_request_count(),
        )

    def _to_node(self, metadata: PanoramaMetadata, item: _QueueItem) -> PanoNode:
        links = filter_links(item.pano_id, metadata.links)
        is_dead_end, is_intersection, is_corner = analyze_topology(
            links, item.parent_heading
        )
        return PanoNode(
            pano_id=item.pano_id,
            lat=float(metadata.lat),
            lng=float(metadata.lon),
            links=links,
            distance_from_start=item.depth,
            is_dead_end=is_dead_end,
            is_intersection=is_intersection,
            is_corner=is_corner,
            description=metadata.description,
        )

    def _report(self, current: int, total: int, message: str) -> None:
        if self.on_progress is not None:
            self.on_progress(current, total, message)


__all__ = [
    "CancelToken",
    "GraphBuildCancelled",
    "GraphBuildResult",
    "GraphBuilder",
    "ScanMetrics",
    "StartPanoramaUnavailableError",
    "abandoned_request_count",
    "analyze_topology",
    "calculate_graph_stats",
    "filter_links",
]
