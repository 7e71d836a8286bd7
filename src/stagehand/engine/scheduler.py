"""
Dependency-ordered scheduler.

Each unblocked node gets its own task that creates the resource and polls
it until it settles. After every poll round the task also observes the
edges of its pending dependents, so all cluster reads happen inside node
tasks. Tasks report back through an event queue carrying those
observations; the scheduler loop never touches the cluster. It is the
only place that decides and dispatches new work, so a node is dispatched
at most once and never before every one of its dependencies has stopped
blocking it.

Failures are contained: when a node fails or drifts, its pending
descendants are abandoned while unrelated branches run to completion.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from stagehand.config import Settings, get_settings
from stagehand.core.errors import PollTimeoutError, StagehandError, TransientClusterError
from stagehand.engine.cache import StatusCache
from stagehand.engine.reports import ReportEvaluator
from stagehand.engine.results import ResultCollector, RunResult
from stagehand.graph.models import DependencyEdge, DependencyGraph, NodeState, ResourceNode
from stagehand.resources.base import CreateOutcome, DependencyReport, ResourceStatus

logger = structlog.get_logger()

T = TypeVar("T")


def cluster_retrying(settings: Settings, node_key: str, operation: str) -> AsyncRetrying:
    """Bounded exponential retry policy for transient cluster failures."""

    def _log_retry(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "cluster_call_retry",
            node=node_key,
            operation=operation,
            attempt=retry_state.attempt_number,
            error=str(exc),
        )

    return AsyncRetrying(
        retry=retry_if_exception_type(TransientClusterError),
        stop=stop_after_attempt(settings.max_attempts),
        wait=wait_exponential(multiplier=settings.retry_backoff, max=settings.retry_max_delay),
        before_sleep=_log_retry,
        reraise=True,
    )


@dataclass(frozen=True)
class NodeEvent:
    """
    A node was observed or changed state; ``final`` when its task is done.

    ``reports`` holds the edge reports observed for the node's pending
    dependents during this poll round, keyed by dependent.
    """

    key: str
    final: bool = False
    reports: Mapping[str, DependencyReport] = field(default_factory=dict)


class Scheduler:
    """Drives a dependency graph from pending to terminal states."""

    def __init__(
        self,
        graph: DependencyGraph,
        settings: Optional[Settings] = None,
        cache: Optional[StatusCache] = None,
    ) -> None:
        self._graph = graph
        self._settings = settings or get_settings()
        self._cache = cache or StatusCache()
        self._evaluator = ReportEvaluator(self._cache)
        self._collector = ResultCollector()
        self._events: asyncio.Queue[NodeEvent] = asyncio.Queue()
        self._tasks: Dict[str, asyncio.Task[None]] = {}
        self._abandoned: set[str] = set()
        # Latest observed report per (dependency, dependent) edge
        self._observed: Dict[Tuple[str, str], DependencyReport] = {}
        self._inflight = 0

    @property
    def cache(self) -> StatusCache:
        return self._cache

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    async def run(self) -> RunResult:
        """Bring up every node the graph allows and report the outcome."""
        started = time.monotonic()
        logger.info("run_started", nodes=len(self._graph), edges=len(self._graph.edges))

        try:
            for node in self._graph.nodes():
                await self._consider(node)

            while self._inflight:
                event = await self._events.get()
                await self._handle(event)

            await asyncio.gather(*self._tasks.values())
        except asyncio.CancelledError:
            for task in self._tasks.values():
                task.cancel()
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)
            logger.warning("run_cancelled", inflight=self._inflight)
            raise

        self._explain_blocked()
        result = self._collector.finalize(self._graph, time.monotonic() - started)
        logger.info(
            "run_finished",
            success=result.success,
            ready=len(result.ready),
            failed=len(result.failed),
            blocked=len(result.blocked),
            duration_seconds=round(result.duration_seconds, 3),
        )
        return result

    # Scheduler loop

    async def _handle(self, event: NodeEvent) -> None:
        if event.final:
            self._inflight -= 1

        node = self._graph.get(event.key)
        for dependent, report in event.reports.items():
            self._observed[(node.key, dependent)] = report

        if node.state.is_failure:
            self._abandon_descendants(node)

        for edge in self._graph.dependents(node.key):
            await self._consider(self._graph.get(edge.dependent))

        await self._update_blocking(node)

    async def _consider(self, node: ResourceNode) -> None:
        """Re-decide a pending node from snapshots; dispatch it once nothing blocks it."""
        if node.state is not NodeState.PENDING or node.key in self._abandoned:
            return

        reports: Dict[str, DependencyReport] = {}
        for edge in self._graph.dependencies(node.key):
            reports[edge.dependency] = self._snapshot_report(edge)
        await node.record(reports=reports)

        for dependency, report in reports.items():
            if report.error is None:
                continue
            if not self._graph.get(dependency).state.is_failure:
                # The upstream itself may still settle; the edge is what failed
                self._collector.record_error(node.key, report.message)
            self._abandon(node, report.message)
            return

        blocking = [report for report in reports.values() if report.blocks]
        if blocking:
            logger.debug(
                "node_waiting",
                node=node.key,
                blocked_by=[report.dependency for report in blocking],
            )
            return

        await self._dispatch(node)

    def _snapshot_report(self, edge: DependencyEdge) -> DependencyReport:
        upstream = self._graph.get(edge.dependency)
        report = self._evaluator.from_lifecycle(edge, upstream)
        if report is not None:
            return report
        observed = self._observed.get((edge.dependency, edge.dependent))
        if observed is not None:
            return observed
        return DependencyReport.not_ready(edge.dependency, f"{edge.dependency} has not been observed yet")

    async def _dispatch(self, node: ResourceNode) -> None:
        if not await node.transition(NodeState.CREATING, expected=[NodeState.PENDING]):
            return
        self._inflight += 1
        logger.info("node_dispatched", node=node.key, existing=node.existing)
        self._tasks[node.key] = asyncio.create_task(self._drive(node), name=f"stagehand:{node.key}")

    def _abandon(self, node: ResourceNode, reason: str) -> None:
        """Stop dispatching a pending node and everything below it."""
        if node.key in self._abandoned:
            return
        self._abandoned.add(node.key)
        node.blocked_reason = reason
        logger.warning("node_abandoned", node=node.key, reason=reason)
        self._abandon_descendants(node, cause=node.key)

    def _abandon_descendants(self, node: ResourceNode, cause: Optional[str] = None) -> None:
        cause = cause or node.key
        for key in self._graph.descendants(node.key):
            descendant = self._graph.get(key)
            if descendant.state is not NodeState.PENDING or key in self._abandoned:
                continue
            self._abandoned.add(key)
            descendant.blocked_reason = f"blocked by {cause}, which can no longer become ready"
            logger.warning("node_abandoned", node=key, cause=cause)

    async def _update_blocking(self, node: ResourceNode) -> None:
        """Flip an active node between polling and blocked."""
        if not node.state.is_active:
            return

        holding = False
        for edge in self._graph.dependents(node.key):
            dependent = self._graph.get(edge.dependent)
            if dependent.state is not NodeState.PENDING or dependent.key in self._abandoned:
                continue
            report = dependent.reports.get(node.key)
            if report is not None and report.blocks:
                holding = True
                break

        if holding:
            changed = await node.transition(NodeState.BLOCKED, expected=[NodeState.POLLING])
        else:
            changed = await node.transition(NodeState.POLLING, expected=[NodeState.BLOCKED])
        if changed:
            logger.debug("node_state_changed", node=node.key, state=node.state.value)

    def _explain_blocked(self) -> None:
        for node in self._graph.nodes():
            if node.state is not NodeState.PENDING or node.blocked_reason:
                continue
            waiting = [report.message for report in node.reports.values() if report.blocks]
            node.blocked_reason = "; ".join(waiting) or "dependencies never became ready"

    # Node tasks

    async def _drive(self, node: ResourceNode) -> None:
        """Create one node and poll it to a terminal state."""
        log = logger.bind(node=node.key)
        try:
            outcome = await self._with_retries(node, "create", node.resource.create)
            await node.record(create_outcome=outcome)
            log.info("node_created", outcome=outcome.value)

            if outcome is CreateOutcome.DRIFTED:
                await self._drift(node)
                return

            await self._set_state(node, NodeState.POLLING)
            await self._emit(node.key)

            status = await self._poll(node)
            if status is ResourceStatus.READY:
                await self._set_state(node, NodeState.READY)
            elif status is ResourceStatus.WAITING_FOR_UPGRADE:
                await self._drift(node)
            else:
                await self._fail(node, f"{node.key} reported {status.value} status")
        except StagehandError as e:
            await self._fail(node, e.message)
        except Exception as e:
            log.exception("node_unexpected_error")
            await self._fail(node, f"{type(e).__name__}: {e}")
        finally:
            await self._events.put(NodeEvent(node.key, final=True))

    async def _poll(self, node: ResourceNode) -> ResourceStatus:
        loop = asyncio.get_running_loop()
        timeout = self._settings.poll_timeout
        deadline = loop.time() + timeout if timeout > 0 else None
        attempt = 0

        while True:
            # One poll round is one cache pass for this node
            self._cache.begin_pass(node.key)
            status = await self._with_retries(node, "status", self._cache.refresh, node)
            if status is not node.status:
                logger.debug("node_status_observed", node=node.key, status=status.value)
            await node.record(status=status)
            if status.is_terminal:
                return status

            if deadline is not None and loop.time() >= deadline:
                raise PollTimeoutError(
                    f"{node.key} not ready after {timeout:g}s",
                    {"key": node.key, "status": status.value},
                )

            await self._emit(node.key, await self._observe_dependents(node))
            await asyncio.sleep(self._poll_delay(attempt))
            attempt += 1

    async def _observe_dependents(self, node: ResourceNode) -> Dict[str, DependencyReport]:
        """Evaluate the edges of this node's pending dependents from its own task."""
        reports: Dict[str, DependencyReport] = {}
        for edge in self._graph.dependents(node.key):
            dependent = self._graph.get(edge.dependent)
            if dependent.state is not NodeState.PENDING or dependent.key in self._abandoned:
                continue
            reports[dependent.key] = await self._evaluator.evaluate(edge, node)
        return reports

    def _poll_delay(self, attempt: int) -> float:
        s = self._settings
        return min(s.poll_interval * (s.poll_backoff**attempt), s.poll_max_interval)

    async def _with_retries(
        self,
        node: ResourceNode,
        operation: str,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
    ) -> T:
        retrying = cluster_retrying(self._settings, node.key, operation)
        return await retrying(fn, *args)

    async def _emit(self, key: str, reports: Optional[Mapping[str, DependencyReport]] = None) -> None:
        await self._events.put(NodeEvent(key, reports=reports or {}))

    async def _set_state(self, node: ResourceNode, state: NodeState) -> None:
        if await node.transition(state):
            logger.info("node_state_changed", node=node.key, state=state.value)

    async def _drift(self, node: ResourceNode) -> None:
        message = f"{node.key} exists but differs from its declaration; waiting for upgrade"
        await node.record(status=ResourceStatus.WAITING_FOR_UPGRADE, error=message)
        await self._set_state(node, NodeState.DRIFTED)
        self._collector.record_error(node.key, message)

    async def _fail(self, node: ResourceNode, message: str) -> None:
        status = node.status if node.status is not None else ResourceStatus.ERROR
        if status is ResourceStatus.NOT_READY:
            status = ResourceStatus.ERROR
        await node.record(status=status, error=message)
        await self._set_state(node, NodeState.FAILED)
        self._collector.record_error(node.key, message)
        logger.error("node_failed", node=node.key, error=message)


async def run_graph(graph: DependencyGraph, settings: Optional[Settings] = None) -> RunResult:
    """Convenience wrapper: run a scheduler over a graph."""
    return await Scheduler(graph, settings).run()
