"""
Dependency report evaluation.

Decides, edge by edge, whether an upstream node lets its dependent be
created. Adapters that support partial readiness are asked for a
percentage report; everything else must be fully ready.
"""

from __future__ import annotations

import structlog

from stagehand.core.errors import (
    PartialReadinessConfigError,
    StagehandError,
    TransientClusterError,
)
from stagehand.engine.cache import StatusCache
from stagehand.graph.models import DependencyEdge, NodeState, ResourceNode
from stagehand.resources.base import DependencyReport, ResourceStatus
from stagehand.resources.readiness import is_sufficient, success_factor

logger = structlog.get_logger()


class ReportEvaluator:
    """Computes DependencyReports for edges, reading status through the cache."""

    def __init__(self, cache: StatusCache) -> None:
        self._cache = cache

    async def evaluate(self, edge: DependencyEdge, upstream: ResourceNode) -> DependencyReport:
        report = self.from_lifecycle(edge, upstream)
        if report is not None:
            return report
        return await self.observe(edge, upstream)

    def from_lifecycle(self, edge: DependencyEdge, upstream: ResourceNode) -> DependencyReport | None:
        """
        Report decided by the upstream's lifecycle alone, without a cluster query.

        Returns None while the upstream is being polled: only an observation
        of its live object can decide the edge then.
        """
        key = upstream.key

        if upstream.state.is_failure:
            reason = upstream.error or f"{key} is {upstream.state.value}"
            return DependencyReport.error_report(key, reason)
        if upstream.resource.supports_dependency_report:
            # A bad threshold is an error whatever state the upstream is in
            try:
                success_factor(self._merged_meta(edge, upstream))
            except PartialReadinessConfigError as e:
                return DependencyReport.error_report(key, e.message)
        if upstream.state in (NodeState.PENDING, NodeState.CREATING):
            return DependencyReport.not_ready(key, f"{key} is not created yet")
        if upstream.state is NodeState.READY:
            return DependencyReport.ready(key)
        return None

    async def observe(self, edge: DependencyEdge, upstream: ResourceNode) -> DependencyReport:
        """Report from the upstream's live object; status reads go through the cache."""
        key = upstream.key
        try:
            if upstream.resource.supports_dependency_report:
                return await self._partial_report(edge, upstream)
            return await self._status_report(upstream)
        except TransientClusterError as e:
            # The upstream's own worker retries and will report again
            logger.warning("dependency_report_query_failed", dependency=key, error=e.message)
            return DependencyReport.not_ready(key, f"{key}: status unavailable ({e.message})")
        except StagehandError as e:
            return DependencyReport.error_report(key, e.message)

    @staticmethod
    def _merged_meta(edge: DependencyEdge, upstream: ResourceNode) -> dict[str, str]:
        """Edge meta overrides the upstream node's own meta."""
        return {**upstream.meta, **edge.meta}

    async def _partial_report(self, edge: DependencyEdge, upstream: ResourceNode) -> DependencyReport:
        report = await upstream.resource.dependency_report(self._merged_meta(edge, upstream))
        if report.error is not None:
            return report

        blocks = not is_sufficient(report.percentage, report.needed)
        if blocks != report.blocks:
            logger.debug(
                "dependency_report_corrected",
                dependency=upstream.key,
                percentage=report.percentage,
                needed=report.needed,
            )
            report = DependencyReport(
                dependency=report.dependency,
                blocks=blocks,
                percentage=report.percentage,
                needed=report.needed,
                message=report.message,
            )
        return report

    async def _status_report(self, upstream: ResourceNode) -> DependencyReport:
        key = upstream.key
        status = await self._cache.get(upstream)
        if status is ResourceStatus.READY:
            return DependencyReport.ready(key)
        if status is ResourceStatus.ERROR:
            return DependencyReport.error_report(key, f"{key} is in error state")
        if status is ResourceStatus.WAITING_FOR_UPGRADE:
            return DependencyReport.error_report(key, f"{key} differs from its declaration")
        return DependencyReport.not_ready(key)
