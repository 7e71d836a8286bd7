"""Result types for scheduler runs and teardowns."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from stagehand.graph.models import DependencyGraph, NodeState, ResourceNode
from stagehand.resources.base import DependencyReport


@dataclass
class NodeOutcome:
    """Final picture of one node after a run."""

    key: str
    state: NodeState
    existing: bool = False
    status: Optional[str] = None
    create_outcome: Optional[str] = None
    error: Optional[str] = None
    blocked_reason: Optional[str] = None
    reports: List[DependencyReport] = field(default_factory=list)

    @property
    def message(self) -> str:
        """Most useful single line explaining this node's state."""
        if self.error:
            return self.error
        if self.blocked_reason:
            return self.blocked_reason
        blocking = [r.message for r in self.reports if r.blocks]
        if blocking:
            return "; ".join(blocking)
        return self.create_outcome or ""

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "key": self.key,
            "state": self.state.value,
            "existing": self.existing,
            "status": self.status,
            "create_outcome": self.create_outcome,
            "error": self.error,
            "blocked_reason": self.blocked_reason,
            "reports": [r.to_dict() for r in self.reports],
        }


@dataclass
class RunResult:
    """Result of bringing up a dependency graph."""

    nodes: Dict[str, NodeOutcome] = field(default_factory=dict)
    duration_seconds: float = 0.0
    errors: List[str] = field(default_factory=list)

    @property
    def ready(self) -> List[str]:
        return [k for k, n in self.nodes.items() if n.state is NodeState.READY]

    @property
    def failed(self) -> List[str]:
        """Nodes that reached a failure state (including drift)."""
        return [k for k, n in self.nodes.items() if n.state.is_failure]

    @property
    def drifted(self) -> List[str]:
        return [k for k, n in self.nodes.items() if n.state is NodeState.DRIFTED]

    @property
    def blocked(self) -> List[str]:
        """Nodes that never left pending."""
        return [k for k, n in self.nodes.items() if n.state is NodeState.PENDING]

    @property
    def success(self) -> bool:
        """Whether every node ended ready."""
        return not self.errors and len(self.ready) == len(self.nodes)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "success": self.success,
            "duration_seconds": round(self.duration_seconds, 3),
            "ready": self.ready,
            "failed": self.failed,
            "blocked": self.blocked,
            "errors": self.errors,
            "nodes": {k: n.to_dict() for k, n in self.nodes.items()},
        }


@dataclass
class TeardownResult:
    """Result of deleting the managed resources of a graph."""

    deleted: List[str] = field(default_factory=list)
    already_absent: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)  # Pre-existing, never deleted
    errors: Dict[str, str] = field(default_factory=dict)
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return len(self.errors) == 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "success": self.success,
            "duration_seconds": round(self.duration_seconds, 3),
            "deleted": self.deleted,
            "already_absent": self.already_absent,
            "skipped": self.skipped,
            "errors": self.errors,
        }


class ResultCollector:
    """Aggregates node outcomes and run-level errors."""

    def __init__(self) -> None:
        self._result = RunResult()

    def record_error(self, key: str, message: str) -> None:
        """Record a failure attributed to a node or edge."""
        self._result.errors.append(f"{key}: {message}")

    def record_node(self, node: ResourceNode) -> None:
        self._result.nodes[node.key] = NodeOutcome(
            key=node.key,
            state=node.state,
            existing=node.existing,
            status=node.status.value if node.status else None,
            create_outcome=node.create_outcome.value if node.create_outcome else None,
            error=node.error,
            blocked_reason=node.blocked_reason,
            reports=list(node.reports.values()),
        )

    def finalize(self, graph: DependencyGraph, duration: float) -> RunResult:
        """Snapshot every node and return the final result with duration set."""
        for node in graph.nodes():
            self.record_node(node)
        self._result.duration_seconds = duration
        return self._result
