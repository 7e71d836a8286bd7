"""
Dependency graph models.

Declarations describe what the user asked for; nodes and edges are the
validated, immutable graph the scheduler walks. Only a node's lifecycle
fields change during a run, and only under the node's own lock.
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional

from stagehand.resources.base import CreateOutcome, DependencyReport, Resource, ResourceStatus


class NodeState(Enum):
    """Lifecycle of a node within one run."""

    PENDING = "pending"  # Waiting on dependencies
    CREATING = "creating"
    POLLING = "polling"
    BLOCKED = "blocked"  # Polling, and holding back at least one pending dependent
    READY = "ready"
    FAILED = "failed"
    DRIFTED = "drifted"  # Live object differs from declaration

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES

    @property
    def is_failure(self) -> bool:
        return self in (NodeState.FAILED, NodeState.DRIFTED)

    @property
    def is_active(self) -> bool:
        """Created and still being polled."""
        return self in (NodeState.POLLING, NodeState.BLOCKED)


TERMINAL_STATES = frozenset({NodeState.READY, NodeState.FAILED, NodeState.DRIFTED})

ALLOWED_TRANSITIONS: Dict[NodeState, frozenset[NodeState]] = {
    NodeState.PENDING: frozenset({NodeState.CREATING}),
    NodeState.CREATING: frozenset({NodeState.POLLING, NodeState.FAILED, NodeState.DRIFTED}),
    NodeState.POLLING: frozenset(
        {NodeState.BLOCKED, NodeState.READY, NodeState.FAILED, NodeState.DRIFTED}
    ),
    NodeState.BLOCKED: frozenset(
        {NodeState.POLLING, NodeState.READY, NodeState.FAILED, NodeState.DRIFTED}
    ),
    NodeState.READY: frozenset(),
    NodeState.FAILED: frozenset(),
    NodeState.DRIFTED: frozenset(),
}


class InvalidTransitionError(RuntimeError):
    """Raised when a node is moved along an edge its lifecycle does not have."""


@dataclass(frozen=True)
class DependencySpec:
    """One declared dependency, with optional readiness requirements."""

    key: str
    meta: Dict[str, str] = field(default_factory=dict)


@dataclass
class ResourceDeclaration:
    """A resource as declared by the user, before graph construction."""

    kind: str
    name: str
    manifest: Optional[Dict[str, Any]] = None  # None for pre-existing resources
    depends_on: List[DependencySpec] = field(default_factory=list)
    meta: Dict[str, str] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.kind.lower()}/{self.name}"

    @property
    def existing(self) -> bool:
        return self.manifest is None


@dataclass(frozen=True)
class DependencyEdge:
    """``dependent`` depends on ``dependency``."""

    dependent: str
    dependency: str
    meta: Dict[str, str] = field(default_factory=dict, hash=False, compare=False)
    inferred: bool = False


@dataclass(eq=False)
class ResourceNode:
    """One resource's tracked lifecycle within a run."""

    key: str
    resource: Resource
    depends_on: frozenset[str] = frozenset()
    meta: Dict[str, str] = field(default_factory=dict)
    index: int = 0  # Declaration order

    # Run state, guarded by _lock
    state: NodeState = NodeState.PENDING
    status: Optional[ResourceStatus] = None
    create_outcome: Optional[CreateOutcome] = None
    reports: Dict[str, DependencyReport] = field(default_factory=dict)
    error: Optional[str] = None
    blocked_reason: Optional[str] = None

    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    @property
    def existing(self) -> bool:
        return self.resource.existing

    async def transition(
        self,
        target: NodeState,
        *,
        expected: Optional[Iterable[NodeState]] = None,
    ) -> bool:
        """
        Move to target state.

        With ``expected``, acts as compare-and-set: returns False without
        changing anything if the current state is not one of them.
        """
        async with self._lock:
            if expected is not None and self.state not in set(expected):
                return False
            if target is self.state:
                return False
            if target not in ALLOWED_TRANSITIONS[self.state]:
                raise InvalidTransitionError(
                    f"{self.key}: cannot move from {self.state.value} to {target.value}"
                )
            self.state = target
            return True

    async def record(self, **fields: Any) -> None:
        """Update run bookkeeping fields under the node lock."""
        async with self._lock:
            for name, value in fields.items():
                setattr(self, name, value)


class DependencyGraph:
    """Validated, read-only graph of resource nodes."""

    def __init__(self, nodes: List[ResourceNode], edges: List[DependencyEdge]) -> None:
        self._nodes: Dict[str, ResourceNode] = {node.key: node for node in nodes}
        self._edges = list(edges)
        self._upstream: Dict[str, List[DependencyEdge]] = {key: [] for key in self._nodes}
        self._downstream: Dict[str, List[DependencyEdge]] = {key: [] for key in self._nodes}
        for edge in self._edges:
            self._upstream[edge.dependent].append(edge)
            self._downstream[edge.dependency].append(edge)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, key: object) -> bool:
        return key in self._nodes

    def __iter__(self) -> Iterator[ResourceNode]:
        return iter(self._nodes.values())

    @property
    def edges(self) -> List[DependencyEdge]:
        return list(self._edges)

    def get(self, key: str) -> ResourceNode:
        return self._nodes[key]

    def nodes(self) -> List[ResourceNode]:
        """All nodes in declaration order."""
        return list(self._nodes.values())

    def dependencies(self, key: str) -> List[DependencyEdge]:
        """Edges from this node to what it depends on."""
        return list(self._upstream[key])

    def dependents(self, key: str) -> List[DependencyEdge]:
        """Edges from nodes that depend on this node."""
        return list(self._downstream[key])

    def descendants(self, key: str) -> List[str]:
        """All nodes that transitively depend on this node, breadth-first."""
        seen: Dict[str, None] = {}
        queue = deque(edge.dependent for edge in self._downstream[key])
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen[current] = None
            queue.extend(edge.dependent for edge in self._downstream[current])
        return list(seen)

    def topological_order(self) -> List[str]:
        """Dependencies first; ties broken by declaration order."""
        remaining = {key: len(self._upstream[key]) for key in self._nodes}
        ordered: List[str] = []
        ready = [key for key in self._nodes if remaining[key] == 0]
        while ready:
            key = ready.pop(0)
            ordered.append(key)
            released = []
            for edge in self._downstream[key]:
                remaining[edge.dependent] -= 1
                if remaining[edge.dependent] == 0:
                    released.append(edge.dependent)
            ready.extend(released)
            ready.sort(key=lambda k: self._nodes[k].index)
        return ordered
