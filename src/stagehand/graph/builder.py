"""Graph construction and validation."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import structlog

from stagehand.clients.kubernetes import KubernetesClient
from stagehand.core.errors import CycleError, DuplicateResourceError, UnknownDependencyError
from stagehand.graph.inference import infer_dependencies
from stagehand.graph.models import (
    DependencyEdge,
    DependencyGraph,
    ResourceDeclaration,
    ResourceNode,
)
from stagehand.resources.adapters import create_resource

logger = structlog.get_logger()


def find_cycle(order: Sequence[str], adjacency: Dict[str, List[str]]) -> Optional[List[str]]:
    """
    Return the first cycle found by depth-first search, or None.

    Nodes are visited in the given order and neighbours in adjacency order,
    so the same input always yields the same cycle. The path starts and
    ends with the same key.
    """
    visiting: Dict[str, None] = {}  # Ordered: doubles as the DFS stack
    done: set[str] = set()

    def visit(key: str) -> Optional[List[str]]:
        visiting[key] = None
        for neighbour in adjacency.get(key, []):
            if neighbour in visiting:
                stack = list(visiting)
                return stack[stack.index(neighbour) :] + [neighbour]
            if neighbour not in done:
                cycle = visit(neighbour)
                if cycle:
                    return cycle
        del visiting[key]
        done.add(key)
        return None

    for key in order:
        if key not in done:
            cycle = visit(key)
            if cycle:
                return cycle
    return None


def build_graph(
    declarations: Sequence[ResourceDeclaration],
    client: KubernetesClient,
    *,
    infer: bool = True,
) -> DependencyGraph:
    """
    Build a validated dependency graph.

    Raises:
        DuplicateResourceError: two declarations share a key
        UnknownDependencyError: a dependency names an undeclared key
        CycleError: dependencies (declared or inferred) form a cycle
        UnsupportedKindError: a declaration uses a kind with no adapter
    """
    keys: List[str] = []
    for decl in declarations:
        if decl.key in keys:
            raise DuplicateResourceError(decl.key)
        keys.append(decl.key)
    declared = set(keys)

    edges: Dict[tuple[str, str], DependencyEdge] = {}
    for decl in declarations:
        for dep in decl.depends_on:
            if dep.key not in declared:
                raise UnknownDependencyError(decl.key, dep.key)
            edges.setdefault(
                (decl.key, dep.key),
                DependencyEdge(decl.key, dep.key, meta=dict(dep.meta)),
            )

    if infer:
        for dependent, dependency in infer_dependencies(declarations):
            if (dependent, dependency) not in edges:
                edges[(dependent, dependency)] = DependencyEdge(
                    dependent, dependency, inferred=True
                )

    adjacency: Dict[str, List[str]] = {key: [] for key in keys}
    for dependent, dependency in edges:
        adjacency[dependent].append(dependency)

    cycle = find_cycle(keys, adjacency)
    if cycle:
        logger.error("graph_cycle_detected", cycle=cycle)
        raise CycleError(cycle)

    nodes = [
        ResourceNode(
            key=decl.key,
            resource=create_resource(
                decl.kind,
                client,
                manifest=decl.manifest,
                name=decl.name,
            ),
            depends_on=frozenset(adjacency[decl.key]),
            meta=dict(decl.meta),
            index=index,
        )
        for index, decl in enumerate(declarations)
    ]

    graph = DependencyGraph(nodes, list(edges.values()))
    logger.info(
        "graph_built",
        nodes=len(graph),
        edges=len(edges),
        inferred=sum(1 for edge in edges.values() if edge.inferred),
    )
    return graph
