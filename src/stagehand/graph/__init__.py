"""Dependency graph: declarations, validated graph construction and inference."""

from stagehand.graph.models import (
    DependencyEdge,
    DependencyGraph,
    DependencySpec,
    InvalidTransitionError,
    NodeState,
    ResourceDeclaration,
    ResourceNode,
)
from stagehand.graph.builder import build_graph, find_cycle
from stagehand.graph.inference import infer_dependencies, referenced_keys, selector_matches
from stagehand.graph.loader import load_declarations, parse_declarations

__all__ = [
    "DependencyEdge",
    "DependencyGraph",
    "DependencySpec",
    "InvalidTransitionError",
    "NodeState",
    "ResourceDeclaration",
    "ResourceNode",
    "build_graph",
    "find_cycle",
    "infer_dependencies",
    "load_declarations",
    "parse_declarations",
    "referenced_keys",
    "selector_matches",
]
