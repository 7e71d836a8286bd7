"""Resource adapters: the contract, per-kind rules and concrete adapters."""

from stagehand.resources.adapters import ExistingResource, ManagedResource, create_resource
from stagehand.resources.base import (
    CreateOutcome,
    DependencyReport,
    Resource,
    ResourceStatus,
)
from stagehand.resources.kinds import KINDS, ResourceKind, get_kind, list_kinds
from stagehand.resources.readiness import (
    SUCCESS_FACTOR_KEY,
    parse_percentage,
    percentage_ready,
    success_factor,
)

__all__ = [
    "CreateOutcome",
    "DependencyReport",
    "ExistingResource",
    "KINDS",
    "ManagedResource",
    "Resource",
    "ResourceKind",
    "ResourceStatus",
    "SUCCESS_FACTOR_KEY",
    "create_resource",
    "get_kind",
    "list_kinds",
    "parse_percentage",
    "percentage_ready",
    "success_factor",
]
