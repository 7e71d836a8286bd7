"""
Resource contract consumed by the orchestration engine.

Every resource kind is driven through the same capability interface.
Optional capabilities are advertised with explicit flags instead of
being discovered by inspecting the adapter's type.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol, runtime_checkable


class ResourceStatus(Enum):
    """Readiness of a resource as observed in the cluster."""

    READY = "ready"
    NOT_READY = "not ready"
    ERROR = "error"
    WAITING_FOR_UPGRADE = "waiting for upgrade"  # Live object drifted from declaration

    @property
    def is_terminal(self) -> bool:
        """Statuses that end polling for a node."""
        return self is not ResourceStatus.NOT_READY


class CreateOutcome(Enum):
    """What a create call did."""

    CREATED = "created"  # Object was absent and has been created
    SKIPPED = "skipped"  # Equivalent object already existed
    VERIFIED = "verified"  # Pre-existing object confirmed present
    DRIFTED = "drifted"  # Object exists but differs from its declaration


@dataclass(frozen=True)
class DependencyReport:
    """
    Whether one dependency currently blocks its dependent.

    Recomputed on every evaluation, never persisted.
    """

    dependency: str
    blocks: bool
    percentage: int = 100
    needed: int = 100
    message: str = ""
    error: Optional[str] = None

    @classmethod
    def ready(cls, dependency: str) -> DependencyReport:
        """Report for a fully ready dependency."""
        return cls(dependency=dependency, blocks=False, message=f"{dependency} is ready")

    @classmethod
    def not_ready(cls, dependency: str, message: str = "") -> DependencyReport:
        """Report for a dependency that is not ready yet."""
        return cls(
            dependency=dependency,
            blocks=True,
            percentage=0,
            message=message or f"{dependency} is not ready",
        )

    @classmethod
    def error_report(cls, dependency: str, error: Exception | str) -> DependencyReport:
        """Report for a dependency whose state could not be used."""
        return cls(
            dependency=dependency,
            blocks=True,
            percentage=0,
            message=f"{dependency}: {error}",
            error=str(error),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "dependency": self.dependency,
            "blocks": self.blocks,
            "percentage": self.percentage,
            "needed": self.needed,
            "message": self.message,
            "error": self.error,
        }


@runtime_checkable
class Resource(Protocol):
    """Protocol implemented by managed and pre-existing resource adapters."""

    @property
    def key(self) -> str:
        """Stable identity, unique per graph (e.g. 'deployment/web')."""
        ...

    @property
    def existing(self) -> bool:
        """True when the backing object is managed outside stagehand."""
        ...

    @property
    def supports_dependency_report(self) -> bool:
        """True when dependency_report() can report partial readiness."""
        ...

    async def create(self) -> CreateOutcome:
        """Idempotently bring the object into existence."""
        ...

    async def delete(self) -> bool:
        """Delete the object, returning False if it was already gone."""
        ...

    async def status(self, meta: dict[str, str]) -> ResourceStatus:
        """Query the current readiness."""
        ...

    def equal_to_declaration(self, live: dict[str, Any]) -> bool:
        """Compare persisted fields of the live object with the declaration."""
        ...

    async def dependency_report(self, meta: dict[str, str]) -> DependencyReport:
        """Partial readiness report; only valid when supported."""
        ...

    def status_is_cacheable(self, meta: dict[str, str]) -> bool:
        """False when readiness depends on a changing external selection."""
        ...
