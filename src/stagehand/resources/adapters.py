"""
Managed and pre-existing resource adapters.

Both implement the Resource protocol over the same ResourceKind rules and
differ only in how they come into existence: a managed resource is
created from its manifest, a pre-existing one is merely looked up.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, Mapping

import structlog

from stagehand.clients.kubernetes import KubernetesClient
from stagehand.core.errors import (
    ConflictError,
    PartialReadinessConfigError,
    ResourceNotFoundError,
)
from stagehand.resources.base import CreateOutcome, DependencyReport, ResourceStatus
from stagehand.resources.kinds import ResourceKind, get_kind

logger = structlog.get_logger()


async def _dependency_report(
    kind: ResourceKind,
    key: str,
    name: str,
    client: KubernetesClient,
    meta: Mapping[str, str],
) -> DependencyReport:
    if not kind.supports_dependency_report:
        raise NotImplementedError(f"{key} does not report partial readiness")

    live = await client.get(kind.name, name)
    if live is None:
        return DependencyReport.error_report(key, "object not found")
    try:
        return kind.report(key, live, meta)
    except PartialReadinessConfigError as e:
        return DependencyReport.error_report(key, e.message)


class ManagedResource:
    """A resource stagehand creates from its declared manifest."""

    existing = False

    def __init__(
        self,
        kind: ResourceKind,
        manifest: Dict[str, Any],
        client: KubernetesClient,
    ) -> None:
        self._kind = kind
        self._manifest = copy.deepcopy(manifest)
        self._client = client
        self._name = manifest["metadata"]["name"]

    @property
    def key(self) -> str:
        return self._kind.key(self._name)

    @property
    def name(self) -> str:
        return self._name

    @property
    def kind(self) -> ResourceKind:
        return self._kind

    @property
    def manifest(self) -> Dict[str, Any]:
        return self._manifest

    @property
    def supports_dependency_report(self) -> bool:
        return self._kind.supports_dependency_report

    async def create(self) -> CreateOutcome:
        """Create the object unless an equivalent one already exists."""
        live = await self._client.get(self._kind.name, self._name)
        if live is None:
            logger.info("resource_creating", resource=self.key)
            try:
                await self._client.create(self._kind.name, copy.deepcopy(self._manifest))
                return CreateOutcome.CREATED
            except ConflictError:
                # Someone else created it between the read and the create
                live = await self._client.get(self._kind.name, self._name)
                if live is None:
                    raise

        if self.equal_to_declaration(live):
            logger.info("resource_exists_skipping", resource=self.key)
            return CreateOutcome.SKIPPED

        logger.warning("resource_drifted", resource=self.key)
        return CreateOutcome.DRIFTED

    async def delete(self) -> bool:
        return await self._client.delete(self._kind.name, self._name)

    async def status(self, meta: Mapping[str, str]) -> ResourceStatus:
        live = await self._client.get(self._kind.name, self._name)
        if live is None:
            logger.warning("resource_missing", resource=self.key)
            return ResourceStatus.ERROR
        if not self.equal_to_declaration(live):
            return ResourceStatus.WAITING_FOR_UPGRADE
        return await self._kind.status(live, meta or {}, self._client)

    def equal_to_declaration(self, live: Dict[str, Any]) -> bool:
        return self._kind.equal(self._manifest, live)

    async def dependency_report(self, meta: Mapping[str, str]) -> DependencyReport:
        return await _dependency_report(self._kind, self.key, self._name, self._client, meta or {})

    def status_is_cacheable(self, meta: Mapping[str, str]) -> bool:
        return self._kind.status_is_cacheable(meta or {})

    def __repr__(self) -> str:
        return f"ManagedResource({self.key!r})"


class ExistingResource:
    """A resource that must already exist; stagehand never creates or deletes it."""

    existing = True

    def __init__(self, kind: ResourceKind, name: str, client: KubernetesClient) -> None:
        self._kind = kind
        self._name = name
        self._client = client

    @property
    def key(self) -> str:
        return self._kind.key(self._name)

    @property
    def name(self) -> str:
        return self._name

    @property
    def kind(self) -> ResourceKind:
        return self._kind

    @property
    def supports_dependency_report(self) -> bool:
        return self._kind.supports_dependency_report

    async def create(self) -> CreateOutcome:
        """Verify the object is present; never mutates the cluster."""
        live = await self._client.get(self._kind.name, self._name)
        if live is None:
            logger.error("existing_resource_missing", resource=self.key)
            raise ResourceNotFoundError(self.key)
        logger.info("existing_resource_found", resource=self.key)
        return CreateOutcome.VERIFIED

    async def delete(self) -> bool:
        logger.info("existing_resource_not_deleted", resource=self.key)
        return False

    async def status(self, meta: Mapping[str, str]) -> ResourceStatus:
        live = await self._client.get(self._kind.name, self._name)
        if live is None:
            return ResourceStatus.ERROR
        return await self._kind.status(live, meta or {}, self._client)

    def equal_to_declaration(self, live: Dict[str, Any]) -> bool:
        # Nothing is declared beyond the name
        return (live.get("metadata") or {}).get("name") == self._name

    async def dependency_report(self, meta: Mapping[str, str]) -> DependencyReport:
        return await _dependency_report(self._kind, self.key, self._name, self._client, meta or {})

    def status_is_cacheable(self, meta: Mapping[str, str]) -> bool:
        return self._kind.status_is_cacheable(meta or {})

    def __repr__(self) -> str:
        return f"ExistingResource({self.key!r})"


def create_resource(
    kind: str,
    client: KubernetesClient,
    *,
    manifest: Dict[str, Any] | None = None,
    name: str | None = None,
) -> ManagedResource | ExistingResource:
    """Build the adapter for a declaration: managed when a manifest is given."""
    handler = get_kind(kind)
    if manifest is not None:
        return ManagedResource(handler, manifest, client)
    if not name:
        raise ValueError("A pre-existing resource needs a name")
    return ExistingResource(handler, name, client)
