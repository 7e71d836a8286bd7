"""
Per-kind readiness rules.

A ResourceKind knows how to judge a live object of one Kubernetes kind:
whether it is ready, whether it matches its declaration, and which labels
or objects it points at. Kinds hold no client or object state, so the
same handler backs both managed and pre-existing adapters.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

import structlog

from stagehand.core.errors import UnsupportedKindError
from stagehand.resources.base import DependencyReport, ResourceStatus
from stagehand.resources.readiness import (
    SUCCESS_FACTOR_KEY,
    is_sufficient,
    percentage_ready,
    success_factor,
)

if TYPE_CHECKING:
    from stagehand.clients.kubernetes import KubernetesClient

logger = structlog.get_logger()

# Metadata fields compared against the declaration; the rest is server-owned
COMPARED_METADATA = ("name", "labels", "annotations")


def contains(expected: Any, actual: Any) -> bool:
    """True if every declared value in expected is present and equal in actual."""
    if isinstance(expected, dict):
        if not isinstance(actual, dict):
            return False
        return all(k in actual and contains(v, actual[k]) for k, v in expected.items())
    if isinstance(expected, list):
        if not isinstance(actual, list) or len(expected) != len(actual):
            return False
        return all(contains(e, a) for e, a in zip(expected, actual))
    return expected == actual


def _dig(obj: Mapping[str, Any] | None, *path: str) -> Any:
    current: Any = obj
    for part in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def _int(value: Any) -> int:
    return int(value) if value is not None else 0


class ResourceKind:
    """Readiness rules shared by every adapter of one kind."""

    name: str = ""
    body_fields: tuple[str, ...] = ("spec",)
    supports_dependency_report: bool = False

    def key(self, name: str) -> str:
        return f"{self.name}/{name}"

    def evaluate(self, obj: Dict[str, Any], meta: Mapping[str, str]) -> ResourceStatus:
        """Readiness judged from the object alone."""
        return ResourceStatus.READY

    async def status(
        self,
        obj: Dict[str, Any],
        meta: Mapping[str, str],
        client: KubernetesClient,
    ) -> ResourceStatus:
        """Readiness of a live object; may consult other objects through client."""
        return self.evaluate(obj, meta)

    def report(self, key: str, obj: Dict[str, Any], meta: Mapping[str, str]) -> DependencyReport:
        raise NotImplementedError(f"{self.name} does not report partial readiness")

    def status_is_cacheable(self, meta: Mapping[str, str]) -> bool:
        return True

    def equal(self, declared: Dict[str, Any], live: Dict[str, Any]) -> bool:
        """Structural comparison of persisted fields."""
        declared_meta = declared.get("metadata") or {}
        live_meta = live.get("metadata") or {}
        for field in COMPARED_METADATA:
            if field in declared_meta and not contains(declared_meta[field], live_meta.get(field)):
                return False
        for field in self.body_fields:
            if field in declared and not contains(declared[field], live.get(field)):
                return False
        return True

    def selector(self, manifest: Dict[str, Any]) -> Optional[Dict[str, str]]:
        """Label selector this kind uses to pick other objects, if any."""
        return None

    def pod_labels(self, manifest: Dict[str, Any]) -> Optional[Dict[str, str]]:
        """Labels carried by the pods this kind runs, if any."""
        return None

    def pod_spec(self, manifest: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Pod spec this kind runs, if any."""
        return None


class ReplicatedWorkloadKind(ResourceKind):
    """Workloads with a replica count; these can report partial readiness."""

    supports_dependency_report = True

    def desired(self, obj: Dict[str, Any]) -> int:
        replicas = _dig(obj, "spec", "replicas")
        return 1 if replicas is None else int(replicas)

    def observed(self, obj: Dict[str, Any]) -> int:
        raise NotImplementedError

    def report(self, key: str, obj: Dict[str, Any], meta: Mapping[str, str]) -> DependencyReport:
        needed = success_factor(meta)
        desired = self.desired(obj)
        observed = self.observed(obj)
        percentage = percentage_ready(observed, desired)
        return DependencyReport(
            dependency=key,
            blocks=not is_sufficient(percentage, needed),
            percentage=percentage,
            needed=needed,
            message=f"{observed} of {desired} replicas up ({percentage}%, needed {needed}%)",
        )

    def status_is_cacheable(self, meta: Mapping[str, str]) -> bool:
        # Readiness depends on the threshold of whoever is asking
        return SUCCESS_FACTOR_KEY not in (meta or {})

    def pod_labels(self, manifest: Dict[str, Any]) -> Optional[Dict[str, str]]:
        return _dig(manifest, "spec", "template", "metadata", "labels")

    def pod_spec(self, manifest: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return _dig(manifest, "spec", "template", "spec")


class DeploymentKind(ReplicatedWorkloadKind):
    name = "deployment"

    def observed(self, obj: Dict[str, Any]) -> int:
        return _int(_dig(obj, "status", "availableReplicas"))

    def evaluate(self, obj: Dict[str, Any], meta: Mapping[str, str]) -> ResourceStatus:
        desired = self.desired(obj)
        updated = _int(_dig(obj, "status", "updatedReplicas"))
        available = _int(_dig(obj, "status", "availableReplicas"))
        if updated >= desired and available >= desired:
            return ResourceStatus.READY
        return ResourceStatus.NOT_READY


class ReplicaSetKind(ReplicatedWorkloadKind):
    name = "replicaset"

    def observed(self, obj: Dict[str, Any]) -> int:
        return _int(_dig(obj, "status", "replicas"))

    def evaluate(self, obj: Dict[str, Any], meta: Mapping[str, str]) -> ResourceStatus:
        factor = success_factor(meta)
        if self.observed(obj) * 100 < self.desired(obj) * factor:
            return ResourceStatus.NOT_READY
        return ResourceStatus.READY


class StatefulSetKind(ReplicatedWorkloadKind):
    name = "statefulset"

    def observed(self, obj: Dict[str, Any]) -> int:
        return _int(_dig(obj, "status", "readyReplicas"))

    def evaluate(self, obj: Dict[str, Any], meta: Mapping[str, str]) -> ResourceStatus:
        if self.observed(obj) >= self.desired(obj):
            return ResourceStatus.READY
        return ResourceStatus.NOT_READY


class PodKind(ResourceKind):
    name = "pod"

    def evaluate(self, obj: Dict[str, Any], meta: Mapping[str, str]) -> ResourceStatus:
        phase = _dig(obj, "status", "phase")
        if phase == "Succeeded":
            return ResourceStatus.READY
        if phase == "Failed":
            return ResourceStatus.ERROR
        if phase == "Running":
            for condition in _dig(obj, "status", "conditions") or []:
                if condition.get("type") == "Ready" and condition.get("status") == "True":
                    return ResourceStatus.READY
        return ResourceStatus.NOT_READY

    def pod_labels(self, manifest: Dict[str, Any]) -> Optional[Dict[str, str]]:
        return _dig(manifest, "metadata", "labels")

    def pod_spec(self, manifest: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return manifest.get("spec")


class JobKind(ResourceKind):
    name = "job"

    def evaluate(self, obj: Dict[str, Any], meta: Mapping[str, str]) -> ResourceStatus:
        for condition in _dig(obj, "status", "conditions") or []:
            if condition.get("type") == "Failed" and condition.get("status") == "True":
                return ResourceStatus.ERROR
        if _int(_dig(obj, "status", "succeeded")) >= 1:
            return ResourceStatus.READY
        return ResourceStatus.NOT_READY

    def pod_labels(self, manifest: Dict[str, Any]) -> Optional[Dict[str, str]]:
        return _dig(manifest, "spec", "template", "metadata", "labels")

    def pod_spec(self, manifest: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return _dig(manifest, "spec", "template", "spec")


class ConfigMapKind(ResourceKind):
    name = "configmap"
    body_fields = ("data", "binaryData")


class PersistentVolumeClaimKind(ResourceKind):
    name = "persistentvolumeclaim"

    def evaluate(self, obj: Dict[str, Any], meta: Mapping[str, str]) -> ResourceStatus:
        phase = _dig(obj, "status", "phase")
        if phase == "Bound":
            return ResourceStatus.READY
        if phase == "Lost":
            return ResourceStatus.ERROR
        return ResourceStatus.NOT_READY


class ServiceKind(ResourceKind):
    """A service is ready when every object its selector picks is ready."""

    name = "service"
    selected_kinds = ("pod", "job", "replicaset", "statefulset")

    async def status(
        self,
        obj: Dict[str, Any],
        meta: Mapping[str, str],
        client: KubernetesClient,
    ) -> ResourceStatus:
        selector = _dig(obj, "spec", "selector")
        if not selector:
            return ResourceStatus.READY

        for kind_name in self.selected_kinds:
            kind = get_kind(kind_name)
            for selected in await client.list(kind_name, selector):
                status = kind.evaluate(selected, {})
                if status is not ResourceStatus.READY:
                    logger.info(
                        "service_selection_not_ready",
                        service=_dig(obj, "metadata", "name"),
                        resource=kind.key(_dig(selected, "metadata", "name") or "?"),
                        status=status.value,
                    )
                    return status
        return ResourceStatus.READY

    def status_is_cacheable(self, meta: Mapping[str, str]) -> bool:
        # The selection can change between two queries
        return False

    def selector(self, manifest: Dict[str, Any]) -> Optional[Dict[str, str]]:
        return _dig(manifest, "spec", "selector")


KINDS: Dict[str, ResourceKind] = {
    kind.name: kind
    for kind in (
        DeploymentKind(),
        ReplicaSetKind(),
        StatefulSetKind(),
        ServiceKind(),
        ConfigMapKind(),
        PersistentVolumeClaimKind(),
        PodKind(),
        JobKind(),
    )
}


def get_kind(name: str) -> ResourceKind:
    """Look up the handler for a kind name (case-insensitive)."""
    kind = KINDS.get(name.lower())
    if kind is None:
        raise UnsupportedKindError(name)
    return kind


def list_kinds() -> List[str]:
    """Names of all supported kinds."""
    return list(KINDS.keys())
