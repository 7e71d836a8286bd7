"""In-memory stand-in for KubernetesClient used by engine tests."""

from __future__ import annotations

import asyncio
import copy
from collections import Counter
from typing import Any, Dict, List, Optional, Sequence

from stagehand.core.errors import ConflictError, StagehandError, TransientClusterError
from stagehand.graph.models import DependencySpec, ResourceDeclaration


def ready_status(kind: str, manifest: Dict[str, Any]) -> Dict[str, Any]:
    """Status block of a fully settled object of this kind."""
    replicas = (manifest.get("spec") or {}).get("replicas", 1)
    if kind == "deployment":
        return {
            "replicas": replicas,
            "updatedReplicas": replicas,
            "availableReplicas": replicas,
            "readyReplicas": replicas,
        }
    if kind == "replicaset":
        return {"replicas": replicas, "readyReplicas": replicas}
    if kind == "statefulset":
        return {"replicas": replicas, "readyReplicas": replicas}
    if kind == "pod":
        return {"phase": "Running", "conditions": [{"type": "Ready", "status": "True"}]}
    if kind == "job":
        return {"succeeded": 1}
    if kind == "persistentvolumeclaim":
        return {"phase": "Bound"}
    return {}


class FakeCluster:
    """
    Namespaced object store with the KubernetesClient call surface.

    Objects get a settled status on create unless a status progression
    has been scripted for them; each read of a scripted object advances
    the progression by one step and the last step sticks.
    """

    def __init__(self, namespace: str = "default", auto_ready: bool = True) -> None:
        self.namespace = namespace
        self.auto_ready = auto_ready
        self.objects: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple[str, str]] = []
        self.created: List[str] = []
        self.deleted: List[str] = []
        self.snapshots: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._scripts: Dict[str, List[Dict[str, Any]]] = {}
        self._failures: Dict[tuple[str, str], List[StagehandError]] = {}
        self._latency: Dict[tuple[str, str], float] = {}

    # Test setup

    def add(self, manifest: Dict[str, Any], status: Optional[Dict[str, Any]] = None) -> str:
        """Seed an object as if it already existed in the cluster."""
        kind = manifest["kind"].lower()
        key = f"{kind}/{manifest['metadata']['name']}"
        obj = copy.deepcopy(manifest)
        obj["status"] = copy.deepcopy(status) if status is not None else ready_status(kind, manifest)
        self.objects[key] = obj
        return key

    def script(self, key: str, *statuses: Dict[str, Any]) -> None:
        """Statuses returned by successive reads of key."""
        self._scripts[key] = [copy.deepcopy(s) for s in statuses]

    def fail(
        self,
        verb: str,
        key: str,
        times: int = 1,
        error: Optional[StagehandError] = None,
    ) -> None:
        """Make the next `times` calls of verb on key raise."""
        error = error or TransientClusterError(f"injected {verb} failure", {"key": key})
        self._failures.setdefault((verb, key), []).extend([error] * times)

    def slow(self, verb: str, key: str, seconds: float) -> None:
        """Make every call of verb on key take `seconds`."""
        self._latency[(verb, key)] = seconds

    def count(self, verb: str, key: Optional[str] = None) -> int:
        return sum(1 for v, k in self.calls if v == verb and (key is None or k == key))

    def status_of(self, key: str) -> Dict[str, Any]:
        return self.objects[key].get("status", {})

    # KubernetesClient surface

    def _enter(self, verb: str, key: str) -> None:
        self.calls.append((verb, key))
        pending = self._failures.get((verb, key))
        if pending:
            raise pending.pop(0)

    async def get(self, kind: str, name: str) -> Optional[Dict[str, Any]]:
        key = f"{kind}/{name}"
        self._enter("get", key)
        latency = self._latency.get(("get", key))
        if latency and key in self.objects:
            await asyncio.sleep(latency)
        obj = self.objects.get(key)
        if obj is None:
            return None
        steps = self._scripts.get(key)
        if steps:
            obj["status"] = steps.pop(0) if len(steps) > 1 else copy.deepcopy(steps[0])
        return copy.deepcopy(obj)

    async def create(self, kind: str, body: Dict[str, Any]) -> Dict[str, Any]:
        key = f"{kind}/{body['metadata']['name']}"
        self._enter("create", key)
        if key in self.objects:
            raise ConflictError(f"{kind} already exists", {"key": key})

        self.snapshots[key] = {k: copy.deepcopy(o.get("status", {})) for k, o in self.objects.items()}
        obj = copy.deepcopy(body)
        obj["status"] = ready_status(kind, body) if self.auto_ready and key not in self._scripts else {}
        self.objects[key] = obj
        self.created.append(key)
        return copy.deepcopy(obj)

    async def delete(self, kind: str, name: str) -> bool:
        key = f"{kind}/{name}"
        self._enter("delete", key)
        if self.objects.pop(key, None) is None:
            return False
        self.deleted.append(key)
        return True

    async def list(self, kind: str, selector: Dict[str, str]) -> List[Dict[str, Any]]:
        self._enter("list", kind)
        selected = []
        for key, obj in self.objects.items():
            if not key.startswith(f"{kind}/"):
                continue
            labels = (obj.get("metadata") or {}).get("labels") or {}
            if all(labels.get(k) == v for k, v in selector.items()):
                selected.append(copy.deepcopy(obj))
        return selected


# Manifest builders


def configmap(name: str, data: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": name},
        "data": data if data is not None else {"key": "value"},
    }


def _workload(
    kind: str,
    api_version: str,
    name: str,
    replicas: int,
    labels: Optional[Dict[str, str]],
    pod_spec: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    labels = labels or {"app": name}
    return {
        "apiVersion": api_version,
        "kind": kind,
        "metadata": {"name": name, "labels": dict(labels)},
        "spec": {
            "replicas": replicas,
            "selector": {"matchLabels": dict(labels)},
            "template": {
                "metadata": {"labels": dict(labels)},
                "spec": pod_spec or {"containers": [{"name": name, "image": f"{name}:1.0"}]},
            },
        },
    }


def deployment(name, replicas=1, labels=None, pod_spec=None):
    return _workload("Deployment", "apps/v1", name, replicas, labels, pod_spec)


def replicaset(name, replicas=1, labels=None, pod_spec=None):
    return _workload("ReplicaSet", "apps/v1", name, replicas, labels, pod_spec)


def statefulset(name, replicas=1, labels=None, pod_spec=None):
    return _workload("StatefulSet", "apps/v1", name, replicas, labels, pod_spec)


def pod(name: str, labels: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {"name": name, "labels": labels or {"app": name}},
        "spec": {"containers": [{"name": name, "image": f"{name}:1.0"}]},
    }


def job(name: str) -> Dict[str, Any]:
    return {
        "apiVersion": "batch/v1",
        "kind": "Job",
        "metadata": {"name": name},
        "spec": {
            "template": {
                "metadata": {"labels": {"job": name}},
                "spec": {
                    "restartPolicy": "Never",
                    "containers": [{"name": name, "image": f"{name}:1.0"}],
                },
            }
        },
    }


def service(name: str, selector: Dict[str, str]) -> Dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": name},
        "spec": {"selector": dict(selector), "ports": [{"port": 80}]},
    }


def pvc(name: str) -> Dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "PersistentVolumeClaim",
        "metadata": {"name": name},
        "spec": {"accessModes": ["ReadWriteOnce"], "resources": {"requests": {"storage": "1Gi"}}},
    }


def _deps(depends_on: Sequence[Any]) -> List[DependencySpec]:
    specs = []
    for dep in depends_on:
        if isinstance(dep, str):
            specs.append(DependencySpec(dep))
        else:
            key, meta = dep
            specs.append(DependencySpec(key, dict(meta)))
    return specs


def declare(
    manifest: Dict[str, Any],
    depends_on: Sequence[Any] = (),
    meta: Optional[Dict[str, str]] = None,
) -> ResourceDeclaration:
    """Managed declaration; depends_on items are keys or (key, meta) pairs."""
    return ResourceDeclaration(
        kind=manifest["kind"].lower(),
        name=manifest["metadata"]["name"],
        manifest=manifest,
        depends_on=_deps(depends_on),
        meta=dict(meta or {}),
    )


def existing(
    key: str,
    depends_on: Sequence[Any] = (),
    meta: Optional[Dict[str, str]] = None,
) -> ResourceDeclaration:
    """Pre-existing declaration for a 'kind/name' key."""
    kind, name = key.split("/")
    return ResourceDeclaration(
        kind=kind,
        name=name,
        depends_on=_deps(depends_on),
        meta=dict(meta or {}),
    )
