"""
Implicit dependency inference.

Derives "depends on" links that the declarations imply but do not state:
a service depends on the workloads its selector picks, and a workload
depends on the config maps and volume claims its pod template mounts.
Pure functions over the declaration set; nothing here touches a cluster.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from stagehand.graph.models import ResourceDeclaration
from stagehand.resources.kinds import get_kind


def selector_matches(selector: Mapping[str, str], labels: Mapping[str, str] | None) -> bool:
    """A non-empty selector matches labels carrying all of its pairs."""
    if not selector or not labels:
        return False
    return all(labels.get(k) == v for k, v in selector.items())


def referenced_keys(pod_spec: Mapping[str, Any] | None) -> List[str]:
    """Config map and volume claim keys referenced by a pod spec."""
    if not pod_spec:
        return []

    refs: List[str] = []

    for volume in pod_spec.get("volumes") or []:
        config_map = volume.get("configMap") or {}
        if config_map.get("name"):
            refs.append(f"configmap/{config_map['name']}")
        claim = volume.get("persistentVolumeClaim") or {}
        if claim.get("claimName"):
            refs.append(f"persistentvolumeclaim/{claim['claimName']}")
        for source in (volume.get("projected") or {}).get("sources") or []:
            projected = source.get("configMap") or {}
            if projected.get("name"):
                refs.append(f"configmap/{projected['name']}")

    containers = list(pod_spec.get("initContainers") or []) + list(pod_spec.get("containers") or [])
    for container in containers:
        for env_from in container.get("envFrom") or []:
            ref = env_from.get("configMapRef") or {}
            if ref.get("name"):
                refs.append(f"configmap/{ref['name']}")
        for env in container.get("env") or []:
            ref = (env.get("valueFrom") or {}).get("configMapKeyRef") or {}
            if ref.get("name"):
                refs.append(f"configmap/{ref['name']}")

    return list(dict.fromkeys(refs))


def infer_dependencies(declarations: Sequence[ResourceDeclaration]) -> List[Tuple[str, str]]:
    """
    Infer (dependent, dependency) key pairs from declaration contents.

    Pre-existing declarations have no manifest and so never gain inferred
    dependencies, but they can still be referenced by name.
    """
    declared = {decl.key for decl in declarations}
    pod_labels: List[Tuple[str, Dict[str, str]]] = []
    for decl in declarations:
        if decl.manifest is None:
            continue
        labels = get_kind(decl.kind).pod_labels(decl.manifest)
        if labels:
            pod_labels.append((decl.key, labels))

    pairs: List[Tuple[str, str]] = []
    for decl in declarations:
        if decl.manifest is None:
            continue
        kind = get_kind(decl.kind)

        selector = kind.selector(decl.manifest)
        if selector:
            for key, labels in pod_labels:
                if key != decl.key and selector_matches(selector, labels):
                    pairs.append((decl.key, key))

        for ref in referenced_keys(kind.pod_spec(decl.manifest)):
            if ref in declared and ref != decl.key:
                pairs.append((decl.key, ref))

    return _unique(pairs)


def _unique(pairs: Iterable[Tuple[str, str]]) -> List[Tuple[str, str]]:
    return list(dict.fromkeys(pairs))
