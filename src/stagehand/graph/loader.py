"""
Declaration file loader.

Parses a YAML file listing the resources to bring up:

    resources:
      - manifest:
          apiVersion: v1
          kind: ConfigMap
          metadata: {name: app-config}
          data: {LOG_LEVEL: info}
      - manifest: {...}
        depends_on:
          - configmap/app-config
          - key: replicaset/cache
            meta: {success_factor: "50"}
        meta: {success_factor: "80"}
      - existing: persistentvolumeclaim/data
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import yaml

from stagehand.core.errors import DeclarationError
from stagehand.graph.models import DependencySpec, ResourceDeclaration


def _string_map(value: Any, where: str) -> Dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise DeclarationError(f"{where}: meta must be a mapping")
    return {str(k): str(v) for k, v in value.items()}


def _parse_key(value: Any, where: str) -> str:
    parts = value.split("/") if isinstance(value, str) else []
    if len(parts) != 2 or not all(parts):
        raise DeclarationError(f"{where}: expected a 'kind/name' key, got {value!r}")
    kind, name = parts
    return f"{kind.lower()}/{name}"


def _parse_dependency(value: Any, where: str) -> DependencySpec:
    if isinstance(value, str):
        return DependencySpec(key=_parse_key(value, where))
    if isinstance(value, dict) and "key" in value:
        return DependencySpec(
            key=_parse_key(value["key"], where),
            meta=_string_map(value.get("meta"), where),
        )
    raise DeclarationError(f"{where}: dependency must be a key or a mapping with 'key'")


def parse_declaration(entry: Any, index: int) -> ResourceDeclaration:
    """Parse one entry of the resources list."""
    where = f"resources[{index}]"
    if not isinstance(entry, dict):
        raise DeclarationError(f"{where}: expected a mapping")

    depends_on = [
        _parse_dependency(dep, f"{where}.depends_on[{i}]")
        for i, dep in enumerate(entry.get("depends_on") or [])
    ]
    meta = _string_map(entry.get("meta"), where)

    if "existing" in entry:
        if "manifest" in entry:
            raise DeclarationError(f"{where}: 'existing' and 'manifest' are mutually exclusive")
        kind, name = _parse_key(entry["existing"], where).split("/")
        return ResourceDeclaration(kind=kind, name=name, depends_on=depends_on, meta=meta)

    manifest = entry.get("manifest")
    if not isinstance(manifest, dict):
        raise DeclarationError(f"{where}: 'manifest' or 'existing' is required")
    metadata = manifest.get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
        raise DeclarationError(f"{where}: manifest 'metadata' must be a mapping")
    kind = manifest.get("kind")
    name = (metadata or {}).get("name")
    if not kind or not name:
        raise DeclarationError(f"{where}: manifest needs 'kind' and 'metadata.name'")

    return ResourceDeclaration(
        kind=str(kind).lower(),
        name=str(name),
        manifest=manifest,
        depends_on=depends_on,
        meta=meta,
    )


def parse_declarations(data: Any) -> List[ResourceDeclaration]:
    """Parse the loaded YAML document into declarations, keeping order."""
    if not isinstance(data, dict) or not isinstance(data.get("resources"), list):
        raise DeclarationError("Declaration file must contain a 'resources' list")
    return [parse_declaration(entry, i) for i, entry in enumerate(data["resources"])]


def load_declarations(file_path: str | Path) -> List[ResourceDeclaration]:
    """
    Load resource declarations from a YAML file.

    Raises:
        DeclarationError: If the file is missing, not YAML, or malformed
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise DeclarationError(f"Declaration file not found: {file_path}")

    try:
        with open(file_path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise DeclarationError(f"Invalid YAML in {file_path}: {e}") from e

    return parse_declarations(data)
