"""Tests for the declaration file loader."""

import pytest

from stagehand.core.errors import DeclarationError
from stagehand.graph import DependencySpec, load_declarations, parse_declarations

EXAMPLE = """
resources:
  - manifest:
      apiVersion: v1
      kind: ConfigMap
      metadata:
        name: app-config
      data:
        LOG_LEVEL: info
  - existing: PersistentVolumeClaim/data
  - manifest:
      apiVersion: apps/v1
      kind: Deployment
      metadata:
        name: web
      spec:
        replicas: 3
    depends_on:
      - configmap/app-config
      - key: persistentvolumeclaim/data
        meta:
          success_factor: 50
    meta:
      success_factor: "80"
"""


class TestLoadDeclarations:
    """Tests for load_declarations."""

    def test_load_example_file(self, tmp_path):
        path = tmp_path / "resources.yaml"
        path.write_text(EXAMPLE)

        declarations = load_declarations(path)

        assert [d.key for d in declarations] == [
            "configmap/app-config",
            "persistentvolumeclaim/data",
            "deployment/web",
        ]

    def test_existing_entry(self, tmp_path):
        path = tmp_path / "resources.yaml"
        path.write_text(EXAMPLE)

        data = load_declarations(path)[1]

        assert data.existing is True
        assert data.manifest is None
        assert data.kind == "persistentvolumeclaim"
        assert data.name == "data"

    def test_dependencies_and_meta(self, tmp_path):
        path = tmp_path / "resources.yaml"
        path.write_text(EXAMPLE)

        web = load_declarations(path)[2]

        assert web.depends_on == [
            DependencySpec("configmap/app-config"),
            DependencySpec("persistentvolumeclaim/data", {"success_factor": "50"}),
        ]
        assert web.meta == {"success_factor": "80"}
        assert web.manifest["spec"]["replicas"] == 3

    def test_missing_file(self, tmp_path):
        with pytest.raises(DeclarationError, match="not found"):
            load_declarations(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "resources.yaml"
        path.write_text("resources: [unclosed")

        with pytest.raises(DeclarationError, match="Invalid YAML"):
            load_declarations(path)


class TestParseDeclarations:
    """Tests for parse_declarations validation."""

    def test_requires_resources_list(self):
        with pytest.raises(DeclarationError):
            parse_declarations({"items": []})
        with pytest.raises(DeclarationError):
            parse_declarations(None)

    def test_empty_resources_list(self):
        assert parse_declarations({"resources": []}) == []

    def test_manifest_needs_kind_and_name(self):
        with pytest.raises(DeclarationError, match="metadata.name"):
            parse_declarations({"resources": [{"manifest": {"kind": "ConfigMap"}}]})

    @pytest.mark.parametrize("metadata", ["web", ["name", "web"], 3])
    def test_manifest_metadata_must_be_mapping(self, metadata):
        entry = {"manifest": {"kind": "ConfigMap", "metadata": metadata}}

        with pytest.raises(DeclarationError, match="metadata"):
            parse_declarations({"resources": [entry]})

    def test_manifest_or_existing_required(self):
        with pytest.raises(DeclarationError, match="required"):
            parse_declarations({"resources": [{"meta": {}}]})

    def test_manifest_and_existing_are_exclusive(self):
        entry = {
            "existing": "configmap/a",
            "manifest": {"kind": "ConfigMap", "metadata": {"name": "a"}},
        }

        with pytest.raises(DeclarationError, match="mutually exclusive"):
            parse_declarations({"resources": [entry]})

    @pytest.mark.parametrize("key", ["configmap", "configmap/", "/a", "a/b/c", 42])
    def test_malformed_dependency_keys(self, key):
        entry = {
            "manifest": {"kind": "ConfigMap", "metadata": {"name": "a"}},
            "depends_on": [key],
        }

        with pytest.raises(DeclarationError, match="kind/name"):
            parse_declarations({"resources": [entry]})

    def test_dependency_kind_is_lowercased(self):
        entry = {
            "manifest": {"kind": "Deployment", "metadata": {"name": "web"}},
            "depends_on": ["ConfigMap/cfg"],
        }

        (decl,) = parse_declarations({"resources": [entry]})

        assert decl.depends_on[0].key == "configmap/cfg"

    def test_error_names_entry(self):
        with pytest.raises(DeclarationError, match=r"resources\[1\]"):
            parse_declarations(
                {
                    "resources": [
                        {"existing": "configmap/a"},
                        "not a mapping",
                    ]
                }
            )
