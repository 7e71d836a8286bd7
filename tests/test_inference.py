"""Tests for implicit dependency inference."""

from fakes import configmap, declare, deployment, existing, job, pod, pvc, service, statefulset

from stagehand.graph import infer_dependencies, referenced_keys, selector_matches


class TestSelectorMatches:
    """Tests for selector_matches."""

    def test_all_pairs_must_match(self):
        assert selector_matches({"app": "web"}, {"app": "web", "tier": "fe"}) is True
        assert selector_matches({"app": "web", "tier": "be"}, {"app": "web", "tier": "fe"}) is False

    def test_empty_selector_matches_nothing(self):
        assert selector_matches({}, {"app": "web"}) is False

    def test_missing_labels_match_nothing(self):
        assert selector_matches({"app": "web"}, None) is False


class TestReferencedKeys:
    """Tests for referenced_keys."""

    def test_volumes(self):
        pod_spec = {
            "volumes": [
                {"name": "cfg", "configMap": {"name": "app-config"}},
                {"name": "data", "persistentVolumeClaim": {"claimName": "data"}},
                {"name": "tmp", "emptyDir": {}},
                {
                    "name": "bundle",
                    "projected": {"sources": [{"configMap": {"name": "ca-bundle"}}]},
                },
            ]
        }

        assert referenced_keys(pod_spec) == [
            "configmap/app-config",
            "persistentvolumeclaim/data",
            "configmap/ca-bundle",
        ]

    def test_environment(self):
        pod_spec = {
            "initContainers": [{"name": "init", "envFrom": [{"configMapRef": {"name": "init"}}]}],
            "containers": [
                {
                    "name": "app",
                    "env": [
                        {"name": "A", "value": "1"},
                        {
                            "name": "B",
                            "valueFrom": {"configMapKeyRef": {"name": "app-config", "key": "b"}},
                        },
                        {
                            "name": "C",
                            "valueFrom": {"configMapKeyRef": {"name": "app-config", "key": "c"}},
                        },
                    ],
                }
            ],
        }

        assert referenced_keys(pod_spec) == ["configmap/init", "configmap/app-config"]

    def test_empty(self):
        assert referenced_keys(None) == []
        assert referenced_keys({"containers": [{"name": "app"}]}) == []


class TestInferDependencies:
    """Tests for infer_dependencies."""

    def test_service_depends_on_selected_workloads(self):
        declarations = [
            declare(deployment("web", labels={"app": "web"})),
            declare(statefulset("db", labels={"app": "db"})),
            declare(pod("debug", labels={"app": "web"})),
            declare(service("web", {"app": "web"})),
        ]

        assert infer_dependencies(declarations) == [
            ("service/web", "deployment/web"),
            ("service/web", "pod/debug"),
        ]

    def test_workload_depends_on_mounted_config(self):
        pod_spec = {
            "containers": [{"name": "web", "envFrom": [{"configMapRef": {"name": "cfg"}}]}],
            "volumes": [{"name": "data", "persistentVolumeClaim": {"claimName": "data"}}],
        }
        declarations = [
            declare(configmap("cfg")),
            declare(pvc("data")),
            declare(deployment("web", pod_spec=pod_spec)),
        ]

        assert infer_dependencies(declarations) == [
            ("deployment/web", "persistentvolumeclaim/data"),
            ("deployment/web", "configmap/cfg"),
        ]

    def test_undeclared_references_are_ignored(self):
        pod_spec = {"containers": [{"name": "web", "envFrom": [{"configMapRef": {"name": "x"}}]}]}

        assert infer_dependencies([declare(deployment("web", pod_spec=pod_spec))]) == []

    def test_existing_resources_can_be_referenced(self):
        pod_spec = {
            "containers": [{"name": "web"}],
            "volumes": [{"name": "data", "persistentVolumeClaim": {"claimName": "data"}}],
        }
        declarations = [
            existing("persistentvolumeclaim/data"),
            declare(statefulset("db", pod_spec=pod_spec)),
        ]

        assert infer_dependencies(declarations) == [
            ("statefulset/db", "persistentvolumeclaim/data"),
        ]

    def test_job_pod_labels_are_selectable(self):
        declarations = [declare(job("migrate")), declare(service("migrate", {"job": "migrate"}))]

        assert infer_dependencies(declarations) == [("service/migrate", "job/migrate")]
