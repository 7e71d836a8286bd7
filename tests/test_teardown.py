"""Tests for teardown of managed resources."""

import pytest
from fakes import configmap, declare, deployment, existing, pvc

from stagehand.core.errors import ClusterError
from stagehand.engine import Scheduler, teardown
from stagehand.graph import build_graph


@pytest.fixture
def declarations():
    return [
        existing("persistentvolumeclaim/data"),
        declare(configmap("cfg")),
        declare(deployment("web"), depends_on=["configmap/cfg", "persistentvolumeclaim/data"]),
    ]


class TestTeardown:
    """Tests for teardown."""

    @pytest.mark.asyncio
    async def test_deletes_dependents_first(self, cluster, settings, declarations):
        cluster.add(pvc("data"))
        graph = build_graph(declarations, cluster, infer=False)
        assert (await Scheduler(graph, settings).run()).success

        result = await teardown(build_graph(declarations, cluster, infer=False), settings)

        assert result.success
        assert cluster.deleted == ["deployment/web", "configmap/cfg"]
        assert result.skipped == ["persistentvolumeclaim/data"]
        assert "persistentvolumeclaim/data" in cluster.objects

    @pytest.mark.asyncio
    async def test_absent_objects_are_reported(self, cluster, settings, declarations):
        graph = build_graph(declarations, cluster, infer=False)

        result = await teardown(graph, settings)

        assert result.success
        assert result.deleted == []
        assert result.already_absent == ["deployment/web", "configmap/cfg"]

    @pytest.mark.asyncio
    async def test_failed_delete_does_not_stop_teardown(self, cluster, settings, declarations):
        cluster.add(configmap("cfg"))
        cluster.add(deployment("web"))
        cluster.fail("delete", "deployment/web", error=ClusterError("forbidden"))
        graph = build_graph(declarations, cluster, infer=False)

        result = await teardown(graph, settings)

        assert result.success is False
        assert result.errors == {"deployment/web": "forbidden"}
        assert result.deleted == ["configmap/cfg"]
        assert result.to_dict()["errors"] == {"deployment/web": "forbidden"}

    @pytest.mark.asyncio
    async def test_transient_delete_failures_are_retried(self, cluster, settings, declarations):
        cluster.add(configmap("cfg"))
        cluster.fail("delete", "configmap/cfg", times=2)
        graph = build_graph(declarations, cluster, infer=False)

        result = await teardown(graph, settings)

        assert result.success
        assert "configmap/cfg" in result.deleted
