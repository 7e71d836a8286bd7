"""Delete managed resources, dependents before their dependencies."""

from __future__ import annotations

import time
from typing import Optional

import structlog

from stagehand.config import Settings, get_settings
from stagehand.core.errors import StagehandError
from stagehand.engine.results import TeardownResult
from stagehand.engine.scheduler import cluster_retrying
from stagehand.graph.models import DependencyGraph

logger = structlog.get_logger()


async def teardown(graph: DependencyGraph, settings: Optional[Settings] = None) -> TeardownResult:
    """
    Delete every managed resource in reverse topological order.

    Pre-existing resources are never deleted. A failed delete is recorded
    and the teardown moves on, so one stuck object does not strand the rest.
    """
    settings = settings or get_settings()
    started = time.monotonic()
    result = TeardownResult()

    for key in reversed(graph.topological_order()):
        node = graph.get(key)
        if node.existing:
            result.skipped.append(key)
            continue

        try:
            deleted = await cluster_retrying(settings, key, "delete")(node.resource.delete)
        except StagehandError as e:
            logger.error("teardown_delete_failed", node=key, error=e.message)
            result.errors[key] = e.message
            continue

        if deleted:
            result.deleted.append(key)
        else:
            result.already_absent.append(key)

    result.duration_seconds = time.monotonic() - started
    logger.info(
        "teardown_finished",
        deleted=len(result.deleted),
        already_absent=len(result.already_absent),
        skipped=len(result.skipped),
        errors=len(result.errors),
    )
    return result
