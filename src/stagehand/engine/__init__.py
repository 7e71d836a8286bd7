"""Orchestration engine - status cache, report evaluation and scheduling."""

from stagehand.engine.cache import StatusCache
from stagehand.engine.reports import ReportEvaluator
from stagehand.engine.results import NodeOutcome, ResultCollector, RunResult, TeardownResult
from stagehand.engine.scheduler import NodeEvent, Scheduler, cluster_retrying, run_graph
from stagehand.engine.teardown import teardown

__all__ = [
    "NodeEvent",
    "NodeOutcome",
    "ReportEvaluator",
    "ResultCollector",
    "RunResult",
    "Scheduler",
    "StatusCache",
    "TeardownResult",
    "cluster_retrying",
    "run_graph",
    "teardown",
]
