"""
Per-pass status cache.

Several dependents evaluated in the same pass often ask about the same
upstream node. Cacheable nodes are queried once per pass; nodes whose
adapter reports themselves non-cacheable are always queried fresh and
their results are never stored.

A pass is either global, or scoped to one node: every poll round of a
node opens a new pass for that node only, so rounds of unrelated nodes
do not evict each other's results.
"""

from __future__ import annotations

import asyncio
from typing import Dict, Optional

import structlog

from stagehand.graph.models import ResourceNode
from stagehand.resources.base import ResourceStatus

logger = structlog.get_logger()


class StatusCache:
    """Status memo that is cleared at the start of every evaluation pass."""

    def __init__(self) -> None:
        self._pass = 0
        self._global_pass = 0
        self._node_pass: Dict[str, int] = {}
        self._memo: Dict[str, ResourceStatus] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self.hits = 0
        self.misses = 0

    @property
    def current_pass(self) -> int:
        return self._pass

    def begin_pass(self, key: Optional[str] = None) -> int:
        """Start a new pass, for every node or only for ``key``."""
        self._pass += 1
        if key is None:
            self._global_pass = self._pass
            self._node_pass.clear()
            self._memo.clear()
        else:
            self._node_pass[key] = self._pass
            self._memo.pop(key, None)
        return self._pass

    def cached(self, key: str) -> ResourceStatus | None:
        return self._memo.get(key)

    def _pass_of(self, key: str) -> int:
        return max(self._global_pass, self._node_pass.get(key, 0))

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def get(self, node: ResourceNode) -> ResourceStatus:
        """Cached status for this pass, or a fresh query."""
        if not node.resource.status_is_cacheable(node.meta):
            self.misses += 1
            return await node.resource.status(node.meta)

        async with self._lock_for(node.key):
            cached = self._memo.get(node.key)
            if cached is not None:
                self.hits += 1
                return cached
            self.misses += 1
            return await self._query_and_store(node)

    async def refresh(self, node: ResourceNode) -> ResourceStatus:
        """Always query; store the result for this pass if cacheable."""
        if not node.resource.status_is_cacheable(node.meta):
            self.misses += 1
            return await node.resource.status(node.meta)

        async with self._lock_for(node.key):
            self.misses += 1
            return await self._query_and_store(node)

    async def _query_and_store(self, node: ResourceNode) -> ResourceStatus:
        pass_id = self._pass_of(node.key)
        status = await node.resource.status(node.meta)
        # A pass that started during the query must not see a stale result
        if self._pass_of(node.key) == pass_id:
            self._memo[node.key] = status
        return status
