"""Execution state store: fast cache backed by the durable repository."""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from .cache import BaseCache
from .constants import (
    DEFAULT_EXECUTION_CACHE_TTL_S,
    DEFAULT_LOCK_TIMEOUT_MS,
    EXECUTION_PREFIX,
    LOCK_PREFIX,
)
from .contracts import Execution
from .errors import ConcurrentExecutionError, PersistenceError
from .persistence import WorkflowRepository

logger = logging.getLogger(__name__)


class ExecutionStateStore:
    """Persist execution lifecycle and results.

    Writes go to the durable repository first so the cache never holds an
    execution the repository does not know about. Reads are served from the
    cache and fall back to the repository, repopulating the cache with a
    bounded TTL.
    """

    def __init__(
        self,
        cache: BaseCache,
        repository: WorkflowRepository,
        cache_ttl_s: int = DEFAULT_EXECUTION_CACHE_TTL_S,
    ) -> None:
        self._cache = cache
        self._repository = repository
        self._cache_ttl_s = cache_ttl_s

    @staticmethod
    def _key(execution_id: str) -> str:
        return f"{EXECUTION_PREFIX}{execution_id}"

    async def create(self, execution: Execution) -> None:
        """Record a new execution.

        Raises:
            PersistenceError: The durable write failed; nothing was cached and
                the execution must not be reported as started.
        """
        try:
            await self._repository.create_execution(execution)
        except Exception as e:
            logger.error(f"Failed to persist execution {execution.id}: {e}")
            raise PersistenceError(
                f"Could not create execution {execution.id}: {e}"
            ) from e
        await self._cache.set(
            self._key(execution.id), execution.to_json(), ttl_s=self._cache_ttl_s
        )

    async def update(self, execution: Execution) -> None:
        """Overwrite the cached record and the durable row of ``execution``."""
        await self._cache.set(
            self._key(execution.id), execution.to_json(), ttl_s=self._cache_ttl_s
        )
        try:
            await self._repository.update_execution(execution)
        except Exception as e:
            raise PersistenceError(
                f"Could not update execution {execution.id}: {e}"
            ) from e

    async def get(self, execution_id: str) -> Optional[Execution]:
        cached = await self._cache.get(self._key(execution_id))
        if cached is not None:
            return Execution.from_json(cached)

        logger.warning(
            f"Execution {execution_id} not found in cache, checking durable store"
        )
        execution = await self._repository.get_execution(execution_id)
        if execution is None:
            return None
        await self._cache.set(
            self._key(execution_id), execution.to_json(), ttl_s=self._cache_ttl_s
        )
        return execution

    async def exists(self, execution_id: str) -> bool:
        if await self._cache.get(self._key(execution_id)) is not None:
            return True
        return await self._repository.get_execution(execution_id) is not None

    async def list(self, workflow_name: Optional[str] = None) -> List[Execution]:
        return await self._repository.list_executions(workflow_name)

    async def evict(self, execution_id: str) -> None:
        """Drop the cached copy; the durable row is kept."""
        await self._cache.delete(self._key(execution_id))

    @asynccontextmanager
    async def lock(
        self, execution_id: str, ttl_ms: int = DEFAULT_LOCK_TIMEOUT_MS
    ) -> AsyncIterator[str]:
        """Hold the distributed lock for ``execution_id`` for the block's duration.

        Release only deletes the lock while it still holds this acquisition's
        token, so a lock that expired and was taken by another caller is left
        alone.

        Raises:
            ConcurrentExecutionError: The lock is already held.
        """
        key = f"{LOCK_PREFIX}{execution_id}"
        token = str(uuid.uuid4())
        if not await self._cache.set_if_absent(key, token, ttl_ms):
            raise ConcurrentExecutionError(
                f"Failed to acquire execution lock for {execution_id}. "
                "Another execution may be in progress."
            )
        try:
            yield token
        finally:
            if not await self._cache.delete_if_equals(key, token):
                logger.warning(
                    f"Execution lock for {execution_id} expired before release"
                )
