"""Orchestration API: register workflows, execute them, query executions."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional, Union

from .cache import BaseCache, get_cache
from .circuit import CircuitBreaker
from .config import ToolflowConfig, load_config
from .contracts import (
    Execution,
    ExecutionOptions,
    ExecutionResult,
    RegistrationResult,
    RetryPolicy,
    WorkflowDefinition,
)
from .errors import (
    CircuitOpenError,
    ConcurrentExecutionError,
    PersistenceError,
    WorkflowNotFoundError,
)
from .persistence import WorkflowRepository, get_repository
from .registry import WorkflowRegistry
from .scheduler import DagScheduler, execution_budget_ms
from .state import ExecutionStateStore
from .tools import ToolExecutor

logger = logging.getLogger(__name__)


class Orchestrator:
    """Entry point tying registry, circuit breaker, scheduler and state store.

    Instances share nothing implicitly; build one per engine (see
    ``create_orchestrator``).
    """

    def __init__(
        self,
        tool_executor: ToolExecutor,
        registry: WorkflowRegistry,
        state_store: ExecutionStateStore,
        circuit_breaker: Optional[CircuitBreaker] = None,
        retry_policy: Optional[RetryPolicy] = None,
        lock_timeout_ms: Optional[int] = None,
    ) -> None:
        self.registry = registry
        self.state_store = state_store
        self.circuit_breaker = circuit_breaker or CircuitBreaker()
        self.retry_policy = retry_policy or RetryPolicy()
        # None: derive the lock expiry from each execution's time budget
        self.lock_timeout_ms = lock_timeout_ms
        self.scheduler = DagScheduler(tool_executor, self.retry_policy)

    async def register_workflow(
        self,
        definition: Union[WorkflowDefinition, Dict[str, Any]],
        version: Optional[str] = None,
        overwrite: bool = False,
    ) -> RegistrationResult:
        return await self.registry.register(definition, version=version, overwrite=overwrite)

    async def get_execution(self, execution_id: str) -> Optional[Execution]:
        return await self.state_store.get(execution_id)

    async def execute_workflow(
        self,
        name: str,
        parameters: Optional[Dict[str, Any]] = None,
        options: Optional[ExecutionOptions] = None,
        version: Optional[str] = None,
    ) -> ExecutionResult:
        """Run workflow ``name`` to completion and return its final result.

        Args:
            name: Registered workflow name.
            parameters: Caller-supplied context available as ``${context.*}``.
            options: Execution id, retry policy and lock expiry overrides.
            version: Run a specific registered version instead of the current one.

        Raises:
            CircuitOpenError: Recent executions of ``name`` kept failing.
            WorkflowNotFoundError: No such workflow (or version) is registered.
            ConcurrentExecutionError: The execution id is locked or already used.
            PersistenceError: The initial execution record could not be stored.
            StepFailedError: A step failed after exhausting its retries.
            DeadlockError: Steps remained with unsatisfiable dependencies.
        """
        options = options or ExecutionOptions()
        parameters = parameters or {}
        execution_id = options.execution_id or str(uuid.uuid4())
        policy = options.retry or self.retry_policy

        logger.info(
            f"Attempting to execute workflow {name} as {execution_id} "
            f"with parameters {sorted(parameters)}"
        )

        if self.circuit_breaker.is_open(name):
            raise CircuitOpenError(name)

        definition = await self.registry.get(name, version)
        if definition is None:
            logger.error(f"Workflow not found: {name}")
            raise WorkflowNotFoundError(f"Workflow '{name}' not found.")

        lock_ttl = (
            options.lock_timeout_ms
            or self.lock_timeout_ms
            or execution_budget_ms(definition, policy)
        )
        async with self.state_store.lock(execution_id, lock_ttl):
            if await self.state_store.exists(execution_id):
                raise ConcurrentExecutionError(f"Execution {execution_id} already exists")

            execution = Execution(
                id=execution_id,
                workflow_name=definition.name,
                workflow_version=definition.version,
                parameters=parameters,
            )
            await self.state_store.create(execution)

            try:
                result = await self.scheduler.run(
                    definition, execution, policy, on_progress=self.state_store.update
                )
            except Exception as e:
                await self._record_failure(execution, e)
                raise

            await self.state_store.update(execution)
            self.circuit_breaker.record_success(definition.name)
            logger.info(
                f"Workflow {definition.name} completed as {execution_id} "
                f"in {execution.duration_ms}ms"
            )
            return ExecutionResult(
                execution_id=execution_id, result=result, duration_ms=execution.duration_ms
            )

    async def _record_failure(self, execution: Execution, error: Exception) -> None:
        if not execution.status.is_terminal:
            execution.mark_failed(str(error) or type(error).__name__, type(error).__name__)
        logger.error(
            f"Workflow {execution.workflow_name} failed as {execution.id}: "
            f"{execution.error.message if execution.error else error}"
        )
        self.circuit_breaker.record_failure(execution.workflow_name)
        try:
            await self.state_store.update(execution)
        except PersistenceError as e:
            logger.error(f"Could not persist failure of execution {execution.id}: {e}")


def create_orchestrator(
    tool_executor: ToolExecutor,
    config: Optional[ToolflowConfig] = None,
    cache: Optional[BaseCache] = None,
    repository: Optional[WorkflowRepository] = None,
) -> Orchestrator:
    """Build an orchestrator from configuration.

    ``cache`` and ``repository`` override the configured backends; both the
    registry and the state store share them.
    """
    config = config or load_config()
    cache = cache or get_cache(config=config)
    repository = repository or get_repository(config=config)
    registry = WorkflowRegistry(
        cache,
        repository,
        cache_ttl_s=config.engine.workflow_cache_ttl_s,
        default_concurrency_limit=config.engine.concurrency_limit,
    )
    state_store = ExecutionStateStore(
        cache, repository, cache_ttl_s=config.engine.execution_cache_ttl_s
    )
    breaker = CircuitBreaker(
        threshold=config.circuit_breaker.threshold,
        reset_timeout_ms=config.circuit_breaker.reset_timeout_ms,
    )
    return Orchestrator(
        tool_executor,
        registry,
        state_store,
        circuit_breaker=breaker,
        retry_policy=RetryPolicy.from_config(config.retry),
        lock_timeout_ms=config.engine.lock_timeout_ms,
    )
