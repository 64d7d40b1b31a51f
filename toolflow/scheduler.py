"""Dependency-ordered, concurrency-bounded step scheduling."""

from __future__ import annotations

import asyncio
import logging
import math
from collections import defaultdict, deque
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Set

from .contracts import (
    Execution,
    RetryPolicy,
    StepSpec,
    StepState,
    StepStatus,
    WorkflowDefinition,
    utcnow,
)
from .errors import DeadlockError, StepFailedError
from .interpolation import resolve
from .tools import ToolExecutor
from .utils.retry import RetryExecutor, step_budget_ms

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Execution], Awaitable[None]]


def dependency_depth(definition: WorkflowDefinition) -> int:
    """Number of steps on the longest dependency chain; cycles are not counted."""
    unmet = {s.id: set(s.dependencies) for s in definition.steps}
    dependents: Dict[str, List[str]] = defaultdict(list)
    for step in definition.steps:
        for dep_id in step.dependencies:
            dependents[dep_id].append(step.id)
    level = [sid for sid in definition.step_ids if not unmet[sid]]
    queued = set(level)
    depth = 0
    while level:
        depth += 1
        next_level = []
        for step_id in level:
            for dependent in dependents.get(step_id, []):
                unmet[dependent].discard(step_id)
                if not unmet[dependent] and dependent not in queued:
                    queued.add(dependent)
                    next_level.append(dependent)
        level = next_level
    return depth


def execution_budget_ms(definition: WorkflowDefinition, policy: RetryPolicy) -> int:
    """Upper bound on how long one execution of ``definition`` can run.

    With at most ``concurrency_limit`` steps in flight, a greedy schedule
    finishes within ``ceil(steps / limit) + depth`` step budgets.
    """
    waves = math.ceil(len(definition.steps) / definition.concurrency_limit)
    waves += dependency_depth(definition)
    return int(step_budget_ms(policy) * max(waves, 1))


class DagScheduler:
    """Runs the steps of one execution in dependency order.

    Ready steps are dispatched as asyncio tasks, never more than the
    definition's ``concurrency_limit`` at once. The scheduler wakes whenever an
    in-flight step settles, records its outcome and releases any dependents
    whose unmet dependencies reached zero. Results are only written from the
    scheduler loop itself, so every step dispatched later sees them.

    After a step fails no further steps are dispatched, but steps already in
    flight are allowed to finish.
    """

    def __init__(
        self, tool_executor: ToolExecutor, policy: Optional[RetryPolicy] = None
    ) -> None:
        self._retry_executor = RetryExecutor(tool_executor)
        self._policy = policy or RetryPolicy()

    async def _run_step(
        self, step: StepSpec, execution: Execution, policy: RetryPolicy
    ) -> Any:
        state = execution.steps[step.id]
        state.status = StepStatus.RUNNING
        state.started_at = utcnow()
        params = resolve(step.params, execution.parameters, execution.results)

        def on_attempt(attempt: int) -> None:
            state.attempts = attempt

        outcome = await self._retry_executor.run_step(
            step.tool, params, policy, label=step.id, on_attempt=on_attempt
        )
        return outcome.result

    async def run(
        self,
        definition: WorkflowDefinition,
        execution: Execution,
        policy: Optional[RetryPolicy] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Any:
        """Drive ``execution`` to a terminal state and return its final result.

        The execution is marked running on entry and completed or failed on
        exit; ``on_progress`` is awaited after each of those transitions and
        whenever steps settle.

        Raises:
            StepFailedError: A step failed after exhausting its retries.
            DeadlockError: Steps remain whose dependencies can never complete.
        """
        policy = policy or self._policy
        steps: Dict[str, StepSpec] = {s.id: s for s in definition.steps}
        unmet: Dict[str, Set[str]] = {s.id: set(s.dependencies) for s in definition.steps}
        dependents: Dict[str, List[str]] = defaultdict(list)
        for step in definition.steps:
            for dep_id in step.dependencies:
                dependents[dep_id].append(step.id)
        for step_id in steps:
            execution.steps.setdefault(step_id, StepState())

        ready: Deque[str] = deque(sid for sid in definition.step_ids if not unmet[sid])
        dispatched: Set[str] = set()
        completed: Set[str] = set()
        in_flight: Dict[asyncio.Task, str] = {}
        failure: Optional[StepFailedError] = None
        limit = definition.concurrency_limit

        execution.mark_running()
        if on_progress is not None:
            await on_progress(execution)

        try:
            while in_flight or (ready and failure is None):
                while ready and failure is None and len(in_flight) < limit:
                    step_id = ready.popleft()
                    if step_id in dispatched:
                        continue
                    dispatched.add(step_id)
                    task = asyncio.create_task(
                        self._run_step(steps[step_id], execution, policy)
                    )
                    in_flight[task] = step_id

                if not in_flight:
                    continue
                done, _ = await asyncio.wait(
                    in_flight.keys(), return_when=asyncio.FIRST_COMPLETED
                )
                for task in done:
                    step_id = in_flight.pop(task)
                    state = execution.steps[step_id]
                    state.finished_at = utcnow()
                    error = task.exception()
                    if error is None:
                        execution.results[step_id] = task.result()
                        state.status = StepStatus.COMPLETED
                        completed.add(step_id)
                        logger.info(
                            f"Step {step_id} completed for execution {execution.id} "
                            f"after {state.attempts} attempt(s)"
                        )
                        for dependent in dependents.get(step_id, []):
                            unmet[dependent].discard(step_id)
                            if not unmet[dependent] and dependent not in completed:
                                ready.append(dependent)
                    else:
                        state.status = StepStatus.FAILED
                        state.error = str(error)
                        logger.error(
                            f"Step {step_id} failed for execution {execution.id}: {error}"
                        )
                        if failure is None:
                            failure = StepFailedError(step_id, error)
                if on_progress is not None:
                    await on_progress(execution)
        finally:
            for task in in_flight:
                task.cancel()
            if in_flight:
                await asyncio.gather(*in_flight, return_exceptions=True)

        if failure is not None:
            execution.mark_failed(
                str(failure), type(failure.cause).__name__, step_id=failure.step_id
            )
            raise failure

        pending = [sid for sid in definition.step_ids if sid not in completed]
        if pending:
            error = DeadlockError(pending)
            logger.error(f"Execution {execution.id} deadlocked: {error}")
            execution.mark_failed(str(error), type(error).__name__)
            raise error

        if definition.output is not None:
            result = resolve(definition.output, execution.parameters, execution.results)
        else:
            result = dict(execution.results)
        execution.mark_completed(result)
        return result
