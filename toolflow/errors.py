"""Exception hierarchy for toolflow."""

from __future__ import annotations

from typing import Iterable, Optional


class ToolflowError(Exception):
    """Base class for all toolflow errors."""


class ValidationError(ToolflowError):
    """Raised when a workflow definition is invalid.

    ``errors`` lists every violation found, not only the first one.
    """

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors = list(errors)
        super().__init__(f"Invalid workflow: {', '.join(self.errors)}")


class AlreadyExistsError(ToolflowError):
    """Raised when registering a workflow name or version that already exists."""


class WorkflowNotFoundError(ToolflowError):
    """Raised when an execution is requested for an unknown workflow."""


class PersistenceError(ToolflowError):
    """Raised when the durable store rejects a write."""


class ToolError(ToolflowError):
    """A tool invocation failed."""

    def __init__(
        self, message: str, tool_id: Optional[str] = None, retryable: bool = True
    ) -> None:
        super().__init__(message)
        self.tool_id = tool_id
        self.retryable = retryable


class ToolNotFoundError(ToolError):
    """The tool executor does not know the requested tool."""

    def __init__(self, tool_id: str) -> None:
        super().__init__(f"Tool '{tool_id}' not found", tool_id=tool_id, retryable=False)


class StepTimeoutError(ToolError):
    """A tool invocation exceeded its timeout."""


class StepFailedError(ToolflowError):
    """A step exhausted its retries and failed the execution."""

    def __init__(self, step_id: str, cause: BaseException) -> None:
        super().__init__(f"Step '{step_id}' failed: {cause}")
        self.step_id = step_id
        self.cause = cause


class DeadlockError(ToolflowError):
    """Steps remain whose dependencies can never be satisfied."""

    def __init__(self, pending_steps: Iterable[str]) -> None:
        self.pending_steps = sorted(pending_steps)
        super().__init__(
            "Workflow stuck. Circular or unresolved dependencies for steps: "
            + ", ".join(self.pending_steps)
        )


class InvalidTransitionError(ToolflowError):
    """An execution was asked to leave a terminal state."""


class ConcurrentExecutionError(ToolflowError):
    """The execution lock for an execution id is already held."""


class CircuitOpenError(ToolflowError):
    """New executions of a workflow are temporarily refused."""

    def __init__(self, workflow_name: str) -> None:
        super().__init__(
            f"Circuit breaker is open for workflow '{workflow_name}'. Please try again later."
        )
        self.workflow_name = workflow_name


__all__ = [
    "ToolflowError",
    "ValidationError",
    "AlreadyExistsError",
    "WorkflowNotFoundError",
    "PersistenceError",
    "ToolError",
    "ToolNotFoundError",
    "StepTimeoutError",
    "StepFailedError",
    "DeadlockError",
    "InvalidTransitionError",
    "ConcurrentExecutionError",
    "CircuitOpenError",
]
