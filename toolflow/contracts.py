"""Core data contracts for the toolflow orchestration engine."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field

from .constants import (
    DEFAULT_CONCURRENCY_LIMIT,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY_MS,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_WORKFLOW_VERSION,
)
from .errors import InvalidTransitionError

if TYPE_CHECKING:
    from .config import RetryConfig


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ExecutionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)


class StepSpec(BaseModel):
    """Defines one step in a workflow."""

    id: str
    tool: str = Field(validation_alias=AliasChoices("tool", "tool_id", "toolId"))
    params: Any = Field(default_factory=dict)
    dependencies: List[str] = Field(default_factory=list)
    complexity: Optional[str] = None


class WorkflowMetadata(BaseModel):
    """Metadata derived from a definition at registration time."""

    step_count: int
    complexity: str
    estimated_duration_ms: int
    registered_at: datetime = Field(default_factory=utcnow)


class WorkflowDefinition(BaseModel):
    """A named, versioned DAG of steps."""

    name: str
    version: str = DEFAULT_WORKFLOW_VERSION
    description: Optional[str] = None
    steps: List[StepSpec] = Field(default_factory=list)
    output: Any = None
    concurrency_limit: int = Field(
        default=DEFAULT_CONCURRENCY_LIMIT,
        gt=0,
        validation_alias=AliasChoices("concurrency_limit", "concurrencyLimit"),
    )
    metadata: Optional[WorkflowMetadata] = None

    @property
    def step_ids(self) -> List[str]:
        return [step.id for step in self.steps]

    @property
    def dependency_count(self) -> int:
        """Total number of dependency edges across all steps."""
        return sum(len(step.dependencies) for step in self.steps)

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "WorkflowDefinition":
        return cls.model_validate_json(data)


class RetryPolicy(BaseModel):
    """Retry, backoff and timeout settings for a single step invocation."""

    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    retry_delay_ms: int = Field(default=DEFAULT_RETRY_DELAY_MS, ge=0)
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)

    @classmethod
    def from_config(cls, config: "RetryConfig") -> "RetryPolicy":
        return cls(**config.model_dump())


class ExecutionOptions(BaseModel):
    """Per-call options for ``Orchestrator.execute_workflow``."""

    execution_id: Optional[str] = None
    retry: Optional[RetryPolicy] = None
    lock_timeout_ms: Optional[int] = Field(default=None, gt=0)


class StepState(BaseModel):
    """Observable progress of one step within an execution."""

    status: StepStatus = StepStatus.PENDING
    attempts: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    error: Optional[str] = None


class ExecutionErrorDetail(BaseModel):
    message: str
    type: str
    step_id: Optional[str] = None


class Execution(BaseModel):
    """One runtime instance of a workflow."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workflow_name: str
    workflow_version: Optional[str] = None
    status: ExecutionStatus = ExecutionStatus.PENDING
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)
    results: Dict[str, Any] = Field(default_factory=dict)
    steps: Dict[str, StepState] = Field(default_factory=dict)
    result: Any = None
    error: Optional[ExecutionErrorDetail] = None
    duration_ms: Optional[int] = None

    def _check_not_terminal(self, target: ExecutionStatus) -> None:
        if self.status.is_terminal:
            raise InvalidTransitionError(
                f"Execution {self.id} is {self.status.value}; cannot move to {target.value}"
            )

    def mark_running(self) -> None:
        self._check_not_terminal(ExecutionStatus.RUNNING)
        self.status = ExecutionStatus.RUNNING
        self.start_time = self.start_time or utcnow()

    def mark_completed(self, result: Any) -> None:
        self._check_not_terminal(ExecutionStatus.COMPLETED)
        self.status = ExecutionStatus.COMPLETED
        self.result = result
        self._finish()

    def mark_failed(
        self, message: str, error_type: str, step_id: Optional[str] = None
    ) -> None:
        self._check_not_terminal(ExecutionStatus.FAILED)
        self.status = ExecutionStatus.FAILED
        self.error = ExecutionErrorDetail(
            message=message, type=error_type, step_id=step_id
        )
        self._finish()

    def _finish(self) -> None:
        self.end_time = utcnow()
        if self.start_time is not None:
            delta = self.end_time - self.start_time
            self.duration_ms = int(delta.total_seconds() * 1000)

    def to_json(self) -> str:
        """Serialize execution to JSON."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "Execution":
        """Deserialize execution from JSON."""
        return cls.model_validate_json(data)


class RegistrationResult(BaseModel):
    success: bool
    version: str
    metadata: WorkflowMetadata


class ExecutionResult(BaseModel):
    execution_id: str
    result: Any = None
    duration_ms: Optional[int] = None
