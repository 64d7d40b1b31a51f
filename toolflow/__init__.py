"""Toolflow: dependency-ordered workflow orchestration over external tools."""

from .cache import get_cache
from .circuit import CircuitBreaker
from .contracts import (
    Execution,
    ExecutionOptions,
    ExecutionResult,
    ExecutionStatus,
    RetryPolicy,
    StepSpec,
    StepStatus,
    WorkflowDefinition,
)
from .engine import Orchestrator, create_orchestrator
from .interpolation import resolve
from .persistence import get_repository
from .registry import WorkflowRegistry
from .scheduler import DagScheduler
from .state import ExecutionStateStore
from .tools import LocalToolExecutor, ToolExecutor

__version__ = "0.1.0"
__all__ = [
    "CircuitBreaker",
    "DagScheduler",
    "Execution",
    "ExecutionOptions",
    "ExecutionResult",
    "ExecutionStateStore",
    "ExecutionStatus",
    "LocalToolExecutor",
    "Orchestrator",
    "RetryPolicy",
    "StepSpec",
    "StepStatus",
    "ToolExecutor",
    "WorkflowDefinition",
    "WorkflowRegistry",
    "create_orchestrator",
    "get_cache",
    "get_repository",
    "resolve",
]
