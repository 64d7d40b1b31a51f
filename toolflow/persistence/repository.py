"""Repository abstraction for durable workflow and execution storage."""

from __future__ import annotations

from typing import Optional, Protocol

from ..contracts import Execution, WorkflowDefinition


class WorkflowRepository(Protocol):
    """Protocol for durable storage backends."""

    async def save_workflow(self, definition: WorkflowDefinition) -> None:
        """Persist a registered definition under ``(name, version)``.

        Raises:
            AlreadyExistsError: That version of the workflow is already stored.
        """

    async def get_workflow(
        self, name: str, version: Optional[str] = None
    ) -> WorkflowDefinition | None:
        """Return a specific version, or the most recently registered one."""

    async def list_workflows(
        self, include_versions: bool = False
    ) -> list[WorkflowDefinition]:
        """Return the current definition per name, or every stored version."""

    async def create_execution(self, execution: Execution) -> None:
        """Append the initial row for a new execution."""

    async def update_execution(self, execution: Execution) -> None:
        """Persist status, results, error and timestamps of an execution."""

    async def get_execution(self, execution_id: str) -> Execution | None:
        """Retrieve an execution by id."""

    async def list_executions(
        self, workflow_name: Optional[str] = None
    ) -> list[Execution]:
        """Return persisted executions, optionally for one workflow."""
