"""In-memory implementation of the workflow repository."""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from ..contracts import Execution, WorkflowDefinition
from ..errors import AlreadyExistsError
from .repository import WorkflowRepository


class InMemoryWorkflowRepository(WorkflowRepository):
    """Store definitions and executions in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Stored objects are deep copies so later
    mutation by callers never leaks into the store.
    """

    def __init__(self) -> None:
        self._workflows: Dict[Tuple[str, str], WorkflowDefinition] = {}
        self._executions: Dict[str, Execution] = {}

    # ------------------------------------------------------------------
    async def save_workflow(self, definition: WorkflowDefinition) -> None:
        key = (definition.name, definition.version)
        if key in self._workflows:
            raise AlreadyExistsError(
                f"Workflow '{definition.name}' version {definition.version} is already registered"
            )
        self._workflows[key] = definition.model_copy(deep=True)

    async def get_workflow(
        self, name: str, version: Optional[str] = None
    ) -> WorkflowDefinition | None:
        if version is not None:
            wf = self._workflows.get((name, version))
        else:
            matches = [wf for (n, _), wf in self._workflows.items() if n == name]
            wf = matches[-1] if matches else None
        return wf.model_copy(deep=True) if wf else None

    async def list_workflows(
        self, include_versions: bool = False
    ) -> list[WorkflowDefinition]:
        if include_versions:
            return [wf.model_copy(deep=True) for wf in self._workflows.values()]
        latest: Dict[str, WorkflowDefinition] = {}
        for (name, _), wf in self._workflows.items():
            latest[name] = wf
        return [wf.model_copy(deep=True) for wf in latest.values()]

    # ------------------------------------------------------------------
    async def create_execution(self, execution: Execution) -> None:
        if execution.id in self._executions:
            raise ValueError(f"Execution {execution.id} already stored")
        self._executions[execution.id] = execution.model_copy(deep=True)

    async def update_execution(self, execution: Execution) -> None:
        if execution.id not in self._executions:
            return
        self._executions[execution.id] = execution.model_copy(deep=True)

    async def get_execution(self, execution_id: str) -> Execution | None:
        execution = self._executions.get(execution_id)
        return execution.model_copy(deep=True) if execution else None

    async def list_executions(
        self, workflow_name: Optional[str] = None
    ) -> list[Execution]:
        executions: List[Execution] = [
            e
            for e in self._executions.values()
            if workflow_name is None or e.workflow_name == workflow_name
        ]
        return [e.model_copy(deep=True) for e in executions]
