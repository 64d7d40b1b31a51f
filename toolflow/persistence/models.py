"""Row models mapping contracts onto durable storage columns."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

from ..contracts import Execution, WorkflowDefinition


def _load(value: Any) -> Any:
    """Decode a JSON column that a driver may return as text."""
    if isinstance(value, str):
        return json.loads(value)
    return value


class WorkflowRow(BaseModel):
    """Stored form of a registered definition."""

    name: str
    version: str
    definition: str
    registered_at: Optional[datetime] = None

    @classmethod
    def from_definition(cls, definition: WorkflowDefinition) -> "WorkflowRow":
        return cls(
            name=definition.name,
            version=definition.version,
            definition=definition.to_json(),
            registered_at=(
                definition.metadata.registered_at if definition.metadata else None
            ),
        )

    @staticmethod
    def to_definition(raw: Any) -> WorkflowDefinition:
        return WorkflowDefinition.model_validate(_load(raw))


class ExecutionRow(BaseModel):
    """Stored form of an execution; JSON-valued columns are encoded text."""

    execution_id: str
    workflow_name: str
    workflow_version: Optional[str] = None
    status: str
    parameters: str
    results: str
    steps: str
    result: Optional[str] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None

    @classmethod
    def from_execution(cls, execution: Execution) -> "ExecutionRow":
        data = execution.model_dump(mode="json")
        return cls(
            execution_id=execution.id,
            workflow_name=execution.workflow_name,
            workflow_version=execution.workflow_version,
            status=execution.status.value,
            parameters=json.dumps(data["parameters"]),
            results=json.dumps(data["results"]),
            steps=json.dumps(data["steps"]),
            result=json.dumps(data["result"]),
            error=json.dumps(data["error"]) if data["error"] else None,
            started_at=execution.start_time,
            completed_at=execution.end_time,
            duration_ms=execution.duration_ms,
        )

    @staticmethod
    def to_execution(row: Any) -> Execution:
        """Build an ``Execution`` from a mapping-like database row."""
        return Execution(
            id=row["execution_id"],
            workflow_name=row["workflow_name"],
            workflow_version=row["workflow_version"],
            status=row["status"],
            start_time=row["started_at"],
            end_time=row["completed_at"],
            parameters=_load(row["parameters"]) or {},
            results=_load(row["results"]) or {},
            steps=_load(row["steps"]) or {},
            result=_load(row["result"]),
            error=_load(row["error"]),
            duration_ms=row["duration_ms"],
        )
