"""PostgreSQL implementation of the workflow repository."""

from __future__ import annotations

from typing import Optional

import asyncpg

from ..contracts import Execution, WorkflowDefinition
from ..errors import AlreadyExistsError
from .models import ExecutionRow, WorkflowRow
from .repository import WorkflowRepository

_EXECUTION_COLUMNS = (
    "execution_id, workflow_name, workflow_version, status, parameters, results, "
    "steps, result, error, started_at, completed_at, duration_ms"
)


class PostgresWorkflowRepository(WorkflowRepository):
    """Persist definitions and executions using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                id SERIAL PRIMARY KEY,
                name TEXT NOT NULL,
                version TEXT NOT NULL,
                definition JSONB NOT NULL,
                registered_at TIMESTAMPTZ,
                UNIQUE (name, version)
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_executions (
                execution_id TEXT PRIMARY KEY,
                workflow_name TEXT NOT NULL,
                workflow_version TEXT,
                status TEXT NOT NULL,
                parameters JSONB,
                results JSONB,
                steps JSONB,
                result JSONB,
                error JSONB,
                started_at TIMESTAMPTZ,
                completed_at TIMESTAMPTZ,
                duration_ms INTEGER
            )
            """
        )

    # ------------------------------------------------------------------
    async def save_workflow(self, definition: WorkflowDefinition) -> None:
        row = WorkflowRow.from_definition(definition)
        conn = await self._connect()
        try:
            await conn.execute(
                "INSERT INTO workflows (name, version, definition, registered_at) VALUES ($1, $2, $3, $4)",
                row.name,
                row.version,
                row.definition,
                row.registered_at,
            )
        except asyncpg.UniqueViolationError as e:
            raise AlreadyExistsError(
                f"Workflow '{row.name}' version {row.version} is already registered"
            ) from e
        finally:
            await conn.close()

    async def get_workflow(
        self, name: str, version: Optional[str] = None
    ) -> WorkflowDefinition | None:
        conn = await self._connect()
        try:
            if version is not None:
                row = await conn.fetchrow(
                    "SELECT definition FROM workflows WHERE name = $1 AND version = $2",
                    name,
                    version,
                )
            else:
                row = await conn.fetchrow(
                    "SELECT definition FROM workflows WHERE name = $1 ORDER BY id DESC LIMIT 1",
                    name,
                )
        finally:
            await conn.close()
        if not row:
            return None
        return WorkflowRow.to_definition(row["definition"])

    async def list_workflows(
        self, include_versions: bool = False
    ) -> list[WorkflowDefinition]:
        if include_versions:
            query = "SELECT definition FROM workflows ORDER BY id"
        else:
            query = (
                "SELECT definition FROM workflows WHERE id IN "
                "(SELECT MAX(id) FROM workflows GROUP BY name) ORDER BY id"
            )
        conn = await self._connect()
        try:
            rows = await conn.fetch(query)
        finally:
            await conn.close()
        return [WorkflowRow.to_definition(r["definition"]) for r in rows]

    # ------------------------------------------------------------------
    async def create_execution(self, execution: Execution) -> None:
        row = ExecutionRow.from_execution(execution)
        conn = await self._connect()
        try:
            await conn.execute(
                f"INSERT INTO workflow_executions ({_EXECUTION_COLUMNS}) "
                "VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)",
                row.execution_id,
                row.workflow_name,
                row.workflow_version,
                row.status,
                row.parameters,
                row.results,
                row.steps,
                row.result,
                row.error,
                row.started_at,
                row.completed_at,
                row.duration_ms,
            )
        finally:
            await conn.close()

    async def update_execution(self, execution: Execution) -> None:
        row = ExecutionRow.from_execution(execution)
        conn = await self._connect()
        try:
            await conn.execute(
                """
                UPDATE workflow_executions
                SET status = $1, results = $2, steps = $3, result = $4, error = $5,
                    started_at = $6, completed_at = $7, duration_ms = $8
                WHERE execution_id = $9
                """,
                row.status,
                row.results,
                row.steps,
                row.result,
                row.error,
                row.started_at,
                row.completed_at,
                row.duration_ms,
                row.execution_id,
            )
        finally:
            await conn.close()

    async def get_execution(self, execution_id: str) -> Execution | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                f"SELECT {_EXECUTION_COLUMNS} FROM workflow_executions WHERE execution_id = $1",
                execution_id,
            )
        finally:
            await conn.close()
        if not row:
            return None
        return ExecutionRow.to_execution(row)

    async def list_executions(
        self, workflow_name: Optional[str] = None
    ) -> list[Execution]:
        conn = await self._connect()
        try:
            if workflow_name is None:
                rows = await conn.fetch(
                    f"SELECT {_EXECUTION_COLUMNS} FROM workflow_executions ORDER BY started_at"
                )
            else:
                rows = await conn.fetch(
                    f"SELECT {_EXECUTION_COLUMNS} FROM workflow_executions "
                    "WHERE workflow_name = $1 ORDER BY started_at",
                    workflow_name,
                )
        finally:
            await conn.close()
        return [ExecutionRow.to_execution(r) for r in rows]
