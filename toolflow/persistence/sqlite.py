"""SQLite implementation of the workflow repository."""

from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path
from typing import Any, Optional

from ..contracts import Execution, WorkflowDefinition
from ..errors import AlreadyExistsError
from .models import ExecutionRow, WorkflowRow
from .repository import WorkflowRepository

_EXECUTION_COLUMNS = (
    "execution_id, workflow_name, workflow_version, status, parameters, results, "
    "steps, result, error, started_at, completed_at, duration_ms"
)


def _iso(value: Any) -> Optional[str]:
    return value.isoformat() if value is not None else None


class SQLiteWorkflowRepository(WorkflowRepository):
    """Persist definitions and executions using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                version TEXT NOT NULL,
                definition TEXT NOT NULL,
                registered_at TEXT,
                UNIQUE (name, version)
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_executions (
                execution_id TEXT PRIMARY KEY,
                workflow_name TEXT NOT NULL,
                workflow_version TEXT,
                status TEXT NOT NULL,
                parameters TEXT,
                results TEXT,
                steps TEXT,
                result TEXT,
                error TEXT,
                started_at TEXT,
                completed_at TEXT,
                duration_ms INTEGER
            )
            """
        )
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    # ------------------------------------------------------------------
    # Workflow definitions
    async def save_workflow(self, definition: WorkflowDefinition) -> None:
        row = WorkflowRow.from_definition(definition)
        try:
            await asyncio.to_thread(
                self._execute,
                "INSERT INTO workflows (name, version, definition, registered_at) VALUES (?, ?, ?, ?)",
                row.name,
                row.version,
                row.definition,
                _iso(row.registered_at),
            )
        except sqlite3.IntegrityError as e:
            raise AlreadyExistsError(
                f"Workflow '{row.name}' version {row.version} is already registered"
            ) from e

    async def get_workflow(
        self, name: str, version: Optional[str] = None
    ) -> WorkflowDefinition | None:
        if version is not None:
            row = await asyncio.to_thread(
                self._fetchone,
                "SELECT definition FROM workflows WHERE name = ? AND version = ?",
                name,
                version,
            )
        else:
            row = await asyncio.to_thread(
                self._fetchone,
                "SELECT definition FROM workflows WHERE name = ? ORDER BY id DESC LIMIT 1",
                name,
            )
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
        rows = await asyncio.to_thread(self._fetchall, query)
        return [WorkflowRow.to_definition(r["definition"]) for r in rows]

    # ------------------------------------------------------------------
    # Executions
    async def create_execution(self, execution: Execution) -> None:
        row = ExecutionRow.from_execution(execution)
        await asyncio.to_thread(
            self._execute,
            f"INSERT INTO workflow_executions ({_EXECUTION_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            row.execution_id,
            row.workflow_name,
            row.workflow_version,
            row.status,
            row.parameters,
            row.results,
            row.steps,
            row.result,
            row.error,
            _iso(row.started_at),
            _iso(row.completed_at),
            row.duration_ms,
        )

    async def update_execution(self, execution: Execution) -> None:
        row = ExecutionRow.from_execution(execution)
        await asyncio.to_thread(
            self._execute,
            """
            UPDATE workflow_executions
            SET status = ?, results = ?, steps = ?, result = ?, error = ?,
                started_at = ?, completed_at = ?, duration_ms = ?
            WHERE execution_id = ?
            """,
            row.status,
            row.results,
            row.steps,
            row.result,
            row.error,
            _iso(row.started_at),
            _iso(row.completed_at),
            row.duration_ms,
            row.execution_id,
        )

    async def get_execution(self, execution_id: str) -> Execution | None:
        row = await asyncio.to_thread(
            self._fetchone,
            f"SELECT {_EXECUTION_COLUMNS} FROM workflow_executions WHERE execution_id = ?",
            execution_id,
        )
        if not row:
            return None
        return ExecutionRow.to_execution(row)

    async def list_executions(
        self, workflow_name: Optional[str] = None
    ) -> list[Execution]:
        if workflow_name is None:
            rows = await asyncio.to_thread(
                self._fetchall,
                f"SELECT {_EXECUTION_COLUMNS} FROM workflow_executions ORDER BY rowid",
            )
        else:
            rows = await asyncio.to_thread(
                self._fetchall,
                f"SELECT {_EXECUTION_COLUMNS} FROM workflow_executions "
                "WHERE workflow_name = ? ORDER BY rowid",
                workflow_name,
            )
        return [ExecutionRow.to_execution(r) for r in rows]
