"""Command line interface for managing toolflow workflows and executions."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer

from toolflow.cache import get_cache
from toolflow.config import load_config
from toolflow.errors import AlreadyExistsError, ValidationError
from toolflow.persistence import get_repository
from toolflow.registry import WorkflowRegistry, load_definition_file, validate_workflow
from toolflow.state import ExecutionStateStore

app = typer.Typer(help="CLI for toolflow workflows")

# Command groups
workflow_app = typer.Typer(help="Commands for managing workflow definitions")
execution_app = typer.Typer(help="Commands for inspecting executions")

app.add_typer(workflow_app, name="workflow")
app.add_typer(execution_app, name="execution")


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", help="Logging level for toolflow"),
) -> None:
    """Toolflow CLI entry point."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_registry() -> WorkflowRegistry:
    config = load_config()
    return WorkflowRegistry(
        get_cache(config=config),
        get_repository(config=config),
        cache_ttl_s=config.engine.workflow_cache_ttl_s,
        default_concurrency_limit=config.engine.concurrency_limit,
    )


def _build_state_store() -> ExecutionStateStore:
    config = load_config()
    return ExecutionStateStore(
        get_cache(config=config),
        get_repository(config=config),
        cache_ttl_s=config.engine.execution_cache_ttl_s,
    )


def _read_definition(path: Path) -> dict:
    try:
        return load_definition_file(path)
    except (OSError, ValueError) as exc:
        typer.secho(f"Could not read {path}: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)


@workflow_app.command("register")
def workflow_register(
    path: Path,
    version: Optional[str] = typer.Option(None, help="Version to register under"),
    overwrite: bool = typer.Option(False, help="Register a new version of an existing name"),
) -> None:
    """
    Register a workflow definition from a JSON or YAML file.

    Example:
        toolflow workflow register ./workflows/onboarding.json
        toolflow workflow register ./onboarding.yaml --overwrite --version 2.0.0
    """
    data = _read_definition(path)
    registry = _build_registry()
    try:
        result = asyncio.run(registry.register(data, version=version, overwrite=overwrite))
    except ValidationError as exc:
        typer.secho("Invalid workflow:", fg=typer.colors.RED)
        for error in exc.errors:
            typer.echo(f"  - {error}")
        raise typer.Exit(code=1)
    except AlreadyExistsError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(
        f"Registered {data['name']} v{result.version} "
        f"({result.metadata.step_count} steps, {result.metadata.complexity})"
    )


@workflow_app.command("validate")
def workflow_validate(path: Path) -> None:
    """Check a workflow definition file without registering it."""
    errors = validate_workflow(_read_definition(path))
    if errors:
        typer.secho("Invalid workflow:", fg=typer.colors.RED)
        for error in errors:
            typer.echo(f"  - {error}")
        raise typer.Exit(code=1)
    typer.echo("Workflow is valid")


@workflow_app.command("load")
def workflow_load(
    directory: Path,
    validate_only: bool = typer.Option(False, help="Only validate the files"),
    overwrite: bool = typer.Option(False, help="Register new versions of existing names"),
    max_concurrent: int = typer.Option(5, help="Files processed at the same time"),
) -> None:
    """
    Register every workflow file (*.json, *.yaml, *.yml) in a directory.

    Example:
        toolflow workflow load ./workflows --validate-only
    """
    if not directory.is_dir():
        typer.secho("Specified path is not a directory", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    registry = _build_registry()
    results = asyncio.run(
        registry.register_from_directory(
            directory,
            validate_only=validate_only,
            max_concurrent=max_concurrent,
            overwrite=overwrite,
        )
    )
    if not results:
        typer.echo("No workflow files found.")
        return
    for item in results:
        status = "ok" if item.success else "failed"
        suffix = f" v{item.version}" if item.version else ""
        typer.echo(f"{item.file}: {status}{suffix}")
        for error in item.errors:
            typer.echo(f"  - {error}")
    if not all(item.success for item in results):
        raise typer.Exit(code=1)


@workflow_app.command("list")
def workflow_list(
    all_versions: bool = typer.Option(False, help="Include every registered version"),
) -> None:
    """List registered workflows with their version and step count."""
    registry = _build_registry()
    workflows = asyncio.run(registry.list_all(include_versions=all_versions))
    if not workflows:
        typer.echo("No workflows found")
        return
    for wf in workflows:
        steps = wf.metadata.step_count if wf.metadata else len(wf.steps)
        typer.echo(f"{wf.name}\t{wf.version}\t{steps} steps")


@workflow_app.command("show")
def workflow_show(
    name: str, version: Optional[str] = typer.Option(None, help="Specific version")
) -> None:
    """Show a workflow definition and its derived metadata."""
    registry = _build_registry()
    wf = asyncio.run(registry.get(name, version))
    if wf is None:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    typer.echo(f"Workflow {wf.name} v{wf.version}")
    if wf.metadata:
        typer.echo(
            f"Complexity: {wf.metadata.complexity}, "
            f"estimated duration: {wf.metadata.estimated_duration_ms}ms"
        )
    typer.echo(f"Concurrency limit: {wf.concurrency_limit}")
    for step in wf.steps:
        deps = ", ".join(step.dependencies) or "-"
        typer.echo(f"- {step.id}: {step.tool} (depends on: {deps})")


@execution_app.command("list")
def execution_list(
    workflow: Optional[str] = typer.Option(None, help="Only executions of this workflow"),
) -> None:
    """List executions with their current status."""
    store = _build_state_store()
    executions = asyncio.run(store.list(workflow))
    if not executions:
        typer.echo("No executions found")
        return
    for ex in executions:
        typer.echo(f"{ex.id}\t{ex.workflow_name}\t{ex.status.value}")


@execution_app.command("show")
def execution_show(execution_id: str) -> None:
    """
    Show status, step progress, results and error of an execution.

    Example:
        toolflow execution show 3f1c...
        # Output: Execution 3f1c...: failed (workflow onboarding v1.0.0)
        #         - fetch: completed, 1 attempt(s)
        #         - notify: failed, 4 attempt(s): Step execution timeout after 30000ms
    """
    store = _build_state_store()
    ex = asyncio.run(store.get(execution_id))
    if ex is None:
        typer.echo("Execution not found")
        raise typer.Exit(code=1)
    typer.echo(
        f"Execution {ex.id}: {ex.status.value} "
        f"(workflow {ex.workflow_name} v{ex.workflow_version})"
    )
    for step_id, state in ex.steps.items():
        line = f"- {step_id}: {state.status.value}, {state.attempts} attempt(s)"
        if state.error:
            line += f": {state.error}"
        typer.echo(line)
    if ex.results:
        typer.echo(f"Results: {json.dumps(ex.results, default=str)}")
    if ex.error:
        typer.echo(f"Error: {ex.error.message}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
