"""Structural validation and derived metadata for workflow definitions."""

from __future__ import annotations

from typing import Any, List, Mapping

from ..constants import BASE_STEP_DURATION_MS, COMPLEXITY_MULTIPLIERS
from ..contracts import WorkflowDefinition, WorkflowMetadata
from .models import SemanticVersion

_TOOL_KEYS = ("tool", "tool_id", "toolId")


def validate_workflow(data: Any) -> List[str]:
    """Return every structural violation in ``data``; empty means valid."""
    if isinstance(data, WorkflowDefinition):
        data = data.model_dump()
    if not isinstance(data, Mapping):
        return ["Workflow definition must be a mapping"]

    errors: List[str] = []
    name = data.get("name")
    if not name or not isinstance(name, str):
        errors.append("Workflow name is required")
    elif ":" in name:
        # ":" separates name and version in cache keys
        errors.append(f"Workflow name must not contain ':': {name}")

    version = data.get("version")
    if version is not None:
        try:
            SemanticVersion.parse(version)
        except ValueError:
            errors.append(f"Invalid semantic version: {version}")

    limit = data.get("concurrency_limit", data.get("concurrencyLimit"))
    if limit is not None and (
        isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0
    ):
        errors.append("concurrency_limit must be a positive integer")

    steps = data.get("steps")
    if not isinstance(steps, list):
        errors.append("Workflow must have steps array")
        return errors

    all_ids = {
        s["id"]
        for s in steps
        if isinstance(s, Mapping) and isinstance(s.get("id"), str) and s["id"]
    }
    seen: set[str] = set()
    for index, step in enumerate(steps):
        if not isinstance(step, Mapping):
            errors.append(f"Step at index {index} must be a mapping")
            continue
        step_id = step.get("id")
        if not step_id or not isinstance(step_id, str):
            errors.append(f"Step at index {index} missing id")
            step_id = f"#{index}"
        elif step_id in seen:
            errors.append(f"Duplicate step id: {step_id}")
        else:
            seen.add(step_id)

        if not any(step.get(key) for key in _TOOL_KEYS):
            errors.append(f"Step {step_id} missing tool")

        dependencies = step.get("dependencies") or []
        if not isinstance(dependencies, list):
            errors.append(f"Step {step_id} dependencies must be a list")
            continue
        for dep_id in dependencies:
            if not isinstance(dep_id, str) or dep_id not in all_ids:
                errors.append(f"Step {step_id} has invalid dependency: {dep_id}")

    return errors


def calculate_complexity(definition: WorkflowDefinition) -> str:
    """Coarse classification from step and dependency-edge counts."""
    step_count = len(definition.steps)
    dependency_count = definition.dependency_count
    if step_count <= 3 and dependency_count <= 2:
        return "simple"
    if step_count <= 10 and dependency_count <= 8:
        return "medium"
    return "complex"


def estimate_duration(definition: WorkflowDefinition) -> int:
    """Rough duration estimate in milliseconds from per-step complexity hints."""
    return sum(
        BASE_STEP_DURATION_MS * COMPLEXITY_MULTIPLIERS.get(step.complexity or "simple", 1)
        for step in definition.steps
    )


def build_metadata(definition: WorkflowDefinition) -> WorkflowMetadata:
    return WorkflowMetadata(
        step_count=len(definition.steps),
        complexity=calculate_complexity(definition),
        estimated_duration_ms=estimate_duration(definition),
    )
