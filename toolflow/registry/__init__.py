"""Workflow registry: validation, versioning and storage of definitions."""

from __future__ import annotations

from .models import LoadResult, SemanticVersion
from .registry import WorkflowRegistry, load_definition_file
from .validation import (
    build_metadata,
    calculate_complexity,
    estimate_duration,
    validate_workflow,
)

__all__ = [
    "SemanticVersion",
    "LoadResult",
    "WorkflowRegistry",
    "load_definition_file",
    "validate_workflow",
    "calculate_complexity",
    "estimate_duration",
    "build_metadata",
]
