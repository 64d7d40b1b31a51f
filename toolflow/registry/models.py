"""Pydantic models used by the workflow registry."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class SemanticVersion(BaseModel):
    """Semantic version with ``major.minor.patch`` components."""

    major: int
    minor: int
    patch: int

    @classmethod
    def parse(cls, value: str) -> "SemanticVersion":
        """Parse a dotted semantic version string."""
        parts = str(value).split(".")
        if len(parts) != 3:
            raise ValueError("Semantic version must have three components")
        major, minor, patch = (int(p) for p in parts)
        if min(major, minor, patch) < 0:
            raise ValueError("Semantic version components must be non-negative")
        return cls(major=major, minor=minor, patch=patch)

    def bump_patch(self) -> "SemanticVersion":
        return SemanticVersion(major=self.major, minor=self.minor, patch=self.patch + 1)

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return f"{self.major}.{self.minor}.{self.patch}"


class LoadResult(BaseModel):
    """Outcome of loading one workflow file from a directory."""

    file: str
    success: bool
    version: Optional[str] = None
    errors: List[str] = Field(default_factory=list)
