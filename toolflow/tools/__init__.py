"""Tool executors."""

from .base import ToolExecutor
from .local import LocalToolExecutor

__all__ = ["ToolExecutor", "LocalToolExecutor"]
