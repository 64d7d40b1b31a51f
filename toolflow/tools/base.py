"""Tool executor interface consumed by the scheduler."""

from __future__ import annotations

import abc
from typing import Any, Mapping


class ToolExecutor(metaclass=abc.ABCMeta):
    """Performs the work a step requests.

    The engine treats implementations as opaque, potentially slow remote calls.
    Implementations signal failure by raising; ``toolflow.errors.ToolError``
    with ``retryable=False`` suppresses retries.
    """

    @abc.abstractmethod
    async def execute(self, tool_id: str, params: Mapping[str, Any] | Any) -> Any:
        """Invoke ``tool_id`` with resolved ``params`` and return its result."""
        raise NotImplementedError
