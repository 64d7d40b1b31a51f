"""In-process tool executor backed by registered callables."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, Optional

from ..errors import ToolNotFoundError
from .base import ToolExecutor

logger = logging.getLogger(__name__)

ToolFunc = Callable[[Any], Any]


def _is_async(func: ToolFunc) -> bool:
    return inspect.iscoroutinefunction(func) or inspect.iscoroutinefunction(
        getattr(func, "__call__", None)
    )


class LocalToolExecutor(ToolExecutor):
    """Dispatch tool ids to Python callables.

    Callables receive the resolved params as their single argument and may be
    sync or async. Sync callables run in a worker thread so a blocking tool
    never stalls the event loop and the step timeout can still fire.
    """

    def __init__(self, tools: Optional[Dict[str, ToolFunc]] = None) -> None:
        self._tools: Dict[str, ToolFunc] = dict(tools or {})

    def register(self, tool_id: str, func: ToolFunc) -> None:
        if tool_id in self._tools:
            logger.warning(f"Replacing existing tool '{tool_id}'")
        self._tools[tool_id] = func

    def tool(self, tool_id: Optional[str] = None) -> Callable[[ToolFunc], ToolFunc]:
        """Decorator registering a function under ``tool_id`` (default: its name)."""

        def decorator(func: ToolFunc) -> ToolFunc:
            self.register(tool_id or func.__name__, func)
            return func

        return decorator

    @property
    def tool_ids(self) -> list[str]:
        return sorted(self._tools)

    async def execute(self, tool_id: str, params: Any) -> Any:
        func = self._tools.get(tool_id)
        if func is None:
            raise ToolNotFoundError(tool_id)
        if _is_async(func):
            return await func(params)
        result = await asyncio.to_thread(func, params)
        if inspect.isawaitable(result):
            result = await result
        return result
