from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..contracts import RetryPolicy
from ..errors import StepTimeoutError, ToolError
from ..tools import ToolExecutor

logger = logging.getLogger(__name__)


def compute_backoff(
    attempt: int, base_ms: float, factor: float = 2.0, jitter_ms: float = 0.0
) -> float:
    """Compute exponential backoff in milliseconds, with optional jitter."""
    delay = base_ms * factor**attempt
    if jitter_ms:
        delay += random.uniform(0, jitter_ms)
    return delay


async def schedule_retry(delay_ms: float) -> None:
    """Sleep for the computed backoff delay before retrying."""
    await asyncio.sleep(delay_ms / 1000)


@dataclass
class StepOutcome:
    """Result of a step invocation and how many attempts it took."""

    result: Any
    attempts: int


class RetryExecutor:
    """Invoke tools with a timeout, retrying failures with exponential backoff."""

    def __init__(self, tool_executor: ToolExecutor) -> None:
        self._tool_executor = tool_executor

    async def _invoke(self, tool_id: str, params: Any, timeout_ms: int) -> Any:
        try:
            return await asyncio.wait_for(
                self._tool_executor.execute(tool_id, params), timeout=timeout_ms / 1000
            )
        except asyncio.TimeoutError as e:
            raise StepTimeoutError(
                f"Step execution timeout after {timeout_ms}ms", tool_id=tool_id
            ) from e
        except ToolError:
            raise
        except Exception as e:
            raise ToolError(str(e) or type(e).__name__, tool_id=tool_id) from e

    async def run_step(
        self,
        tool_id: str,
        params: Any,
        policy: Optional[RetryPolicy] = None,
        label: Optional[str] = None,
        on_attempt: Optional[Callable[[int], None]] = None,
    ) -> StepOutcome:
        """Run ``tool_id`` until it succeeds or retries are exhausted.

        Args:
            tool_id: Identifier passed to the tool executor.
            params: Already-resolved parameters; they are not re-interpolated
                between attempts.
            policy: Retry policy; defaults to ``RetryPolicy()``.
            label: Name used in log messages (usually the step id).
            on_attempt: Called with the 1-based attempt number before each
                invocation.

        Raises:
            ToolError: The last error once retries are exhausted, or the first
                non-retryable error.
        """
        policy = policy or RetryPolicy()
        label = label or tool_id
        attempt = 0
        while True:
            if on_attempt is not None:
                on_attempt(attempt + 1)
            logger.info(f"Executing step {label} with tool {tool_id}, attempt {attempt + 1}")
            try:
                result = await self._invoke(tool_id, params, policy.timeout_ms)
                return StepOutcome(result=result, attempts=attempt + 1)
            except ToolError as e:
                if not e.retryable or attempt >= policy.max_retries:
                    raise
                delay = compute_backoff(attempt, policy.retry_delay_ms)
                logger.warning(
                    f"Step {label} failed on attempt {attempt + 1}, retrying in {delay:.0f}ms: {e}"
                )
                await schedule_retry(delay)
                attempt += 1


def step_budget_ms(policy: RetryPolicy) -> float:
    """Longest time one step can take: every attempt timing out plus all backoffs."""
    attempts = policy.max_retries + 1
    backoff = sum(compute_backoff(i, policy.retry_delay_ms) for i in range(policy.max_retries))
    return policy.timeout_ms * attempts + backoff
