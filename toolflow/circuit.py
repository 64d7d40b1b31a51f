"""Per-workflow circuit breaker."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from .constants import DEFAULT_CIRCUIT_RESET_TIMEOUT_MS, DEFAULT_CIRCUIT_THRESHOLD

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


@dataclass
class CircuitBreakerState:
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    last_failure_time: float = 0.0


class CircuitBreaker:
    """Track execution failures per workflow name and refuse new executions
    of a workflow that keeps failing.

    State lives in this instance only and is rebuilt from zero on restart.
    ``clock`` returns seconds and defaults to ``time.monotonic``.
    """

    def __init__(
        self,
        threshold: int = DEFAULT_CIRCUIT_THRESHOLD,
        reset_timeout_ms: int = DEFAULT_CIRCUIT_RESET_TIMEOUT_MS,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.threshold = threshold
        self.reset_timeout_ms = reset_timeout_ms
        self._clock = clock or time.monotonic
        self._states: Dict[str, CircuitBreakerState] = {}

    def get_state(self, workflow_name: str) -> Optional[CircuitBreakerState]:
        return self._states.get(workflow_name)

    def is_open(self, workflow_name: str) -> bool:
        state = self._states.get(workflow_name)
        if state is None or state.state is not CircuitState.OPEN:
            return False
        elapsed_ms = (self._clock() - state.last_failure_time) * 1000
        if elapsed_ms >= self.reset_timeout_ms:
            state.state = CircuitState.HALF_OPEN
            logger.info(f"Circuit breaker half-open for workflow: {workflow_name}")
            return False
        return True

    def record_failure(self, workflow_name: str) -> None:
        state = self._states.setdefault(workflow_name, CircuitBreakerState())
        state.failure_count += 1
        state.last_failure_time = self._clock()
        if state.state is CircuitState.HALF_OPEN or state.failure_count >= self.threshold:
            if state.state is not CircuitState.OPEN:
                logger.warning(f"Circuit breaker opened for workflow: {workflow_name}")
            state.state = CircuitState.OPEN

    def record_success(self, workflow_name: str) -> None:
        state = self._states.get(workflow_name)
        if state is None:
            return
        if state.state is not CircuitState.CLOSED:
            logger.info(f"Circuit breaker closed for workflow: {workflow_name}")
        state.failure_count = 0
        state.state = CircuitState.CLOSED
