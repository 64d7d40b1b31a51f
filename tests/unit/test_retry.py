"""Tests for the retry executor and backoff computation."""

import asyncio
import time

import pytest

from toolflow.contracts import RetryPolicy
from toolflow.errors import StepTimeoutError, ToolError, ToolNotFoundError
from toolflow.tools import LocalToolExecutor
from toolflow.utils.retry import RetryExecutor, compute_backoff


@pytest.fixture
def recorded_delays(monkeypatch):
    delays = []

    async def fake_sleep(delay_ms):
        delays.append(delay_ms)

    monkeypatch.setattr("toolflow.utils.retry.schedule_retry", fake_sleep)
    return delays


def test_compute_backoff_doubles():
    assert compute_backoff(0, 1000) == 1000
    assert compute_backoff(1, 1000) == 2000
    assert compute_backoff(3, 1000) == 8000


def test_compute_backoff_jitter_bounds():
    delay = compute_backoff(1, 100, jitter_ms=50)
    assert 200 <= delay <= 250


@pytest.mark.asyncio
async def test_fails_max_retries_times_then_succeeds(recorded_delays):
    calls = {"n": 0}

    def flaky(params):
        calls["n"] += 1
        if calls["n"] <= 3:
            raise RuntimeError("boom")
        return {"ok": True}

    executor = RetryExecutor(LocalToolExecutor({"flaky": flaky}))
    attempts = []
    outcome = await executor.run_step(
        "flaky",
        {},
        RetryPolicy(max_retries=3, retry_delay_ms=1000),
        on_attempt=attempts.append,
    )
    assert outcome.result == {"ok": True}
    assert outcome.attempts == 4
    assert attempts == [1, 2, 3, 4]
    assert recorded_delays == [1000, 2000, 4000]


@pytest.mark.asyncio
async def test_no_retry_on_success(recorded_delays):
    executor = RetryExecutor(LocalToolExecutor({"ok": lambda p: p["v"]}))
    outcome = await executor.run_step("ok", {"v": 7}, RetryPolicy(max_retries=3))
    assert outcome.result == 7
    assert outcome.attempts == 1
    assert recorded_delays == []


@pytest.mark.asyncio
async def test_exhausted_retries_surface_last_error(recorded_delays):
    calls = {"n": 0}

    async def always_fails(params):
        calls["n"] += 1
        raise ValueError(f"failure {calls['n']}")

    executor = RetryExecutor(LocalToolExecutor({"bad": always_fails}))
    with pytest.raises(ToolError) as exc_info:
        await executor.run_step("bad", {}, RetryPolicy(max_retries=2, retry_delay_ms=10))
    assert str(exc_info.value) == "failure 3"
    assert exc_info.value.tool_id == "bad"
    assert isinstance(exc_info.value.__cause__, ValueError)
    assert calls["n"] == 3


@pytest.mark.asyncio
async def test_timeout_is_retried_as_tool_error(recorded_delays):
    calls = {"n": 0}

    async def slow_then_fast(params):
        calls["n"] += 1
        if calls["n"] == 1:
            await asyncio.sleep(1)
        return "done"

    executor = RetryExecutor(LocalToolExecutor({"slow": slow_then_fast}))
    outcome = await executor.run_step(
        "slow", {}, RetryPolicy(max_retries=1, retry_delay_ms=0, timeout_ms=20)
    )
    assert outcome.result == "done"
    assert outcome.attempts == 2


@pytest.mark.asyncio
async def test_timeout_after_exhaustion_raises_step_timeout(recorded_delays):
    async def hangs(params):
        await asyncio.sleep(1)

    executor = RetryExecutor(LocalToolExecutor({"hang": hangs}))
    with pytest.raises(StepTimeoutError):
        await executor.run_step("hang", {}, RetryPolicy(max_retries=0, timeout_ms=10))


@pytest.mark.asyncio
async def test_non_retryable_error_is_not_retried(recorded_delays):
    executor = RetryExecutor(LocalToolExecutor())
    attempts = []
    with pytest.raises(ToolNotFoundError):
        await executor.run_step(
            "unknown", {}, RetryPolicy(max_retries=3), on_attempt=attempts.append
        )
    assert attempts == [1]
    assert recorded_delays == []


@pytest.mark.asyncio
async def test_blocking_sync_tool_hits_step_timeout(recorded_delays):
    def blocking(params):
        time.sleep(0.3)
        return "done"

    executor = RetryExecutor(LocalToolExecutor({"block": blocking}))
    with pytest.raises(StepTimeoutError):
        await executor.run_step("block", {}, RetryPolicy(max_retries=0, timeout_ms=50))
