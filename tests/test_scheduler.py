import asyncio
import time

import pytest

from toolflow.contracts import Execution, RetryPolicy, StepStatus, WorkflowDefinition
from toolflow.errors import DeadlockError, StepFailedError
from toolflow.scheduler import DagScheduler, dependency_depth, execution_budget_ms
from toolflow.tools import LocalToolExecutor

NO_RETRY = RetryPolicy(max_retries=0, retry_delay_ms=0, timeout_ms=5000)


def _workflow(steps, **extra):
    return WorkflowDefinition(name="wf", steps=steps, **extra)


def _execution(parameters=None):
    return Execution(workflow_name="wf", parameters=parameters or {})


@pytest.mark.asyncio
async def test_dependencies_complete_before_dependents():
    order = []
    tools = LocalToolExecutor()

    async def record(params):
        await asyncio.sleep(params.get("delay", 0))
        order.append(params["name"])
        return {"name": params["name"]}

    tools.register("record", record)
    definition = _workflow(
        [
            {"id": "d", "tool": "record", "params": {"name": "d"}, "dependencies": ["b", "c"]},
            {"id": "a", "tool": "record", "params": {"name": "a", "delay": 0.02}},
            {"id": "b", "tool": "record", "params": {"name": "b"}, "dependencies": ["a"]},
            {"id": "c", "tool": "record", "params": {"name": "c"}},
        ]
    )
    execution = _execution()
    result = await DagScheduler(tools, NO_RETRY).run(definition, execution)

    assert order.index("a") < order.index("b") < order.index("d")
    assert order.index("c") < order.index("d")
    assert set(result) == {"a", "b", "c", "d"}
    assert execution.status.value == "completed"
    assert all(s.status is StepStatus.COMPLETED for s in execution.steps.values())


@pytest.mark.asyncio
async def test_step_results_feed_dependent_params_and_output():
    tools = LocalToolExecutor(
        {
            "t1": lambda params: {"value": 1},
            "t2": lambda params: {"value": params["input"] + 1},
        }
    )
    definition = _workflow(
        [
            {"id": "a", "tool": "t1"},
            {"id": "b", "tool": "t2", "params": {"input": "${steps.a.value}"}, "dependencies": ["a"]},
        ],
        output="${steps.b.value}",
    )
    execution = _execution()
    result = await DagScheduler(tools, NO_RETRY).run(definition, execution)
    assert result == 2
    assert execution.result == 2
    assert execution.results == {"a": {"value": 1}, "b": {"value": 2}}


@pytest.mark.asyncio
async def test_concurrency_limit_is_never_exceeded():
    in_flight = 0
    peak = 0

    async def slow(params):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.02)
        in_flight -= 1
        return params["n"]

    tools = LocalToolExecutor({"slow": slow})
    definition = _workflow(
        [{"id": f"s{i}", "tool": "slow", "params": {"n": i}} for i in range(5)],
        concurrency_limit=2,
    )
    result = await DagScheduler(tools, NO_RETRY).run(definition, _execution())
    assert peak == 2
    assert result == {f"s{i}": i for i in range(5)}


@pytest.mark.asyncio
async def test_cycle_raises_deadlock_naming_cycle_steps():
    tools = LocalToolExecutor({"t": lambda params: "ok"})
    definition = _workflow(
        [
            {"id": "a", "tool": "t", "dependencies": ["b"]},
            {"id": "b", "tool": "t", "dependencies": ["a"]},
            {"id": "free", "tool": "t"},
        ]
    )
    execution = _execution()
    with pytest.raises(DeadlockError) as exc_info:
        await DagScheduler(tools, NO_RETRY).run(definition, execution)
    assert exc_info.value.pending_steps == ["a", "b"]
    assert "a, b" in str(exc_info.value)
    assert execution.status.value == "failed"
    assert execution.error.type == "DeadlockError"
    assert execution.results == {"free": "ok"}


@pytest.mark.asyncio
async def test_failure_stops_dispatch_but_lets_in_flight_steps_finish():
    async def fails(params):
        raise RuntimeError("boom")

    async def slow(params):
        await asyncio.sleep(0.05)
        return "slow-done"

    calls = []

    def never(params):
        calls.append(params)
        return "should not run"

    tools = LocalToolExecutor({"fails": fails, "slow": slow, "never": never})
    definition = _workflow(
        [
            {"id": "bad", "tool": "fails"},
            {"id": "sibling", "tool": "slow"},
            {"id": "after", "tool": "never", "dependencies": ["bad"]},
        ]
    )
    execution = _execution()
    with pytest.raises(StepFailedError) as exc_info:
        await DagScheduler(tools, NO_RETRY).run(definition, execution)

    assert exc_info.value.step_id == "bad"
    assert calls == []
    assert execution.status.value == "failed"
    assert execution.error.step_id == "bad"
    assert execution.error.type == "ToolError"
    assert execution.results == {"sibling": "slow-done"}
    assert execution.steps["bad"].status is StepStatus.FAILED
    assert execution.steps["bad"].error == "boom"
    assert execution.steps["after"].status is StepStatus.PENDING


@pytest.mark.asyncio
async def test_progress_callback_sees_transitions():
    tools = LocalToolExecutor({"t": lambda params: 1})
    definition = _workflow([{"id": "a", "tool": "t"}])
    seen = []

    async def on_progress(execution):
        seen.append(execution.status.value)

    await DagScheduler(tools, NO_RETRY).run(definition, _execution(), on_progress=on_progress)
    assert seen[0] == "running"
    assert len(seen) >= 2


@pytest.mark.asyncio
async def test_empty_workflow_completes_with_empty_result():
    execution = _execution()
    result = await DagScheduler(LocalToolExecutor(), NO_RETRY).run(_workflow([]), execution)
    assert result == {}
    assert execution.status.value == "completed"


@pytest.mark.asyncio
async def test_blocking_tool_does_not_stall_sibling_steps():
    finished = []

    def blocking(params):
        time.sleep(0.2)
        finished.append("blocking")
        return "slow"

    async def quick(params):
        await asyncio.sleep(0.01)
        finished.append("quick")
        return "fast"

    tools = LocalToolExecutor({"blocking": blocking, "quick": quick})
    definition = _workflow(
        [{"id": "slow", "tool": "blocking"}, {"id": "fast", "tool": "quick"}]
    )
    result = await DagScheduler(tools, NO_RETRY).run(definition, _execution())
    assert finished == ["quick", "blocking"]
    assert result == {"slow": "slow", "fast": "fast"}


def test_dependency_depth_counts_longest_chain():
    definition = _workflow(
        [
            {"id": "a", "tool": "t"},
            {"id": "b", "tool": "t", "dependencies": ["a", "a"]},
            {"id": "c", "tool": "t", "dependencies": ["b"]},
            {"id": "d", "tool": "t", "dependencies": ["a"]},
            {"id": "x", "tool": "t", "dependencies": ["y"]},
            {"id": "y", "tool": "t", "dependencies": ["x"]},
        ]
    )
    assert dependency_depth(definition) == 3


def test_execution_budget_covers_retries_backoff_and_waves():
    policy = RetryPolicy(max_retries=3, retry_delay_ms=1000, timeout_ms=30000)
    # per step: 4 attempts * 30s + 1s + 2s + 4s of backoff
    chain = _workflow(
        [
            {"id": "a", "tool": "t"},
            {"id": "b", "tool": "t", "dependencies": ["a"]},
        ]
    )
    assert execution_budget_ms(chain, policy) == 127000 * (1 + 2)

    wide = _workflow(
        [{"id": f"s{i}", "tool": "t"} for i in range(5)], concurrency_limit=2
    )
    assert execution_budget_ms(wide, policy) == 127000 * (3 + 1)
    assert execution_budget_ms(_workflow([]), policy) == 127000
