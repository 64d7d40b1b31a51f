"""Example showing retries, persisted failures and the circuit breaker."""

import asyncio

from toolflow import ExecutionOptions, LocalToolExecutor, RetryPolicy, create_orchestrator
from toolflow.errors import CircuitOpenError, StepFailedError

tools = LocalToolExecutor()
attempts = {"count": 0}


@tools.tool("inventory.reserve")
def reserve(params):
    attempts["count"] += 1
    if attempts["count"] < 3:
        raise ConnectionError("inventory service unavailable")
    return {"reserved": params["sku"]}


@tools.tool("payments.charge")
def charge(params):
    raise RuntimeError("card declined")


WORKFLOW = {
    "name": "checkout",
    "steps": [
        {"id": "reserve", "tool": "inventory.reserve", "params": {"sku": "${context.sku}"}},
        {
            "id": "charge",
            "tool": "payments.charge",
            "params": {"item": "${steps.reserve.reserved}"},
            "dependencies": ["reserve"],
        },
    ],
}


async def main():
    orchestrator = create_orchestrator(tools)
    await orchestrator.register_workflow(WORKFLOW)
    options = ExecutionOptions(
        execution_id="checkout-1",
        retry=RetryPolicy(max_retries=2, retry_delay_ms=100, timeout_ms=2000),
    )

    try:
        await orchestrator.execute_workflow("checkout", {"sku": "sku-42"}, options=options)
    except StepFailedError as e:
        print(f"Execution failed at step {e.step_id}: {e}")

    execution = await orchestrator.get_execution("checkout-1")
    print(f"Status: {execution.status.value}")
    print(f"Partial results: {execution.results}")
    print(f"Reserve attempts: {execution.steps['reserve'].attempts}")

    # Keep failing until the breaker refuses new executions
    no_retry = ExecutionOptions(retry=RetryPolicy(max_retries=0))
    for _ in range(orchestrator.circuit_breaker.threshold):
        try:
            await orchestrator.execute_workflow("checkout", {"sku": "sku-42"}, options=no_retry)
        except StepFailedError:
            pass
        except CircuitOpenError as e:
            print(e)
            break


if __name__ == "__main__":
    asyncio.run(main())
