"""Simple example showing workflow registration and execution."""

import asyncio

from toolflow import LocalToolExecutor, create_orchestrator

tools = LocalToolExecutor()


@tools.tool("customers.lookup")
async def lookup_customer(params):
    await asyncio.sleep(0.1)
    return {"id": params["customer_id"], "plan": params["plan"], "email": "ada@example.com"}


@tools.tool("accounts.create")
def create_account(params):
    return {"account_id": f"acct-{params['customer']}", "tier": params["tier"]}


@tools.tool("notifications.send")
def send_notification(params):
    return {"delivered": True, "message": params["message"]}


WORKFLOW = {
    "name": "customer-onboarding",
    "description": "Create an account and welcome a new customer",
    "concurrencyLimit": 2,
    "steps": [
        {
            "id": "customer",
            "tool": "customers.lookup",
            "params": {"customer_id": "${context.customer_id}", "plan": "${context.plan}"},
        },
        {
            "id": "account",
            "tool": "accounts.create",
            "params": {"customer": "${steps.customer.id}", "tier": "${steps.customer.plan}"},
            "dependencies": ["customer"],
        },
        {
            "id": "welcome",
            "tool": "notifications.send",
            "params": {"message": "Welcome! Your account is ${steps.account.account_id}"},
            "dependencies": ["account"],
        },
    ],
    "output": {
        "account": "${steps.account.account_id}",
        "notified": "${steps.welcome.delivered}",
    },
}


async def main():
    """Basic workflow execution example."""
    orchestrator = create_orchestrator(tools)

    registration = await orchestrator.register_workflow(WORKFLOW)
    print(
        f"Registered {WORKFLOW['name']} v{registration.version} "
        f"({registration.metadata.complexity})"
    )

    outcome = await orchestrator.execute_workflow(
        "customer-onboarding", {"customer_id": "cust-123", "plan": "premium"}
    )
    print(f"Execution {outcome.execution_id} finished in {outcome.duration_ms}ms")
    print(f"Result: {outcome.result}")

    execution = await orchestrator.get_execution(outcome.execution_id)
    for step_id, state in execution.steps.items():
        print(f"  {step_id}: {state.status.value} ({state.attempts} attempt(s))")


if __name__ == "__main__":
    asyncio.run(main())
