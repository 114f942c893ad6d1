#!/usr/bin/env python3
"""Runnable demo: two simulated operations polled concurrently.

No cloud access needed:
    python examples/concurrent_waits_demo.py
"""

from __future__ import annotations

import asyncio
import itertools

from rich.console import Console

from infra_poller.config.loader import load_settings
from infra_poller.polling.result import Observation
from infra_poller.polling.waiter import wait_for_state

console = Console()


def simulated_operation(*states: str):
    """Return a probe that walks through *states*, then repeats the last one."""
    steps = itertools.chain(states, itertools.repeat(states[-1]))

    async def probe() -> Observation:
        state = next(steps)
        return Observation({"provisioningState": state}, state)

    return probe


async def main() -> None:
    settings = load_settings()
    # 1. Start from the built-in ARM profile, shortened for the demo
    config = settings.profile("arm_async_operation").model_copy(
        update={"min_interval_seconds": 0.2, "timeout_seconds": 3.0}
    )

    # 2. Poll two unrelated operations side by side
    results = await asyncio.gather(
        wait_for_state(
            config,
            simulated_operation("Accepted", "InProgress", "Succeeded"),
            description="create-namespace",
        ),
        wait_for_state(
            config,
            simulated_operation("Accepted", "Running", "Failed"),
            description="pair-namespace",
        ),
    )

    # 3. Report
    for name, result in zip(("create-namespace", "pair-namespace"), results):
        console.print(f"[cyan]{name}[/cyan] → {result.outcome} ({result.attempts} probes)")


if __name__ == "__main__":
    asyncio.run(main())
