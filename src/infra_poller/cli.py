"""Typer CLI for waiting on asynchronous cloud operations."""

from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import structlog
import typer
from pydantic import SecretStr, ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from infra_poller.config.loader import load_settings
from infra_poller.config.models import PollConfig, PollerSettings, ProbeErrorPolicy
from infra_poller.polling.errors import PollError
from infra_poller.polling.result import PollOutcome, PollResult
from infra_poller.polling.waiter import wait_for_state
from infra_poller.probes.http import HttpStateProbe
from infra_poller.servicebus.client import ArmClient, ArmError
from infra_poller.servicebus.replication import wait_for_paired_namespace_replication

logger = structlog.get_logger()
console = Console()
app = typer.Typer(name="infra-poller", help="Wait for asynchronous cloud operations")

_OUTCOME_STYLE = {
    PollOutcome.SUCCEEDED: "green",
    PollOutcome.FAILED: "red",
    PollOutcome.ERRORED: "red",
    PollOutcome.TIMED_OUT: "yellow",
    PollOutcome.CANCELLED: "yellow",
}


def _load(config_path: str | None) -> PollerSettings:
    try:
        return load_settings(Path(config_path) if config_path else None)
    except (FileNotFoundError, TypeError, ValueError) as exc:
        console.print(f"[red]Config error:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc


def _report(result: PollResult) -> None:
    style = _OUTCOME_STYLE[result.outcome]
    console.print(
        f"[{style}]{result.outcome}[/{style}] after {result.attempts} attempt(s) "
        f"in {result.elapsed:.1f}s (last state: {result.state})"
    )
    if result.reason:
        console.print(f"  {escape(result.reason)}")


@app.command()
def profiles(
    config_path: str | None = typer.Option(None, "--config", help="Poller YAML"),
) -> None:
    """List the configured poll profiles."""
    settings = _load(config_path)

    table = Table(title="Poll Profiles")
    table.add_column("Profile", style="cyan")
    table.add_column("Pending")
    table.add_column("Target")
    table.add_column("Failure")
    table.add_column("Interval (s)")
    table.add_column("Timeout (s)")
    table.add_column("On probe error")

    for name, cfg in sorted(settings.profiles.items()):
        table.add_row(
            name,
            ", ".join(sorted(cfg.pending_states)),
            ", ".join(sorted(cfg.target_states)),
            ", ".join(sorted(cfg.failure_states)),
            f"{cfg.min_interval_seconds:g}",
            f"{cfg.timeout_seconds:g}",
            str(cfg.probe_error_policy),
        )

    console.print(table)


@app.command()
def wait(
    url: str = typer.Argument(..., help="Resource URL to poll"),
    profile: str | None = typer.Option(
        None, "--profile", help="Named profile from the poller config"
    ),
    pending: list[str] = typer.Option([], "--pending", help="Pending state"),
    target: list[str] = typer.Option([], "--target", help="Target state"),
    failure: list[str] = typer.Option([], "--failure", help="Failure state"),
    interval: float | None = typer.Option(None, "--interval", help="Seconds"),
    timeout: float | None = typer.Option(None, "--timeout", help="Seconds"),
    retry_probe_errors: bool = typer.Option(
        False, "--retry-probe-errors", help="Keep polling when a probe call fails"
    ),
    state_field: str = typer.Option(
        "properties.provisioningState", "--state-field", help="Dotted JSON path"
    ),
    token: str | None = typer.Option(
        None, "--token", envvar="ARM_ACCESS_TOKEN", help="Bearer token"
    ),
    config_path: str | None = typer.Option(None, "--config", help="Poller YAML"),
) -> None:
    """Poll an HTTP resource until its state settles."""
    settings = _load(config_path)
    try:
        base = settings.profile(profile) if profile else None
        overrides: dict[str, object] = {}
        if pending:
            overrides["pending_states"] = pending
        if target:
            overrides["target_states"] = target
        if failure:
            overrides["failure_states"] = failure
        if interval is not None:
            overrides["min_interval_seconds"] = interval
        if timeout is not None:
            overrides["timeout_seconds"] = timeout
        if retry_probe_errors:
            overrides["probe_error_policy"] = ProbeErrorPolicy.RETRY
        data = {**(base.model_dump() if base else {}), **overrides}
        poll_config = PollConfig.model_validate(data)
    except (KeyError, ValidationError) as exc:
        console.print(f"[red]Invalid poll settings:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc

    headers: dict[str, str] = {}
    if token:
        headers["Authorization"] = f"Bearer {token}"

    async def _wait() -> PollResult:
        cancel = asyncio.Event()
        async with httpx.AsyncClient(
            headers=headers, timeout=settings.arm.timeout_seconds
        ) as client:
            probe = HttpStateProbe(client, url, state_field)
            task = asyncio.create_task(
                wait_for_state(poll_config, probe, cancel, description=url)
            )
            try:
                return await asyncio.shield(task)
            except asyncio.CancelledError:
                cancel.set()
                return await task

    try:
        result = asyncio.run(_wait())
    except KeyboardInterrupt as exc:
        console.print("[yellow]Cancelled[/yellow]")
        raise typer.Exit(1) from exc

    _report(result)
    if not result.succeeded:
        raise typer.Exit(1)


@app.command("servicebus-replication")
def servicebus_replication(
    resource_group: str = typer.Argument(..., help="Resource group name"),
    namespace: str = typer.Argument(..., help="Service Bus namespace name"),
    subscription: str | None = typer.Option(
        None, "--subscription", envvar="ARM_SUBSCRIPTION_ID", help="Subscription ID"
    ),
    token: str | None = typer.Option(
        None, "--token", envvar="ARM_ACCESS_TOKEN", help="Bearer token"
    ),
    timeout: float | None = typer.Option(None, "--timeout", help="Seconds"),
    config_path: str | None = typer.Option(None, "--config", help="Poller YAML"),
) -> None:
    """Wait for a Premium namespace's disaster-recovery pairing to replicate."""
    settings = _load(config_path)
    arm = settings.arm
    if subscription:
        arm = arm.model_copy(update={"subscription_id": subscription})
    if token:
        arm = arm.model_copy(update={"access_token": SecretStr(token)})
    poll_config = settings.profile("servicebus_replication")
    if timeout is not None:
        try:
            poll_config = PollConfig.model_validate(
                {**poll_config.model_dump(), "timeout_seconds": timeout}
            )
        except ValidationError as exc:
            console.print(f"[red]Invalid poll settings:[/red] {escape(str(exc))}")
            raise typer.Exit(1) from exc

    async def _wait() -> dict[str, object] | None:
        async with ArmClient(arm) as client:
            return await wait_for_paired_namespace_replication(
                client, resource_group, namespace, poll_config
            )

    try:
        alias = asyncio.run(_wait())
    except ValueError as exc:
        console.print(f"[red]Config error:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc
    except (ArmError, PollError) as exc:
        console.print(f"[red]Replication wait failed:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc

    if alias is None:
        console.print(
            f"[dim]Nothing to wait for on namespace {namespace} "
            "(not Premium or no single pairing)[/dim]"
        )
        return
    console.print(f"[green]Replication complete:[/green] {alias.get('name', '')}")


def main() -> None:
    app()
