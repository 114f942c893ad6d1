"""Wait for geo-disaster-recovery pairing of a Service Bus namespace."""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

import structlog

from infra_poller.config.models import PollConfig
from infra_poller.polling.errors import ProbeError
from infra_poller.polling.result import Observation
from infra_poller.polling.waiter import wait_for_state
from infra_poller.servicebus.client import ArmError

logger = structlog.get_logger()

PREMIUM_SKU = "premium"


class NamespaceClient(Protocol):
    """The subset of ARM calls the replication wait needs."""

    async def get_namespace(
        self, resource_group: str, namespace: str
    ) -> dict[str, Any]: ...

    async def list_disaster_recovery_configs(
        self, resource_group: str, namespace: str
    ) -> list[dict[str, Any]]: ...

    async def get_disaster_recovery_config(
        self, resource_group: str, namespace: str, alias: str
    ) -> dict[str, Any]: ...


async def wait_for_paired_namespace_replication(
    client: NamespaceClient,
    resource_group: str,
    namespace: str,
    config: PollConfig,
    cancel: asyncio.Event | None = None,
) -> dict[str, Any] | None:
    """Block until the namespace's single disaster-recovery alias has replicated.

    Only Premium namespaces support pairing, and only a namespace with
    exactly one alias is waited on; in every other case there is nothing to
    wait for and ``None`` is returned.  On success the final alias resource
    is returned.  Any other outcome raises the matching ``PollError``.
    """
    ns = await client.get_namespace(resource_group, namespace)
    sku = str((ns.get("sku") or {}).get("name", ""))
    if sku.casefold() != PREMIUM_SKU:
        logger.debug(
            "servicebus.replication_not_applicable",
            namespace=namespace,
            sku=sku,
        )
        return None

    aliases = await client.list_disaster_recovery_configs(resource_group, namespace)
    if len(aliases) != 1:
        logger.debug(
            "servicebus.replication_alias_count",
            namespace=namespace,
            count=len(aliases),
        )
        return None

    alias = aliases[0].get("name")
    if not alias:
        msg = (
            f"disaster-recovery config for namespace {namespace!r} "
            f"(resource group {resource_group!r}) has no name"
        )
        raise ArmError(msg)
    target = (
        f"Service Bus Namespace Disaster Recovery Configs {alias!r} "
        f"(Namespace {namespace!r} / Resource Group {resource_group!r})"
    )

    async def probe() -> Observation:
        read = await client.get_disaster_recovery_config(
            resource_group, namespace, alias
        )
        state = (read.get("properties") or {}).get("provisioningState")
        if state is None:
            msg = f"waiting for replication of {target}: provisioning state is nil"
            raise ProbeError(msg)
        detail = None
        if str(state).casefold() == "failed":
            detail = f"replication for {target} failed"
        return Observation(read, state, detail)

    logger.info("servicebus.replication_wait", namespace=namespace, alias=alias)
    result = await wait_for_state(
        config, probe, cancel, description=f"replication of alias {alias}"
    )
    return result.raise_for_outcome()  # type: ignore[no-any-return]
