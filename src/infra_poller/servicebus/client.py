"""Async wrapper for the Service Bus management endpoints of the ARM REST API."""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from infra_poller.config.models import ArmConfig

logger = structlog.get_logger()


class ArmError(Exception):
    """Raised when an ARM API call returns an error response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ArmClient:
    """Thin async client for Service Bus namespaces and disaster-recovery aliases."""

    def __init__(self, config: ArmConfig) -> None:
        if not config.subscription_id:
            msg = "ARM subscription_id is required"
            raise ValueError(msg)
        self._config = config
        headers: dict[str, str] = {}
        if config.access_token is not None:
            headers["Authorization"] = (
                f"Bearer {config.access_token.get_secret_value()}"
            )
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers=headers,
            timeout=config.timeout_seconds,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> ArmClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    def _namespace_path(self, resource_group: str, namespace: str) -> str:
        return (
            f"/subscriptions/{self._config.subscription_id}"
            f"/resourceGroups/{resource_group}"
            f"/providers/Microsoft.ServiceBus/namespaces/{namespace}"
        )

    async def _get(self, url: str, *, versioned: bool = True) -> dict[str, Any]:
        """GET *url*, retrying transport failures; error statuses raise ArmError."""
        params = {"api-version": self._config.api_version} if versioned else None
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(httpx.TransportError),
            stop=stop_after_attempt(self._config.retry_max_attempts),
            wait=wait_exponential(multiplier=self._config.retry_wait_seconds, max=30),
            reraise=True,
        ):
            with attempt:
                resp = await self._client.get(url, params=params)
        if resp.status_code >= 400:
            raise ArmError(
                f"GET {url} failed: {resp.status_code} {resp.text}",
                status_code=resp.status_code,
            )
        return resp.json()  # type: ignore[no-any-return]

    # -- Namespaces ------------------------------------------------------------

    async def get_namespace(self, resource_group: str, namespace: str) -> dict[str, Any]:
        return await self._get(self._namespace_path(resource_group, namespace))

    # -- Disaster recovery configs ---------------------------------------------

    async def list_disaster_recovery_configs(
        self, resource_group: str, namespace: str
    ) -> list[dict[str, Any]]:
        """Return every alias on the namespace, following ``nextLink`` pages."""
        path = f"{self._namespace_path(resource_group, namespace)}/disasterRecoveryConfigs"
        page = await self._get(path)
        values: list[dict[str, Any]] = list(page.get("value") or [])
        while page.get("nextLink"):
            page = await self._get(page["nextLink"], versioned=False)
            values.extend(page.get("value") or [])
        return values

    async def get_disaster_recovery_config(
        self, resource_group: str, namespace: str, alias: str
    ) -> dict[str, Any]:
        path = (
            f"{self._namespace_path(resource_group, namespace)}"
            f"/disasterRecoveryConfigs/{alias}"
        )
        return await self._get(path)
