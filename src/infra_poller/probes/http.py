"""HTTP status probe — reads an operation's state from a JSON resource."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from infra_poller.polling.errors import ProbeError
from infra_poller.polling.result import Observation

logger = structlog.get_logger()


def extract_state(body: Any, path: str) -> str:
    """Walk a dotted *path* (e.g. ``properties.provisioningState``) in *body*."""
    value = body
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            msg = f"State field '{path}' not present in response"
            raise ProbeError(msg)
        value = value[part]
    if not isinstance(value, str):
        msg = f"State field '{path}' is not a string: {value!r}"
        raise ProbeError(msg)
    return value


class HttpStateProbe:
    """Async probe that GETs a resource and reports the state at *state_field*.

    Non-2xx responses raise ``httpx.HTTPStatusError``; the poller decides
    whether that ends the session.  Transport retries are the client's job.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        state_field: str = "properties.provisioningState",
        *,
        params: dict[str, str] | None = None,
    ) -> None:
        self._client = client
        self._url = url
        self._state_field = state_field
        self._params = params

    async def __call__(self) -> Observation:
        # httpx replaces a query string already in the URL when params is passed
        if self._params:
            resp = await self._client.get(self._url, params=self._params)
        else:
            resp = await self._client.get(self._url)
        resp.raise_for_status()
        try:
            body = resp.json()
        except ValueError as exc:
            msg = f"Response from {self._url} is not JSON"
            raise ProbeError(msg) from exc
        state = extract_state(body, self._state_field)
        logger.debug("http_probe.observed", url=self._url, state=state)
        return Observation(body, state)
