"""
Remote sync client.

Sends the bulk upsert payload to the remote endpoint over HTTP. The
remote accepts or rejects the whole payload; there are no partial-batch
semantics.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import aiohttp

from ..exceptions import SyncError

logger = logging.getLogger(__name__)


class RemoteEndpoint(Protocol):
    """Anything that can accept a bulk sync payload."""

    async def push(self, payload: dict[str, list[dict[str, Any]]]) -> Any: ...


class RemoteSyncClient:
    """HTTP client for the remote bulk upsert endpoint.

    Example:
        >>> client = RemoteSyncClient("https://api.example.com/sync", timeout=15)
        >>> ack = await client.push({"businesses": [...], "articles": [...]})
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            endpoint: URL accepting a JSON POST
            timeout: Total deadline for one request, in seconds
            headers: Extra headers sent with every request
        """
        self.endpoint = endpoint
        self.timeout = timeout
        self.headers = dict(headers or {})

    def __repr__(self) -> str:
        return f"RemoteSyncClient(endpoint={self.endpoint!r})"

    async def push(self, payload: dict[str, list[dict[str, Any]]]) -> Any:
        """POST the payload and return the parsed acknowledgement.

        Returns:
            Response body parsed as JSON, or the raw text if it is not JSON

        Raises:
            SyncError: On transport failure, timeout, or a non-2xx status
        """
        client_timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=client_timeout) as session:
                async with session.post(
                    self.endpoint, json=payload, headers=self.headers
                ) as response:
                    body = await response.text()
                    if not 200 <= response.status < 300:
                        raise SyncError(
                            f"Remote rejected sync: HTTP {response.status}",
                            status=response.status,
                        )
                    return _parse_acknowledgement(body)
        # aiohttp's timeout errors are also ClientErrors, so check them first
        except TimeoutError as e:
            raise SyncError(
                f"Sync request to {self.endpoint} timed out after {self.timeout}s", cause=e
            ) from e
        except aiohttp.ClientError as e:
            raise SyncError(f"Sync request to {self.endpoint} failed: {e}", cause=e) from e


def _parse_acknowledgement(body: str) -> Any:
    if not body.strip():
        return None
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        logger.debug("Sync acknowledgement is not JSON, returning raw text")
        return body
