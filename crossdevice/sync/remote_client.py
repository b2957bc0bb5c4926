"""HTTP client a satellite uses to talk to its hub.

Handles bounded timeouts and retry with exponential backoff. Failures are
reported as ``RemoteResult`` values, never raised to the caller.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from ..config import NetworkConfig
from ..errors import (
    FailureKind,
    MalformedResponseError,
    RemoteError,
    RemoteRejectedError,
    RemoteUnreachableError,
)
from ..models import JSONValue

logger = logging.getLogger(__name__)


@dataclass
class RemoteResult:
    """Outcome of a call to the hub."""

    ok: bool
    value: Any = None
    failure: FailureKind | None = None
    error: str | None = None

    @classmethod
    def from_error(cls, error: RemoteError) -> "RemoteResult":
        return cls(ok=False, failure=error.kind, error=str(error))


class RemoteClient:
    """Thin async client for a hub's ``/api`` surface.

    Not-found and unreachable are only loosely distinguished: a missing key
    comes back as ``ok=True`` with a ``None`` value, while every transport
    or payload problem is a failure.
    """

    def __init__(
        self,
        base_url: str,
        network: NetworkConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the remote client.

        Args:
            base_url: Hub URL (e.g., "http://192.168.1.100:3000").
            network: Timeouts and retry settings.
            transport: Optional httpx transport, mainly for tests.
        """
        self.base_url = base_url.rstrip("/")
        self.network = network or NetworkConfig()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Shared async HTTP client, created on first use."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.network.timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def check_health(self, timeout: float | None = None) -> bool:
        """Probe ``/api/health`` once within a bounded time.

        Args:
            timeout: Seconds to wait; defaults to the configured health timeout.

        Returns:
            True if the hub answered with a 2xx status in time.
        """
        timeout = timeout if timeout is not None else self.network.health_timeout_seconds
        try:
            response = await self.client.get("/api/health", timeout=timeout)
        except httpx.HTTPError as e:
            logger.debug(f"Health check failed for {self.base_url}: {e!r}")
            return False

        if response.is_success:
            return True
        logger.debug(f"Health check for {self.base_url} returned {response.status_code}")
        return False

    async def read(self, key: str | None = None) -> RemoteResult:
        """Read one key, or the whole document when ``key`` is None."""
        path = f"/api/data/{quote(key, safe='')}" if key is not None else "/api/data"
        try:
            payload = await self._request_with_retry("GET", path)
            return RemoteResult(ok=True, value=self._payload_data(payload))
        except RemoteError as e:
            logger.error(f"Remote read error: {e}")
            return RemoteResult.from_error(e)

    async def write(self, key: str, value: JSONValue) -> RemoteResult:
        """Write a key. ``ok`` reflects the hub's own write outcome."""
        path = f"/api/data/{quote(key, safe='')}"
        try:
            payload = await self._request_with_retry("POST", path, {"value": value})
            return self._write_outcome(payload)
        except RemoteError as e:
            logger.error(f"Remote write error: {e}")
            return RemoteResult.from_error(e)

    async def read_project(self, name: str) -> RemoteResult:
        path = f"/api/project/{quote(name, safe='')}"
        try:
            payload = await self._request_with_retry("GET", path)
            return RemoteResult(ok=True, value=self._payload_data(payload) or {})
        except RemoteError as e:
            logger.error(f"Remote project read error: {e}")
            return RemoteResult.from_error(e)

    async def write_project(
        self,
        name: str,
        fields: dict[str, JSONValue],
        device: str | None = None,
    ) -> RemoteResult:
        path = f"/api/project/{quote(name, safe='')}"
        body: dict[str, Any] = {"data": fields}
        if device:
            body["device"] = device
        try:
            payload = await self._request_with_retry("POST", path, body)
            return self._write_outcome(payload)
        except RemoteError as e:
            logger.error(f"Remote project write error: {e}")
            return RemoteResult.from_error(e)

    async def _request_with_retry(
        self,
        method: str,
        path: str,
        json_data: Any = None,
    ) -> dict[str, Any]:
        """Make an HTTP request with exponential backoff retry.

        Connection errors, timeouts and 5xx responses are retried; 4xx
        responses and malformed payloads are not.

        Returns:
            The decoded JSON object.

        Raises:
            RemoteUnreachableError: All attempts failed to reach the hub.
            RemoteRejectedError: The hub answered with an error status.
            MalformedResponseError: The response body was not a JSON object.
        """
        attempts = max(1, self.network.retry_attempts)
        backoff = self.network.retry_backoff_seconds
        last_error: RemoteError | None = None

        for attempt in range(attempts):
            try:
                response = await self.client.request(method, path, json=json_data)
            except httpx.TimeoutException as e:
                last_error = RemoteUnreachableError(f"Timeout calling {path}: {e!r}")
                logger.warning(f"Request timeout, attempt {attempt + 1}/{attempts}")
            except httpx.TransportError as e:
                last_error = RemoteUnreachableError(f"Cannot reach {self.base_url}: {e!r}")
                logger.warning(f"Connection failed, attempt {attempt + 1}/{attempts}")
            else:
                if response.status_code >= 500:
                    last_error = RemoteRejectedError(
                        f"HTTP {response.status_code} from {path}",
                        status_code=response.status_code,
                    )
                    logger.warning(
                        f"Server error {response.status_code}, "
                        f"attempt {attempt + 1}/{attempts}"
                    )
                elif response.status_code >= 400:
                    raise RemoteRejectedError(
                        f"HTTP {response.status_code} from {path}: {response.text}",
                        status_code=response.status_code,
                    )
                else:
                    return self._decode(response)

            if attempt < attempts - 1 and backoff > 0:
                await asyncio.sleep(backoff)
                backoff *= 2

        assert last_error is not None
        raise last_error

    @staticmethod
    def _decode(response: httpx.Response) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Response is not JSON: {e}") from e
        if not isinstance(payload, dict):
            raise MalformedResponseError(
                f"Expected a JSON object, got {type(payload).__name__}"
            )
        return payload

    @staticmethod
    def _payload_data(payload: dict[str, Any]) -> Any:
        if payload.get("success") is False:
            raise RemoteRejectedError(payload.get("error") or "Hub reported failure")
        if "data" not in payload:
            raise MalformedResponseError("Response is missing 'data'")
        return payload["data"]

    @staticmethod
    def _write_outcome(payload: dict[str, Any]) -> RemoteResult:
        success = payload.get("success")
        if not isinstance(success, bool):
            raise MalformedResponseError("Response is missing boolean 'success'")
        if not success:
            return RemoteResult(
                ok=False,
                failure=FailureKind.REJECTED,
                error=payload.get("error") or "Hub rejected the write",
            )
        return RemoteResult(ok=True)
