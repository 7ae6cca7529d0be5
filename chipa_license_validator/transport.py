import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from . import __version__

logger = logging.getLogger(__name__)

API_VERSION = "v1"


@dataclass(frozen=True)
class RawResponse:
    status_code: int
    body: bytes


class TransportError(Exception):
    """
    The request never produced an HTTP response (connect failure, timeout, ...).
    """


class _BorrowedTransport(httpx.AsyncBaseTransport):
    """
    Forwards requests to a caller-owned transport without ever closing it.
    """

    def __init__(self, inner: httpx.AsyncBaseTransport):
        self._inner = inner

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self._inner.handle_async_request(request)

    async def aclose(self) -> None:
        pass


class HttpTransport:
    """
    Sends exactly one request per call to ``send``. Retrying is left to the caller.

    Each attempt runs in its own short-lived ``httpx.AsyncClient``. A
    ``transport`` supplied by the caller (a shared ``httpx.AsyncHTTPTransport``
    pool, or an ``httpx.MockTransport`` in tests) is borrowed by those
    clients and stays open until ``aclose`` is called.
    """

    def __init__(
        self,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self._transport = transport
        self._headers = {
            "Content-Type": "application/json",
            "X-Api-Version": API_VERSION,
            "User-Agent": f"chipa-license-validator/{__version__}",
        }

    async def send(
        self,
        endpoint: str,
        body: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> RawResponse:
        # The client is scoped to the attempt so its connection is released
        # even when the awaiting task is cancelled mid-request.
        transport = _BorrowedTransport(self._transport) if self._transport is not None else None
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=transport,
                headers=self._headers,
            ) as client:
                response = await client.post(endpoint, json=body, headers=headers)
                return RawResponse(status_code=response.status_code, body=response.content)
        except httpx.TimeoutException as e:
            raise TransportError(f"timed out after {self.timeout}s contacting {endpoint}") from e
        except httpx.RequestError as e:
            raise TransportError(f"{type(e).__name__} contacting {endpoint}: {e}") from e

    async def aclose(self) -> None:
        if self._transport is not None:
            await self._transport.aclose()
