"""Shared fixtures for license validator tests.

Stub license servers are built on ``httpx.MockTransport`` so that no test
touches the network.
"""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from chipa_license_validator import LicenseClient, RetryPolicy
from chipa_license_validator.bridge import LoopThread

LICENSE = "550e8400-e29b-41d4-a716-446655440000"
APPLICATION = "my-app"
BASE_URL = "https://license.example.com"

# Tiny delays and no jitter keep retry tests fast and deterministic.
FAST_POLICY = RetryPolicy(max_attempts=3, base_delay=0.001, max_delay=0.01, jitter=0.0)


class StubServer:
    """Records every request and answers with ``respond``."""

    def __init__(self, respond: Callable[[httpx.Request], Any]) -> None:
        self.respond = respond
        self.requests: list[httpx.Request] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def body(self, index: int = 0) -> dict[str, Any]:
        return json.loads(self.requests[index].content)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def make_server(status_code: int = 200, payload: Any = None) -> StubServer:
    if payload is None:
        payload = {"success": "ok", "token": "tok-123"}
    return StubServer(lambda request: httpx.Response(status_code, json=payload))


def make_client(server: StubServer, **kwargs: Any) -> LicenseClient:
    kwargs.setdefault("retry_policy", FAST_POLICY)
    return LicenseClient(BASE_URL, transport=server.transport, **kwargs)


@pytest.fixture
def loop_thread():
    """A private background loop, stopped after the test."""
    thread = LoopThread(name="test-license-loop")
    yield thread
    thread.stop()
