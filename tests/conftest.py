"""Shared test fixtures."""

from collections.abc import Callable

import httpx
import pytest

ENDPOINTS = ["https://a.rpc.test", "https://b.rpc.test", "https://c.rpc.test"]


class RecordingTransport(httpx.MockTransport):
    """MockTransport dispatching on host and recording every request."""

    def __init__(self, handlers: dict[str, Callable]) -> None:
        self.requests: list[httpx.Request] = []
        self._handlers = handlers
        super().__init__(self._dispatch)

    async def _dispatch(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self._handlers[request.url.host](request)
        if hasattr(response, "__await__"):
            response = await response
        return response

    @property
    def hosts(self) -> list[str]:
        return [r.url.host for r in self.requests]


@pytest.fixture
def endpoints() -> list[str]:
    return list(ENDPOINTS)


@pytest.fixture
def transport_factory() -> Callable[[dict[str, Callable]], RecordingTransport]:
    return RecordingTransport
