"""Multi-endpoint Solana JSON-RPC client with sticky rotation.

Each call walks the endpoint list once, starting at the cursor. Any
failure (timeout, 429, 5xx, malformed body, JSON-RPC error object)
moves on to the next endpoint; a success pins the cursor to the
endpoint that answered so later calls skip dead endpoints.
"""

import asyncio
import itertools
import time
from collections.abc import Callable
from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from tokenscan.parsers.metrics import RpcMetrics
from tokenscan.parsers.rpc.exceptions import (
    RpcError,
    RpcExhaustedError,
    RpcMalformedResponseError,
    RpcProtocolError,
    RpcRateLimitedError,
    RpcServerError,
    RpcTimeoutError,
)

DEFAULT_TIMEOUT = 12.0


class RpcClient:
    """Async JSON-RPC client over an ordered list of endpoints."""

    def __init__(
        self,
        endpoints: list[str],
        *,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
        metrics: RpcMetrics | None = None,
    ) -> None:
        if not endpoints:
            raise ValueError("RpcClient needs at least one endpoint")
        self._endpoints = list(endpoints)
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )
        self.metrics = metrics or RpcMetrics()
        self._cursor = 0
        self._cursor_lock = asyncio.Lock()
        self._ids = itertools.count(1)

    @property
    def endpoints(self) -> list[str]:
        return list(self._endpoints)

    @property
    def cursor(self) -> int:
        """Index of the endpoint the next call starts with."""
        return self._cursor

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def call(
        self,
        method: str,
        params: list[Any] | None = None,
        *,
        decode: Callable[[Any], Any] | None = None,
    ) -> Any:
        """Execute one JSON-RPC call, rotating through endpoints on failure.

        `decode` (e.g. a pydantic `model_validate`) runs on each endpoint's
        result; a result it rejects counts as a malformed response and the
        call moves on to the next endpoint.

        Raises RpcExhaustedError (chained to the last error seen) once
        every endpoint has failed.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        async with self._cursor_lock:
            start = self._cursor

        total = len(self._endpoints)
        last_error: RpcError | None = None
        for offset in range(total):
            index = (start + offset) % total
            endpoint = self._endpoints[index]
            started = time.monotonic()
            try:
                result = await self._post(endpoint, payload)
                if decode is not None:
                    result = _decode(decode, method, result, endpoint)
            except RpcError as e:
                latency_ms = (time.monotonic() - started) * 1000
                self.metrics.record_failure(endpoint, type(e).__name__, latency_ms)
                logger.debug(
                    f"[RPC] {method} failed on endpoint #{index} "
                    f"({type(e).__name__}): {e}"
                )
                last_error = e
                continue

            self.metrics.record_success(endpoint, (time.monotonic() - started) * 1000)
            async with self._cursor_lock:
                if self._cursor != index:
                    logger.debug(f"[RPC] Sticky endpoint moved {self._cursor} -> {index}")
                self._cursor = index
            return result

        assert last_error is not None
        self.metrics.record_exhausted()
        logger.warning(f"[RPC] {method} exhausted {total} endpoint(s): {last_error}")
        raise RpcExhaustedError(method, last_error, total) from last_error

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> Any:
        """Single attempt against one endpoint, mapped onto RpcError kinds."""
        try:
            response = await asyncio.wait_for(
                self._client.post(endpoint, json=payload),
                timeout=self._timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise RpcTimeoutError(
                f"timed out after {self._timeout:.0f}s", endpoint=endpoint
            ) from e
        except httpx.TransportError as e:
            raise RpcServerError(
                f"transport error: {type(e).__name__}", endpoint=endpoint
            ) from e

        if response.status_code == 429:
            raise RpcRateLimitedError("HTTP 429", endpoint=endpoint)
        if response.status_code != 200:
            raise RpcServerError(
                f"HTTP {response.status_code} {response.text[:120]}".strip(),
                endpoint=endpoint,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RpcMalformedResponseError("body is not JSON", endpoint=endpoint) from e
        if not isinstance(data, dict):
            raise RpcMalformedResponseError("body is not a JSON object", endpoint=endpoint)

        error = data.get("error")
        if error:
            if isinstance(error, dict):
                raise RpcProtocolError(
                    str(error.get("message") or "RPC error"),
                    endpoint=endpoint,
                    code=error.get("code"),
                )
            raise RpcProtocolError(str(error), endpoint=endpoint)

        if "result" not in data:
            raise RpcMalformedResponseError("missing result", endpoint=endpoint)
        return data["result"]


def _decode(decode: Callable[[Any], Any], method: str, result: Any, endpoint: str) -> Any:
    try:
        return decode(result)
    except ValidationError as e:
        raise RpcMalformedResponseError(
            f"{method} result failed validation ({e.error_count()} errors)",
            endpoint=endpoint,
        ) from e
