import asyncio
from typing import Any
from urllib.parse import quote

import httpx
from loguru import logger

from tokenscan.parsers.dexscreener.models import DexScreenerPair, DexScreenerTokenPairs
from tokenscan.parsers.rate_limiter import RateLimiter

BASE_URL = "https://api.dexscreener.com"
MAX_RETRIES = 3
RETRY_DELAYS = [1.0, 2.0, 4.0]


def _retry_delay(attempt: int, response: httpx.Response | None = None) -> float:
    """Backoff for `attempt`, stretched to Retry-After when the server sends one."""
    delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
    retry_after = response.headers.get("Retry-After") if response is not None else None
    if retry_after:
        try:
            delay = max(float(retry_after), delay)
        except ValueError:
            pass
    return delay


class DexScreenerClient:
    """Async client for the public DexScreener token-pairs endpoint (no auth)."""

    def __init__(
        self,
        rate_limiter: RateLimiter | None = None,
        max_rps: float = 1.0,
        timeout: float = 12.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=BASE_URL,
            timeout=timeout,
            headers={"Accept": "application/json"},
        )
        self._rate_limiter = rate_limiter or RateLimiter(max_rps)

    async def _get_json(self, path: str) -> Any:
        """GET with retries on 429, timeouts and connection errors.

        The last attempt is not retried: its HTTP or transport error
        propagates to the caller.
        """
        for attempt in range(MAX_RETRIES + 1):
            last_attempt = attempt == MAX_RETRIES
            await self._rate_limiter.acquire()
            try:
                response = await self._client.get(path)
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if last_attempt:
                    raise
                delay = _retry_delay(attempt)
                logger.debug(f"[MARKET] DexScreener {type(e).__name__}, retrying in {delay}s")
                await asyncio.sleep(delay)
                continue

            if response.status_code == 429 and not last_attempt:
                delay = _retry_delay(attempt, response)
                logger.debug(f"[MARKET] DexScreener 429, retrying in {delay}s")
                await asyncio.sleep(delay)
                continue
            response.raise_for_status()
            return response.json()

    async def get_token_pairs(self, token_address: str) -> list[DexScreenerPair]:
        """All pairs trading the token, across every chain DexScreener tracks."""
        data = await self._get_json(f"/latest/dex/tokens/{quote(token_address, safe='')}")
        if isinstance(data, list):
            return [DexScreenerPair.model_validate(p) for p in data]
        if not isinstance(data, dict):
            return []
        return DexScreenerTokenPairs.model_validate(data).pairs or []

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
