"""Market facts from DexScreener: chain-filtered pairs and the best of them."""

import asyncio
from decimal import Decimal

import httpx
from loguru import logger
from pydantic import ValidationError

from tokenscan.parsers.address import short_address
from tokenscan.parsers.dexscreener.client import DexScreenerClient
from tokenscan.parsers.dexscreener.models import DexScreenerPair, DexScreenerToken
from tokenscan.parsers.exceptions import MarketUnavailableError
from tokenscan.parsers.report import MarketFacts, MarketPair, MarketStatus, PairToken


def _to_float(value: Decimal | str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_token(token: DexScreenerToken | None) -> PairToken | None:
    if token is None:
        return None
    return PairToken(address=token.address, name=token.name, symbol=token.symbol)


def to_market_pair(pair: DexScreenerPair) -> MarketPair:
    return MarketPair(
        chain_id=pair.chainId,
        dex_id=pair.dexId,
        pair_address=pair.pairAddress,
        base_token=_to_token(pair.baseToken),
        quote_token=_to_token(pair.quoteToken),
        price_usd=_to_float(pair.priceUsd),
        liquidity_usd=_to_float(pair.liquidity_usd),
        volume_24h_usd=_to_float(pair.volume_24h),
        market_cap_usd=_to_float(pair.marketCap),
        fdv_usd=_to_float(pair.fdv),
        pair_created_at=pair.created_at,
        url=pair.url,
    )


def _rank_key(pair: MarketPair) -> tuple[float, float, str, str]:
    # Address/dex keys make the order total, so input order never matters
    return (
        -(pair.liquidity_usd or 0.0),
        -(pair.volume_24h_usd or 0.0),
        pair.pair_address,
        pair.dex_id,
    )


def select_best_pair(pairs: list[MarketPair]) -> MarketPair | None:
    """Highest USD liquidity, then highest 24h volume. None if empty."""
    if not pairs:
        return None
    return min(pairs, key=_rank_key)


class MarketAggregator:
    """Fetches trading pairs for a mint and reduces them to MarketFacts."""

    def __init__(self, client: DexScreenerClient, *, chain_id: str = "solana") -> None:
        self._client = client
        self._chain_id = chain_id

    async def get_pairs(self, mint: str) -> list[MarketPair]:
        """Pairs on the configured chain; all pairs if none match.

        Raises MarketUnavailableError on any fetch or decode failure.
        """
        try:
            raw_pairs = await self._client.get_token_pairs(mint)
        except (httpx.HTTPError, ValidationError, ValueError, asyncio.TimeoutError) as e:
            raise MarketUnavailableError(f"DexScreener fetch failed: {type(e).__name__}: {e}") from e

        pairs = [to_market_pair(p) for p in raw_pairs]
        on_chain = [p for p in pairs if p.chain_id == self._chain_id]
        if not on_chain and pairs:
            logger.debug(
                f"[MARKET] No {self._chain_id} pairs for {short_address(mint)}, "
                f"keeping {len(pairs)} unfiltered"
            )
            return pairs
        return on_chain

    async def fetch_market(self, mint: str) -> MarketFacts:
        """Never raises on upstream failure; degrades to an UNAVAILABLE fact."""
        try:
            pairs = await self.get_pairs(mint)
        except MarketUnavailableError as e:
            logger.warning(f"[MARKET] {short_address(mint)}: {e}")
            return MarketFacts(status=MarketStatus.UNAVAILABLE, error=str(e))

        best = select_best_pair(pairs)
        if best is None:
            return MarketFacts(status=MarketStatus.NO_PAIRS)
        return MarketFacts(status=MarketStatus.OK, pairs_found=len(pairs), best_pair=best)
