from datetime import UTC, datetime
from decimal import Decimal

from pydantic import BaseModel


class DexScreenerToken(BaseModel):
    address: str
    name: str | None = None
    symbol: str | None = None

    model_config = {"extra": "ignore"}


class DexScreenerVolume(BaseModel):
    h24: Decimal | None = None

    model_config = {"extra": "ignore"}


class DexScreenerLiquidity(BaseModel):
    usd: Decimal | None = None

    model_config = {"extra": "ignore"}


class DexScreenerPair(BaseModel):
    chainId: str = ""
    dexId: str = ""
    url: str | None = None
    pairAddress: str = ""
    labels: list[str] = []
    baseToken: DexScreenerToken | None = None
    quoteToken: DexScreenerToken | None = None
    priceNative: str | None = None
    priceUsd: str | None = None
    volume: DexScreenerVolume | None = None
    liquidity: DexScreenerLiquidity | None = None
    fdv: Decimal | None = None
    marketCap: Decimal | None = None
    pairCreatedAt: int | None = None  # unix ms

    model_config = {"extra": "ignore"}

    @property
    def liquidity_usd(self) -> Decimal | None:
        return self.liquidity.usd if self.liquidity else None

    @property
    def volume_24h(self) -> Decimal | None:
        return self.volume.h24 if self.volume else None

    @property
    def created_at(self) -> datetime | None:
        if not self.pairCreatedAt:
            return None
        try:
            return datetime.fromtimestamp(self.pairCreatedAt / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None


class DexScreenerTokenPairs(BaseModel):
    """Envelope of /latest/dex/tokens/{address}; `pairs` is null for unknown tokens."""

    schemaVersion: str | None = None
    pairs: list[DexScreenerPair] | None = None

    model_config = {"extra": "ignore"}
