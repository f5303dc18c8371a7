"""Immutable fact types produced by one scan.

Everything downstream of the collectors works on these; raw RPC and
DexScreener payloads never leave the parser boundary.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class TokenMintFacts:
    address: str
    decimals: int
    supply_raw: int
    supply_ui: float
    mint_authority: str | None = None  # None = revoked
    freeze_authority: str | None = None  # None = revoked
    token_program: str | None = None

    @property
    def mint_authority_active(self) -> bool:
        return self.mint_authority is not None

    @property
    def freeze_authority_active(self) -> bool:
        return self.freeze_authority is not None


@dataclass(frozen=True)
class MintAccount:
    """Authorities as decoded from the mint account itself.

    decimals/supply_raw are informational only; getTokenSupply is the
    authoritative source.
    """

    address: str
    mint_authority: str | None
    freeze_authority: str | None
    token_program: str | None = None
    decimals: int | None = None
    supply_raw: int | None = None


@dataclass(frozen=True)
class TokenSupply:
    decimals: int
    supply_raw: int
    supply_ui: float


@dataclass(frozen=True)
class HolderAccount:
    token_account: str
    amount_ui: float
    owner: str | None = None  # None = unresolved
    percent_of_supply: float | None = None  # None = unknown


@dataclass(frozen=True)
class HolderConcentration:
    """Top-holder shares in percent; None means unknown (no usable supply)."""

    holder_count: int
    top1_pct: float | None = None
    top5_pct: float | None = None
    top20_pct: float | None = None

    @property
    def known(self) -> bool:
        return self.top1_pct is not None


@dataclass(frozen=True)
class OwnerCluster:
    owner: str
    token_accounts: tuple[str, ...]

    @property
    def size(self) -> int:
        return len(self.token_accounts)


@dataclass(frozen=True)
class PairToken:
    address: str
    name: str | None = None
    symbol: str | None = None


@dataclass(frozen=True)
class MarketPair:
    chain_id: str
    dex_id: str
    pair_address: str
    base_token: PairToken | None = None
    quote_token: PairToken | None = None
    price_usd: float | None = None
    liquidity_usd: float | None = None
    volume_24h_usd: float | None = None
    market_cap_usd: float | None = None
    fdv_usd: float | None = None
    pair_created_at: datetime | None = None
    url: str | None = None

    @property
    def best_market_cap_usd(self) -> float | None:
        """Market cap when reported, otherwise FDV."""
        if self.market_cap_usd:
            return self.market_cap_usd
        if self.fdv_usd:
            return self.fdv_usd
        return None


class MarketStatus(str, Enum):
    OK = "ok"
    NO_PAIRS = "no_pairs"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class MarketFacts:
    status: MarketStatus
    pairs_found: int = 0
    best_pair: MarketPair | None = None
    error: str | None = None

    @property
    def liquidity_usd(self) -> float | None:
        """Liquidity of the best pair; None when there is no pair at all."""
        if self.best_pair is None:
            return None
        return self.best_pair.liquidity_usd or 0.0


class RiskLabel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass(frozen=True)
class RiskContribution:
    rule: str
    points: int
    reason: str


@dataclass(frozen=True)
class RiskAssessment:
    score: int
    label: RiskLabel
    reasons: tuple[str, ...]
    contributions: tuple[RiskContribution, ...] = ()
    verdict: str = ""


@dataclass(frozen=True)
class ScanReport:
    mint: str
    mint_facts: TokenMintFacts
    holders: tuple[HolderAccount, ...]
    concentration: HolderConcentration
    clusters: tuple[OwnerCluster, ...]
    market: MarketFacts
    risk: RiskAssessment
    scanned_at: datetime
    unresolved_owners: int = 0

    @property
    def best_pair(self) -> MarketPair | None:
        return self.market.best_pair

    def to_dict(self) -> dict[str, Any]:
        """JSON-serializable view for rendering layers."""
        return _jsonable(dataclasses.asdict(self))


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value
