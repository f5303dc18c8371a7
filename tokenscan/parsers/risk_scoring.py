"""Rule-based risk score for a scanned mint.

Additive model: every rule that matches contributes points and exactly
one reason, evaluated in a fixed order (authorities, liquidity,
concentration, clustering). The sum is clamped to 0-100 and mapped to
a LOW / MEDIUM / HIGH label. Pure: no clock, no randomness, no I/O.

All weights and cut-points live in ScoringConfig so they can be tuned
from configuration (settings.risk_config_json) without code changes.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel

from tokenscan.parsers.holder_cluster import largest_cluster_size
from tokenscan.parsers.report import (
    HolderConcentration,
    MarketFacts,
    MarketStatus,
    OwnerCluster,
    RiskAssessment,
    RiskContribution,
    RiskLabel,
    TokenMintFacts,
)

VERDICTS = {
    RiskLabel.LOW: "Clean authorities, acceptable liquidity, no strong owner clustering.",
    RiskLabel.MEDIUM: "Mixed signals. Check liquidity, concentration and owners before buying.",
    RiskLabel.HIGH: "High risk signals detected. Extreme caution recommended.",
}


class ScoringConfig(BaseModel):
    """Weights and thresholds of the rule table."""

    model_config = {"frozen": True, "extra": "forbid"}

    mint_authority_points: int = 30
    freeze_authority_points: int = 20

    no_market_points: int = 30
    # (upper bound exclusive, points), checked in order; above the last bound = 0
    liquidity_bands: tuple[tuple[float, int], ...] = (
        (10_000.0, 20),
        (50_000.0, 10),
        (250_000.0, 5),
    )

    top1_high_pct: float = 20.0  # strictly above
    top1_high_points: int = 20
    top1_medium_pct: float = 10.0  # strictly above
    top1_medium_points: int = 10

    top5_high_pct: float = 50.0  # at or above
    top5_high_points: int = 15
    top5_medium_pct: float = 35.0  # strictly above
    top5_medium_points: int = 8

    top20_high_pct: float = 80.0  # strictly above
    top20_high_points: int = 10

    unknown_concentration_points: int = 10

    cluster_points_per_account: int = 4
    cluster_min_points: int = 4
    cluster_max_points: int = 16

    high_threshold: int = 60
    medium_threshold: int = 35


DEFAULT_SCORING = ScoringConfig()


@dataclass(frozen=True)
class RiskFactors:
    """The subset of scan facts the score depends on."""

    mint_authority_active: bool
    freeze_authority_active: bool
    liquidity_usd: float | None  # None = no market pair
    market_status: MarketStatus = MarketStatus.OK
    top1_pct: float | None = None
    top5_pct: float | None = None
    top20_pct: float | None = None
    largest_cluster: int = 0
    holders_observed: int = 0

    @classmethod
    def from_facts(
        cls,
        mint_facts: TokenMintFacts,
        concentration: HolderConcentration,
        market: MarketFacts,
        clusters: list[OwnerCluster],
    ) -> RiskFactors:
        return cls(
            mint_authority_active=mint_facts.mint_authority_active,
            freeze_authority_active=mint_facts.freeze_authority_active,
            liquidity_usd=market.liquidity_usd,
            market_status=market.status,
            top1_pct=concentration.top1_pct,
            top5_pct=concentration.top5_pct,
            top20_pct=concentration.top20_pct,
            largest_cluster=largest_cluster_size(clusters),
            holders_observed=concentration.holder_count,
        )

    @property
    def concentration_known(self) -> bool:
        return self.top1_pct is not None and self.top5_pct is not None and self.top20_pct is not None


def label_for(score: int, config: ScoringConfig = DEFAULT_SCORING) -> RiskLabel:
    if score >= config.high_threshold:
        return RiskLabel.HIGH
    if score >= config.medium_threshold:
        return RiskLabel.MEDIUM
    return RiskLabel.LOW


def _authority_rules(f: RiskFactors, cfg: ScoringConfig) -> list[RiskContribution]:
    rules = []
    if f.mint_authority_active:
        rules.append(RiskContribution(
            "mint_authority", cfg.mint_authority_points,
            "Mint authority is set (supply can be inflated).",
        ))
    else:
        rules.append(RiskContribution("mint_authority", 0, "Mint authority revoked."))
    if f.freeze_authority_active:
        rules.append(RiskContribution(
            "freeze_authority", cfg.freeze_authority_points,
            "Freeze authority is set (holder accounts can be frozen).",
        ))
    else:
        rules.append(RiskContribution("freeze_authority", 0, "Freeze authority revoked."))
    return rules


def _liquidity_rule(f: RiskFactors, cfg: ScoringConfig) -> RiskContribution:
    if f.liquidity_usd is None:
        if f.market_status == MarketStatus.UNAVAILABLE:
            reason = "Market data unavailable; liquidity unknown."
        else:
            reason = "No market pair found."
        return RiskContribution("liquidity", cfg.no_market_points, reason)

    liq = f.liquidity_usd
    for upper, points in cfg.liquidity_bands:
        if liq < upper:
            return RiskContribution("liquidity", points, f"Liquidity ${liq:,.0f} is below ${upper:,.0f}.")
    return RiskContribution("liquidity", 0, f"Liquidity strong (${liq:,.0f}).")


def _concentration_rules(f: RiskFactors, cfg: ScoringConfig) -> list[RiskContribution]:
    if not f.concentration_known:
        return [RiskContribution(
            "concentration_unknown", cfg.unknown_concentration_points,
            "Holder concentration unknown (supply or holder list unavailable).",
        )]

    rules = []
    top1, top5, top20 = f.top1_pct, f.top5_pct, f.top20_pct
    if top1 > cfg.top1_high_pct:
        rules.append(RiskContribution("top1_share", cfg.top1_high_points, f"Top holder owns {top1:.2f}% of supply (high)."))
    elif top1 > cfg.top1_medium_pct:
        rules.append(RiskContribution("top1_share", cfg.top1_medium_points, f"Top holder owns {top1:.2f}% of supply (medium)."))
    else:
        rules.append(RiskContribution("top1_share", 0, f"Top holder owns {top1:.2f}% of supply (low)."))

    if top5 >= cfg.top5_high_pct:
        rules.append(RiskContribution("top5_share", cfg.top5_high_points, f"Top 5 holders own {top5:.2f}% of supply (high)."))
    elif top5 > cfg.top5_medium_pct:
        rules.append(RiskContribution("top5_share", cfg.top5_medium_points, f"Top 5 holders own {top5:.2f}% of supply (medium)."))
    else:
        rules.append(RiskContribution("top5_share", 0, f"Top 5 holders own {top5:.2f}% of supply (low)."))

    if top20 > cfg.top20_high_pct:
        rules.append(RiskContribution(
            "top20_share", cfg.top20_high_points,
            f"Top {f.holders_observed} holders own {top20:.2f}% of supply.",
        ))
    return rules


def _cluster_rule(f: RiskFactors, cfg: ScoringConfig) -> RiskContribution | None:
    size = f.largest_cluster
    if size < 2:
        return None
    points = min(max(size * cfg.cluster_points_per_account, cfg.cluster_min_points), cfg.cluster_max_points)
    return RiskContribution(
        "owner_cluster", points,
        f"One owner controls {size} of the top {f.holders_observed or size} holder accounts.",
    )


def score_risk(factors: RiskFactors, config: ScoringConfig = DEFAULT_SCORING) -> RiskAssessment:
    """Deterministic score, label and ordered reasons for the given facts."""
    contributions = _authority_rules(factors, config)
    contributions.append(_liquidity_rule(factors, config))
    contributions.extend(_concentration_rules(factors, config))
    cluster = _cluster_rule(factors, config)
    if cluster is not None:
        contributions.append(cluster)

    score = max(0, min(100, sum(c.points for c in contributions)))
    label = label_for(score, config)
    return RiskAssessment(
        score=score,
        label=label,
        reasons=tuple(c.reason for c in contributions),
        contributions=tuple(contributions),
        verdict=VERDICTS[label],
    )
