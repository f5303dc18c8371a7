"""Scan orchestrator: one mint address in, one immutable ScanReport out.

Task tree per scan:

    validate address (no I/O)
    ├── on-chain branch: mint facts ∥ largest holders → owner resolution
    └── market branch:   DexScreener pairs → best pair
    join → clusters, concentration → risk score → ScanReport

An on-chain failure is terminal and cancels the market branch; a market
failure is absorbed into MarketFacts(status=UNAVAILABLE). Nothing is
cached between scans; the RPC client's sticky endpoint is the only state
that outlives a call.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime

from loguru import logger

from config.settings import Settings
from tokenscan.parsers.address import short_address, validate_mint_address
from tokenscan.parsers.dexscreener.client import DexScreenerClient
from tokenscan.parsers.holder_cluster import compute_concentration, find_owner_clusters, with_percentages
from tokenscan.parsers.market import MarketAggregator
from tokenscan.parsers.metrics import RpcMetrics
from tokenscan.parsers.onchain import DEFAULT_HOLDER_LIMIT, OnChainCollector, make_owner_resolver
from tokenscan.parsers.report import HolderAccount, ScanReport, TokenMintFacts
from tokenscan.parsers.risk_scoring import DEFAULT_SCORING, RiskFactors, ScoringConfig, score_risk
from tokenscan.parsers.rpc.client import RpcClient
from tokenscan.utils.tasks import gather_in_order


class TokenScanner:
    """Coordinates collectors, clustering and scoring for one mint per call."""

    def __init__(
        self,
        collector: OnChainCollector,
        market: MarketAggregator,
        *,
        top_n: int = DEFAULT_HOLDER_LIMIT,
        scoring: ScoringConfig = DEFAULT_SCORING,
        closers: list | None = None,
        rpc_metrics: RpcMetrics | None = None,
    ) -> None:
        self._collector = collector
        self._market = market
        self._top_n = top_n
        self._scoring = scoring
        self._closers = closers or []
        self._rpc_metrics = rpc_metrics

    async def __aenter__(self) -> TokenScanner:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._rpc_metrics is not None:
            logger.info(f"[RPC] {self._rpc_metrics.format_stats_line()}")
        for close in self._closers:
            await close()

    async def scan(self, mint: str) -> ScanReport:
        """Run a full scan.

        Raises AddressValidationError before any I/O, NotAMintError or
        RpcExhaustedError when the on-chain facts cannot be read.
        """
        mint = validate_mint_address(mint)
        logger.info(f"[SCAN] Scanning {short_address(mint)}")

        (mint_facts, holders), market = await gather_in_order(
            self._collect_onchain(mint),
            self._market.fetch_market(mint),
        )

        holders = with_percentages(holders, mint_facts.supply_ui)
        concentration = compute_concentration(holders, mint_facts.supply_ui)
        clusters = find_owner_clusters(holders)
        risk = score_risk(
            RiskFactors.from_facts(mint_facts, concentration, market, clusters),
            self._scoring,
        )
        unresolved = sum(1 for h in holders if h.owner is None)

        logger.info(
            f"[SCAN] {short_address(mint)}: score={risk.score} {risk.label.value} "
            f"market={market.status.value} holders={len(holders)} "
            f"clusters={len(clusters)} unresolved_owners={unresolved}"
        )
        return ScanReport(
            mint=mint,
            mint_facts=mint_facts,
            holders=tuple(holders),
            concentration=concentration,
            clusters=tuple(clusters),
            market=market,
            risk=risk,
            scanned_at=datetime.now(UTC),
            unresolved_owners=unresolved,
        )

    async def _collect_onchain(self, mint: str) -> tuple[TokenMintFacts, list[HolderAccount]]:
        mint_facts, holders = await gather_in_order(
            self._collector.get_mint_facts(mint),
            self._collector.get_largest_holders(mint, limit=self._top_n),
        )
        owners = await self._collector.resolve_owners([h.token_account for h in holders])
        holders = [replace(h, owner=owners.get(h.token_account)) for h in holders]
        return mint_facts, holders


def build_scanner(settings: Settings) -> TokenScanner:
    """Wire clients, collectors and scoring from configuration."""
    rpc = RpcClient(settings.rpc_endpoints, timeout=settings.rpc_timeout_sec)
    dexscreener = DexScreenerClient(
        max_rps=settings.dexscreener_max_rps,
        timeout=settings.dexscreener_timeout_sec,
    )
    scoring = DEFAULT_SCORING
    if settings.risk_config_json:
        scoring = ScoringConfig.model_validate_json(settings.risk_config_json)

    collector = OnChainCollector(
        rpc,
        owner_resolver=make_owner_resolver(
            rpc,
            settings.owner_resolution,
            settings.owner_resolution_concurrency,
        ),
    )
    return TokenScanner(
        collector,
        MarketAggregator(dexscreener, chain_id=settings.chain_id),
        top_n=settings.top_holders_limit,
        scoring=scoring,
        closers=[rpc.close, dexscreener.close],
        rpc_metrics=rpc.metrics,
    )
