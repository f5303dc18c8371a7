"""Holder clustering and concentration over the top-N holder snapshot.

Several top token accounts controlled by one owner suggest coordinated
holding. Unresolved owners are never grouped with each other.
"""

from dataclasses import replace

from tokenscan.parsers.report import HolderAccount, HolderConcentration, OwnerCluster

MIN_CLUSTER_SIZE = 2


def find_owner_clusters(holders: list[HolderAccount]) -> list[OwnerCluster]:
    """Owners holding 2+ distinct token accounts in the snapshot.

    Sorted by size descending, ties by the owner's first appearance.
    """
    groups: dict[str, list[str]] = {}
    for holder in holders:
        if holder.owner is None:
            continue
        accounts = groups.setdefault(holder.owner, [])
        if holder.token_account not in accounts:
            accounts.append(holder.token_account)

    # dict preserves first-seen order and sorted() is stable
    clusters = [
        OwnerCluster(owner=owner, token_accounts=tuple(accounts))
        for owner, accounts in groups.items()
        if len(accounts) >= MIN_CLUSTER_SIZE
    ]
    return sorted(clusters, key=lambda c: c.size, reverse=True)


def largest_cluster_size(clusters: list[OwnerCluster]) -> int:
    return max((c.size for c in clusters), default=0)


def _denominator(holders: list[HolderAccount], supply_ui: float | None) -> float | None:
    # Supply and holders come from separate reads; never let the observed
    # balances exceed 100% of the denominator.
    if supply_ui is None or supply_ui <= 0:
        return None
    return max(supply_ui, sum(h.amount_ui for h in holders))


def with_percentages(holders: list[HolderAccount], supply_ui: float | None) -> list[HolderAccount]:
    """Stamp percent_of_supply on each holder; left None if supply unknown."""
    denominator = _denominator(holders, supply_ui)
    if denominator is None:
        return [replace(h, percent_of_supply=None) for h in holders]
    return [replace(h, percent_of_supply=h.amount_ui / denominator * 100) for h in holders]


def compute_concentration(holders: list[HolderAccount], supply_ui: float | None) -> HolderConcentration:
    denominator = _denominator(holders, supply_ui)
    if denominator is None or not holders:
        return HolderConcentration(holder_count=len(holders))

    amounts = sorted((h.amount_ui for h in holders), reverse=True)

    def _pct(n: int) -> float:
        return sum(amounts[:n]) / denominator * 100

    return HolderConcentration(
        holder_count=len(holders),
        top1_pct=_pct(1),
        top5_pct=_pct(5),
        top20_pct=_pct(20),
    )
