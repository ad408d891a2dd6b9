"""
CapCompare — Peer Group Comparison
Compares static cohorts of tickers with each other and with the combined
universe of all selected peers.
"""
import numpy as np
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Any, List, Optional, Sequence, Tuple

from capcompare.data.models import NormalizedSnapshot, PeerGroup
from capcompare.engines.comparison import ComparisonReport, compare_snapshots
from capcompare.engines.normalizer import restrict_snapshot
from capcompare.utils.helpers import pct_change
from capcompare.utils.logger import get_logger

logger = get_logger("peer_groups")


@dataclass
class PeerGroupResult:
    group: PeerGroup
    comparison: ComparisonReport
    missing_tickers: List[str] = field(default_factory=list)
    group_rank: Optional[int] = None
    relative_to_universe_pct: Optional[float] = None

    @property
    def name(self) -> str:
        return self.group.name

    @property
    def total_from(self) -> float:
        return self.comparison.total_from

    @property
    def total_to(self) -> float:
        return self.comparison.total_to

    @property
    def total_change_pct(self) -> float:
        return self.comparison.total_change_pct

    @property
    def member_changes(self) -> List[float]:
        return [r.percentage_change for r in self.comparison.rows if r.percentage_change is not None]

    @property
    def avg_change_pct(self) -> Optional[float]:
        changes = self.member_changes
        if not changes:
            return None
        return float(np.mean(changes))

    @property
    def best_performer(self) -> Optional[Tuple[str, float]]:
        ranked = self.comparison.top_gainers(1)
        return (ranked[0].ticker, ranked[0].percentage_change) if ranked else None

    @property
    def worst_performer(self) -> Optional[Tuple[str, float]]:
        ranked = self.comparison.top_losers(1)
        return (ranked[0].ticker, ranked[0].percentage_change) if ranked else None

    @property
    def is_empty(self) -> bool:
        return not self.comparison.rows

    def to_dict(self) -> Dict[str, Any]:
        return {
            "group": self.name,
            "description": self.group.description,
            "group_rank": self.group_rank,
            "total_from": self.total_from,
            "total_to": self.total_to,
            "total_change_pct": self.total_change_pct,
            "avg_change_pct": self.avg_change_pct,
            "relative_to_universe_pct": self.relative_to_universe_pct,
            "best_performer": self.best_performer,
            "worst_performer": self.worst_performer,
            "missing_tickers": list(self.missing_tickers),
            "members": [r.to_dict() for r in self.comparison.rows],
        }


@dataclass
class PeerGroupReport:
    from_date: date
    to_date: date
    universe_change_pct: float
    results: List[PeerGroupResult] = field(default_factory=list)

    def result(self, name: str) -> Optional[PeerGroupResult]:
        wanted = name.lower()
        for r in self.results:
            if r.name.lower() == wanted:
                return r
        return None

    @property
    def unresolved_tickers(self) -> List[str]:
        return sorted({t for r in self.results for t in r.comparison.unresolved_tickers})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from_date": self.from_date.isoformat(),
            "to_date": self.to_date.isoformat(),
            "universe_change_pct": self.universe_change_pct,
            "groups": [r.to_dict() for r in self.results],
        }


def compare_peer_group(
    from_snapshot: NormalizedSnapshot, to_snapshot: NormalizedSnapshot, group: PeerGroup
) -> PeerGroupResult:
    """One group, ranked among its own members only."""
    before = restrict_snapshot(from_snapshot, group.tickers)
    after = restrict_snapshot(to_snapshot, group.tickers)
    present_both = set(before.tickers) & set(after.tickers)
    missing = [t for t in group.tickers if t not in present_both]
    if missing:
        logger.debug("peer_group_members_missing", group=group.name, missing=missing)
    return PeerGroupResult(
        group=group,
        comparison=compare_snapshots(before, after),
        missing_tickers=missing,
    )


def compare_peer_groups(
    from_snapshot: NormalizedSnapshot,
    to_snapshot: NormalizedSnapshot,
    groups: Sequence[PeerGroup],
) -> PeerGroupReport:
    """
    Compare every group, rank groups by total change (best = 1) and express
    each relative to the combined universe of all selected groups.
    """
    if not groups:
        raise ValueError("At least one peer group is required")

    universe = sorted({t for g in groups for t in g.tickers})
    universe_from = restrict_snapshot(from_snapshot, universe).total
    universe_to = restrict_snapshot(to_snapshot, universe).total
    universe_change = pct_change(universe_from, universe_to)

    results = [compare_peer_group(from_snapshot, to_snapshot, g) for g in groups]
    results.sort(key=lambda r: -r.total_change_pct)
    for i, r in enumerate(results, start=1):
        r.group_rank = i
        r.relative_to_universe_pct = r.total_change_pct - universe_change

    logger.info(
        "peer_groups_compared",
        groups=len(results),
        universe_tickers=len(universe),
        universe_change_pct=round(universe_change, 4),
    )
    return PeerGroupReport(
        from_date=from_snapshot.snapshot_date,
        to_date=to_snapshot.snapshot_date,
        universe_change_pct=universe_change,
        results=results,
    )
