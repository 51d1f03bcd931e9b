"""
Top-N selection and flat result ordering.

The limit bounds SKUs, not rows: SKUs are ranked by their summed sort
value and every row of a selected SKU is kept.
"""
from typing import Dict, List, Optional, Set

from skusearch.fields import MetricSnapshot, resolve_field
from skusearch.intent import SortSpec
from skusearch.metrics import safe_div, to_number
from skusearch.models import Candidate


def select_top_skus(sku_totals: Dict[str, float], limit: Optional[int], ascending: bool = False) -> Set[str]:
    """
    SKUs kept by a Top-N limit.

    Ranking is stable: SKUs with equal totals keep their first-seen
    order, so repeated calls on the same input pick the same set.
    """
    if not limit or limit <= 0:
        return set(sku_totals)
    ranked = sorted(sku_totals.items(), key=lambda item: item[1], reverse=not ascending)
    return {sku for sku, _ in ranked[:limit]}


def apply_contribution(candidates: List[Candidate], grand_total_revenue: float) -> List[Candidate]:
    """Copy each row with its share (%) of the grand total revenue."""
    return [
        c.with_contribution(safe_div(c.revenue, grand_total_revenue) * 100)
        for c in candidates
    ]


def sort_candidates(candidates: List[Candidate], sort: Optional[SortSpec]) -> List[Candidate]:
    """
    Order rows by the sort field; missing or non-numeric values count as 0.

    Without a sort the input order is kept.
    """
    if sort is None:
        return list(candidates)
    ref = resolve_field(sort.field)
    if ref is None:
        return list(candidates)

    def key(candidate: Candidate) -> float:
        return to_number(MetricSnapshot(candidate)[ref])

    return sorted(candidates, key=key, reverse=not sort.ascending)


def select_top_n(
    candidates: List[Candidate],
    sku_totals: Dict[str, float],
    limit: Optional[int] = None,
    sort: Optional[SortSpec] = None,
) -> List[Candidate]:
    """
    Apply the SKU limit, attach contribution and order the flat list.

    Contribution is measured against every matching row, including rows
    of SKUs the limit drops.
    """
    grand_total = sum(c.revenue for c in candidates)
    keep = select_top_skus(sku_totals, limit, ascending=bool(sort and sort.ascending))
    kept = [c for c in candidates if c.sku in keep]
    return sort_candidates(apply_contribution(kept, grand_total), sort)
