"""
Search engine facade.

execute_search runs one intent against in-memory ledgers:

    sales      window -> period stats -> candidates -> Top-N -> flat rows
    inventory  one row per stock snapshot, sorted, limit bounds rows
    refunds    one row per refund, all time
    deep-dive  everything about one SKU, all time

group_results folds the flat rows into the rollup tree and attaches volume
badges. Both are pure: every intermediate structure lives inside one call.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from skusearch.aggregation import SortContext, TopGroup, aggregate
from skusearch.candidates import build_candidates, build_inventory_candidates, build_refund_candidates
from skusearch.config import VolumeBandConfig
from skusearch.context import detect_sort_context
from skusearch.intent import SearchIntent, parse_intent
from skusearch.ledgers import classify_ledger
from skusearch.models import (
    Candidate,
    DeepDiveResult,
    GroupDimension,
    InventorySnapshot,
    Product,
    RefundRecord,
    SalesRecord,
    TargetDataset,
)
from skusearch.metrics import to_number
from skusearch.observability import Timer, query_context
from skusearch.period_stats import accumulate_period_stats
from skusearch.platforms import AdsCapabilities, PlatformRules
from skusearch.ranking import select_top_n, sort_candidates
from skusearch.time_window import TimeWindow, resolve_time_window
from skusearch.volume_bands import classify_volume_bands

logger = logging.getLogger(__name__)

ProductSource = Union[Mapping[str, Product], Iterable[Product]]


@dataclass
class SearchResult:
    """Flat result of one search."""
    candidates: List[Candidate]
    time_label: str
    target: TargetDataset
    window: Optional[TimeWindow] = None
    deep_dive: Optional[DeepDiveResult] = None
    query_id: Optional[str] = None
    elapsed_ms: float = 0.0
    sku_totals: Dict[str, float] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.candidates and self.deep_dive is None

    @property
    def skus(self) -> List[str]:
        """SKUs in result order, without repeats."""
        return list(dict.fromkeys(c.sku for c in self.candidates))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        results = [c.to_dict() for c in self.candidates]
        if self.deep_dive is not None:
            results = [self.deep_dive.to_dict()]
        return {
            "target": self.target.value,
            "time_label": self.time_label,
            "query_id": self.query_id,
            "count": len(results),
            "results": results,
        }


def _product_map(products: ProductSource) -> Dict[str, Product]:
    if isinstance(products, Mapping):
        return dict(products)
    return {p.sku: p for p in products}


# ═══════════════════════════════════════════════════════════════════════════════
# TARGETS
# ═══════════════════════════════════════════════════════════════════════════════

def _deep_dive(
    intent: SearchIntent,
    products: Dict[str, Product],
    sales: List[SalesRecord],
    refunds: List[RefundRecord],
) -> SearchResult:
    empty = SearchResult(candidates=[], time_label="All Time", target=TargetDataset.DEEP_DIVE)
    if not intent.filters:
        return empty

    wanted = str(intent.filters[0].value).strip().lower()
    product = next((p for p in products.values() if p.sku.lower() == wanted), None)
    if product is None:
        logger.info("Deep dive SKU not found", extra={"sku": wanted})
        return empty

    transactions = [r for r in sales if r.sku == product.sku]
    dive = DeepDiveResult(
        product=product,
        all_time_sales=sum(r.revenue for r in transactions),
        all_time_qty=sum(to_number(r.quantity) for r in transactions),
        transactions=transactions,
        refunds=[r for r in refunds if r.sku == product.sku],
    )
    return SearchResult(candidates=[], time_label="All Time", target=TargetDataset.DEEP_DIVE, deep_dive=dive)


def _inventory(
    intent: SearchIntent,
    products: Dict[str, Product],
    inventory: Optional[List[InventorySnapshot]],
    now: Optional[datetime],
) -> SearchResult:
    snapshots = inventory if inventory is not None else [
        InventorySnapshot.from_product(p) for p in products.values()
    ]
    batch = build_inventory_candidates(snapshots, products, intent.filters, now)
    rows = sort_candidates(batch.candidates, intent.sort)
    if intent.limit:
        rows = rows[:intent.limit]
    return SearchResult(
        candidates=rows,
        time_label="Current Snapshot",
        target=TargetDataset.INVENTORY,
        sku_totals=batch.sku_totals,
    )


def _refunds(
    intent: SearchIntent,
    products: Dict[str, Product],
    refunds: List[RefundRecord],
    rules: Optional[PlatformRules],
    tz_name: Optional[str],
) -> SearchResult:
    entries = classify_ledger([], refunds, products, rules, tz_name)
    batch = build_refund_candidates(entries, products, intent.filters)
    return SearchResult(
        candidates=sort_candidates(batch.candidates, intent.sort),
        time_label="All Refunds",
        target=TargetDataset.REFUNDS,
        window=TimeWindow.all_time(),
        sku_totals=batch.sku_totals,
    )


def _sales(
    intent: SearchIntent,
    products: Dict[str, Product],
    sales: List[SalesRecord],
    refunds: List[RefundRecord],
    ads: AdsCapabilities,
    rules: Optional[PlatformRules],
    now: Optional[datetime],
    tz_name: Optional[str],
) -> SearchResult:
    window = resolve_time_window(intent.time_range, now, tz_name)
    entries = classify_ledger(sales, refunds, products, rules, tz_name)

    with Timer("period_stats", logger):
        stats = accumulate_period_stats(entries, window, ads)
    with Timer("candidates", logger):
        batch = build_candidates(entries, products, stats, window, intent.filters, intent.sort_field)

    rows = select_top_n(batch.candidates, batch.sku_totals, intent.limit, intent.sort)
    logger.debug(
        "Sales search complete",
        extra={"matched": len(batch.candidates), "returned": len(rows), "window": window.label},
    )
    return SearchResult(
        candidates=rows,
        time_label=window.label,
        target=TargetDataset.SALES,
        window=window,
        sku_totals=batch.sku_totals,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ═══════════════════════════════════════════════════════════════════════════════

def execute_search(
    intent: Union[SearchIntent, Dict[str, Any]],
    products: ProductSource,
    sales: Iterable[SalesRecord] = (),
    refunds: Iterable[RefundRecord] = (),
    inventory: Optional[Iterable[InventorySnapshot]] = None,
    ads: Optional[AdsCapabilities] = None,
    rules: Optional[PlatformRules] = None,
    now: Optional[datetime] = None,
    tz_name: Optional[str] = None,
) -> SearchResult:
    """
    Run one search intent.

    Args:
        intent: Parsed intent, or the translator's raw payload
        products: Catalog, as a SKU mapping or an iterable of products
        sales: Sales ledger
        refunds: Refund ledger
        inventory: Stock snapshots (default: one per product)
        ads: Ads capability lookup (default: name heuristic from config)
        rules: Platform rules; excluded platforms are dropped
        now: Reference moment for relative windows
        tz_name: Zone for naive dates (default: config.time.timezone)

    Returns:
        SearchResult with flat candidate rows and a time label

    Raises:
        IntentError: Only when a raw payload cannot be parsed
    """
    intent = parse_intent(intent)
    catalog = _product_map(products)
    sales = list(sales)
    refunds = list(refunds)
    ads = ads or AdsCapabilities()

    with query_context(target=intent.target_dataset.value) as query_id:
        with Timer("search", logger) as timer:
            target = intent.target_dataset
            if target is TargetDataset.DEEP_DIVE:
                result = _deep_dive(intent, catalog, sales, refunds)
            elif target is TargetDataset.INVENTORY:
                snapshots = list(inventory) if inventory is not None else None
                result = _inventory(intent, catalog, snapshots, now)
            elif target is TargetDataset.REFUNDS:
                result = _refunds(intent, catalog, refunds, rules, tz_name)
            else:
                result = _sales(intent, catalog, sales, refunds, ads, rules, now, tz_name)

        result.query_id = query_id
        result.elapsed_ms = timer.elapsed_ms
        logger.info(
            "Search executed",
            extra={"rows": len(result.candidates), "time_label": result.time_label},
        )
    return result


def group_results(
    result: SearchResult,
    intent: Union[SearchIntent, Dict[str, Any]],
    context: Optional[SortContext] = None,
    ads: Optional[AdsCapabilities] = None,
    query: Optional[str] = None,
    volume: Optional[VolumeBandConfig] = None,
) -> List[TopGroup]:
    """
    Fold a search result into the rollup tree.

    Args:
        result: Output of execute_search
        intent: The intent that produced it
        context: Default-order flags; derived from query when omitted
        ads: Ads capability lookup for TACoS / organic share
        query: Original free-text query (only used to derive context)
        volume: Volume band settings (default: config.volume)

    Returns:
        Ordered TopGroups, each with its volume band and badge
    """
    intent = parse_intent(intent)
    if context is None:
        context = detect_sort_context(query, intent) if query is not None else SortContext()
    group_by = GroupDimension.SKU if context.inventory else intent.group_by

    groups = aggregate(result.candidates, group_by, intent.sort, context, ads or AdsCapabilities())

    banding = classify_volume_bands([g.total_qty for g in groups], volume)
    if banding is not None:
        for group in groups:
            group.volume_band = banding.band_for(group.total_qty)
            group.volume_badge = banding.badge_for(group.total_qty)
    return groups
