"""
Candidate builder.

Second pass over the classified ledger: every in-window entry whose SKU
joins a product becomes one immutable Candidate carrying its derived and
trend metrics. Rows that pass all filters are kept and add their sort
value to a per-SKU total used for Top-N selection.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from skusearch.fields import MetricSnapshot, sort_value
from skusearch.intent import FilterSpec
from skusearch.metrics import (
    aged_stock_pct,
    calc_tacos_pct,
    days_of_cover,
    pct_change,
    prior_margin_pct,
    product_margin,
)
from skusearch.models import (
    AdCost,
    Candidate,
    EntryKind,
    InventorySnapshot,
    LedgerEntry,
    PeriodStats,
    Product,
    Refund,
    Sale,
)
from skusearch.period_stats import PeriodStatsTable
from skusearch.predicates import passes_all
from skusearch.time_window import TimeWindow

logger = logging.getLogger(__name__)


@dataclass
class CandidateBatch:
    """Matching candidates plus the per-SKU ranking totals (first-seen order)."""
    candidates: List[Candidate] = field(default_factory=list)
    sku_totals: Dict[str, float] = field(default_factory=dict)

    def add(self, candidate: Candidate, total: float) -> None:
        self.candidates.append(candidate)
        self.sku_totals[candidate.sku] = self.sku_totals.get(candidate.sku, 0.0) + total

    @property
    def total_revenue(self) -> float:
        return sum(c.revenue for c in self.candidates)


# ═══════════════════════════════════════════════════════════════════════════════
# SHARED FIELDS
# ═══════════════════════════════════════════════════════════════════════════════

def _product_fields(product: Product) -> Dict[str, Any]:
    return {
        "product_name": product.name,
        "stock_level": product.stock_level,
        "aged_stock_qty": product.aged_stock_qty,
        "aged_stock_pct": aged_stock_pct(product.aged_stock_qty, product.stock_level),
        "days_remaining": days_of_cover(product.stock_level, product.average_daily_sales),
        "average_daily_sales": product.average_daily_sales,
        "return_rate": product.return_rate,
        "channels": tuple(product.channels),
    }


def _period_fields(stats: PeriodStats, window: TimeWindow) -> Dict[str, Any]:
    """Organic share, return rate and trends; trends are None without a previous window."""
    values = {
        "organic_share": stats.organic_share,
        "period_return_rate": stats.period_return_rate,
        "prev_revenue": stats.prev_revenue,
        "prev_qty": stats.prev_qty,
        "prev_profit": stats.prev_profit,
    }
    if window.has_previous:
        values.update(
            velocity_change=pct_change(stats.current_qty, stats.prev_qty),
            velocity_change_abs=stats.current_qty - stats.prev_qty,
            revenue_change_abs=stats.current_revenue - stats.prev_revenue,
            revenue_change_pct=pct_change(stats.current_revenue, stats.prev_revenue),
        )
    return values


# ═══════════════════════════════════════════════════════════════════════════════
# PER-VARIANT BUILDERS
# ═══════════════════════════════════════════════════════════════════════════════

def sale_candidate(entry: Sale, product: Product, stats: PeriodStats, window: TimeWindow) -> Candidate:
    revenue = entry.revenue
    margin = entry.margin if entry.margin is not None else product_margin(product, entry.unit_price)
    profit = entry.profit if entry.profit is not None else revenue * margin / 100
    margin_change = None
    if window.has_previous:
        margin_change = margin - prior_margin_pct(stats.prev_revenue, stats.prev_profit)
    return Candidate(
        sku=product.sku,
        platform=entry.platform or "Unknown",
        date=entry.date,
        kind=EntryKind.SALE,
        price=entry.unit_price,
        quantity=entry.quantity,
        revenue=revenue,
        profit=profit,
        margin=margin,
        ad_spend=entry.ad_spend,
        tacos=calc_tacos_pct(entry.ad_spend, revenue),
        margin_change=margin_change,
        order_id=entry.order_id,
        **_product_fields(product),
        **_period_fields(stats, window),
    )


def ad_cost_candidate(entry: AdCost, product: Product, stats: PeriodStats, window: TimeWindow) -> Candidate:
    """Ad spend with no sale: no revenue, no margin, profit is the negative spend."""
    return Candidate(
        sku=product.sku,
        platform=entry.platform or "Unknown",
        date=entry.date,
        kind=EntryKind.AD_COST,
        quantity=entry.quantity,
        profit=-entry.ad_spend,
        ad_spend=entry.ad_spend,
        **_product_fields(product),
        **_period_fields(stats, window),
    )


def refund_candidate(entry: Refund, product: Product, stats: PeriodStats, window: TimeWindow) -> Candidate:
    return Candidate(
        sku=product.sku,
        platform=entry.platform or "Unknown",
        date=entry.date,
        kind=EntryKind.REFUND,
        quantity=entry.quantity,
        profit=-entry.refund_amount,
        reason=entry.reason,
        refund_amount=entry.refund_amount,
        order_id=entry.order_id,
        **_product_fields(product),
        **_period_fields(stats, window),
    )


def inventory_candidate(snapshot: InventorySnapshot, product: Optional[Product], now: Optional[datetime] = None) -> Candidate:
    """One stock row: quantity is the stock level, revenue its value at current price."""
    channels = snapshot.channels or (tuple(product.channels) if product else ())
    price = snapshot.current_price
    previous = snapshot.previous_daily_velocity
    velocity_change = 0.0
    if previous > 0:
        velocity_change = (snapshot.average_daily_velocity - previous) / previous * 100
    return Candidate(
        sku=snapshot.sku,
        product_name=snapshot.product_name,
        platform=channels[0].platform if channels else "General",
        date=now,
        kind=EntryKind.INVENTORY,
        price=price,
        quantity=snapshot.stock_level,
        revenue=snapshot.stock_level * price,
        margin=product_margin(product, price) if product else 0.0,
        stock_level=snapshot.stock_level,
        aged_stock_qty=snapshot.aged_stock_quantity,
        aged_stock_pct=aged_stock_pct(snapshot.aged_stock_quantity, snapshot.stock_level),
        days_remaining=days_of_cover(snapshot.stock_level, snapshot.average_daily_velocity),
        average_daily_sales=snapshot.average_daily_velocity,
        velocity_change=velocity_change,
        return_rate=product.return_rate if product else 0.0,
        channels=channels,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# PASSES
# ═══════════════════════════════════════════════════════════════════════════════

def _build_one(entry: LedgerEntry, product: Product, stats: PeriodStats, window: TimeWindow) -> Optional[Candidate]:
    if isinstance(entry, Sale):
        return sale_candidate(entry, product, stats, window)
    if isinstance(entry, AdCost):
        return ad_cost_candidate(entry, product, stats, window)
    if isinstance(entry, Refund):
        return refund_candidate(entry, product, stats, window)
    if isinstance(entry, InventorySnapshot):
        return None
    raise TypeError(f"Unhandled ledger entry: {type(entry).__name__}")


def build_candidates(
    entries: Iterable[LedgerEntry],
    products: Mapping[str, Product],
    stats: PeriodStatsTable,
    window: TimeWindow,
    filters: List[FilterSpec],
    sort_field: Optional[str] = None,
) -> CandidateBatch:
    """
    Build the filtered candidate list for the sales target.

    Entries are visited in ledger order (sales, then refunds) and only
    inside the current window. Refund rows join the SKU totals with 0 so
    their SKU stays rankable.
    """
    batch = CandidateBatch()
    skipped = 0

    for entry in entries:
        if not window.contains(entry.date):
            continue
        product = products.get(entry.sku)
        if product is None:
            skipped += 1
            continue

        candidate = _build_one(entry, product, stats.get(entry.sku), window)
        if candidate is None:
            continue

        snapshot = MetricSnapshot(candidate)
        if not passes_all(filters, entry, snapshot, product):
            continue

        total = 0.0 if candidate.kind is EntryKind.REFUND else sort_value(snapshot, sort_field)
        batch.add(candidate, total)

    if skipped:
        logger.debug("Skipped rows without a catalog product", extra={"count": skipped})
    return batch


def build_refund_candidates(
    entries: Iterable[LedgerEntry],
    products: Mapping[str, Product],
    filters: List[FilterSpec],
) -> CandidateBatch:
    """Every refund, all time, joined to its product (refunds target)."""
    batch = CandidateBatch()
    window = TimeWindow.all_time()
    for entry in entries:
        if not isinstance(entry, Refund):
            continue
        product = products.get(entry.sku)
        if product is None:
            continue
        candidate = refund_candidate(entry, product, PeriodStats(), window)
        if passes_all(filters, entry, MetricSnapshot(candidate), product):
            batch.add(candidate, 0.0)
    return batch


def build_inventory_candidates(
    snapshots: Iterable[InventorySnapshot],
    products: Mapping[str, Product],
    filters: List[FilterSpec],
    now: Optional[datetime] = None,
) -> CandidateBatch:
    """One INVENTORY row per snapshot that passes the filters (inventory target)."""
    batch = CandidateBatch()
    for snapshot in snapshots:
        product = products.get(snapshot.sku)
        candidate = inventory_candidate(snapshot, product, now)
        if passes_all(filters, snapshot, MetricSnapshot(candidate), product):
            batch.add(candidate, candidate.stock_level)
    return batch
