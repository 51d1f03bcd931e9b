"""
Hierarchical aggregator.

Folds the flat candidate list into TopGroup -> SubGroup -> items. Totals
are additive: a TopGroup's revenue, profit, quantity and ad spend are
the sums over its SubGroups. Refund rows only feed the separate refund
totals. Ratios (weighted margin, TACoS, organic share, return rate) are
derived from the totals after accumulation, never averaged.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set

from skusearch.fields import FieldRef, resolve_field
from skusearch.intent import SortSpec
from skusearch.metrics import (
    aged_stock_pct,
    calc_margin_pct,
    days_of_cover,
    format_cover_days,
    pct_change,
    prior_margin_pct,
    safe_div,
)
from skusearch.models import Candidate, EntryKind, GroupDimension
from skusearch.volume_bands import VolumeBand

logger = logging.getLogger(__name__)

AdsLookup = Callable[[Optional[str]], bool]


@dataclass(frozen=True)
class SortContext:
    """
    Query context flags that pick the default group ordering.

    Set by the host (see skusearch.context.detect_sort_context); only used
    when the intent carries no explicit sort.
    """
    aged_stock: bool = False
    organic_share: bool = False
    return_rate: bool = False
    inventory: bool = False
    volume: bool = False
    ad: bool = False
    margin: bool = False
    trend: bool = False


# ═══════════════════════════════════════════════════════════════════════════════
# NODES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class GroupNode:
    """Totals shared by both tree levels."""
    key: str
    label: str
    product_name: Optional[str] = None
    count: int = 0

    total_revenue: float = 0.0
    total_profit: float = 0.0
    total_qty: float = 0.0
    total_ad_spend: float = 0.0
    contribution: float = 0.0
    ad_enabled_revenue: float = 0.0
    total_refund_amount: float = 0.0
    total_refund_qty: float = 0.0

    # Derived in finalize()
    weighted_margin: float = 0.0
    tacos: float = 0.0
    organic_share: Optional[float] = None
    period_return_rate: float = 0.0
    weighted_margin_change: Optional[float] = None
    velocity_change: Optional[float] = None

    # Unique-SKU values (first row per SKU)
    stock_level: float = 0.0
    aged_stock_qty: float = 0.0
    aged_stock_pct: float = 0.0
    daily_velocity: float = 0.0
    cover_days: float = 0.0
    prev_revenue: float = 0.0
    prev_profit: float = 0.0
    prev_qty: float = 0.0
    sku_current_qty: float = 0.0
    has_trend: bool = False

    _skus: Set[str] = field(default_factory=set, repr=False)

    def add(self, item: Candidate, ads_enabled: AdsLookup) -> None:
        self.count += 1
        if item.kind.counts_toward_sales:
            self.total_revenue += item.revenue
            self.total_profit += item.profit
            self.total_qty += item.quantity
            self.total_ad_spend += item.ad_spend
            self.contribution += item.contribution
            if ads_enabled(item.platform):
                self.ad_enabled_revenue += item.revenue
        elif item.kind is EntryKind.REFUND:
            self.total_refund_amount += item.refund_amount or 0.0
            self.total_refund_qty += item.quantity

        if item.sku not in self._skus:
            self._skus.add(item.sku)
            self.stock_level += item.stock_level
            self.aged_stock_qty += item.aged_stock_qty
            self.daily_velocity += item.average_daily_sales
            self.prev_revenue += item.prev_revenue
            self.prev_profit += item.prev_profit
            self.prev_qty += item.prev_qty
            if item.velocity_change_abs is not None:
                self.has_trend = True
                self.sku_current_qty += item.prev_qty + item.velocity_change_abs

    def finalize(self) -> None:
        self.weighted_margin = calc_margin_pct(self.total_revenue, self.total_profit)
        self.tacos = safe_div(self.total_ad_spend, self.ad_enabled_revenue) * 100
        self.organic_share = max(0.0, 100 - self.tacos) if self.ad_enabled_revenue > 0 else None
        self.period_return_rate = safe_div(self.total_refund_qty, self.total_qty) * 100
        self.aged_stock_pct = aged_stock_pct(self.aged_stock_qty, self.stock_level)
        self.cover_days = days_of_cover(self.stock_level, self.daily_velocity)
        if self.has_trend:
            prior = prior_margin_pct(self.prev_revenue, self.prev_profit)
            self.weighted_margin_change = self.weighted_margin - prior
            self.velocity_change = pct_change(self.sku_current_qty, self.prev_qty)

    @property
    def sku_count(self) -> int:
        return len(self._skus)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "product_name": self.product_name,
            "count": self.count,
            "total_revenue": round(self.total_revenue, 2),
            "total_profit": round(self.total_profit, 2),
            "total_qty": self.total_qty,
            "total_ad_spend": round(self.total_ad_spend, 2),
            "total_refund_amount": round(self.total_refund_amount, 2),
            "total_refund_qty": self.total_refund_qty,
            "contribution": round(self.contribution, 2),
            "weighted_margin": round(self.weighted_margin, 2),
            "tacos": round(self.tacos, 2),
            "organic_share": round(self.organic_share, 1) if self.organic_share is not None else None,
            "period_return_rate": round(self.period_return_rate, 2),
            "weighted_margin_change": (
                round(self.weighted_margin_change, 2) if self.weighted_margin_change is not None else None
            ),
            "velocity_change": round(self.velocity_change, 1) if self.velocity_change is not None else None,
            "stock_level": self.stock_level,
            "aged_stock_pct": round(self.aged_stock_pct, 1),
            "cover_days": round(self.cover_days, 1),
            "cover_label": format_cover_days(self.cover_days),
        }


@dataclass
class SubGroup(GroupNode):
    """Second level: holds the rows themselves."""
    items: List[Candidate] = field(default_factory=list)
    platform_velocity: Optional[float] = None
    platform_cover: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["items"] = [item.to_dict() for item in self.items]
        if self.platform_velocity is not None:
            data["platform_velocity"] = self.platform_velocity
            data["platform_cover"] = round(self.platform_cover, 1)
        return data


@dataclass
class TopGroup(GroupNode):
    """First level of the rollup tree."""
    sub_groups: Dict[str, SubGroup] = field(default_factory=dict)
    global_velocity: Optional[float] = None
    global_cover: Optional[float] = None
    volume_band: Optional[VolumeBand] = None
    volume_badge: Optional[str] = None

    @property
    def subgroup_list(self) -> List[SubGroup]:
        return list(self.sub_groups.values())

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["sub_groups"] = [sg.to_dict() for sg in self.sub_groups.values()]
        if self.global_velocity is not None:
            data["global_velocity"] = self.global_velocity
            data["global_cover"] = round(self.global_cover, 1)
        data["volume_band"] = self.volume_band.value if self.volume_band else None
        data["volume_badge"] = self.volume_badge
        return data


# ═══════════════════════════════════════════════════════════════════════════════
# ORDERING
# ═══════════════════════════════════════════════════════════════════════════════

_SORT_KEYS: Dict[FieldRef, Callable[[GroupNode], float]] = {
    FieldRef.REVENUE: lambda g: g.total_revenue,
    FieldRef.PROFIT: lambda g: g.total_profit,
    FieldRef.MARGIN: lambda g: g.total_profit,
    FieldRef.QUANTITY: lambda g: g.total_qty,
    FieldRef.TACOS: lambda g: g.tacos,
    FieldRef.AD_SPEND: lambda g: g.tacos,
    FieldRef.STOCK_LEVEL: lambda g: g.stock_level,
    FieldRef.DAYS_REMAINING: lambda g: g.cover_days,
    FieldRef.RETURN_RATE: lambda g: g.period_return_rate,
    FieldRef.PERIOD_RETURN_RATE: lambda g: g.period_return_rate,
    FieldRef.ORGANIC_SHARE: lambda g: g.organic_share or 0.0,
    FieldRef.AGED_STOCK_PCT: lambda g: g.aged_stock_pct,
    FieldRef.MARGIN_CHANGE: lambda g: g.weighted_margin_change or 0.0,
    FieldRef.VELOCITY_CHANGE: lambda g: g.velocity_change or 0.0,
}


def _organic_ascending(group: GroupNode) -> float:
    # groups without ad-enabled revenue go last
    return group.organic_share if group.organic_share is not None else float("inf")


def _explicit_key(sort: Optional[SortSpec]) -> Optional[Callable[[GroupNode], float]]:
    if sort is None:
        return None
    return _SORT_KEYS.get(resolve_field(sort.field))


def sort_groups(groups: List[GroupNode], sort: Optional[SortSpec], context: SortContext) -> List[GroupNode]:
    """
    Order groups of one tree level.

    An explicit sort on a known field wins; otherwise the context flags
    pick the order by priority. Python's sort is stable so ties keep
    first-seen order.
    """
    key = _explicit_key(sort)
    if key is not None:
        return sorted(groups, key=key, reverse=not sort.ascending)

    if context.aged_stock:
        return sorted(groups, key=lambda g: g.aged_stock_pct, reverse=True)
    if context.organic_share:
        return sorted(groups, key=_organic_ascending)
    if context.return_rate:
        return sorted(groups, key=lambda g: g.period_return_rate, reverse=True)
    if context.inventory:
        return sorted(groups, key=lambda g: g.stock_level)
    if context.volume:
        return sorted(groups, key=lambda g: g.total_qty, reverse=True)
    if context.ad:
        return sorted(groups, key=lambda g: g.tacos, reverse=True)
    if context.margin:
        return sorted(groups, key=lambda g: g.total_profit, reverse=True)
    return sorted(groups, key=lambda g: g.total_revenue, reverse=True)


def sort_sub_groups(groups: List[SubGroup], sort: Optional[SortSpec], context: SortContext) -> List[SubGroup]:
    """Order the sub-groups of one top group; under stock context by platform velocity, fastest first."""
    if context.inventory and _explicit_key(sort) is None:
        return sorted(groups, key=lambda g: g.platform_velocity or 0.0, reverse=True)
    return sort_groups(groups, sort, context)


# ═══════════════════════════════════════════════════════════════════════════════
# AGGREGATION
# ═══════════════════════════════════════════════════════════════════════════════

def _add_inventory_channels(top: TopGroup, item: Candidate) -> None:
    """Inventory row grouped by SKU: stock is the quantity, channels are the sub-groups."""
    top.global_velocity = item.average_daily_sales
    top.global_cover = days_of_cover(item.stock_level, item.average_daily_sales)
    for channel in item.channels:
        sub = top.sub_groups.get(channel.platform)
        if sub is None:
            sub = top.sub_groups[channel.platform] = SubGroup(
                key=channel.platform,
                label=channel.platform,
                count=1,
                platform_velocity=channel.velocity,
                platform_cover=days_of_cover(item.stock_level, channel.velocity),
            )
        price = channel.price or item.price
        sub.items.append(Candidate(
            sku=item.sku,
            product_name=item.product_name,
            platform=channel.platform,
            date=item.date,
            kind=EntryKind.INVENTORY_CHANNEL,
            price=price,
            quantity=channel.velocity,
            revenue=channel.velocity * price,
            stock_level=item.stock_level,
        ))


def aggregate(
    candidates: List[Candidate],
    group_by: GroupDimension = GroupDimension.PLATFORM,
    sort: Optional[SortSpec] = None,
    context: Optional[SortContext] = None,
    ads_enabled: Optional[AdsLookup] = None,
) -> List[TopGroup]:
    """
    Build the two-level rollup tree.

    Args:
        candidates: Flat result rows (already limited and ordered)
        group_by: Top-level dimension; sub-groups use the other one
        sort: Explicit intent sort, if any
        context: Default-order flags used without an explicit sort
        ads_enabled: Platform -> ads capability (default: no platform runs ads)

    Returns:
        Ordered TopGroups with ordered SubGroups
    """
    context = context or SortContext()
    ads_enabled = ads_enabled or (lambda platform: False)
    inventory_mode = context.inventory and group_by is GroupDimension.SKU
    groups: Dict[str, TopGroup] = {}

    for item in candidates:
        if group_by is GroupDimension.PLATFORM:
            main_key, sub_key = item.platform or "Unknown", item.sku
        else:
            main_key, sub_key = item.sku, item.platform or "Unknown"

        top = groups.get(main_key)
        if top is None:
            top = groups[main_key] = TopGroup(
                key=main_key,
                label=main_key,
                product_name=item.product_name if group_by is GroupDimension.SKU else None,
            )
        top.add(item, ads_enabled)

        if inventory_mode and item.kind is EntryKind.INVENTORY:
            top.total_qty = item.stock_level
            _add_inventory_channels(top, item)
            continue

        sub = top.sub_groups.get(sub_key)
        if sub is None:
            sub = top.sub_groups[sub_key] = SubGroup(
                key=sub_key,
                label=sub_key,
                product_name=item.product_name if group_by is GroupDimension.PLATFORM else None,
            )
        sub.add(item, ads_enabled)
        sub.items.append(item)

    for top in groups.values():
        top.finalize()
        if top.global_cover is not None:
            top.cover_days = top.global_cover
        for sub in top.sub_groups.values():
            sub.finalize()
            if sub.platform_cover is not None:
                sub.cover_days = sub.platform_cover
        ordered = sort_sub_groups(list(top.sub_groups.values()), sort, context)
        top.sub_groups = {sub.key: sub for sub in ordered}

    logger.debug("Aggregated candidates", extra={"groups": len(groups), "rows": len(candidates)})
    return sort_groups(list(groups.values()), sort, context)
