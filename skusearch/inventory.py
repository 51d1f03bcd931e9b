"""
Inventory derivation.

Recomputes each product's daily velocity (current and previous look-back
window), return rate and refunded total from the ledgers, anchored at the
latest sale. Rows on excluded platforms do not count toward velocity.
"""
import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

import pandas as pd

from skusearch.config import config
from skusearch.metrics import to_number
from skusearch.models import InventorySnapshot, Product, RefundRecord, SalesRecord
from skusearch.observability import timed
from skusearch.platforms import PlatformRules
from skusearch.time_window import parse_record_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VelocityStats:
    """Recomputed stock-movement figures for one SKU."""
    sku: str
    average_daily_sales: float = 0.0
    previous_daily_sales: float = 0.0
    return_rate: float = 0.0
    total_refunded: float = 0.0
    refunded_qty: float = 0.0


def _sales_frame(sales: Iterable[SalesRecord], rules: Optional[PlatformRules], tz_name: Optional[str]) -> pd.DataFrame:
    rows = [
        {"sku": r.sku, "date": parse_record_date(r.date, tz_name), "quantity": r.quantity}
        for r in sales
        if not (rules and rules.is_excluded(r.platform))
    ]
    frame = pd.DataFrame(rows, columns=["sku", "date", "quantity"])
    frame = frame.dropna(subset=["date"])
    return frame.assign(date=pd.to_datetime(frame["date"], utc=True))


def _refund_frame(refunds: Iterable[RefundRecord], tz_name: Optional[str]) -> pd.DataFrame:
    rows = [
        {
            "sku": r.sku,
            "date": parse_record_date(r.date, tz_name),
            "amount": r.refund_amount,
            "quantity": r.quantity,
        }
        for r in refunds
    ]
    frame = pd.DataFrame(rows, columns=["sku", "date", "amount", "quantity"])
    frame = frame.dropna(subset=["date"])
    return frame.assign(date=pd.to_datetime(frame["date"], utc=True))


def _sum_by_sku(frame: pd.DataFrame, column: str, start: pd.Timestamp, end: pd.Timestamp) -> Dict[str, float]:
    mask = (frame["date"] >= start) & (frame["date"] <= end)
    return frame.loc[mask].groupby("sku")[column].sum().to_dict()


@timed("derive_velocity_stats")
def derive_velocity_stats(
    products: Iterable[Product],
    sales: Iterable[SalesRecord],
    refunds: Iterable[RefundRecord],
    lookback_days: Optional[int] = None,
    anchor: Optional[datetime] = None,
    rules: Optional[PlatformRules] = None,
    tz_name: Optional[str] = None,
) -> Dict[str, VelocityStats]:
    """
    Velocity, return rate and refunded total per product.

    Args:
        products: Catalog
        sales: Sales ledger
        refunds: Refund ledger
        lookback_days: Window length (default: config.time.inventory_lookback_days)
        anchor: End of the current window (default: latest sale date)
        rules: Platform rules; sales on excluded platforms are ignored
        tz_name: Zone for naive ledger dates

    Returns:
        Dict of SKU -> VelocityStats (empty when there are no dated sales)
    """
    lookback = lookback_days or config.time.inventory_lookback_days
    sales_df = _sales_frame(sales, rules, tz_name)
    if sales_df.empty and anchor is None:
        logger.info("No dated sales, velocity not recomputed")
        return {}

    end = pd.Timestamp(anchor) if anchor is not None else sales_df["date"].max()
    if end.tzinfo is None:
        end = end.tz_localize("UTC")
    current_start = end - timedelta(days=lookback)
    previous_start = end - timedelta(days=lookback * 2)
    window_days = max(1, math.ceil((end - current_start) / timedelta(days=1)))

    current_qty = _sum_by_sku(sales_df, "quantity", current_start, end)
    previous_qty = _sum_by_sku(sales_df, "quantity", previous_start, current_start)

    refund_df = _refund_frame(refunds, tz_name)
    refunded_amount = _sum_by_sku(refund_df, "amount", current_start, end)
    refunded_qty = _sum_by_sku(refund_df, "quantity", current_start, end)

    stats = {}
    for product in products:
        average = to_number(current_qty.get(product.sku)) / window_days
        previous = to_number(previous_qty.get(product.sku)) / window_days
        qty_back = to_number(refunded_qty.get(product.sku))
        estimated_sold = (average or product.average_daily_sales) * lookback
        return_rate = qty_back / estimated_sold * 100 if estimated_sold > 0 else 0.0
        stats[product.sku] = VelocityStats(
            sku=product.sku,
            average_daily_sales=round(average, 2),
            previous_daily_sales=round(previous, 2),
            return_rate=round(return_rate, 2),
            total_refunded=round(to_number(refunded_amount.get(product.sku)), 2),
            refunded_qty=qty_back,
        )

    logger.debug("Velocity recomputed", extra={"products": len(stats), "lookback_days": lookback})
    return stats


def refresh_products(products: Iterable[Product], stats: Dict[str, VelocityStats]) -> List[Product]:
    """Copies of products with recomputed velocity fields (products without stats unchanged)."""
    refreshed = []
    for product in products:
        s = stats.get(product.sku)
        if s is None:
            refreshed.append(product)
            continue
        refreshed.append(replace(
            product,
            average_daily_sales=s.average_daily_sales,
            previous_daily_sales=s.previous_daily_sales,
            return_rate=s.return_rate,
            total_refunded=s.total_refunded,
        ))
    return refreshed


def derive_inventory_snapshots(
    products: Iterable[Product],
    sales: Iterable[SalesRecord],
    refunds: Iterable[RefundRecord],
    lookback_days: Optional[int] = None,
    anchor: Optional[datetime] = None,
    rules: Optional[PlatformRules] = None,
    tz_name: Optional[str] = None,
) -> List[InventorySnapshot]:
    """One InventorySnapshot per product, built from freshly derived velocities."""
    products = list(products)
    stats = derive_velocity_stats(products, sales, refunds, lookback_days, anchor, rules, tz_name)
    return [InventorySnapshot.from_product(p) for p in refresh_products(products, stats)]
