"""
Per-SKU period statistics.

Two linear passes (refunds, then sales) fold ledger entries into a
PeriodStatsTable for the current and the previous window. The table is a
local accumulator built fresh for every query.
"""
import logging
from typing import Callable, Dict, Iterable, Iterator, Optional, Tuple

from skusearch.metrics import calc_profit
from skusearch.models import AdCost, InventorySnapshot, LedgerEntry, PeriodStats, Refund, Sale
from skusearch.time_window import TimeWindow

logger = logging.getLogger(__name__)

AdsLookup = Callable[[Optional[str]], bool]


class PeriodStatsTable:
    """SKU -> PeriodStats; unknown SKUs read as all-zero without being inserted."""

    def __init__(self):
        self._stats: Dict[str, PeriodStats] = {}

    def get(self, sku: str) -> PeriodStats:
        return self._stats.get(sku) or PeriodStats()

    def entry(self, sku: str) -> PeriodStats:
        """Mutable stats for sku, created on first touch."""
        stats = self._stats.get(sku)
        if stats is None:
            stats = self._stats[sku] = PeriodStats()
        return stats

    def __contains__(self, sku: str) -> bool:
        return sku in self._stats

    def __len__(self) -> int:
        return len(self._stats)

    def items(self) -> Iterator[Tuple[str, PeriodStats]]:
        return iter(self._stats.items())


def accumulate_refunds(
    table: PeriodStatsTable,
    entries: Iterable[LedgerEntry],
    window: TimeWindow,
) -> PeriodStatsTable:
    """Add every in-window refund amount to its SKU's refund_total."""
    for entry in entries:
        if isinstance(entry, Refund) and window.contains(entry.date):
            table.entry(entry.sku).refund_total += entry.refund_amount
    return table


def accumulate_sales(
    table: PeriodStatsTable,
    entries: Iterable[LedgerEntry],
    window: TimeWindow,
    ads_enabled: AdsLookup,
) -> PeriodStatsTable:
    """
    Add sales and ad-cost rows to current and previous window totals.

    Ad-eligible quantity counts rows on platforms that run ads; organic
    quantity is the part of it sold with exactly zero ad spend.
    """
    for entry in entries:
        if isinstance(entry, Sale):
            revenue, quantity = entry.revenue, entry.quantity
            profit = calc_profit(revenue, entry.profit, entry.margin)
        elif isinstance(entry, AdCost):
            revenue, quantity = 0.0, entry.quantity
            profit = calc_profit(revenue, entry.profit)
        elif isinstance(entry, (Refund, InventorySnapshot)):
            continue
        else:
            logger.debug("Skipping unknown ledger entry", extra={"entry_type": type(entry).__name__})
            continue

        if window.contains(entry.date):
            stats = table.entry(entry.sku)
            stats.current_revenue += revenue
            stats.current_qty += quantity
            if ads_enabled(entry.platform):
                stats.ad_eligible_qty += quantity
                if entry.ad_spend == 0:
                    stats.organic_qty += quantity
        elif window.in_previous(entry.date):
            stats = table.entry(entry.sku)
            stats.prev_revenue += revenue
            stats.prev_qty += quantity
            stats.prev_profit += profit

    return table


def accumulate_period_stats(
    entries: Iterable[LedgerEntry],
    window: TimeWindow,
    ads_enabled: AdsLookup,
) -> PeriodStatsTable:
    """Build the per-SKU table for one query (refund pass, then sales pass)."""
    entries = list(entries)
    table = accumulate_refunds(PeriodStatsTable(), entries, window)
    table = accumulate_sales(table, entries, window, ads_enabled)
    logger.debug("Period stats accumulated", extra={"skus": len(table)})
    return table
