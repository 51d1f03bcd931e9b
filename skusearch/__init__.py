"""
skusearch - SKU search & rollup engine.

Turns a structured search intent into a flat list of annotated ledger rows
and a two-level channel/SKU rollup with weighted metrics, period-over-period
trends and volume badges.

Usage:
    from skusearch import execute_search, group_results, parse_intent

    intent = parse_intent({"targetData": "sales", "timeRange": "30d", "limit": 10})
    result = execute_search(intent, products, sales, refunds)
    groups = group_results(result, intent, query="top sellers by margin")
"""
from skusearch.aggregation import SortContext, SubGroup, TopGroup, aggregate
from skusearch.config import VERSION, config
from skusearch.context import detect_sort_context
from skusearch.engine import SearchResult, execute_search, group_results
from skusearch.exceptions import IntentError, LedgerDataError, SearchError, ValidationError
from skusearch.intent import FilterSpec, Operator, SearchIntent, SortDirection, SortSpec, TimeRange, parse_intent
from skusearch.inventory import derive_inventory_snapshots, derive_velocity_stats
from skusearch.ledgers import load_inventory, load_products, load_refunds, load_sales
from skusearch.models import (
    AdCost,
    Candidate,
    ChannelData,
    EntryKind,
    GroupDimension,
    InventorySnapshot,
    Product,
    Refund,
    RefundRecord,
    Sale,
    SalesRecord,
    TargetDataset,
)
from skusearch.observability import setup_logging
from skusearch.platforms import AdsCapabilities, PlatformRules
from skusearch.validators import validate_intent

__version__ = VERSION

__all__ = [
    "AdCost",
    "AdsCapabilities",
    "Candidate",
    "ChannelData",
    "EntryKind",
    "FilterSpec",
    "GroupDimension",
    "IntentError",
    "InventorySnapshot",
    "LedgerDataError",
    "Operator",
    "PlatformRules",
    "Product",
    "Refund",
    "RefundRecord",
    "Sale",
    "SalesRecord",
    "SearchError",
    "SearchIntent",
    "SearchResult",
    "SortContext",
    "SortDirection",
    "SortSpec",
    "SubGroup",
    "TargetDataset",
    "TimeRange",
    "TopGroup",
    "ValidationError",
    "aggregate",
    "config",
    "derive_inventory_snapshots",
    "derive_velocity_stats",
    "detect_sort_context",
    "execute_search",
    "group_results",
    "load_inventory",
    "load_products",
    "load_refunds",
    "load_sales",
    "parse_intent",
    "setup_logging",
    "validate_intent",
]
