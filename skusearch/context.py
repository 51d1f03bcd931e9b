"""
Sort context detection.

Derives SortContext flags from the user's free-text query and the parsed
intent: a context is active when the query mentions one of its keywords
or a filter/sort targets one of its fields.
"""
from typing import Iterable, Optional

from skusearch.aggregation import SortContext
from skusearch.intent import SearchIntent

VOLUME_KEYWORDS = ("qty", "quantity", "unit", "sold", "volume", "velocity", "count", "traffic", "winning", "scale")
AD_KEYWORDS = ("ad", "tacos", "ppc", "marketing", "spend", "cost")
MARGIN_KEYWORDS = ("margin", "profit", "loss", "negative", "net", "winning", "scale")
INVENTORY_KEYWORDS = (
    "stock", "inventory", "runway", "cover", "days remaining", "days cover",
    "overstock", "out of stock", "level",
)
TREND_KEYWORDS = ("drop", "decline", "growth", "change", "trend", "wow", "spike")
RETURN_KEYWORDS = ("return", "refund", "rate")
AGED_KEYWORDS = ("aged", "old stock", "dead stock")
ORGANIC_KEYWORDS = ("organic",)


def _matches(query: str, intent: Optional[SearchIntent], keywords: Iterable[str], fields: Iterable[str]) -> bool:
    fields = set(fields)
    if any(keyword in query for keyword in keywords):
        return True
    if intent is None:
        return False
    if any(spec.field in fields for spec in intent.filters):
        return True
    return bool(intent.sort and intent.sort.field in fields)


def detect_sort_context(query: Optional[str], intent: Optional[SearchIntent] = None) -> SortContext:
    """
    Build SortContext flags for a query.

    Keywords are plain substrings of the lower-cased query, so "ad" also
    fires inside longer words.
    """
    q = (query or "").lower()
    return SortContext(
        aged_stock=_matches(q, intent, AGED_KEYWORDS, ("agedStockPct", "AGED_STOCK_PCT")),
        organic_share=_matches(q, intent, ORGANIC_KEYWORDS, ("organicShare", "ORGANIC_SHARE_PCT")),
        return_rate=_matches(q, intent, RETURN_KEYWORDS, ("returnRate", "periodReturnRate", "RETURN_RATE_PCT")),
        inventory=_matches(q, intent, INVENTORY_KEYWORDS, ("stockLevel", "daysRemaining")),
        volume=_matches(q, intent, VOLUME_KEYWORDS, ("velocity", "qty")),
        ad=_matches(q, intent, AD_KEYWORDS, ("tacos", "adsSpend")),
        margin=_matches(q, intent, MARGIN_KEYWORDS, ("margin", "profit", "netPmPercent")),
        trend=_matches(q, intent, TREND_KEYWORDS, ("velocityChange",)),
    )
