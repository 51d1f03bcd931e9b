"""
Field registry.

Filter and sort fields arrive as free-form strings from the intent
translator ("margin", "netPmPercent", "CMA_PCT", "stock_cover_days", ...).
They are resolved once into a FieldRef and read through a fixed accessor
per variant, instead of indexing arbitrary objects by name.
"""
import re
from enum import Enum
from typing import Any, Callable, Dict, Optional

from skusearch.models import Candidate


class FieldRef(str, Enum):
    """Every field a filter or sort can address on a candidate."""
    SKU = "sku"
    NAME = "name"
    PLATFORM = "platform"
    DATE = "date"
    KIND = "type"
    PRICE = "price"
    QUANTITY = "quantity"
    REVENUE = "revenue"
    PROFIT = "profit"
    MARGIN = "margin"
    AD_SPEND = "adSpend"
    TACOS = "tacos"
    ORGANIC_SHARE = "organicShare"
    STOCK_LEVEL = "stockLevel"
    AGED_STOCK_QTY = "agedStockQty"
    AGED_STOCK_PCT = "agedStockPct"
    DAYS_REMAINING = "daysRemaining"
    DAILY_VELOCITY = "averageDailySales"
    VELOCITY_CHANGE = "velocityChange"
    VELOCITY_CHANGE_ABS = "velocityChangeAbs"
    REVENUE_CHANGE_ABS = "revenueChangeAbs"
    REVENUE_CHANGE_PCT = "revenueChangePct"
    MARGIN_CHANGE = "marginChange"
    RETURN_RATE = "returnRate"
    PERIOD_RETURN_RATE = "periodReturnRate"
    CONTRIBUTION = "contribution"
    REFUND_AMOUNT = "refundAmount"
    REASON = "reason"


_ACCESSORS: Dict[FieldRef, Callable[[Candidate], Any]] = {
    FieldRef.SKU: lambda c: c.sku,
    FieldRef.NAME: lambda c: c.product_name,
    FieldRef.PLATFORM: lambda c: c.platform,
    FieldRef.DATE: lambda c: c.date.isoformat() if c.date else None,
    FieldRef.KIND: lambda c: c.kind.value,
    FieldRef.PRICE: lambda c: c.price,
    FieldRef.QUANTITY: lambda c: c.quantity,
    FieldRef.REVENUE: lambda c: c.revenue,
    FieldRef.PROFIT: lambda c: c.profit,
    FieldRef.MARGIN: lambda c: c.margin,
    FieldRef.AD_SPEND: lambda c: c.ad_spend,
    FieldRef.TACOS: lambda c: c.tacos,
    FieldRef.ORGANIC_SHARE: lambda c: c.organic_share,
    FieldRef.STOCK_LEVEL: lambda c: c.stock_level,
    FieldRef.AGED_STOCK_QTY: lambda c: c.aged_stock_qty,
    FieldRef.AGED_STOCK_PCT: lambda c: c.aged_stock_pct,
    FieldRef.DAYS_REMAINING: lambda c: c.days_remaining,
    FieldRef.DAILY_VELOCITY: lambda c: c.average_daily_sales,
    FieldRef.VELOCITY_CHANGE: lambda c: c.velocity_change,
    FieldRef.VELOCITY_CHANGE_ABS: lambda c: c.velocity_change_abs,
    FieldRef.REVENUE_CHANGE_ABS: lambda c: c.revenue_change_abs,
    FieldRef.REVENUE_CHANGE_PCT: lambda c: c.revenue_change_pct,
    FieldRef.MARGIN_CHANGE: lambda c: c.margin_change,
    FieldRef.RETURN_RATE: lambda c: c.return_rate,
    FieldRef.PERIOD_RETURN_RATE: lambda c: c.period_return_rate,
    FieldRef.CONTRIBUTION: lambda c: c.contribution,
    FieldRef.REFUND_AMOUNT: lambda c: c.refund_amount,
    FieldRef.REASON: lambda c: c.reason,
}

# Alternative spellings used by the translator, the UI and metric ids
_ALIASES: Dict[str, FieldRef] = {
    "productname": FieldRef.NAME,
    "product_name": FieldRef.NAME,
    "kind": FieldRef.KIND,
    "unitprice": FieldRef.PRICE,
    "unit_price": FieldRef.PRICE,
    "velocity": FieldRef.QUANTITY,
    "qty": FieldRef.QUANTITY,
    "sales_qty": FieldRef.QUANTITY,
    "SALES_QTY": FieldRef.QUANTITY,
    "REVENUE": FieldRef.REVENUE,
    "net_profit": FieldRef.PROFIT,
    "NET_PROFIT": FieldRef.PROFIT,
    "net_margin_pct": FieldRef.MARGIN,
    "netpmpercent": FieldRef.MARGIN,
    "CMA_PCT": FieldRef.MARGIN,
    "adsspend": FieldRef.AD_SPEND,
    "ad_spend": FieldRef.AD_SPEND,
    "tacos_pct": FieldRef.TACOS,
    "ADS_SPEND_PCT": FieldRef.TACOS,
    "organic_share": FieldRef.ORGANIC_SHARE,
    "ORGANIC_SHARE_PCT": FieldRef.ORGANIC_SHARE,
    "stock_level": FieldRef.STOCK_LEVEL,
    "STOCK_LEVEL": FieldRef.STOCK_LEVEL,
    "aged_stock_qty": FieldRef.AGED_STOCK_QTY,
    "aged_stock_pct": FieldRef.AGED_STOCK_PCT,
    "AGED_STOCK_PCT": FieldRef.AGED_STOCK_PCT,
    "days_remaining": FieldRef.DAYS_REMAINING,
    "stock_cover_days": FieldRef.DAYS_REMAINING,
    "STOCK_COVER_DAYS": FieldRef.DAYS_REMAINING,
    "average_daily_sales": FieldRef.DAILY_VELOCITY,
    "DAILY_VELOCITY": FieldRef.DAILY_VELOCITY,
    "velocity_change": FieldRef.VELOCITY_CHANGE,
    "VELOCITY_CHANGE_PCT": FieldRef.VELOCITY_CHANGE,
    "revenue_change_pct": FieldRef.REVENUE_CHANGE_PCT,
    "REVENUE_CHANGE_PCT": FieldRef.REVENUE_CHANGE_PCT,
    "margin_change": FieldRef.MARGIN_CHANGE,
    "MARGIN_CHANGE_PCT": FieldRef.MARGIN_CHANGE,
    "return_rate": FieldRef.RETURN_RATE,
    "period_return_rate": FieldRef.PERIOD_RETURN_RATE,
    "RETURN_RATE_PCT": FieldRef.PERIOD_RETURN_RATE,
    "refund_amount": FieldRef.REFUND_AMOUNT,
}

_BY_KEY: Dict[str, FieldRef] = {}
for _ref in FieldRef:
    _BY_KEY[_ref.value] = _ref
    _BY_KEY[_ref.value.lower()] = _ref
for _alias, _ref in _ALIASES.items():
    _BY_KEY[_alias] = _ref
    _BY_KEY[_alias.lower()] = _ref

# Filters on these fields read a missing value as 0
NULL_AS_ZERO = frozenset({FieldRef.ORGANIC_SHARE})

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def resolve_field(name: Optional[str]) -> Optional[FieldRef]:
    """Map a free-form field name to its FieldRef, None if unknown."""
    if not name:
        return None
    key = str(name).strip()
    return _BY_KEY.get(key) or _BY_KEY.get(key.lower())


def to_attribute_name(name: str) -> str:
    """camelCase / UPPER_CASE field name to a snake_case attribute name."""
    if name.isupper():
        return name.lower()
    return _CAMEL_RE.sub("_", name).lower()


class MetricSnapshot:
    """
    Lazily evaluated, memoized field values of one candidate.

    Each FieldRef accessor runs at most once per snapshot.
    """

    __slots__ = ("candidate", "_values")

    def __init__(self, candidate: Candidate):
        self.candidate = candidate
        self._values: Dict[FieldRef, Any] = {}

    def __getitem__(self, ref: FieldRef) -> Any:
        if ref not in self._values:
            self._values[ref] = _ACCESSORS[ref](self.candidate)
        return self._values[ref]

    def get(self, ref: Optional[FieldRef], default: Any = None) -> Any:
        if ref is None:
            return default
        value = self[ref]
        return default if value is None else value


def sort_value(snapshot: MetricSnapshot, field_name: Optional[str]) -> float:
    """
    Numeric contribution of one candidate to its SKU's ranking total.

    Unknown or non-numeric fields fall back to revenue. Margin change is
    weighted by quantity so SKUs with more units move further.
    """
    ref = resolve_field(field_name) or FieldRef.REVENUE
    value = snapshot.get(ref)
    if ref is FieldRef.MARGIN_CHANGE and value is not None:
        return float(value) * snapshot.candidate.quantity
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return snapshot.candidate.revenue
    return float(value)
