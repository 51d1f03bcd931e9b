"""
Domain models for catalog entities and ledger rows.

Raw ledger rows (SalesRecord, RefundRecord) are what the host loads.
Before they reach the candidate builder every row is classified into one
variant of the LedgerEntry tagged union (Sale, AdCost, Refund,
InventorySnapshot), so downstream code matches on type instead of
inferring the kind from price/quantity values.
"""
import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple, Union

from skusearch.metrics import to_number


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """First present (non-None) value among several spellings of a key."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def _optional_number(value: Any) -> Optional[float]:
    """Finite float or None; NaN and infinities read as missing."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(num) or math.isinf(num):
        return None
    return num


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


DateLike = Union[str, date, datetime, None]


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class EntryKind(str, Enum):
    """Kind of a ledger entry / candidate row."""
    SALE = "SALE"
    AD_COST = "AD_COST"
    REFUND = "REFUND"
    INVENTORY = "INVENTORY"
    INVENTORY_CHANNEL = "INVENTORY_CHANNEL"

    @property
    def counts_toward_sales(self) -> bool:
        """Whether rows of this kind add to revenue/profit totals."""
        return self in (EntryKind.SALE, EntryKind.AD_COST, EntryKind.INVENTORY)


class TargetDataset(str, Enum):
    """Dataset a search intent targets."""
    SALES = "sales"
    INVENTORY = "inventory"
    REFUNDS = "refunds"
    DEEP_DIVE = "deep-dive"


class GroupDimension(str, Enum):
    """Top-level grouping key of the rollup tree."""
    PLATFORM = "platform"
    SKU = "sku"

    @property
    def complement(self) -> "GroupDimension":
        return GroupDimension.SKU if self is GroupDimension.PLATFORM else GroupDimension.PLATFORM


# ═══════════════════════════════════════════════════════════════════════════════
# CATALOG
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ChannelData:
    """Where a product is sold: platform velocity, price and listing alias."""
    platform: str
    velocity: float = 0.0
    price: Optional[float] = None
    sku_alias: Optional[str] = None
    manager: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChannelData":
        return cls(
            platform=str(_pick(data, "platform", default="Unknown")),
            velocity=to_number(_pick(data, "velocity", "daily_velocity")),
            price=_optional_number(_pick(data, "price")),
            sku_alias=_optional_str(_pick(data, "sku_alias", "skuAlias")),
            manager=_optional_str(_pick(data, "manager")),
        )


@dataclass
class Product:
    """Catalog entity every ledger row joins against by SKU."""
    sku: str
    name: str
    channels: List[ChannelData] = field(default_factory=list)
    current_price: float = 0.0
    stock_level: float = 0.0
    average_daily_sales: float = 0.0
    previous_daily_sales: float = 0.0
    aged_stock_qty: float = 0.0
    lead_time_days: float = 0.0

    # Costs & fees
    cost_price: float = 0.0
    selling_fee: float = 0.0
    ads_fee: float = 0.0
    postage: float = 0.0
    other_fee: float = 0.0
    subscription_fee: float = 0.0
    wms_fee: float = 0.0
    extra_freight: float = 0.0

    return_rate: float = 0.0
    total_refunded: float = 0.0
    category: Optional[str] = None
    brand: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        """Create Product from a catalog row (snake_case or camelCase keys)."""
        channels = [
            ChannelData.from_dict(ch)
            for ch in (data.get("channels") or [])
            if isinstance(ch, dict)
        ]
        return cls(
            sku=str(data.get("sku", "")),
            name=str(_pick(data, "name", "product_name", "productName", default="Unknown")),
            channels=channels,
            current_price=to_number(_pick(data, "current_price", "currentPrice")),
            stock_level=to_number(_pick(data, "stock_level", "stockLevel")),
            average_daily_sales=to_number(_pick(data, "average_daily_sales", "averageDailySales")),
            previous_daily_sales=to_number(_pick(data, "previous_daily_sales", "previousDailySales")),
            aged_stock_qty=to_number(_pick(data, "aged_stock_qty", "agedStockQty")),
            lead_time_days=to_number(_pick(data, "lead_time_days", "leadTimeDays")),
            cost_price=to_number(_pick(data, "cost_price", "costPrice")),
            selling_fee=to_number(_pick(data, "selling_fee", "sellingFee")),
            ads_fee=to_number(_pick(data, "ads_fee", "adsFee")),
            postage=to_number(_pick(data, "postage")),
            other_fee=to_number(_pick(data, "other_fee", "otherFee")),
            subscription_fee=to_number(_pick(data, "subscription_fee", "subscriptionFee")),
            wms_fee=to_number(_pick(data, "wms_fee", "wmsFee")),
            extra_freight=to_number(_pick(data, "extra_freight", "extraFreight")),
            return_rate=to_number(_pick(data, "return_rate", "returnRate")),
            total_refunded=to_number(_pick(data, "total_refunded", "totalRefunded")),
            category=_optional_str(data.get("category")),
            brand=_optional_str(data.get("brand")),
        )

    def matches_text(self, needle: str) -> bool:
        """Case-insensitive match on name, SKU or any channel alias."""
        needle = needle.lower()
        if needle in self.name.lower() or needle in self.sku.lower():
            return True
        return any(
            ch.sku_alias and needle in ch.sku_alias.lower()
            for ch in self.channels
        )


# ═══════════════════════════════════════════════════════════════════════════════
# RAW LEDGER ROWS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SalesRecord:
    """
    One row of the sales log.

    Either a genuine sale (price > 0) or a standalone ad-cost entry
    (price == 0, ad spend > 0). Use classify_sales_record to tell them apart.
    """
    sku: str
    date: DateLike
    unit_price: float
    quantity: float
    platform: Optional[str] = None
    margin: Optional[float] = None
    profit: Optional[float] = None
    ad_spend: Optional[float] = None
    order_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SalesRecord":
        return cls(
            sku=str(data.get("sku", "")),
            date=data.get("date"),
            unit_price=to_number(_pick(data, "unit_price", "unitPrice", "price")),
            quantity=to_number(_pick(data, "quantity", "velocity", "qty")),
            platform=_optional_str(data.get("platform")),
            margin=_optional_number(data.get("margin")),
            profit=_optional_number(data.get("profit")),
            ad_spend=_optional_number(_pick(data, "ad_spend", "adSpend", "adsSpend")),
            order_id=_optional_str(_pick(data, "order_id", "orderId")),
        )

    @property
    def revenue(self) -> float:
        return to_number(self.unit_price) * to_number(self.quantity)

    def effective_ad_spend(self, product: Optional[Product]) -> float:
        """Explicit ad spend, else the product's per-unit ads fee times quantity."""
        spend = _optional_number(self.ad_spend)
        if spend is not None:
            return spend
        if product is None:
            return 0.0
        return to_number(product.ads_fee) * to_number(self.quantity)


@dataclass(frozen=True)
class RefundRecord:
    """One row of the refund log."""
    sku: str
    date: DateLike
    refund_amount: float
    quantity: float
    platform: Optional[str] = None
    reason: Optional[str] = None
    order_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RefundRecord":
        return cls(
            sku=str(data.get("sku", "")),
            date=data.get("date"),
            refund_amount=to_number(_pick(data, "refund_amount", "refundAmount", "amount")),
            quantity=abs(to_number(_pick(data, "quantity", "qty"))),
            platform=_optional_str(data.get("platform")),
            reason=_optional_str(data.get("reason")),
            order_id=_optional_str(_pick(data, "order_id", "orderId")),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# LEDGER ENTRY VARIANTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Sale:
    """A genuine sale."""
    sku: str
    platform: Optional[str]
    date: DateLike
    unit_price: float
    quantity: float
    ad_spend: float
    margin: Optional[float] = None
    profit: Optional[float] = None
    order_id: Optional[str] = None
    kind: EntryKind = field(default=EntryKind.SALE, init=False)

    @property
    def revenue(self) -> float:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class AdCost:
    """Standalone advertising spend with no sale attached."""
    sku: str
    platform: Optional[str]
    date: DateLike
    ad_spend: float
    quantity: float = 0.0
    profit: Optional[float] = None
    kind: EntryKind = field(default=EntryKind.AD_COST, init=False)


@dataclass(frozen=True)
class Refund:
    """Money and units returned to a customer."""
    sku: str
    platform: Optional[str]
    date: DateLike
    refund_amount: float
    quantity: float
    reason: Optional[str] = None
    order_id: Optional[str] = None
    kind: EntryKind = field(default=EntryKind.REFUND, init=False)

    @classmethod
    def from_record(cls, record: RefundRecord) -> "Refund":
        return cls(
            sku=record.sku,
            platform=record.platform,
            date=record.date,
            refund_amount=to_number(record.refund_amount),
            quantity=abs(to_number(record.quantity)),
            reason=record.reason,
            order_id=record.order_id,
        )


@dataclass(frozen=True)
class InventorySnapshot:
    """Point-in-time stock position of one SKU."""
    sku: str
    product_name: str
    stock_level: float
    average_daily_velocity: float
    previous_daily_velocity: float = 0.0
    aged_stock_quantity: float = 0.0
    current_price: float = 0.0
    channels: Tuple[ChannelData, ...] = ()
    kind: EntryKind = field(default=EntryKind.INVENTORY, init=False)

    @classmethod
    def from_product(cls, product: Product) -> "InventorySnapshot":
        return cls(
            sku=product.sku,
            product_name=product.name,
            stock_level=product.stock_level,
            average_daily_velocity=product.average_daily_sales,
            previous_daily_velocity=product.previous_daily_sales,
            aged_stock_quantity=product.aged_stock_qty,
            current_price=product.current_price,
            channels=tuple(product.channels),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InventorySnapshot":
        return cls(
            sku=str(data.get("sku", "")),
            product_name=str(_pick(data, "product_name", "productName", "name", default="Unknown")),
            stock_level=to_number(_pick(data, "stock_level", "stockLevel")),
            average_daily_velocity=to_number(
                _pick(data, "average_daily_velocity", "averageDailyVelocity", "averageDailySales")
            ),
            previous_daily_velocity=to_number(
                _pick(data, "previous_daily_velocity", "previousDailyVelocity", "previousDailySales")
            ),
            aged_stock_quantity=to_number(_pick(data, "aged_stock_quantity", "agedStockQuantity", "agedStockQty")),
            current_price=to_number(_pick(data, "current_price", "currentPrice")),
            channels=tuple(
                ChannelData.from_dict(ch) for ch in (data.get("channels") or []) if isinstance(ch, dict)
            ),
        )


LedgerEntry = Union[Sale, AdCost, Refund, InventorySnapshot]


def classify_sales_record(record: SalesRecord, product: Optional[Product] = None) -> Union[Sale, AdCost, Refund]:
    """
    Turn a raw sales row into its ledger variant.

    price == 0 with ad spend > 0 is an AdCost; a negative quantity is a
    Refund of the absolute amount; anything else is a Sale. Numeric fields
    are coerced to finite floats here, so no variant ever holds NaN.
    """
    unit_price = to_number(record.unit_price)
    quantity = to_number(record.quantity)
    margin = _optional_number(record.margin)
    profit = _optional_number(record.profit)
    ad_spend = record.effective_ad_spend(product)

    if unit_price == 0 and ad_spend > 0:
        return AdCost(
            sku=record.sku,
            platform=record.platform,
            date=record.date,
            ad_spend=ad_spend,
            quantity=max(quantity, 0.0),
            profit=profit,
        )

    if quantity < 0:
        return Refund(
            sku=record.sku,
            platform=record.platform,
            date=record.date,
            refund_amount=abs(unit_price * quantity),
            quantity=abs(quantity),
            reason="Negative quantity",
            order_id=record.order_id,
        )

    return Sale(
        sku=record.sku,
        platform=record.platform,
        date=record.date,
        unit_price=unit_price,
        quantity=quantity,
        ad_spend=ad_spend,
        margin=margin,
        profit=profit,
        order_id=record.order_id,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# QUERY-SCOPED AGGREGATES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class PeriodStats:
    """Current and previous window totals for one SKU (rebuilt every query)."""
    current_revenue: float = 0.0
    current_qty: float = 0.0
    refund_total: float = 0.0
    organic_qty: float = 0.0
    ad_eligible_qty: float = 0.0
    prev_revenue: float = 0.0
    prev_qty: float = 0.0
    prev_profit: float = 0.0

    @property
    def period_return_rate(self) -> float:
        if self.current_revenue > 0:
            return self.refund_total / self.current_revenue * 100
        return 0.0

    @property
    def organic_share(self) -> Optional[float]:
        if self.ad_eligible_qty > 0:
            return self.organic_qty / self.ad_eligible_qty * 100
        return None


@dataclass(frozen=True)
class Candidate:
    """One annotated result row. Built once, never mutated."""
    sku: str
    product_name: str
    platform: str
    date: Optional[datetime]
    kind: EntryKind
    price: float = 0.0
    quantity: float = 0.0
    revenue: float = 0.0
    profit: float = 0.0
    margin: Optional[float] = None
    ad_spend: float = 0.0
    tacos: float = 0.0
    organic_share: Optional[float] = None
    stock_level: float = 0.0
    aged_stock_qty: float = 0.0
    aged_stock_pct: float = 0.0
    days_remaining: float = 0.0
    average_daily_sales: float = 0.0

    # Trend metrics (None when there is no comparison window)
    velocity_change: Optional[float] = None
    velocity_change_abs: Optional[float] = None
    revenue_change_abs: Optional[float] = None
    revenue_change_pct: Optional[float] = None
    margin_change: Optional[float] = None

    return_rate: float = 0.0
    period_return_rate: float = 0.0

    # Previous period values carried for rollup trend maths
    prev_revenue: float = 0.0
    prev_qty: float = 0.0
    prev_profit: float = 0.0

    contribution: float = 0.0
    reason: Optional[str] = None
    refund_amount: Optional[float] = None
    order_id: Optional[str] = None
    channels: Tuple[ChannelData, ...] = ()

    def with_contribution(self, contribution: float) -> "Candidate":
        return replace(self, contribution=contribution)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "sku": self.sku,
            "product_name": self.product_name,
            "platform": self.platform,
            "date": self.date.isoformat() if self.date else None,
            "type": self.kind.value,
            "price": round(self.price, 2),
            "quantity": self.quantity,
            "revenue": round(self.revenue, 2),
            "profit": round(self.profit, 2),
            "margin": round(self.margin, 2) if self.margin is not None else None,
            "ad_spend": round(self.ad_spend, 2),
            "tacos": round(self.tacos, 2),
            "organic_share": round(self.organic_share, 1) if self.organic_share is not None else None,
            "stock_level": self.stock_level,
            "aged_stock_pct": round(self.aged_stock_pct, 1),
            "days_remaining": round(self.days_remaining, 1),
            "velocity_change": self.velocity_change,
            "revenue_change_pct": self.revenue_change_pct,
            "margin_change": self.margin_change,
            "return_rate": self.return_rate,
            "period_return_rate": round(self.period_return_rate, 2),
            "prev_revenue": round(self.prev_revenue, 2),
            "prev_qty": self.prev_qty,
            "prev_profit": round(self.prev_profit, 2),
            "contribution": round(self.contribution, 2),
            "reason": self.reason,
            "refund_amount": self.refund_amount,
        }


@dataclass
class DeepDiveResult:
    """Everything known about one SKU, all time."""
    product: Product
    all_time_sales: float
    all_time_qty: float
    transactions: List[SalesRecord] = field(default_factory=list)
    refunds: List[RefundRecord] = field(default_factory=list)

    @property
    def refund_total(self) -> float:
        return sum(to_number(r.refund_amount) for r in self.refunds)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "DEEP_DIVE",
            "sku": self.product.sku,
            "product_name": self.product.name,
            "all_time_sales": round(self.all_time_sales, 2),
            "all_time_qty": self.all_time_qty,
            "transactions": len(self.transactions),
            "refunds": len(self.refunds),
            "refund_total": round(self.refund_total, 2),
        }
