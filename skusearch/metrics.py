"""
Metric calculator: pure functions deriving margin, revenue, profit, TACoS
and stock cover from raw ledger and catalog fields.

Every function is total: missing or non-numeric inputs are coerced to 0 and
divisions by zero return a sentinel instead of inf/NaN.
"""
import math
from typing import Any, Optional

from skusearch.config import NO_VELOCITY_DAYS, config


# Cost components deducted from the selling price
COST_FIELDS = (
    "cost_price",
    "selling_fee",
    "ads_fee",
    "postage",
    "other_fee",
    "subscription_fee",
    "wms_fee",
)


def to_number(value: Any, default: float = 0.0) -> float:
    """Coerce value to a finite float, falling back to default."""
    if value is None or isinstance(value, bool):
        return default
    try:
        num = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(num) or math.isinf(num):
        return default
    return num


def safe_div(numerator: float, denominator: float, fallback: float = 0.0) -> float:
    """Divide, returning fallback on a zero denominator or a non-finite result."""
    if not denominator:
        return fallback
    result = numerator / denominator
    if math.isnan(result) or math.isinf(result):
        return fallback
    return result


def calc_profit(revenue: float, profit: Any = None, margin: Any = None) -> float:
    """
    Profit of a ledger row.

    An explicit profit wins; otherwise it is derived from the margin
    percentage applied to revenue.
    """
    if profit is not None:
        return to_number(profit)
    return revenue * (to_number(margin) / 100)


def calc_margin_pct(revenue: float, profit: float) -> float:
    return safe_div(profit, revenue) * 100


def calc_tacos_pct(ad_spend: float, revenue: float) -> float:
    """Total advertising cost of sale, 0 when there is no revenue."""
    if revenue <= 0:
        return 0.0
    return safe_div(ad_spend, revenue) * 100


def product_margin(product: Any, price: Any) -> float:
    """
    Net margin % of selling one unit of product at price.

    Income is price plus extra freight; costs are the cost price and all
    fee components. Returns 0 for a missing product or non-positive price.
    """
    price = to_number(price)
    if product is None or price <= 0:
        return 0.0
    total_cost = sum(to_number(getattr(product, name, 0)) for name in COST_FIELDS)
    total_income = price + to_number(getattr(product, "extra_freight", 0))
    return safe_div(total_income - total_cost, price) * 100


def days_of_cover(stock_level: Any, daily_velocity: Any) -> float:
    """Days of stock left at the given daily velocity; sentinel when velocity is 0."""
    velocity = to_number(daily_velocity)
    if velocity <= 0:
        return NO_VELOCITY_DAYS
    return to_number(stock_level) / velocity


def aged_stock_pct(aged_qty: Any, stock_level: Any) -> float:
    stock = to_number(stock_level)
    aged = to_number(aged_qty)
    if stock <= 0 or aged <= 0:
        return 0.0
    return aged / stock * 100


def pct_change(current: float, previous: float) -> float:
    """
    Percent change from previous to current.

    A zero baseline counts as a full rise (100) when there is any current
    value and as no change otherwise.
    """
    if previous > 0:
        return (current - previous) / previous * 100
    return 100.0 if current > 0 else 0.0


def prior_margin_pct(prev_revenue: float, prev_profit: float) -> float:
    if prev_revenue > 0:
        return prev_profit / prev_revenue * 100
    return 0.0


def format_cover_days(days: Optional[float]) -> str:
    """Display label for a cover value, capped above two years."""
    if days is None:
        return "N/A"
    if days > config.stock.display_cap_days:
        return config.stock.display_cap_label
    return f"{days:.0f}d"
