"""
Pytest configuration and shared fixtures.
"""
import pytest
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Any

from skusearch.models import (
    Candidate,
    ChannelData,
    EntryKind,
    Product,
    RefundRecord,
    SalesRecord,
)
from skusearch.platforms import AdsCapabilities


NOW = datetime(2026, 3, 31, 12, 0, tzinfo=timezone.utc)


def days_ago(days: float) -> str:
    """ISO timestamp `days` before NOW."""
    return (NOW - timedelta(days=days)).isoformat()


@pytest.fixture
def now() -> datetime:
    """Fixed reference moment for window resolution."""
    return NOW


@pytest.fixture
def ago():
    """days_ago helper as a fixture."""
    return days_ago


@pytest.fixture
def products() -> Dict[str, Product]:
    """Small catalog: one ads-heavy SKU, one dead-stock SKU, one organic SKU."""
    items = [
        Product(
            sku="A1",
            name="Widget Alpha",
            channels=[
                ChannelData(platform="Amazon", velocity=3.0, price=12.0, sku_alias="WID-ALPHA"),
                ChannelData(platform="eBay", velocity=2.0),
            ],
            current_price=10.0,
            stock_level=100,
            average_daily_sales=5.0,
            previous_daily_sales=4.0,
            aged_stock_qty=20,
            cost_price=5.0,
            postage=1.0,
            return_rate=2.5,
        ),
        Product(
            sku="B2",
            name="Gadget Beta",
            current_price=20.0,
            stock_level=50,
            average_daily_sales=0.0,
            cost_price=10.0,
        ),
        Product(
            sku="C3",
            name="Doohickey Gamma",
            channels=[ChannelData(platform="Shopify", velocity=1.0)],
            current_price=30.0,
            stock_level=10,
            average_daily_sales=1.0,
            previous_daily_sales=2.0,
            cost_price=12.0,
        ),
    ]
    return {p.sku: p for p in items}


@pytest.fixture
def sales() -> List[SalesRecord]:
    """Sales ledger around NOW (default window is the last 30 days)."""
    return [
        SalesRecord(sku="A1", date=days_ago(5), unit_price=10.0, quantity=10, platform="Amazon",
                    profit=20.0, ad_spend=5.0, order_id="o-1"),
        SalesRecord(sku="A1", date=days_ago(3), unit_price=10.0, quantity=5, platform="Amazon",
                    profit=10.0, ad_spend=0.0, order_id="o-2"),
        SalesRecord(sku="A1", date=days_ago(4), unit_price=0.0, quantity=0, platform="Amazon",
                    ad_spend=15.0),
        SalesRecord(sku="B2", date=days_ago(2), unit_price=20.0, quantity=10, platform="eBay",
                    profit=40.0, ad_spend=0.0, order_id="o-3"),
        SalesRecord(sku="C3", date=days_ago(1), unit_price=30.0, quantity=10, platform="Shopify",
                    profit=60.0, ad_spend=0.0, order_id="o-4"),
        # Previous window (30-60 days back)
        SalesRecord(sku="A1", date=days_ago(40), unit_price=10.0, quantity=4, platform="Amazon",
                    profit=8.0, ad_spend=0.0),
        SalesRecord(sku="C3", date=days_ago(45), unit_price=30.0, quantity=5, platform="Shopify",
                    profit=30.0, ad_spend=0.0),
    ]


@pytest.fixture
def refunds() -> List[RefundRecord]:
    """Refund ledger: one recent refund, one far outside the window."""
    return [
        RefundRecord(sku="A1", date=days_ago(2), refund_amount=10.0, quantity=1, platform="Amazon",
                     reason="Damaged", order_id="o-1"),
        RefundRecord(sku="C3", date=days_ago(100), refund_amount=30.0, quantity=1, platform="Shopify",
                     reason="Wrong size"),
    ]


@pytest.fixture
def ads() -> AdsCapabilities:
    """Amazon and eBay run ads, Shopify does not."""
    return AdsCapabilities({"Amazon": True, "eBay": True, "Shopify": False}, default_platforms=[])


@pytest.fixture
def make_candidate():
    """Factory for hand-built candidates with sensible defaults."""
    def _make(sku: str = "A1", platform: str = "Amazon", **overrides: Any) -> Candidate:
        values: Dict[str, Any] = {
            "sku": sku,
            "product_name": f"Product {sku}",
            "platform": platform,
            "date": NOW,
            "kind": EntryKind.SALE,
        }
        values.update(overrides)
        return Candidate(**values)
    return _make
