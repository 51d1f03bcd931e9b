"""
Tests for skusearch.inventory module.
"""
import pytest

from skusearch.candidates import inventory_candidate
from skusearch.inventory import derive_inventory_snapshots, derive_velocity_stats, refresh_products
from skusearch.models import Product
from skusearch.platforms import PlatformRules


class TestDeriveVelocityStats:
    """Tests for recomputed velocity and return rates."""

    def test_anchored_at_latest_sale(self, products, sales, refunds):
        """The window ends at the latest sale and spans the look-back."""
        stats = derive_velocity_stats(products.values(), sales, refunds, lookback_days=30, tz_name="UTC")
        assert stats["A1"].average_daily_sales == 0.5
        assert stats["A1"].previous_daily_sales == 0.13
        assert stats["C3"].average_daily_sales == 0.33
        assert stats["C3"].previous_daily_sales == 0.17

    def test_return_rate_and_refunded_total(self, products, sales, refunds):
        """Return rate is refunded units over estimated units sold."""
        stats = derive_velocity_stats(products.values(), sales, refunds, lookback_days=30, tz_name="UTC")
        assert stats["A1"].refunded_qty == 1
        assert stats["A1"].total_refunded == 10.0
        assert stats["A1"].return_rate == pytest.approx(6.67)
        # refund 100 days back is outside the look-back
        assert stats["C3"].total_refunded == 0.0

    def test_explicit_anchor(self, products, sales, refunds, now):
        """An explicit anchor replaces the latest sale date."""
        stats = derive_velocity_stats(products.values(), sales, refunds, lookback_days=7, anchor=now, tz_name="UTC")
        assert stats["A1"].average_daily_sales == 2.14

    def test_excluded_platforms_ignored(self, products, sales, refunds):
        """Sales on excluded platforms do not count toward velocity."""
        rules = PlatformRules.from_dict({"Amazon": {"isExcluded": True}})
        stats = derive_velocity_stats(
            products.values(), sales, refunds, lookback_days=30, rules=rules, tz_name="UTC"
        )
        assert stats["A1"].average_daily_sales == 0.0
        # falls back to the catalog velocity (5/day) for the estimate
        assert stats["A1"].return_rate == pytest.approx(0.67)

    def test_no_dated_sales(self, products):
        """Nothing to anchor on, nothing recomputed."""
        assert derive_velocity_stats(products.values(), [], []) == {}


class TestSnapshots:
    """Tests for refreshed products and stock snapshots."""

    def test_refresh_products(self, products, sales, refunds):
        """Refreshed copies carry the new velocity, originals are untouched."""
        stats = derive_velocity_stats(products.values(), sales, refunds, lookback_days=30, tz_name="UTC")
        refreshed = {p.sku: p for p in refresh_products(products.values(), stats)}
        assert refreshed["A1"].average_daily_sales == 0.5
        assert products["A1"].average_daily_sales == 5.0

    def test_snapshot_per_product(self, products, sales, refunds):
        """One snapshot per product with derived velocities."""
        snapshots = derive_inventory_snapshots(
            products.values(), sales, refunds, lookback_days=30, tz_name="UTC"
        )
        by_sku = {s.sku: s for s in snapshots}
        assert set(by_sku) == {"A1", "B2", "C3"}
        assert by_sku["B2"].average_daily_velocity == 0.33
        assert by_sku["A1"].stock_level == 100

    def test_unsold_product_cover_sentinel(self, sales, refunds, now):
        """A product that never sells shows the 999-day cover value."""
        idle = Product(sku="D4", name="Idle Delta", stock_level=40, current_price=5.0)
        [snapshot] = derive_inventory_snapshots([idle], sales, refunds, lookback_days=30, tz_name="UTC")
        row = inventory_candidate(snapshot, idle, now)
        assert snapshot.average_daily_velocity == 0.0
        assert row.days_remaining == 999.0
