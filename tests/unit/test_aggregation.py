"""
Tests for skusearch.aggregation module.
"""
from dataclasses import replace

import pytest

from skusearch.aggregation import SortContext, aggregate, sort_groups
from skusearch.intent import SortSpec
from skusearch.models import ChannelData, EntryKind, GroupDimension


def ads_on(platform):
    return platform in ("Amazon", "eBay")


@pytest.fixture
def rows(make_candidate):
    """Two A1 sales and a refund on Amazon, one B2 sale on eBay."""
    return [
        make_candidate("A1", "Amazon", revenue=100.0, profit=20.0, quantity=10, ad_spend=5.0,
                       stock_level=100, aged_stock_qty=20, average_daily_sales=5.0,
                       prev_qty=4, prev_revenue=40.0, prev_profit=8.0, velocity_change_abs=11.0),
        make_candidate("A1", "Amazon", revenue=50.0, profit=10.0, quantity=5,
                       stock_level=100, aged_stock_qty=20, average_daily_sales=5.0,
                       prev_qty=4, prev_revenue=40.0, prev_profit=8.0, velocity_change_abs=11.0),
        make_candidate("B2", "eBay", revenue=200.0, profit=40.0, quantity=10,
                       stock_level=50, average_daily_sales=0.0, velocity_change_abs=10.0),
        make_candidate("A1", "Amazon", kind=EntryKind.REFUND, quantity=1, profit=-10.0,
                       refund_amount=10.0, stock_level=100),
    ]


def _by_key(groups):
    return {g.key: g for g in groups}


class TestAggregate:
    """Tests for the rollup tree."""

    def test_platform_totals(self, rows):
        """Revenue, profit and weighted margin add up per platform."""
        amazon = _by_key(aggregate(rows, ads_enabled=ads_on))["Amazon"]
        assert amazon.total_revenue == 150.0
        assert amazon.total_profit == 30.0
        assert amazon.weighted_margin == pytest.approx(20.0)
        assert amazon.count == 3

    def test_refunds_kept_separate(self, rows):
        """Refund rows feed refund totals, not revenue or quantity."""
        amazon = _by_key(aggregate(rows, ads_enabled=ads_on))["Amazon"]
        assert amazon.total_qty == 15
        assert amazon.total_refund_amount == 10.0
        assert amazon.total_refund_qty == 1
        assert amazon.period_return_rate == pytest.approx(100 / 15)

    def test_top_equals_sum_of_subgroups(self, rows):
        """Every top group total is the sum over its sub-groups."""
        for group in aggregate(rows, group_by=GroupDimension.SKU, ads_enabled=ads_on):
            subs = group.subgroup_list
            assert group.total_revenue == pytest.approx(sum(s.total_revenue for s in subs))
            assert group.total_profit == pytest.approx(sum(s.total_profit for s in subs))
            assert group.total_qty == pytest.approx(sum(s.total_qty for s in subs))
            assert group.total_ad_spend == pytest.approx(sum(s.total_ad_spend for s in subs))

    def test_margin_identity(self, rows):
        """Weighted margin equals total profit over total revenue."""
        for group in aggregate(rows, ads_enabled=ads_on):
            assert group.weighted_margin == pytest.approx(group.total_profit / group.total_revenue * 100)

    def test_tacos_and_organic_share(self, rows):
        """TACoS is over ad-enabled revenue; organic share is its complement."""
        amazon = _by_key(aggregate(rows, ads_enabled=ads_on))["Amazon"]
        assert amazon.tacos == pytest.approx(5 / 150 * 100)
        assert amazon.organic_share == pytest.approx(100 - 5 / 150 * 100)

    def test_no_ads_platform_has_no_organic_share(self, rows):
        """Groups without ad-enabled revenue have organic share None."""
        amazon = _by_key(aggregate(rows))["Amazon"]
        assert amazon.tacos == 0.0
        assert amazon.organic_share is None

    def test_unique_sku_values_counted_once(self, rows):
        """Stock and velocity are taken once per SKU, not per row."""
        amazon = _by_key(aggregate(rows, ads_enabled=ads_on))["Amazon"]
        assert amazon.stock_level == 100
        assert amazon.aged_stock_pct == pytest.approx(20.0)
        assert amazon.cover_days == pytest.approx(20.0)
        assert amazon.sku_count == 1

    def test_trend_fields(self, rows):
        """Group velocity and margin change come from previous-window totals."""
        amazon = _by_key(aggregate(rows, ads_enabled=ads_on))["Amazon"]
        assert amazon.velocity_change == pytest.approx(275.0)
        assert amazon.weighted_margin_change == pytest.approx(0.0)

    def test_trend_fields_without_previous_window(self, make_candidate):
        """No comparison window, no group trends."""
        groups = aggregate([make_candidate(revenue=10.0, profit=1.0, quantity=1)])
        assert groups[0].velocity_change is None
        assert groups[0].weighted_margin_change is None

    def test_group_by_sku(self, rows):
        """Grouping by SKU nests platforms underneath."""
        groups = _by_key(aggregate(rows, group_by=GroupDimension.SKU))
        assert set(groups) == {"A1", "B2"}
        assert list(groups["A1"].sub_groups) == ["Amazon"]
        assert groups["A1"].product_name == "Product A1"

    def test_to_dict(self, rows):
        """Serialized groups include nested sub-groups and items."""
        data = aggregate(rows, ads_enabled=ads_on)[0].to_dict()
        assert data["key"] == "eBay"
        assert data["sub_groups"][0]["items"][0]["sku"] == "B2"
        assert data["volume_badge"] is None


class TestInventoryMode:
    """Tests for stock rows grouped by SKU."""

    @pytest.fixture
    def stock_row(self, make_candidate):
        return make_candidate(
            "A1", "Amazon", kind=EntryKind.INVENTORY, price=10.0, quantity=100, revenue=1000.0,
            stock_level=100, average_daily_sales=5.0,
            channels=(ChannelData("Amazon", velocity=3.0, price=12.0), ChannelData("eBay", velocity=2.0)),
        )

    def test_channels_become_subgroups(self, stock_row):
        """Each channel is a sub-group with its own velocity and cover."""
        [group] = aggregate([stock_row], GroupDimension.SKU, context=SortContext(inventory=True))
        assert group.total_qty == 100
        assert group.global_velocity == 5.0
        assert group.cover_days == pytest.approx(20.0)
        amazon, ebay = group.subgroup_list
        assert amazon.platform_cover == pytest.approx(100 / 3)
        assert amazon.cover_days == pytest.approx(100 / 3)
        assert amazon.items[0].kind is EntryKind.INVENTORY_CHANNEL
        assert amazon.items[0].revenue == pytest.approx(36.0)
        # no channel price falls back to the row price
        assert ebay.items[0].revenue == pytest.approx(20.0)

    def test_channels_fastest_first(self, make_candidate):
        """Channel sub-groups are ordered by platform velocity, highest first."""
        row = make_candidate(
            "A1", "Amazon", kind=EntryKind.INVENTORY, price=10.0, quantity=60, stock_level=60,
            average_daily_sales=6.0,
            channels=(ChannelData("eBay", velocity=1.0), ChannelData("Amazon", velocity=3.0),
                      ChannelData("Shopify", velocity=2.0)),
        )
        [group] = aggregate([row], GroupDimension.SKU, context=SortContext(inventory=True))
        assert list(group.sub_groups) == ["Amazon", "Shopify", "eBay"]

    def test_explicit_sort_orders_channels(self, make_candidate):
        """An explicit sort bypasses the velocity order."""
        row = make_candidate(
            "A1", "Amazon", kind=EntryKind.INVENTORY, price=10.0, quantity=60, stock_level=60,
            channels=(ChannelData("Amazon", velocity=1.0), ChannelData("eBay", velocity=3.0)),
        )
        [group] = aggregate(
            [row], GroupDimension.SKU,
            sort=SortSpec(field="revenue", direction="asc"),
            context=SortContext(inventory=True),
        )
        assert list(group.sub_groups) == ["Amazon", "eBay"]

    def test_cover_label_capped(self, stock_row):
        """Serialized groups show cover as a label capped above two years."""
        slow = replace(stock_row, average_daily_sales=0.0)
        [group] = aggregate([slow], GroupDimension.SKU, context=SortContext(inventory=True))
        data = group.to_dict()
        assert data["cover_days"] == 999.0
        assert data["cover_label"] == ">2y"
        assert data["sub_groups"][0]["cover_label"] == "33d"

    def test_platform_grouping_is_not_inventory_mode(self, stock_row):
        """Inventory mode needs SKU grouping."""
        [group] = aggregate([stock_row], GroupDimension.PLATFORM, context=SortContext(inventory=True))
        assert group.global_velocity is None
        assert list(group.sub_groups) == ["A1"]


class TestSortGroups:
    """Tests for group ordering."""

    def test_default_revenue_descending(self, rows):
        """Without sort or context, revenue descending."""
        assert [g.key for g in aggregate(rows)] == ["eBay", "Amazon"]

    def test_explicit_sort_wins(self, rows):
        """An explicit sort overrides context flags."""
        groups = aggregate(rows, sort=SortSpec(field="revenue", direction="asc"), context=SortContext(volume=True))
        assert [g.key for g in groups] == ["Amazon", "eBay"]

    def test_margin_sort_uses_profit(self, rows):
        """Sorting groups by margin orders by total profit."""
        groups = aggregate(rows, sort=SortSpec(field="margin", direction="desc"))
        assert [g.key for g in groups] == ["eBay", "Amazon"]

    def test_volume_context(self, rows):
        """Volume context orders by quantity."""
        groups = aggregate(rows, context=SortContext(volume=True))
        assert [g.key for g in groups] == ["Amazon", "eBay"]

    def test_ad_context(self, rows):
        """Ad context orders by TACoS descending."""
        groups = aggregate(rows, context=SortContext(ad=True), ads_enabled=ads_on)
        assert [g.key for g in groups] == ["Amazon", "eBay"]

    def test_inventory_context(self, rows):
        """Inventory context orders by stock ascending."""
        groups = aggregate(rows, context=SortContext(inventory=True))
        assert [g.key for g in groups] == ["eBay", "Amazon"]

    def test_aged_context_beats_volume(self, rows):
        """Aged stock has the highest priority."""
        groups = aggregate(rows, context=SortContext(aged_stock=True, volume=True))
        assert [g.key for g in groups] == ["Amazon", "eBay"]

    def test_organic_context_none_last(self, rows):
        """Organic ordering is ascending with missing shares last."""
        groups = aggregate(rows, context=SortContext(organic_share=True), ads_enabled=lambda p: p == "Amazon")
        assert [g.key for g in groups] == ["Amazon", "eBay"]

    def test_stable_ties(self, make_candidate):
        """Equal keys keep first-seen order."""
        groups = aggregate([
            make_candidate("X", "P1", revenue=10.0),
            make_candidate("Y", "P2", revenue=10.0),
        ])
        assert [g.key for g in sort_groups(groups, None, SortContext())] == ["P1", "P2"]
