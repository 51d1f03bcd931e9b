"""
Tests for skusearch.context module.
"""
from skusearch.context import detect_sort_context
from skusearch.intent import parse_intent


class TestDetectSortContext:
    """Tests for keyword and field driven context flags."""

    def test_empty_query(self):
        """No query and no intent sets nothing."""
        context = detect_sort_context(None)
        assert not any(vars(context).values())

    def test_volume_keywords(self):
        """Quantity words set the volume flag."""
        context = detect_sort_context("Top sellers by units sold")
        assert context.volume
        assert not context.margin

    def test_aged_stock_also_inventory(self):
        """'aged stock' hits both the aged and the inventory keywords."""
        context = detect_sort_context("aged stock report")
        assert context.aged_stock
        assert context.inventory

    def test_substring_matching(self):
        """Keywords match inside longer words."""
        assert detect_sort_context("trade show").ad

    def test_margin_and_trend(self):
        """Margin and trend words combine."""
        context = detect_sort_context("profit decline this month")
        assert context.margin
        assert context.trend

    def test_filter_field_sets_flag(self):
        """A filter on a context field sets the flag without keywords."""
        intent = parse_intent({"filters": [{"field": "organicShare", "operator": "<", "value": 20}]})
        assert detect_sort_context("", intent).organic_share

    def test_sort_field_sets_flag(self):
        """A sort on a context field sets the flag."""
        intent = parse_intent({"sort": {"field": "stockLevel", "direction": "asc"}})
        assert detect_sort_context("show me things", intent).inventory
