"""
Tests for skusearch.intent module.
"""
import pytest

from skusearch.exceptions import IntentError, SearchError
from skusearch.intent import FilterSpec, Operator, SearchIntent, SortDirection, parse_intent
from skusearch.models import GroupDimension, TargetDataset


class TestParseIntent:
    """Tests for parse_intent."""

    def test_translator_payload(self):
        """camelCase translator keys are accepted."""
        intent = parse_intent({
            "targetData": "sales",
            "filters": [{"field": "margin", "operator": "<", "value": 0}],
            "sort": {"field": "revenue", "direction": "asc"},
            "limit": 5,
            "timeRange": {"type": "relative", "value": "7d"},
            "groupBy": "sku",
        })
        assert intent.target_dataset is TargetDataset.SALES
        assert intent.filters[0].operator is Operator.LT
        assert intent.sort.direction is SortDirection.ASC
        assert intent.limit == 5
        assert intent.time_range.value == "7d"
        assert intent.group_by is GroupDimension.SKU

    def test_defaults(self):
        """Empty payload is a sales search over the default window."""
        intent = parse_intent({})
        assert intent.target_dataset is TargetDataset.SALES
        assert intent.filters == []
        assert intent.sort is None
        assert intent.limit is None
        assert intent.time_range is None
        assert intent.sort_field == "revenue"

    def test_deep_dive_spellings(self):
        """DEEP_DIVE, deepdive and deep-dive all map to the same target."""
        for value in ("DEEP_DIVE", "deepdive", "deep-dive"):
            assert parse_intent({"target": value}).target_dataset is TargetDataset.DEEP_DIVE

    def test_non_positive_limit_means_no_limit(self):
        """limit <= 0 is the same as no limit."""
        assert parse_intent({"limit": 0}).limit is None
        assert parse_intent({"limit": -3}).limit is None

    def test_passthrough(self):
        """An already parsed intent is returned as is."""
        intent = SearchIntent()
        assert parse_intent(intent) is intent

    def test_unknown_target_raises(self):
        """Unknown target dataset is an IntentError."""
        with pytest.raises(IntentError) as exc_info:
            parse_intent({"target": "customers"})
        assert exc_info.value.errors
        assert isinstance(exc_info.value, SearchError)

    def test_non_mapping_raises(self):
        """Non-dict payloads are rejected."""
        with pytest.raises(IntentError):
            parse_intent(["sales"])


class TestFilterSpec:
    """Tests for FilterSpec operator normalization."""

    @pytest.mark.parametrize("raw,expected", [
        (">", Operator.GT),
        ("gt", Operator.GT),
        (">=", Operator.GTE),
        ("==", Operator.EQ),
        ("contains", Operator.CONTAINS),
    ])
    def test_operator_aliases(self, raw, expected):
        """Symbol and word forms normalize to the same operator."""
        assert FilterSpec(field="x", operator=raw, value=1).operator is expected

    def test_op_alias_key(self):
        """'op' is accepted as the operator key."""
        spec = FilterSpec.model_validate({"field": "x", "op": "<", "value": 1})
        assert spec.operator is Operator.LT

    def test_unknown_operator(self):
        """Unsupported operators fail validation."""
        with pytest.raises(IntentError):
            parse_intent({"filters": [{"field": "x", "operator": "LIKE", "value": 1}]})


class TestTimeRange:
    """Tests for TimeRange type inference."""

    def test_plain_string(self):
        """A bare string is accepted and typed by its shape."""
        intent = parse_intent({"timeRange": "90d"})
        assert intent.time_range.type == "relative"

    def test_preset(self):
        """Known preset names are typed as presets."""
        intent = parse_intent({"timeRange": {"value": "last_month"}})
        assert intent.time_range.type == "preset"
        assert intent.time_range.value == "LAST_MONTH"

    def test_absolute(self):
        """Anything else is an absolute date."""
        intent = parse_intent({"timeRange": {"value": "2026-01-01"}})
        assert intent.time_range.type == "absolute"
