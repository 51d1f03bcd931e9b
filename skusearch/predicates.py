"""
Filter predicate evaluation.

A filter field is resolved in three layers: a literal attribute of the
ledger entry, then the candidate's metric snapshot, then a same-named
attribute of the joined product. A field that resolves nowhere reads as
None, and None fails every operator.
"""
import logging
import math
from typing import Any, Iterable, Optional

from skusearch.fields import NULL_AS_ZERO, FieldRef, MetricSnapshot, resolve_field, to_attribute_name
from skusearch.intent import FilterSpec, Operator
from skusearch.models import EntryKind, Product

logger = logging.getLogger(__name__)

# Only rows that represent a priced sale carry a margin
_MARGIN_FIELDS = frozenset({FieldRef.MARGIN, FieldRef.MARGIN_CHANGE})
_MARGIN_KINDS = frozenset({EntryKind.SALE, EntryKind.INVENTORY})


def resolve_value(
    field_name: str,
    record: Any,
    metrics: MetricSnapshot,
    product: Optional[Product] = None,
) -> Any:
    """Value of field_name for one row, or None when nothing defines it."""
    attribute = to_attribute_name(field_name)

    if record is not None and attribute != "kind":
        value = getattr(record, attribute, None)
        if value is not None:
            return value

    ref = resolve_field(field_name)
    if ref is not None:
        value = metrics[ref]
        if value is None and ref in NULL_AS_ZERO:
            return 0.0
        if value is not None:
            return value

    if product is not None:
        value = getattr(product, attribute, None)
        if value is not None and not callable(value):
            return value

    return None


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(num) else num


def compare(actual: Any, operator: Operator, expected: Any) -> bool:
    """Apply one operator; None on the left never matches."""
    if actual is None:
        return False

    if operator is Operator.CONTAINS:
        return str(expected).lower() in str(actual).lower()

    if operator is Operator.EQ:
        if str(actual).strip().lower() == str(expected).strip().lower():
            return True
        left, right = _as_float(actual), _as_float(expected)
        return left is not None and right is not None and math.isclose(left, right)

    left, right = _as_float(actual), _as_float(expected)
    if left is None or right is None:
        return False
    if operator is Operator.GT:
        return left > right
    if operator is Operator.LT:
        return left < right
    if operator is Operator.GTE:
        return left >= right
    if operator is Operator.LTE:
        return left <= right
    return False


def evaluate(
    spec: FilterSpec,
    record: Any,
    metrics: MetricSnapshot,
    product: Optional[Product] = None,
) -> bool:
    """
    Check one filter against one row.

    Args:
        spec: Filter condition
        record: Ledger entry the row was built from (may be None)
        metrics: Memoized field values of the row's candidate
        product: Joined catalog entity

    Returns:
        True if the row satisfies the filter
    """
    if spec.field.strip().lower() == "name" and spec.operator is Operator.CONTAINS:
        needle = str(spec.value or "")
        if product is not None:
            return product.matches_text(needle)
        return needle.lower() in metrics[FieldRef.NAME].lower()

    ref = resolve_field(spec.field)
    if ref in _MARGIN_FIELDS and metrics.candidate.kind not in _MARGIN_KINDS:
        return False

    actual = resolve_value(spec.field, record, metrics, product)
    return compare(actual, spec.operator, spec.value)


def passes_all(
    filters: Iterable[FilterSpec],
    record: Any,
    metrics: MetricSnapshot,
    product: Optional[Product] = None,
) -> bool:
    """AND of every filter; an empty filter list passes."""
    return all(evaluate(spec, record, metrics, product) for spec in filters)
