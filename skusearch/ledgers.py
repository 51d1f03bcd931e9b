"""
Ledger loading and classification.

Hosts hand over catalog and ledger rows as lists of dicts or pandas
DataFrames. Loaders build typed records, skipping malformed rows with a
warning (or raising LedgerDataError in strict mode). classify_ledger then
turns the raw records into LedgerEntry variants with parsed dates.
"""
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, TypeVar, Union

import pandas as pd

from skusearch.exceptions import LedgerDataError
from skusearch.models import (
    InventorySnapshot,
    LedgerEntry,
    Product,
    Refund,
    RefundRecord,
    SalesRecord,
    classify_sales_record,
)
from skusearch.platforms import PlatformRules
from skusearch.time_window import parse_record_date

logger = logging.getLogger(__name__)

T = TypeVar("T")
RowSource = Union[pd.DataFrame, Iterable[Dict[str, Any]], None]


def iter_rows(source: RowSource) -> Iterator[Dict[str, Any]]:
    """Yield plain dict rows; DataFrame NaN/NaT cells become None."""
    if source is None:
        return
    if isinstance(source, pd.DataFrame):
        cleaned = source.astype(object).where(source.notna(), None)
        yield from cleaned.to_dict(orient="records")
        return
    for row in source:
        yield row


def _require_sku(row: Any) -> Dict[str, Any]:
    if not isinstance(row, dict):
        raise LedgerDataError("Ledger row must be a mapping", type(row).__name__)
    sku = row.get("sku")
    if sku is None or str(sku).strip() == "":
        raise LedgerDataError("Ledger row has no SKU", row=row)
    return row


def _load(source: RowSource, build: Callable[[Dict[str, Any]], T], kind: str, strict: bool) -> List[T]:
    records: List[T] = []
    skipped = 0
    for index, row in enumerate(iter_rows(source)):
        try:
            records.append(build(_require_sku(row)))
        except LedgerDataError as exc:
            if strict:
                raise
            skipped += 1
            logger.warning(f"Skipping malformed {kind} row", extra={"row_index": index, "error": str(exc)})
        except (TypeError, ValueError, AttributeError) as exc:
            if strict:
                raise LedgerDataError(f"Malformed {kind} row", str(exc), row=row) from exc
            skipped += 1
            logger.warning(f"Skipping malformed {kind} row", extra={"row_index": index, "error": str(exc)})
    if skipped:
        logger.info(f"Loaded {kind} rows", extra={"loaded": len(records), "skipped": skipped})
    return records


def load_products(source: RowSource, strict: bool = False) -> Dict[str, Product]:
    """Catalog keyed by SKU; a later row with the same SKU replaces the earlier one."""
    return {p.sku: p for p in _load(source, Product.from_dict, "product", strict)}


def load_sales(source: RowSource, strict: bool = False) -> List[SalesRecord]:
    return _load(source, SalesRecord.from_dict, "sales", strict)


def load_refunds(source: RowSource, strict: bool = False) -> List[RefundRecord]:
    return _load(source, RefundRecord.from_dict, "refund", strict)


def load_inventory(source: RowSource, strict: bool = False) -> List[InventorySnapshot]:
    return _load(source, InventorySnapshot.from_dict, "inventory", strict)


def classify_ledger(
    sales: Iterable[SalesRecord],
    refunds: Iterable[RefundRecord],
    products: Dict[str, Product],
    rules: Optional[PlatformRules] = None,
    tz_name: Optional[str] = None,
) -> List[LedgerEntry]:
    """
    Classify raw rows into ledger entries, sales first, then refunds.

    Dates are parsed once here (unparseable dates become None and fall
    outside every window). Rows on excluded platforms are dropped when
    rules are given.
    """
    entries: List[LedgerEntry] = []
    for record in sales:
        if rules and rules.is_excluded(record.platform):
            continue
        entry = classify_sales_record(record, products.get(record.sku))
        entries.append(replace(entry, date=parse_record_date(record.date, tz_name)))
    for record in refunds:
        if rules and rules.is_excluded(record.platform):
            continue
        entry = Refund.from_record(record)
        entries.append(replace(entry, date=parse_record_date(record.date, tz_name)))
    return entries
