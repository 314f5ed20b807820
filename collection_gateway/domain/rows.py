"""Product-sale row construction and stable Dofa numbering"""

import logging
import math
import re
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Optional

from collection_gateway.domain.classifier import REGULAR, is_scheduled_installment
from collection_gateway.domain.exceptions import InvalidTransactionDataError
from collection_gateway.domain.models import ProductEntry, ProductRow
from collection_gateway.domain.records import Record
from collection_gateway.utils.date_utils import BD_TIMEZONE, Moment, parse_moment, to_local_calendar_date

logger = logging.getLogger(__name__)

LOAN_NOTE_NAME = re.compile(r"Product Loan: (.+?) -")
QUANTITY = re.compile(r"Qty:\s*(\d+(?:\.\d+)?)(?:\s*([a-zA-Z]+))?", re.IGNORECASE)
PAREN_QUANTITY = re.compile(r"(.+?)\s*\((\d+(?:\.\d+)?)\s*([a-zA-Z]+)?\)")
SALE_PREFIX = re.compile(r"Product Sale:\s*")
# Commas inside parentheses belong to the item: "Rice (5kg, pack)"
ITEM_SEPARATOR = re.compile(r",(?![^(]*\))")
INSTALLMENT_AMOUNT = re.compile(r"InstallmentAmt: ৳(\d+)")


@dataclass(frozen=True)
class SaleNoteItem:
    """One product listed in a "Product Sale:" note"""

    name: str
    quantity: Optional[str] = None
    unit: Optional[str] = None


def parse_sale_note(note: str) -> List[SaleNoteItem]:
    """
    Split a sale note into its products.

    "Product Sale: Rice (Qty: 1), Oil (Qty: 2 litre)" ->
    [SaleNoteItem("Rice", "1", None), SaleNoteItem("Oil", "2", "litre")]
    """
    content = note
    prefix = SALE_PREFIX.search(content)
    if prefix:
        content = content[prefix.end():]

    items = []
    for part in ITEM_SEPARATOR.split(content):
        text = part.strip()
        if not text:
            continue
        quantity_match = QUANTITY.search(text)
        if quantity_match:
            name = text[: quantity_match.start()].rstrip(" (").strip()
            items.append(SaleNoteItem(name, quantity_match.group(1), quantity_match.group(2)))
            continue
        paren_match = PAREN_QUANTITY.match(text)
        if paren_match:
            items.append(SaleNoteItem(paren_match.group(1).strip(), paren_match.group(2), paren_match.group(3)))
        else:
            items.append(SaleNoteItem(text))
    return items


def entry_from_payload(raw: Dict[str, Any]) -> ProductEntry:
    """
    Decode one product entry from the backend sale feed.

    Raises:
        InvalidTransactionDataError: total amount or installment count is not a
            finite, non-negative number (or the count is fractional)
    """
    sold_at = parse_moment(raw.get("saleDate") or raw.get("createdAt"))
    delivery = to_local_calendar_date(raw.get("deliveryDate") or raw.get("saleDate"))
    distribution_id = raw.get("distributionId")
    sale_id = raw.get("saleTransactionId")
    return ProductEntry(
        product_name=str(raw.get("productName") or "Unknown Product"),
        total_amount=_decode_total(raw.get("totalAmount"), "totalAmount"),
        total_installments=_decode_count(raw.get("totalInstallments"), "totalInstallments"),
        installment_frequency=str(raw.get("installmentFrequency") or "weekly"),
        delivery_date=delivery,
        distribution_id=str(distribution_id) if distribution_id else None,
        sale_transaction_id=str(sale_id) if sale_id else None,
        sold_at=sold_at,
        quantity=_optional_str(raw.get("quantity")),
        unit=_optional_str(raw.get("unit")),
    )


def decode_product_entries(payload: Iterable[Dict[str, Any]]) -> List[ProductEntry]:
    """Decode a sale feed, skipping entries whose totals cannot be used"""
    entries = []
    for raw in payload:
        try:
            entries.append(entry_from_payload(raw))
        except InvalidTransactionDataError as e:
            logger.warning(
                "Skipping product entry %s: %s",
                raw.get("distributionId") or raw.get("saleTransactionId"),
                e,
            )
    return entries


def group_product_rows(entries: Iterable[ProductEntry]) -> List[ProductRow]:
    """
    Group entries sold together into rows and number them.

    Rows are keyed by sale transaction id (falling back to the distribution id,
    then the product name) and ordered by earliest sale time. Dofa numbers are
    assigned over all rows, active and completed, so they stay stable when
    older rows are later hidden.
    """
    groups: "OrderedDict[str, List[ProductEntry]]" = OrderedDict()
    for entry in entries:
        key = entry.sale_transaction_id or entry.distribution_id or f"product_{entry.product_name}"
        groups.setdefault(key, []).append(entry)

    rows = [ProductRow(sale_id=key, entries=members) for key, members in groups.items()]
    rows.sort(key=lambda row: min(_sort_key(entry.sold_at or entry.delivery_date) for entry in row.entries))
    for index, row in enumerate(rows, start=1):
        row.dofa_no = index
    return rows


def rows_from_installments(records: Iterable[Record]) -> List[ProductRow]:
    """
    Derive product rows from loan-installment records (legacy data).

    Used when the backend has no sale feed for a member: every regular
    "Product Loan" record belongs to one sale, grouped by distribution id or,
    for records without one, by product name and amount.
    """
    records = list(records)
    metadata = _sale_note_metadata(records)

    groups: "OrderedDict[str, List[Record]]" = OrderedDict()
    for record in records:
        if not _is_loan_schedule_record(record):
            continue
        key = record.distribution_id or f"legacy_{_product_name(record)}_{record.amount:g}"
        groups.setdefault(key, []).append(record)

    entries = []
    for key, members in groups.items():
        first = members[0]
        name = _product_name(first)
        quantity, unit = _quantity(members)
        if quantity is None and name in metadata:
            quantity, unit = metadata[name].quantity, metadata[name].unit

        delivery_values = [
            to_local_calendar_date(r.sale_date or r.due_date or r.created_at) for r in members
        ]
        delivery_values = [d for d in delivery_values if d is not None]
        sold_values = [r.created_at for r in members if r.created_at is not None]

        entries.append(
            ProductEntry(
                product_name=name,
                total_amount=sum(r.amount for r in members),
                total_installments=len(members),
                installment_frequency=first.installment_frequency or "weekly",
                delivery_date=min(delivery_values) if delivery_values else None,
                distribution_id=first.distribution_id,
                sale_transaction_id=key,
                sold_at=min(sold_values, key=_sort_key) if sold_values else None,
                quantity=quantity,
                unit=unit,
            )
        )
    return group_product_rows(entries)


def _is_loan_schedule_record(record: Record) -> bool:
    if record.installment_type != REGULAR or "Product Loan" not in record.note:
        return False
    if record.status == "partial" or is_scheduled_installment(record):
        return True
    if record.status != "collected":
        return False
    # A collected record smaller than its noted installment completes an earlier partial
    noted = INSTALLMENT_AMOUNT.search(record.note)
    return not (noted and record.amount < int(noted.group(1)))


def _product_name(record: Record) -> str:
    name = record.product_name
    if name and name not in ("Product Loan", "Unknown Product"):
        return name
    match = LOAN_NOTE_NAME.search(record.note)
    if match:
        return match.group(1).strip()
    if "-" in record.note:
        candidate = record.note.split("-")[0].replace("Product Loan:", "").strip()
        if len(candidate) > 2:
            return candidate
    return "Unknown Product"


def _quantity(records: List[Record]):
    for record in records:
        match = QUANTITY.search(record.note)
        if match:
            return match.group(1), match.group(2)
    return None, None


def _sale_note_metadata(records: List[Record]) -> Dict[str, SaleNoteItem]:
    metadata: Dict[str, SaleNoteItem] = {}
    for record in records:
        if "Product Sale" not in record.note:
            continue
        for item in parse_sale_note(record.note):
            if item.name and (item.quantity or item.name not in metadata):
                metadata[item.name] = item
    return metadata


def _sort_key(value: Optional[Moment]) -> float:
    if value is None:
        return float("inf")
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, date):
        return datetime.combine(value, time(), tzinfo=BD_TIMEZONE).timestamp()
    return float("inf")


def _optional_str(value: Any) -> Optional[str]:
    return str(value) if value not in (None, "") else None


def _decode_total(value: Any, key: str) -> float:
    if value is None or value == "":
        return 0.0
    try:
        amount = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidTransactionDataError(f"{key} is not a number: {value!r}") from e
    if not math.isfinite(amount) or amount < 0:
        raise InvalidTransactionDataError(f"{key} must be finite and non-negative: {value!r}")
    return amount


def _decode_count(value: Any, key: str) -> int:
    count = _decode_total(value, key)
    if not count.is_integer():
        raise InvalidTransactionDataError(f"{key} must be a whole number: {value!r}")
    return int(count)
