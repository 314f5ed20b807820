"""
Attribution matcher - decides which product row a record belongs to.

Strategies are tried strongest signal first:

1. distribution id equals one of the row's ids
2. id containment, including the DIST-{saleId}-{n} pattern of newer backends
3. cleaned product name (or a >3 character keyword of it) appears in the note
4. amount within tolerance of the row's (or a sibling row's) installment
5. savings with no id and no product hint fall back to the member's first row
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, Tuple

from collection_gateway.domain.classifier import SAVINGS_KINDS, TransactionKind, effective_amount
from collection_gateway.domain.exceptions import AmbiguousAttribution
from collection_gateway.domain.models import ProductEntry, ProductRow
from collection_gateway.domain.records import Record
from collection_gateway.utils.date_utils import is_within_day_range, to_local_calendar_date

logger = logging.getLogger(__name__)

DIST_PREFIX = "DIST-"


class MatchStrategy(str, Enum):
    DISTRIBUTION_ID = "distribution_id"
    ID_CONTAINMENT = "id_containment"
    PRODUCT_NAME = "product_name"
    AMOUNT_TOLERANCE = "amount_tolerance"
    FIRST_ROW_FALLBACK = "first_row_fallback"


@dataclass(frozen=True)
class MatchPolicy:
    """Heuristic constants for the amount-tolerance fallback"""

    tolerance_ratio: float = 0.5
    tolerance_floor: float = 200.0

    def tolerance(self, expected: float) -> float:
        return max(self.tolerance_ratio * expected, self.tolerance_floor)

    def within_tolerance(self, amount: float, expected: Optional[float]) -> bool:
        if expected is None:
            return False
        return abs(amount - expected) <= self.tolerance(expected)


@dataclass(frozen=True)
class DateGate:
    """
    Date window a record's effective date must fall in for a column.

    The weekly collection sheet accepts ±3 days around a column; the member
    profile ledger and daily/monthly sheets need the exact calendar day.
    """

    window_days: int = 0

    @classmethod
    def exact(cls) -> "DateGate":
        return cls(window_days=0)

    def admits(self, record_date: Any, column: Any) -> bool:
        if self.window_days <= 0:
            left = to_local_calendar_date(record_date)
            return left is not None and left == to_local_calendar_date(column)
        return is_within_day_range(record_date, column, self.window_days)


@dataclass(frozen=True)
class Attribution:
    """Winning row for a record and how it was matched"""

    row: ProductRow
    strategy: MatchStrategy
    entry: Optional[ProductEntry] = None


def extract_sale_id(distribution_id: str) -> Optional[str]:
    """DIST-{saleId}-{serial} -> saleId"""
    if not distribution_id.startswith(DIST_PREFIX):
        return None
    parts = distribution_id.split("-")
    return parts[1] if len(parts) >= 2 and parts[1] else None


def _match_distribution_id(record: Record, row: ProductRow, **_) -> Optional[ProductEntry]:
    if not record.distribution_id:
        return None
    for entry in row.entries:
        if entry.distribution_id == record.distribution_id:
            return entry
    return row.entries[0] if record.distribution_id == row.sale_id and row.entries else None


def _match_id_containment(record: Record, row: ProductRow, **_) -> Optional[ProductEntry]:
    record_id = record.distribution_id
    if not record_id:
        return None
    extracted = extract_sale_id(record_id)
    for entry in row.entries:
        candidates = [entry.distribution_id, row.sale_id]
        for candidate in candidates:
            if not candidate:
                continue
            if candidate in record_id or record_id in candidate:
                return entry
            if extracted and (candidate == extracted or extracted in candidate):
                return entry
    return None


def _name_in_note(name: str, note: str) -> bool:
    if not name:
        return False
    if name in note:
        return True
    return any(keyword in note for keyword in name.split() if len(keyword) > 3)


def _match_product_name(record: Record, row: ProductRow, **_) -> Optional[ProductEntry]:
    note = record.note.lower()
    for entry in row.entries:
        if _name_in_note(entry.clean_name, note):
            return entry
    return None


def _match_amount_tolerance(
    record: Record,
    row: ProductRow,
    *,
    kind: TransactionKind,
    siblings: Sequence[ProductRow],
    policy: MatchPolicy,
    **_,
) -> Optional[ProductEntry]:
    if kind != TransactionKind.LOAN_INSTALLMENT_PAYMENT or record.distribution_id or not row.entries:
        return None
    amount = effective_amount(record)
    if policy.within_tolerance(amount, row.expected_installment):
        return row.entries[0]
    for entry in row.entries:
        if policy.within_tolerance(amount, entry.expected_installment):
            return entry
    # Installments sized like a completed sibling sale belong to the active row
    for sibling in siblings:
        if sibling is row:
            continue
        if policy.within_tolerance(amount, sibling.expected_installment):
            return row.entries[0]
    return None


def _match_first_row(
    record: Record,
    row: ProductRow,
    *,
    kind: TransactionKind,
    fallback_row: Optional[ProductRow],
    **_,
) -> Optional[ProductEntry]:
    if kind not in SAVINGS_KINDS or record.distribution_id:
        return None
    if "product:" in record.note.lower():
        return None
    if fallback_row is not None and fallback_row is row and row.entries:
        return row.entries[0]
    return None


StrategyFn = Callable[..., Optional[ProductEntry]]

STRATEGIES: List[Tuple[MatchStrategy, StrategyFn]] = [
    (MatchStrategy.DISTRIBUTION_ID, _match_distribution_id),
    (MatchStrategy.ID_CONTAINMENT, _match_id_containment),
    (MatchStrategy.PRODUCT_NAME, _match_product_name),
    (MatchStrategy.AMOUNT_TOLERANCE, _match_amount_tolerance),
    (MatchStrategy.FIRST_ROW_FALLBACK, _match_first_row),
]


def matches(
    record: Record,
    row: ProductRow,
    siblings: Sequence[ProductRow],
    kind: TransactionKind,
    *,
    policy: MatchPolicy = MatchPolicy(),
    fallback_row: Optional[ProductRow] = None,
) -> Optional[MatchStrategy]:
    """Strongest strategy matching `record` to `row`, or None"""
    for strategy, fn in STRATEGIES:
        entry = fn(record, row, kind=kind, siblings=siblings, policy=policy, fallback_row=fallback_row)
        if entry is not None:
            return strategy
    return None


def resolve(
    record: Record,
    kind: TransactionKind,
    rows: Sequence[ProductRow],
    *,
    policy: MatchPolicy = MatchPolicy(),
    fallback_row: Optional[ProductRow] = None,
    on_ambiguous: Optional[Callable[[AmbiguousAttribution], None]] = None,
) -> Optional[Attribution]:
    """
    Pick the single row a record is attributed to.

    Strategies are evaluated level by level across all rows, so an id match on
    a later row beats a name or amount match on an earlier one. Within a level,
    loan payments go to the first row that still has an outstanding balance.
    An amount that only fits fully-paid rows is retried against the active
    rows using their siblings' installment sizes. When several rows match on
    amount tolerance alone, the ambiguity is reported and the same first-row
    rule decides.
    """
    for strategy, fn in STRATEGIES:
        hits = _hits(record, kind, rows, fn, strategy, policy, fallback_row, siblings=())
        if strategy == MatchStrategy.AMOUNT_TOLERANCE and all(hit.row.is_fully_paid for hit in hits):
            sibling_hits = [
                hit
                for hit in _hits(record, kind, rows, fn, strategy, policy, fallback_row, siblings=rows)
                if not hit.row.is_fully_paid
            ]
            hits = sibling_hits or hits
        if not hits:
            continue

        if strategy == MatchStrategy.AMOUNT_TOLERANCE and len(hits) > 1:
            issue = AmbiguousAttribution(
                f"Record {record.id} matches {len(hits)} rows by amount only",
                record_id=record.id,
                row_ids=tuple(hit.row.sale_id for hit in hits),
            )
            if on_ambiguous is not None:
                on_ambiguous(issue)
            else:
                logger.warning(str(issue))

        if kind == TransactionKind.LOAN_INSTALLMENT_PAYMENT:
            for hit in hits:
                if not hit.row.is_fully_paid:
                    return hit
        return hits[0]
    return None


def _hits(
    record: Record,
    kind: TransactionKind,
    rows: Sequence[ProductRow],
    fn: StrategyFn,
    strategy: MatchStrategy,
    policy: MatchPolicy,
    fallback_row: Optional[ProductRow],
    siblings: Sequence[ProductRow],
) -> List[Attribution]:
    hits = []
    for row in rows:
        entry = fn(record, row, kind=kind, siblings=siblings, policy=policy, fallback_row=fallback_row)
        if entry is not None:
            hits.append(Attribution(row=row, strategy=strategy, entry=entry))
    return hits
