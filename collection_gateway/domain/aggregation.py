"""
Aggregation engine - folds one member's records into a render model.

A pass runs in three steps over an already-fetched, immutable record list:

1. Loan payments are attributed to rows and credited (capped at each row's
   total); rows whose paid amount reaches the total become FULLY_PAID.
2. Savings deposits/withdrawals are attributed to rows; a fully-paid row's net
   savings is carried to the next active row as an opening balance.
3. Sheet cells are produced for each active row and date column.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Sequence

from collection_gateway.domain.classifier import (
    ATTRIBUTABLE_KINDS,
    TransactionKind,
    classify,
    effective_amount,
    effective_date,
)
from collection_gateway.domain.diagnostics import Diagnostics, IssueHook
from collection_gateway.domain.exceptions import (
    InvalidAmount,
    InvalidDate,
    OverCollection,
    ReconciliationIssue,
)
from collection_gateway.domain.guard import AttributionGuard
from collection_gateway.domain.matcher import DateGate, MatchPolicy, resolve
from collection_gateway.domain.models import (
    OPENING_BALANCE_LABEL,
    Member,
    ProductEntry,
    ProductRow,
    RenderModel,
    RowView,
    SavingsLine,
    SheetCell,
)
from collection_gateway.domain.records import Record
from collection_gateway.domain.rows import group_product_rows, rows_from_installments
from collection_gateway.utils.date_utils import to_local_calendar_date

logger = logging.getLogger(__name__)

AMOUNT_FIELDS = ("amount", "paidAmount")


@dataclass(frozen=True)
class ClassifiedRecord:
    """A valid attributable record with its effective day and amount"""

    record: Record
    kind: TransactionKind
    day: date
    amount: float

    @property
    def signed_amount(self) -> float:
        return -self.amount if self.kind == TransactionKind.SAVINGS_WITHDRAWAL else self.amount


def validate_record(record: Record, kind: TransactionKind) -> ClassifiedRecord:
    """
    Raises:
        InvalidAmount: amount or paid amount is non-finite or negative
        InvalidDate: a date field is unparseable or no effective date exists
    """
    bad_amounts = [name for name in record.invalid_fields if name in AMOUNT_FIELDS]
    if bad_amounts:
        raise InvalidAmount(f"Record {record.id} has invalid {', '.join(bad_amounts)}", record.id)

    bad_dates = [name for name in record.invalid_fields if name not in AMOUNT_FIELDS]
    if bad_dates:
        raise InvalidDate(f"Record {record.id} has unparseable {', '.join(bad_dates)}", record.id)

    day = to_local_calendar_date(effective_date(record, kind))
    if day is None:
        raise InvalidDate(f"Record {record.id} has no usable date", record.id)

    return ClassifiedRecord(record=record, kind=kind, day=day, amount=effective_amount(record))


def classify_records(records: Sequence[Record], diagnostics: Diagnostics) -> List[ClassifiedRecord]:
    """Classify and validate; invalid records are reported and dropped"""
    classified = []
    for record in records:
        kind = classify(record)
        if kind not in ATTRIBUTABLE_KINDS:
            continue
        try:
            classified.append(validate_record(record, kind))
        except ReconciliationIssue as issue:
            diagnostics.record(issue)
    classified.sort(key=lambda item: item.day)
    return classified


class AggregationPass:
    """State for one member's pass; discarded once the render model is built"""

    def __init__(
        self,
        member: Member,
        rows: Sequence[ProductRow],
        *,
        policy: MatchPolicy,
        gate: DateGate,
        on_issue: Optional[IssueHook] = None,
    ):
        self.member = member
        self.rows = sorted(rows, key=lambda row: row.dofa_no)
        self.policy = policy
        self.gate = gate
        self.diagnostics = Diagnostics(member_id=member.id, on_issue=on_issue)
        self.ledger_guard = AttributionGuard(member.id, self.diagnostics)

        self.payment_counts: Dict[int, int] = {id(row): 0 for row in self.rows}
        self.savings: Dict[int, List[ClassifiedRecord]] = {id(row): [] for row in self.rows}
        self.inherited: Dict[int, float] = {id(row): 0.0 for row in self.rows}
        self.unattributed_savings = 0.0
        self.undisplayed_transfer = 0.0

        for row in self.rows:
            for entry in row.entries:
                entry.paid_amount = 0.0

    def credit_payments(self, payments: Sequence[ClassifiedRecord]) -> None:
        for item in payments:
            attribution = resolve(
                item.record,
                item.kind,
                self.rows,
                policy=self.policy,
                on_ambiguous=self.diagnostics.record,
            )
            if attribution is None:
                logger.debug("Payment %s matches no row of member %s", item.record.id, self.member.id)
                continue
            if not self.ledger_guard.claim(item.day, item.record.id):
                continue

            row = attribution.row
            excess = row.credit(item.amount, attribution.entry)
            self.payment_counts[id(row)] += 1
            if excess > 0:
                self.diagnostics.record(
                    OverCollection(
                        f"Row {row.sale_id} over-collected by {excess:g}",
                        row_id=row.sale_id,
                        excess=excess,
                    )
                )

    def attribute_savings(self, savings: Sequence[ClassifiedRecord]) -> None:
        active = [row for row in self.rows if not row.is_fully_paid]
        fallback_row = active[0] if active else (self.rows[0] if self.rows else None)

        for item in savings:
            attribution = resolve(
                item.record,
                item.kind,
                self.rows,
                policy=self.policy,
                fallback_row=fallback_row,
                on_ambiguous=self.diagnostics.record,
            )
            if not self.ledger_guard.claim(item.day, item.record.id):
                continue
            if attribution is None:
                self.unattributed_savings += item.signed_amount
                continue
            self.savings[id(attribution.row)].append(item)

    def transfer_completed_savings(self) -> None:
        """Carry each fully-paid row's net savings to an active row"""
        for index, row in enumerate(self.rows):
            if not row.is_fully_paid:
                continue
            net = self.direct_savings(row) + self.inherited[id(row)]
            target = next((r for r in self.rows[index + 1:] if not r.is_fully_paid), None)
            if target is None:
                target = next((r for r in reversed(self.rows[:index]) if not r.is_fully_paid), None)
            if target is None:
                self.undisplayed_transfer += net
                continue
            self.inherited[id(target)] += net

    def direct_savings(self, row: ProductRow) -> float:
        return sum(item.signed_amount for item in self.savings[id(row)])

    def savings_lines(self, row: ProductRow) -> List[SavingsLine]:
        opening = self.inherited[id(row)]
        balance = opening
        lines = []
        if opening != 0:
            lines.append(SavingsLine(label=OPENING_BALANCE_LABEL, savings_in=0.0, savings_out=0.0, balance=opening))
        for item in self.savings[id(row)]:
            balance += item.signed_amount
            is_withdrawal = item.kind == TransactionKind.SAVINGS_WITHDRAWAL
            lines.append(
                SavingsLine(
                    label=item.record.note,
                    savings_in=0.0 if is_withdrawal else item.amount,
                    savings_out=item.amount if is_withdrawal else 0.0,
                    balance=balance,
                    day=item.day,
                    record_id=item.record.id,
                )
            )
        return lines

    def sheet_cells(self, row: ProductRow, columns: Sequence[date], guard: AttributionGuard) -> Dict[date, SheetCell]:
        cells = {}
        delivery = row.delivery_date
        for column in columns:
            if delivery is None or column <= delivery:
                cells[column] = SheetCell()
                continue
            savings_in = 0.0
            savings_out = 0.0
            for item in self.savings[id(row)]:
                if not self.gate.admits(item.day, column):
                    continue
                if not guard.claim(item.day, item.record.id):
                    continue
                if item.kind == TransactionKind.SAVINGS_WITHDRAWAL:
                    savings_out += item.amount
                else:
                    savings_in += item.amount
            cells[column] = SheetCell(
                loan=row.expected_installment or 0.0,
                savings_in=savings_in,
                savings_out=savings_out,
            )
        return cells

    def row_view(self, row: ProductRow, cells: Dict[date, SheetCell]) -> RowView:
        direct = self.direct_savings(row)
        opening = self.inherited[id(row)]
        return RowView(
            sale_id=row.sale_id,
            dofa_no=row.dofa_no,
            product_names=row.product_names,
            total_amount=row.total_amount,
            installment_count=self.payment_counts[id(row)],
            total_installments=row.total_installments,
            paid_amount=row.paid_amount,
            pending_amount=row.pending_amount,
            state=row.state,
            delivery_date=row.delivery_date,
            cells=cells,
            savings_lines=self.savings_lines(row),
            opening_balance=opening,
            direct_savings=direct,
            savings_balance=opening + direct,
        )

    def member_savings(self, use_backend_savings: bool) -> float:
        if use_backend_savings and self.member.total_savings is not None:
            return self.member.total_savings
        attributed = sum(self.direct_savings(row) for row in self.rows)
        return attributed + self.unattributed_savings


def aggregate(
    member: Member,
    rows: Sequence[ProductRow],
    transactions: Sequence[Record],
    columns: Sequence[date] = (),
    *,
    policy: MatchPolicy = MatchPolicy(),
    gate: DateGate = DateGate(window_days=3),
    use_backend_savings: bool = True,
    on_issue: Optional[IssueHook] = None,
) -> RenderModel:
    """
    Build the render model for one member.

    Never raises for bad data: invalid records, ambiguous matches and
    over-collections end up in `RenderModel.diagnostics`.
    """
    state = AggregationPass(member, rows, policy=policy, gate=gate, on_issue=on_issue)
    classified = classify_records(transactions, state.diagnostics)

    state.credit_payments([item for item in classified if item.kind == TransactionKind.LOAN_INSTALLMENT_PAYMENT])
    state.attribute_savings([item for item in classified if item.kind != TransactionKind.LOAN_INSTALLMENT_PAYMENT])
    state.transfer_completed_savings()

    sheet_guard = AttributionGuard(member.id, state.diagnostics)
    active_views = []
    completed_views = []
    for row in state.rows:
        if row.is_fully_paid:
            completed_views.append(state.row_view(row, {}))
        else:
            active_views.append(state.row_view(row, state.sheet_cells(row, columns, sheet_guard)))

    logger.debug(
        "Aggregated member %s: %d active rows, %d completed rows",
        member.id,
        len(active_views),
        len(completed_views),
    )

    return RenderModel(
        member_id=member.id,
        member_name=member.name,
        rows=active_views,
        completed_rows=completed_views,
        savings_balance=state.member_savings(use_backend_savings),
        undisplayed_transfer=state.undisplayed_transfer,
        diagnostics=state.diagnostics,
    )


def reconcile_member(
    member: Member,
    transactions: Sequence[Record],
    products: Sequence[ProductEntry] = (),
    columns: Sequence[date] = (),
    *,
    policy: MatchPolicy = MatchPolicy(),
    gate: DateGate = DateGate(window_days=3),
    on_issue: Optional[IssueHook] = None,
) -> RenderModel:
    """
    Build rows for a member and aggregate them.

    Rows come from the sale feed when the backend has one for the member;
    otherwise (legacy data) they are derived from loan-installment records and
    the savings balance is self-computed.
    """
    if products:
        rows = group_product_rows(products)
        use_backend_savings = True
    else:
        rows = rows_from_installments(transactions)
        use_backend_savings = member.total_savings is not None
    return aggregate(
        member,
        rows,
        transactions,
        columns,
        policy=policy,
        gate=gate,
        use_backend_savings=use_backend_savings,
        on_issue=on_issue,
    )
