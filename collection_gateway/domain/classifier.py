"""
Transaction classifier - decides what a loosely tagged record represents.

The free-text note is the primary signal: `installment_type` and `status` alone
conflate sale-creation, payment and savings events. Rules are evaluated in
order and the first match wins, because some notes satisfy several naive
patterns (a savings-during-sale note contains both "Savings Collection" and
"Product Sale:").
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence

from collection_gateway.domain.records import Record
from collection_gateway.utils.date_utils import Moment

REGULAR = "regular"
EXTRA = "extra"
PAYMENT_STATUSES = ("collected", "partial")

PRODUCT_SALE_MARKER = "Product Sale:"
SALE_ID_MARKER = "SaleID:"
SAVINGS_COLLECTION = "Savings Collection"
SAVINGS_WITHDRAWAL = "Savings Withdrawal"
INITIAL_SAVINGS = "Initial Savings"
SAVINGS_KEYWORD_BN = "সঞ্চয়"
LOAN_PHRASES = ("Product Loan", "Installment", "Full Payment", "Partial Payment")


class TransactionKind(str, Enum):
    PRODUCT_SALE_CREATION = "product_sale_creation"
    LOAN_INSTALLMENT_PAYMENT = "loan_installment_payment"
    SAVINGS_DEPOSIT = "savings_deposit"
    SAVINGS_WITHDRAWAL = "savings_withdrawal"
    IGNORABLE = "ignorable"


SAVINGS_KINDS = (TransactionKind.SAVINGS_DEPOSIT, TransactionKind.SAVINGS_WITHDRAWAL)
ATTRIBUTABLE_KINDS = (TransactionKind.LOAN_INSTALLMENT_PAYMENT,) + SAVINGS_KINDS


@dataclass(frozen=True)
class ClassificationRule:
    """Named predicate mapping a record to a kind"""

    name: str
    predicate: Callable[[Record], bool]
    kind: TransactionKind

    def applies(self, record: Record) -> bool:
        return self.predicate(record)


def _is_sale_creation(record: Record) -> bool:
    note = record.note
    if PRODUCT_SALE_MARKER not in note:
        return False
    return SALE_ID_MARKER in note or (record.installment_type == EXTRA and SAVINGS_COLLECTION not in note)


def _is_savings_inside_sale(record: Record) -> bool:
    return (
        record.installment_type == EXTRA
        and SAVINGS_COLLECTION in record.note
        and PRODUCT_SALE_MARKER in record.note
    )


def _is_initial_savings(record: Record) -> bool:
    return INITIAL_SAVINGS in record.note


def _is_savings_withdrawal(record: Record) -> bool:
    return record.installment_type == EXTRA and SAVINGS_WITHDRAWAL in record.note


def _is_savings_deposit(record: Record) -> bool:
    if record.installment_type != EXTRA:
        return False
    note = record.note
    if SAVINGS_COLLECTION in note or SAVINGS_KEYWORD_BN in note:
        return True
    # Generic "savings" mentions only count when nothing points at a loan
    return "savings" in note.lower() and not any(word in note for word in ("Product", "Loan", "Withdrawal"))


def loan_payment_rule(phrases: Sequence[str] = LOAN_PHRASES) -> ClassificationRule:
    """Build the loan-payment rule for a configured set of note phrases"""
    lowered = tuple(phrase.lower() for phrase in phrases)

    def predicate(record: Record) -> bool:
        if record.installment_type != REGULAR or record.status not in PAYMENT_STATUSES:
            return False
        note = record.note.lower()
        return any(phrase in note for phrase in lowered)

    return ClassificationRule("loan_installment_payment", predicate, TransactionKind.LOAN_INSTALLMENT_PAYMENT)


DEFAULT_RULES: List[ClassificationRule] = [
    ClassificationRule("product_sale_creation", _is_sale_creation, TransactionKind.PRODUCT_SALE_CREATION),
    ClassificationRule("savings_inside_sale", _is_savings_inside_sale, TransactionKind.IGNORABLE),
    ClassificationRule("initial_savings", _is_initial_savings, TransactionKind.SAVINGS_DEPOSIT),
    ClassificationRule("savings_withdrawal", _is_savings_withdrawal, TransactionKind.SAVINGS_WITHDRAWAL),
    ClassificationRule("savings_deposit", _is_savings_deposit, TransactionKind.SAVINGS_DEPOSIT),
    loan_payment_rule(),
]


def classify(record: Record, rules: Sequence[ClassificationRule] = DEFAULT_RULES) -> TransactionKind:
    """First matching rule wins; anything unmatched is ignorable"""
    for rule in rules:
        if rule.applies(record):
            return rule.kind
    return TransactionKind.IGNORABLE


def matching_rule(record: Record, rules: Sequence[ClassificationRule] = DEFAULT_RULES) -> Optional[str]:
    """Name of the rule that decides `record`, for debugging rule order"""
    for rule in rules:
        if rule.applies(record):
            return rule.name
    return None


def is_scheduled_installment(record: Record) -> bool:
    """Pending regular loan record generated as part of a sale's schedule"""
    return (
        record.installment_type == REGULAR
        and record.status == "pending"
        and any(phrase.lower() in record.note.lower() for phrase in LOAN_PHRASES)
    )


def effective_date(record: Record, kind: TransactionKind) -> Optional[Moment]:
    """
    Pick the date a record is matched on.

    Auto-deductions, savings and collected/partial payments use the actual
    collection date; pending loan installments use the scheduled due date.
    """
    actual = record.collection_date or record.created_at

    if record.is_auto_deduction or kind in SAVINGS_KINDS:
        return actual
    if kind == TransactionKind.LOAN_INSTALLMENT_PAYMENT and record.status in PAYMENT_STATUSES:
        return actual
    if record.status == "pending":
        return record.due_date or actual
    return actual


def effective_amount(record: Record) -> float:
    """Collected portion for partial payments, otherwise the record amount"""
    if record.paid_amount is not None and record.paid_amount > 0:
        return record.paid_amount
    return record.amount
