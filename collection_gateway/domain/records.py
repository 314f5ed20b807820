"""
Transaction records decoded at the backend boundary.

The backend has shipped several record shapes over time. Old records carry only
an id, amount, type, status, note and creation time; modern records add
distribution ids, collection/due dates and partial-payment amounts. Decoding
picks the variant once so the reconciliation core never has to probe for
missing keys.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from collection_gateway.utils.date_utils import Moment, parse_moment
from collection_gateway.domain.exceptions import InvalidTransactionDataError

AUTO_DEDUCTION_METHOD = "savings_deduction"
AUTO_DEDUCTION_NOTE = "deducted from savings"

# Presence of any of these keys marks a modern record
MODERN_FIELDS = ("distributionId", "collectionDate", "dueDate", "paidAmount")


@dataclass(frozen=True)
class LegacyTransaction:
    """Old-format record: only the fields guaranteed for historical data"""

    id: str
    amount: float
    installment_type: str  # "regular" or "extra"
    status: str  # "collected", "partial" or "pending"
    note: str
    created_at: Optional[Moment]
    invalid_fields: Tuple[str, ...] = ()

    paid_amount = None
    distribution_id = None
    collection_date = None
    due_date = None
    sale_date = None
    product_name = None
    installment_frequency = None
    legacy = True

    @property
    def is_auto_deduction(self) -> bool:
        return AUTO_DEDUCTION_NOTE in self.note.lower()


@dataclass(frozen=True)
class Transaction:
    """Modern record with optional distribution id and payment dates"""

    id: str
    amount: float
    installment_type: str
    status: str
    note: str
    created_at: Optional[Moment]
    paid_amount: Optional[float] = None
    distribution_id: Optional[str] = None
    collection_date: Optional[Moment] = None
    due_date: Optional[Moment] = None
    sale_date: Optional[Moment] = None
    payment_method: Optional[str] = None
    product_name: Optional[str] = None
    installment_frequency: Optional[str] = None
    invalid_fields: Tuple[str, ...] = ()

    legacy = False

    @property
    def is_auto_deduction(self) -> bool:
        return self.payment_method == AUTO_DEDUCTION_METHOD or AUTO_DEDUCTION_NOTE in self.note.lower()


Record = Union[Transaction, LegacyTransaction]


def decode_transaction(raw: Dict[str, Any]) -> Record:
    """
    Decode one backend installment/transaction payload.

    Unparseable dates and non-finite or negative amounts do not raise: the
    offending field names are kept in `invalid_fields` so the aggregation pass
    can exclude the record and report it.

    Raises:
        InvalidTransactionDataError: payload is not a mapping
    """
    if not isinstance(raw, dict):
        raise InvalidTransactionDataError(f"Expected a JSON object, got {type(raw).__name__}")

    invalid: List[str] = []
    note = str(raw.get("note") or "")
    amount = _decode_amount(raw.get("amount"), "amount", invalid, default=0.0)
    created_at = _decode_date(raw, "createdAt", invalid)
    record_id = raw.get("_id") or raw.get("id") or f"{raw.get('amount')}-{note}-{raw.get('createdAt')}"
    installment_type = str(raw.get("installmentType") or raw.get("type") or "")
    status = str(raw.get("status") or "")

    if not any(raw.get(key) is not None for key in MODERN_FIELDS):
        return LegacyTransaction(
            id=str(record_id),
            amount=amount,
            installment_type=installment_type,
            status=status,
            note=note,
            created_at=created_at,
            invalid_fields=tuple(invalid),
        )

    distribution_id = raw.get("distributionId")
    return Transaction(
        id=str(record_id),
        amount=amount,
        installment_type=installment_type,
        status=status,
        note=note,
        created_at=created_at,
        paid_amount=_decode_amount(raw.get("paidAmount"), "paidAmount", invalid, default=None),
        distribution_id=str(distribution_id) if distribution_id else None,
        collection_date=_decode_date(raw, "collectionDate", invalid),
        due_date=_decode_date(raw, "dueDate", invalid),
        sale_date=_decode_date(raw, "saleDate", invalid),
        payment_method=raw.get("paymentMethod"),
        product_name=raw.get("productName"),
        installment_frequency=raw.get("installmentFrequency"),
        invalid_fields=tuple(invalid),
    )


def decode_transactions(payload: List[Dict[str, Any]]) -> List[Record]:
    return [decode_transaction(item) for item in payload if item]


def _decode_date(raw: Dict[str, Any], key: str, invalid: List[str]) -> Optional[Moment]:
    value = raw.get(key)
    if value is None or value == "":
        return None
    moment = parse_moment(value)
    if moment is None:
        invalid.append(key)
    return moment


def _decode_amount(value: Any, key: str, invalid: List[str], default: Optional[float]) -> Optional[float]:
    if value is None:
        return default
    try:
        amount = float(value)
    except (TypeError, ValueError):
        invalid.append(key)
        return default
    if not math.isfinite(amount) or amount < 0:
        invalid.append(key)
        return default
    return amount
