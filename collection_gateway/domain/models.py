"""Domain models - pure Python dataclasses representing business entities"""

import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Optional

from collection_gateway.domain.diagnostics import Diagnostics
from collection_gateway.utils.date_utils import Moment


def _installment_size(total_amount: float, total_installments: int) -> Optional[float]:
    if total_installments <= 0 or not math.isfinite(total_amount):
        return None
    return float(math.floor(total_amount / total_installments + 0.5))


class RowState(str, Enum):
    """Lifecycle of a product-sale row; FULLY_PAID is terminal"""

    ACTIVE_UNCOLLECTED = "active_uncollected"
    ACTIVE_PARTIAL = "active_partial"
    FULLY_PAID = "fully_paid"


@dataclass
class Member:
    """Member as supplied by the backend"""

    id: str
    name: str
    total_savings: Optional[float] = None  # Authoritative backend balance
    member_code: Optional[str] = None


@dataclass
class ProductEntry:
    """One product sold on installment credit"""

    product_name: str
    total_amount: float
    total_installments: int
    installment_frequency: str = "weekly"  # "daily", "weekly" or "monthly"
    delivery_date: Optional[date] = None
    distribution_id: Optional[str] = None
    sale_transaction_id: Optional[str] = None
    sold_at: Optional[Moment] = None
    quantity: Optional[str] = None
    unit: Optional[str] = None
    paid_amount: float = 0.0

    @property
    def expected_installment(self) -> Optional[float]:
        return _installment_size(self.total_amount, self.total_installments)

    @property
    def pending_amount(self) -> float:
        return max(0.0, self.total_amount - self.paid_amount)

    @property
    def clean_name(self) -> str:
        """Lower-cased name before any parenthesis: "Rice (Qty: 5)" -> "rice" """
        return self.product_name.split("(")[0].strip().lower()


@dataclass
class ProductRow:
    """Products bought together in one sale transaction"""

    sale_id: str
    entries: List[ProductEntry]
    dofa_no: int = 0

    @property
    def product_names(self) -> str:
        return ", ".join(entry.product_name for entry in self.entries)

    @property
    def total_amount(self) -> float:
        return sum(entry.total_amount for entry in self.entries)

    @property
    def total_installments(self) -> int:
        return max((entry.total_installments for entry in self.entries), default=0)

    @property
    def installment_frequency(self) -> str:
        return self.entries[0].installment_frequency if self.entries else "weekly"

    @property
    def expected_installment(self) -> Optional[float]:
        """Scheduled amount per installment, rounded half-up to whole taka"""
        return _installment_size(self.total_amount, self.total_installments)

    @property
    def delivery_date(self) -> Optional[date]:
        dates = [entry.delivery_date for entry in self.entries if entry.delivery_date]
        return min(dates) if dates else None

    @property
    def distribution_ids(self) -> List[str]:
        """Ids a payment may reference: entry distribution ids, then the sale id"""
        ids = [entry.distribution_id for entry in self.entries if entry.distribution_id]
        if self.sale_id and self.sale_id not in ids:
            ids.append(self.sale_id)
        return ids

    @property
    def paid_amount(self) -> float:
        return sum(entry.paid_amount for entry in self.entries)

    @property
    def pending_amount(self) -> float:
        return max(0.0, self.total_amount - self.paid_amount)

    @property
    def is_fully_paid(self) -> bool:
        return self.total_amount > 0 and self.paid_amount >= self.total_amount

    @property
    def state(self) -> RowState:
        if self.is_fully_paid:
            return RowState.FULLY_PAID
        if self.paid_amount > 0:
            return RowState.ACTIVE_PARTIAL
        return RowState.ACTIVE_UNCOLLECTED

    def credit(self, amount: float, entry: Optional[ProductEntry] = None) -> float:
        """
        Credit a payment to this row, capping every entry at its total.

        The matched entry (if any) is filled first, the remainder spills over
        to the other entries in order. Returns the uncreditable excess.
        """
        ordered = list(self.entries)
        if entry is not None and any(candidate is entry for candidate in ordered):
            ordered = [entry] + [candidate for candidate in ordered if candidate is not entry]

        remaining = amount
        for target in ordered:
            if remaining <= 0:
                break
            room = target.pending_amount
            applied = min(room, remaining)
            target.paid_amount += applied
            remaining -= applied
        return max(0.0, remaining)


@dataclass
class SheetCell:
    """Loan / savings-in / savings-out figures for one date column; None = blank"""

    loan: Optional[float] = None
    savings_in: Optional[float] = None
    savings_out: Optional[float] = None

    @property
    def is_blank(self) -> bool:
        return self.loan is None and self.savings_in is None and self.savings_out is None


@dataclass
class SavingsLine:
    """One line of a row's savings ledger"""

    label: str
    savings_in: float
    savings_out: float
    balance: float
    day: Optional[date] = None
    record_id: Optional[str] = None


OPENING_BALANCE_LABEL = "Opening Balance (Transferred)"


@dataclass
class RowView:
    """Render-ready view of one product-sale row"""

    sale_id: str
    dofa_no: int
    product_names: str
    total_amount: float
    installment_count: int
    total_installments: int
    paid_amount: float
    pending_amount: float
    state: RowState
    delivery_date: Optional[date] = None
    cells: Dict[date, SheetCell] = field(default_factory=dict)
    savings_lines: List[SavingsLine] = field(default_factory=list)
    opening_balance: float = 0.0
    direct_savings: float = 0.0
    savings_balance: float = 0.0


@dataclass
class RenderModel:
    """Everything the collection sheet / member profile renders for one member"""

    member_id: str
    member_name: str
    rows: List[RowView]
    completed_rows: List[RowView]
    savings_balance: float
    undisplayed_transfer: float
    diagnostics: Diagnostics
