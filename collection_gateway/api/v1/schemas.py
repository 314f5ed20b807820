"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from datetime import date
from typing import List, Optional

from collection_gateway.domain.models import RenderModel, RowView
from collection_gateway.domain.schedule import ScheduleMode


class SheetRequest(BaseModel):
    """Request body for POST /v1/collection-sheet"""

    collector_id: str = Field(..., min_length=1, description="Collector identifier")
    year: int = Field(..., ge=2000, le=2100)
    month: int = Field(..., ge=1, le=12)
    mode: ScheduleMode = ScheduleMode.WEEKLY
    weekday: Optional[str] = Field(None, description="Collection weekday for weekly sheets, e.g. Saturday")
    member_ids: Optional[List[str]] = Field(None, description="Restrict the sheet to these members")
    window_days: Optional[int] = Field(
        None,
        ge=0,
        le=15,
        description=(
            "±days a record may sit from its column, honoured for every mode. "
            "Defaults to the configured weekly window, or the exact day for daily and monthly sheets"
        ),
    )


class ColumnCellSchema(BaseModel):
    """Loan / savings figures for one column; null means not yet applicable"""

    column: date
    loan: Optional[float] = None
    savings_in: Optional[float] = None
    savings_out: Optional[float] = None


class SavingsLineSchema(BaseModel):
    label: str
    day: Optional[date] = None
    savings_in: float
    savings_out: float
    balance: float
    record_id: Optional[str] = None


class RowViewSchema(BaseModel):
    """Single product-sale row"""

    sale_id: str
    dofa_no: int
    product_names: str
    total_amount: float
    installment_count: int
    total_installments: int
    paid_amount: float
    pending_amount: float
    state: str
    delivery_date: Optional[date] = None
    cells: List[ColumnCellSchema]
    savings_lines: List[SavingsLineSchema]
    opening_balance: float
    direct_savings: float
    savings_balance: float

    @classmethod
    def from_domain(cls, row: RowView) -> "RowViewSchema":
        return cls(
            sale_id=row.sale_id,
            dofa_no=row.dofa_no,
            product_names=row.product_names,
            total_amount=row.total_amount,
            installment_count=row.installment_count,
            total_installments=row.total_installments,
            paid_amount=row.paid_amount,
            pending_amount=row.pending_amount,
            state=row.state.value,
            delivery_date=row.delivery_date,
            cells=[
                ColumnCellSchema(
                    column=column,
                    loan=cell.loan,
                    savings_in=cell.savings_in,
                    savings_out=cell.savings_out,
                )
                for column, cell in sorted(row.cells.items())
            ],
            savings_lines=[
                SavingsLineSchema(
                    label=line.label,
                    day=line.day,
                    savings_in=line.savings_in,
                    savings_out=line.savings_out,
                    balance=line.balance,
                    record_id=line.record_id,
                )
                for line in row.savings_lines
            ],
            opening_balance=row.opening_balance,
            direct_savings=row.direct_savings,
            savings_balance=row.savings_balance,
        )


class DiagnosticsSchema(BaseModel):
    skipped_by_guard: int
    unparseable_records: int
    over_collections: int
    over_collected_amount: float
    ambiguous_attributions: int


class RenderModelSchema(BaseModel):
    """Everything rendered for one member"""

    member_id: str
    member_name: str
    rows: List[RowViewSchema]
    completed_rows: List[RowViewSchema]
    savings_balance: float
    undisplayed_transfer: float
    diagnostics: DiagnosticsSchema

    @classmethod
    def from_domain(cls, model: RenderModel) -> "RenderModelSchema":
        return cls(
            member_id=model.member_id,
            member_name=model.member_name,
            rows=[RowViewSchema.from_domain(row) for row in model.rows],
            completed_rows=[RowViewSchema.from_domain(row) for row in model.completed_rows],
            savings_balance=model.savings_balance,
            undisplayed_transfer=model.undisplayed_transfer,
            diagnostics=DiagnosticsSchema(**model.diagnostics.as_dict()),
        )


class SheetResponse(BaseModel):
    """Response for POST /v1/collection-sheet"""

    collector_id: str
    columns: List[date]
    members: List[RenderModelSchema]
    failed_members: List[str] = []


class ScheduleResponse(BaseModel):
    """Response for GET /v1/schedule/dates"""

    mode: ScheduleMode
    year: int
    month: int
    dates: List[date]


class RunItem(BaseModel):
    """Single reconciliation run in history"""

    run_id: str
    view: str
    collector_id: Optional[str] = None
    period: Optional[str] = None
    active_rows: int
    completed_rows: int
    skipped_by_guard: int
    unparseable_records: int
    over_collections: int
    ambiguous_attributions: int
    created_at: str


class HistoryResponse(BaseModel):
    """Response for GET /v1/reconciliation/history"""

    member_id: str
    runs: List[RunItem]
