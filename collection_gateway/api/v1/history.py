"""GET /v1/reconciliation/history - Member's stored reconciliation runs"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from collection_gateway.api.v1.schemas import HistoryResponse, RunItem
from collection_gateway.infrastructure.database.session import get_db
from collection_gateway.infrastructure.database.repositories import ReconciliationRunRepository

router = APIRouter()


@router.get("/reconciliation/history", response_model=HistoryResponse)
def get_reconciliation_history(
    member_id: str = Query(..., description="Member identifier"),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """
    Retrieve recent reconciliation runs for a member.

    Returns:
        Runs with their view, period and diagnostic counts, newest first
    """
    run_repo = ReconciliationRunRepository(db)
    runs = run_repo.get_runs_by_member(member_id, limit=limit)

    run_items = [
        RunItem(
            run_id=str(r.id),
            view=r.view,
            collector_id=r.collector_id,
            period=r.period,
            active_rows=r.active_rows,
            completed_rows=r.completed_rows,
            skipped_by_guard=r.skipped_by_guard,
            unparseable_records=r.unparseable_records,
            over_collections=r.over_collections,
            ambiguous_attributions=r.ambiguous_attributions,
            created_at=r.created_at.isoformat(),
        )
        for r in runs
    ]

    return HistoryResponse(member_id=member_id, runs=run_items)
