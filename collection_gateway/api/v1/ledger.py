"""GET /v1/members/{member_id}/ledger - Member profile ledger"""

import calendar
import time
import logging
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from collection_gateway.api.v1.schemas import RenderModelSchema
from collection_gateway.api.dependencies import get_backend_client, get_match_policy, get_request_id
from collection_gateway.config import settings
from collection_gateway.infrastructure.database.session import get_db
from collection_gateway.infrastructure.database.repositories import ReconciliationRunRepository
from collection_gateway.infrastructure.clients.backend import BackendClient
from collection_gateway.domain.aggregation import reconcile_member
from collection_gateway.domain.matcher import DateGate, MatchPolicy
from collection_gateway.domain.exceptions import BackendAPIError
from collection_gateway.infrastructure.observability.metrics import (
    backend_fetch_failures_counter,
    record_reconciliation,
)
from collection_gateway.infrastructure.observability.logging import log_reconciliation
from collection_gateway.utils.date_utils import generate_date_range

router = APIRouter()

VIEW = "ledger"


@router.get("/members/{member_id}/ledger", response_model=RenderModelSchema)
async def get_member_ledger(
    member_id: str,
    request: Request,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
    db: Session = Depends(get_db),
    backend_client: BackendClient = Depends(get_backend_client),
    policy: MatchPolicy = Depends(get_match_policy),
):
    """
    Reconcile one member for the profile page.

    Records are matched on their exact calendar day. With `year` and `month`
    the rows also carry one cell per day of that month.
    """
    if (year is None) != (month is None):
        raise HTTPException(status_code=422, detail="year and month must be given together")

    start_time = time.time()
    request_id = get_request_id(request)

    columns = []
    if year is not None:
        last_day = calendar.monthrange(year, month)[1]
        columns = generate_date_range(date(year, month, 1), date(year, month, last_day))

    try:
        bundle = await backend_client.get_member_bundle(member_id)

        model = reconcile_member(
            bundle.member,
            bundle.transactions,
            bundle.products,
            columns,
            policy=policy,
            gate=DateGate(window_days=settings.ledger_window_days),
        )

        run_repo = ReconciliationRunRepository(db)
        period = f"{year:04d}-{month:02d}" if year is not None else None
        run_repo.create_run(model, view=VIEW, period=period)
        db.commit()

        record_reconciliation(VIEW, model.diagnostics)
        log_reconciliation(
            request_id,
            member_id,
            VIEW,
            len(model.rows),
            model.diagnostics,
            (time.time() - start_time) * 1000,
        )

        return RenderModelSchema.from_domain(model)

    except BackendAPIError as e:
        backend_fetch_failures_counter.inc()
        db.rollback()
        logging.error(f"Backend API error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Backend service unavailable")

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")
