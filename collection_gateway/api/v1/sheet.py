"""POST /v1/collection-sheet - Collector's monthly collection sheet"""

import time
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from collection_gateway.api.v1.schemas import RenderModelSchema, SheetRequest, SheetResponse
from collection_gateway.api.dependencies import get_backend_client, get_match_policy, get_request_id
from collection_gateway.config import settings
from collection_gateway.infrastructure.database.session import get_db
from collection_gateway.infrastructure.database.repositories import ReconciliationRunRepository
from collection_gateway.infrastructure.clients.backend import BackendClient
from collection_gateway.domain.aggregation import reconcile_member
from collection_gateway.domain.matcher import DateGate, MatchPolicy
from collection_gateway.domain.schedule import ScheduleMode, generate_collection_dates
from collection_gateway.domain.exceptions import BackendAPIError
from collection_gateway.infrastructure.observability.metrics import (
    backend_fetch_failures_counter,
    record_reconciliation,
)
from collection_gateway.infrastructure.observability.logging import log_reconciliation

router = APIRouter()

VIEW = "sheet"


def sheet_gate(mode: ScheduleMode, window_days: Optional[int] = None) -> DateGate:
    """
    Date gate for sheet cells.

    An explicit `window_days` applies to every mode. Without one, weekly sheets
    accept records around the column and daily and monthly need the exact day.
    """
    if window_days is not None:
        return DateGate(window_days=window_days)
    if mode == ScheduleMode.WEEKLY:
        return DateGate(window_days=settings.sheet_window_days)
    return DateGate.exact()


@router.post("/collection-sheet", response_model=SheetResponse)
async def build_collection_sheet(
    request_body: SheetRequest,
    request: Request,
    db: Session = Depends(get_db),
    backend_client: BackendClient = Depends(get_backend_client),
    policy: MatchPolicy = Depends(get_match_policy),
):
    """
    Build one month's collection sheet for a collector.

    Flow:
    1. Generate column dates for the schedule mode
    2. Fetch every member's record bundle from the backend (batched)
    3. Reconcile each member into a render model
    4. Persist one audit run per member
    5. Return columns + render models; unreachable members are listed separately
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        columns = generate_collection_dates(
            request_body.mode, request_body.year, request_body.month, request_body.weekday
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    gate = sheet_gate(request_body.mode, request_body.window_days)
    period = f"{request_body.year:04d}-{request_body.month:02d}"

    try:
        member_ids = request_body.member_ids
        if member_ids is None:
            members = await backend_client.get_collector_members(request_body.collector_id)
            member_ids = [member.id for member in members]

        batch = await backend_client.get_member_bundles(member_ids)
        if batch.failed_member_ids:
            backend_fetch_failures_counter.inc(len(batch.failed_member_ids))

        run_repo = ReconciliationRunRepository(db)
        rendered = []
        for bundle in batch.bundles:
            member_start = time.time()
            model = reconcile_member(
                bundle.member,
                bundle.transactions,
                bundle.products,
                columns,
                policy=policy,
                gate=gate,
            )
            run_repo.create_run(model, view=VIEW, collector_id=request_body.collector_id, period=period)

            record_reconciliation(VIEW, model.diagnostics)
            log_reconciliation(
                request_id,
                model.member_id,
                VIEW,
                len(model.rows),
                model.diagnostics,
                (time.time() - member_start) * 1000,
            )
            rendered.append(RenderModelSchema.from_domain(model))

        db.commit()

        logging.info(
            "Collection sheet built",
            extra={
                "request_id": request_id,
                "collector_id": request_body.collector_id,
                "period": period,
                "members": len(rendered),
                "failed_members": len(batch.failed_member_ids),
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )

        return SheetResponse(
            collector_id=request_body.collector_id,
            columns=columns,
            members=rendered,
            failed_members=batch.failed_member_ids,
        )

    except BackendAPIError as e:
        backend_fetch_failures_counter.inc()
        db.rollback()
        logging.error(f"Backend API error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Backend service unavailable")

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")
