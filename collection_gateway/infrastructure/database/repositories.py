"""Data access layer for reconciliation runs"""

from typing import List, Optional
from sqlalchemy.orm import Session
from collection_gateway.infrastructure.database.models import ReconciliationRun
from collection_gateway.domain.models import RenderModel


class ReconciliationRunRepository:
    """Repository for reconciliation audit records"""

    def __init__(self, db: Session):
        self.db = db

    def create_run(
        self,
        model: RenderModel,
        view: str,
        collector_id: Optional[str] = None,
        period: Optional[str] = None,
    ) -> ReconciliationRun:
        """Persist a pass's outcome and diagnostics"""
        diagnostics = model.diagnostics
        db_run = ReconciliationRun(
            member_id=model.member_id,
            collector_id=collector_id,
            view=view,
            period=period,
            active_rows=len(model.rows),
            completed_rows=len(model.completed_rows),
            savings_balance=model.savings_balance,
            skipped_by_guard=diagnostics.skipped_by_guard,
            unparseable_records=diagnostics.unparseable_records,
            over_collections=diagnostics.over_collections,
            over_collected_amount=diagnostics.over_collected_amount,
            ambiguous_attributions=diagnostics.ambiguous_attributions,
            issues=[
                {"type": type(issue).__name__, "record_id": issue.record_id, "message": str(issue)}
                for issue in diagnostics.issues
            ],
        )
        self.db.add(db_run)
        self.db.flush()  # Get ID without committing
        return db_run

    def get_runs_by_member(self, member_id: str, limit: int = 20) -> List[ReconciliationRun]:
        """Fetch recent runs for a member"""
        return (
            self.db.query(ReconciliationRun)
            .filter(ReconciliationRun.member_id == member_id)
            .order_by(ReconciliationRun.created_at.desc())
            .limit(limit)
            .all()
        )
