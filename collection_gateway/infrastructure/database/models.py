"""SQLAlchemy ORM models for reconciliation audit records"""

import uuid
from sqlalchemy import Column, String, Float, DateTime, Integer, Text, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class ReconciliationRun(Base):
    """One member's aggregation pass with its diagnostic counts"""

    __tablename__ = "reconciliation_run"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_id = Column(Text, nullable=False, index=True)
    collector_id = Column(Text, nullable=True, index=True)
    view = Column(String(16), nullable=False)  # sheet | ledger
    period = Column(String(7), nullable=True)  # YYYY-MM for sheet runs
    active_rows = Column(Integer, nullable=False, default=0)
    completed_rows = Column(Integer, nullable=False, default=0)
    savings_balance = Column(Float, nullable=False, default=0.0)
    skipped_by_guard = Column(Integer, nullable=False, default=0)
    unparseable_records = Column(Integer, nullable=False, default=0)
    over_collections = Column(Integer, nullable=False, default=0)
    over_collected_amount = Column(Float, nullable=False, default=0.0)
    ambiguous_attributions = Column(Integer, nullable=False, default=0)
    issues = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
