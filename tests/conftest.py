"""Pytest fixtures for testing"""

import pytest
from datetime import date, datetime, timezone
from typing import Callable, Generator, Optional
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from collection_gateway.api.main import create_app
from collection_gateway.infrastructure.database.models import Base
from collection_gateway.infrastructure.database.session import get_db
from collection_gateway.domain.models import Member, ProductEntry
from collection_gateway.domain.records import Transaction


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


def bd_morning(day: date) -> datetime:
    """11:00 Bangladesh time on `day`, as the backend would send it (UTC)"""
    return datetime(day.year, day.month, day.day, 5, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_payment() -> Callable[..., Transaction]:
    """Factory for collected loan-installment records"""

    def factory(
        record_id: str,
        amount: float,
        day: date,
        note: str = "Product Loan: Rice - Installment",
        distribution_id: Optional[str] = None,
        status: str = "collected",
        paid_amount: Optional[float] = None,
    ) -> Transaction:
        return Transaction(
            id=record_id,
            amount=amount,
            installment_type="regular",
            status=status,
            note=note,
            created_at=bd_morning(day),
            collection_date=bd_morning(day),
            distribution_id=distribution_id,
            paid_amount=paid_amount,
        )

    return factory


@pytest.fixture
def make_savings() -> Callable[..., Transaction]:
    """Factory for savings deposits (and withdrawals with withdrawal=True)"""

    def factory(
        record_id: str,
        amount: float,
        day: date,
        note: Optional[str] = None,
        distribution_id: Optional[str] = None,
        withdrawal: bool = False,
    ) -> Transaction:
        default_note = "Savings Withdrawal" if withdrawal else "Savings Collection"
        return Transaction(
            id=record_id,
            amount=amount,
            installment_type="extra",
            status="collected",
            note=note or default_note,
            created_at=bd_morning(day),
            collection_date=bd_morning(day),
            distribution_id=distribution_id,
        )

    return factory


@pytest.fixture
def member() -> Member:
    return Member(id="member_1", name="Rahima Begum", total_savings=None)


@pytest.fixture
def rice_and_oil_entries() -> list[ProductEntry]:
    """Two sales a month apart: Rice (1000 / 5) then Soybean Oil (1600 / 8)"""
    return [
        ProductEntry(
            product_name="Rice (Qty: 1)",
            total_amount=1000,
            total_installments=5,
            delivery_date=date(2024, 5, 4),
            distribution_id="DIST-sale001-1",
            sale_transaction_id="sale001",
            sold_at=bd_morning(date(2024, 5, 4)),
        ),
        ProductEntry(
            product_name="Soybean Oil",
            total_amount=1600,
            total_installments=8,
            delivery_date=date(2024, 6, 3),
            distribution_id="DIST-sale002-1",
            sale_transaction_id="sale002",
            sold_at=bd_morning(date(2024, 6, 3)),
        ),
    ]
