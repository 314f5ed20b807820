"""Integration tests for API endpoints"""

import pytest
from unittest.mock import AsyncMock, patch
from datetime import date
from fastapi.testclient import TestClient
from collection_gateway.domain.exceptions import BackendAPIError
from collection_gateway.domain.models import Member
from collection_gateway.domain.records import Transaction
from collection_gateway.infrastructure.clients.backend import BatchResult, MemberBundle

CLIENT = "collection_gateway.infrastructure.clients.backend.BackendClient"


@pytest.fixture
def rahima_bundle(rice_and_oil_entries, make_payment, make_savings) -> MemberBundle:
    """Rice paid off in May with 300 saved, Soybean Oil running since June"""
    transactions: list[Transaction] = [
        make_payment("p1", 1000, date(2024, 5, 25), note="Product Loan: Rice - Full Payment",
                     distribution_id="DIST-sale001-1"),
        make_savings("s1", 300, date(2024, 5, 25), note="Savings Collection - Rice",
                     distribution_id="DIST-sale001-1"),
        make_payment("p2", 200, date(2024, 6, 8), note="Product Loan: Soybean Oil - Installment 1/8",
                     distribution_id="DIST-sale002-1"),
        make_savings("s2", 150, date(2024, 6, 8)),
    ]
    return MemberBundle(
        member=Member(id="member_1", name="Rahima Begum", total_savings=450),
        transactions=transactions,
        products=rice_and_oil_entries,
    )


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "collection_reconciliation_total" in response.text


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
    assert client.get("/health").headers["X-Request-ID"]


def test_schedule_dates_daily(client: TestClient):
    response = client.get("/v1/schedule/dates", params={"mode": "daily", "year": 2024, "month": 6})

    assert response.status_code == 200
    data = response.json()
    assert data["mode"] == "daily"
    assert len(data["dates"]) == 26
    assert "2024-06-07" not in data["dates"]


def test_schedule_dates_weekly_weekday(client: TestClient):
    response = client.get(
        "/v1/schedule/dates", params={"mode": "weekly", "year": 2024, "month": 6, "weekday": "Tuesday"}
    )
    assert response.json()["dates"] == ["2024-06-04", "2024-06-11", "2024-06-18", "2024-06-25"]


@pytest.mark.parametrize(
    "params",
    [
        {"mode": "weekly", "year": 2024, "month": 6, "weekday": "Caturday"},
        {"mode": "fortnightly", "year": 2024, "month": 6},
        {"mode": "daily", "year": 2024, "month": 13},
    ],
)
def test_schedule_dates_invalid(client: TestClient, params):
    assert client.get("/v1/schedule/dates", params=params).status_code == 422


@patch(f"{CLIENT}.get_member_bundles", new_callable=AsyncMock)
@patch(f"{CLIENT}.get_collector_members", new_callable=AsyncMock)
def test_collection_sheet(
    mock_members: AsyncMock,
    mock_bundles: AsyncMock,
    client: TestClient,
    rahima_bundle: MemberBundle,
):
    """Test POST /v1/collection-sheet for a weekly collector"""
    mock_members.return_value = [rahima_bundle.member, Member(id="member_2", name="Unreachable")]
    mock_bundles.return_value = BatchResult(bundles=[rahima_bundle], failed_member_ids=["member_2"])

    response = client.post(
        "/v1/collection-sheet",
        json={"collector_id": "collector_1", "year": 2024, "month": 6},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["columns"] == ["2024-06-01", "2024-06-08", "2024-06-15", "2024-06-22", "2024-06-29"]
    assert data["failed_members"] == ["member_2"]
    mock_bundles.assert_awaited_once_with(["member_1", "member_2"])

    member = data["members"][0]
    assert member["member_id"] == "member_1"
    assert member["savings_balance"] == 450
    assert [row["sale_id"] for row in member["completed_rows"]] == ["sale001"]

    oil = member["rows"][0]
    assert oil["dofa_no"] == 2
    assert oil["paid_amount"] == 200
    assert oil["pending_amount"] == 1400
    assert oil["opening_balance"] == 300
    assert oil["savings_lines"][0]["label"] == "Opening Balance (Transferred)"

    cells = {cell["column"]: cell for cell in oil["cells"]}
    assert cells["2024-06-01"] == {"column": "2024-06-01", "loan": None, "savings_in": None, "savings_out": None}
    assert cells["2024-06-08"]["loan"] == 200
    assert cells["2024-06-08"]["savings_in"] == 150
    assert cells["2024-06-15"]["savings_in"] == 0


@patch(f"{CLIENT}.get_member_bundles", new_callable=AsyncMock)
def test_collection_sheet_for_selected_members_skips_roster(
    mock_bundles: AsyncMock,
    client: TestClient,
    rahima_bundle: MemberBundle,
):
    mock_bundles.return_value = BatchResult(bundles=[rahima_bundle], failed_member_ids=[])

    with patch(f"{CLIENT}.get_collector_members", new_callable=AsyncMock) as mock_members:
        response = client.post(
            "/v1/collection-sheet",
            json={"collector_id": "collector_1", "year": 2024, "month": 6, "mode": "daily", "member_ids": ["member_1"]},
        )
        mock_members.assert_not_awaited()

    assert response.status_code == 200
    assert len(response.json()["columns"]) == 26


@pytest.mark.parametrize("window_days, thursday_savings", [(None, 0), (1, 50)])
@patch(f"{CLIENT}.get_member_bundles", new_callable=AsyncMock)
def test_daily_sheet_window_override(
    mock_bundles: AsyncMock,
    client: TestClient,
    rahima_bundle: MemberBundle,
    make_savings,
    window_days,
    thursday_savings,
):
    """A Friday deposit has no daily column unless the window reaches Thursday"""
    rahima_bundle.transactions.append(make_savings("s3", 50, date(2024, 6, 7)))
    mock_bundles.return_value = BatchResult(bundles=[rahima_bundle], failed_member_ids=[])

    body = {"collector_id": "collector_1", "year": 2024, "month": 6, "mode": "daily", "member_ids": ["member_1"]}
    if window_days is not None:
        body["window_days"] = window_days
    response = client.post("/v1/collection-sheet", json=body)

    assert response.status_code == 200
    oil = response.json()["members"][0]["rows"][0]
    cells = {cell["column"]: cell for cell in oil["cells"]}
    assert cells["2024-06-06"]["savings_in"] == thursday_savings
    assert cells["2024-06-08"]["savings_in"] == 150


@patch(f"{CLIENT}.get_collector_members", new_callable=AsyncMock)
def test_collection_sheet_backend_down(mock_members: AsyncMock, client: TestClient):
    mock_members.side_effect = BackendAPIError("Backend API timeout after 5.0s")

    response = client.post(
        "/v1/collection-sheet",
        json={"collector_id": "collector_1", "year": 2024, "month": 6},
    )

    assert response.status_code == 503


def test_collection_sheet_invalid_weekday(client: TestClient):
    response = client.post(
        "/v1/collection-sheet",
        json={"collector_id": "collector_1", "year": 2024, "month": 6, "weekday": "Caturday"},
    )
    assert response.status_code == 422


@patch(f"{CLIENT}.get_member_bundle", new_callable=AsyncMock)
def test_member_ledger(mock_bundle: AsyncMock, client: TestClient, rahima_bundle: MemberBundle):
    """Test GET /v1/members/{member_id}/ledger with a day-by-day month"""
    mock_bundle.return_value = rahima_bundle

    response = client.get("/v1/members/member_1/ledger", params={"year": 2024, "month": 6})

    assert response.status_code == 200
    data = response.json()
    oil = data["rows"][0]
    assert len(oil["cells"]) == 30
    cells = {cell["column"]: cell for cell in oil["cells"]}
    # Exact-day matching: the 8 June deposit does not leak into neighbouring days
    assert cells["2024-06-08"]["savings_in"] == 150
    assert cells["2024-06-09"]["savings_in"] == 0
    assert data["completed_rows"][0]["savings_balance"] == 300


@patch(f"{CLIENT}.get_member_bundle", new_callable=AsyncMock)
def test_member_ledger_without_month(mock_bundle: AsyncMock, client: TestClient, rahima_bundle: MemberBundle):
    mock_bundle.return_value = rahima_bundle

    response = client.get("/v1/members/member_1/ledger")

    assert response.status_code == 200
    assert response.json()["rows"][0]["cells"] == []


def test_member_ledger_requires_year_with_month(client: TestClient):
    response = client.get("/v1/members/member_1/ledger", params={"year": 2024})
    assert response.status_code == 422


@patch(f"{CLIENT}.get_member_bundle", new_callable=AsyncMock)
def test_member_ledger_backend_down(mock_bundle: AsyncMock, client: TestClient):
    mock_bundle.side_effect = BackendAPIError("Backend API error: 502")
    response = client.get("/v1/members/member_1/ledger")
    assert response.status_code == 503


@patch(f"{CLIENT}.get_member_bundle", new_callable=AsyncMock)
@patch(f"{CLIENT}.get_member_bundles", new_callable=AsyncMock)
def test_reconciliation_history(
    mock_bundles: AsyncMock,
    mock_bundle: AsyncMock,
    client: TestClient,
    rahima_bundle: MemberBundle,
):
    """Test GET /v1/reconciliation/history"""
    mock_bundles.return_value = BatchResult(bundles=[rahima_bundle], failed_member_ids=[])
    mock_bundle.return_value = rahima_bundle

    client.post(
        "/v1/collection-sheet",
        json={"collector_id": "collector_1", "year": 2024, "month": 6, "member_ids": ["member_1"]},
    )
    client.get("/v1/members/member_1/ledger")

    response = client.get("/v1/reconciliation/history?member_id=member_1")

    assert response.status_code == 200
    data = response.json()
    assert data["member_id"] == "member_1"
    assert len(data["runs"]) == 2
    assert {run["view"] for run in data["runs"]} == {"sheet", "ledger"}
    sheet_run = next(run for run in data["runs"] if run["view"] == "sheet")
    assert sheet_run["collector_id"] == "collector_1"
    assert sheet_run["period"] == "2024-06"
    assert sheet_run["active_rows"] == 1
    assert sheet_run["completed_rows"] == 1


def test_reconciliation_history_empty(client: TestClient):
    response = client.get("/v1/reconciliation/history?member_id=nobody")
    assert response.status_code == 200
    assert response.json()["runs"] == []
