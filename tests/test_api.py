import asyncio
from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient

import main
from database import create_session_factory
from models import RecurringRule
from services import LedgerService
from store import PersistenceError, SqlLedgerStore


class BrokenStore(SqlLedgerStore):
    async def list_transactions(self):
        raise PersistenceError("database is locked")


def make_client(store: SqlLedgerStore) -> tuple[TestClient, LedgerService]:
    service = LedgerService(store, clock=lambda: date(2024, 3, 15))
    asyncio.run(service.load())
    main.app.dependency_overrides[main.get_ledger] = lambda: service
    return TestClient(main.app), service


@pytest.fixture
def client():
    store = SqlLedgerStore(create_session_factory("sqlite://", create_all=True))
    client, _ = make_client(store)
    yield client
    main.app.dependency_overrides.clear()


def _expense_payload(**overrides) -> dict:
    payload = {
        "description": "Lunch",
        "amount_cents": 1_250,
        "category": "Food",
        "occurred_at": "2024-03-12T12:30:00",
        "type": "expense",
    }
    payload.update(overrides)
    return payload


def test_transaction_crud_round_trip(client: TestClient) -> None:
    created = client.post("/api/transactions", json=_expense_payload())
    assert created.status_code == 200
    txn_id = created.json()["id"]
    assert created.json()["status"] == "paid"

    updated = client.put(
        f"/api/transactions/{txn_id}", json=_expense_payload(amount_cents=1_500)
    )
    assert updated.status_code == 200
    assert updated.json()["amount_cents"] == 1_500

    listing = client.get("/api/transactions", params={"scope": "2024-03"})
    assert [t["id"] for t in listing.json()] == [txn_id]

    assert client.delete(f"/api/transactions/{txn_id}").status_code == 204
    assert client.get("/api/transactions").json() == []


def test_update_unknown_transaction_returns_404(client: TestClient) -> None:
    response = client.put("/api/transactions/missing", json=_expense_payload())

    assert response.status_code == 404


def test_invalid_transaction_is_rejected(client: TestClient) -> None:
    response = client.post("/api/transactions", json=_expense_payload(amount_cents=-5))

    assert response.status_code == 422


def test_summary_for_month_and_all(client: TestClient) -> None:
    client.post(
        "/api/transactions",
        json=_expense_payload(
            description="Salary",
            amount_cents=200_000,
            category="Salary",
            type="income",
            occurred_at="2024-03-01T09:00:00",
        ),
    )
    client.post("/api/transactions", json=_expense_payload())
    client.post(
        "/api/transactions",
        json=_expense_payload(occurred_at="2024-02-10T12:00:00", amount_cents=900),
    )

    month = client.get("/api/summary", params={"scope": "2024-03"}).json()
    assert month["scope"] == "2024-03"
    assert month["income"] == 200_000
    assert month["expenses"] == 1_250
    assert month["balance"] is None
    assert month["category_breakdown"] == {"Food": 1_250}
    assert month["monthly_commitment"] == 0
    assert month["top_categories"][0]["name"] == "Food"

    overall = client.get("/api/summary").json()
    assert overall["scope"] == "all"
    assert overall["balance"] == 200_000 - 1_250 - 900
    assert "monthly_commitment" not in overall


def test_bad_scope_returns_400(client: TestClient) -> None:
    assert client.get("/api/summary", params={"scope": "2024-13"}).status_code == 400
    assert client.get("/api/transactions", params={"scope": "soon"}).status_code == 400


def test_balance_reconciliation_endpoint(client: TestClient) -> None:
    client.post("/api/transactions", json=_expense_payload(amount_cents=2_000))

    response = client.put("/api/balance", json={"actual_balance": "100,00"})
    assert response.status_code == 200
    assert response.json() == {"balance": 10_000, "initial_balance": 12_000}
    assert client.get("/api/balance").json()["balance"] == 10_000

    bad = client.put("/api/balance", json={"actual_balance": "a lot"})
    assert bad.status_code == 400
    for huge in ["1e17", "1e30"]:
        assert client.put("/api/balance", json={"actual_balance": huge}).status_code == 400
    assert client.get("/api/balance").json()["initial_balance"] == 12_000


def test_installment_payment_flow(client: TestClient) -> None:
    parent = client.post(
        "/api/transactions",
        json=_expense_payload(
            description="Laptop",
            amount_cents=120_000,
            category="Electronics",
            occurred_at="2024-01-20T12:00:00",
            installment_plan={
                "total_installments": 12,
                "start_date": "2024-01-20",
                "monthly_amount_cents": 10_000,
            },
        ),
    ).json()

    schedule = client.get("/api/installments", params={"month": "2024-03"}).json()
    assert len(schedule) == 1
    assert schedule[0]["installment_number"] == 3
    assert schedule[0]["paid_this_month"] is False

    paid = client.post(
        f"/api/installments/{parent['id']}/pay",
        json={"installment_number": 3, "year": 2024, "month": 3},
    )
    assert paid.status_code == 200
    assert paid.json()["description"] == "Laptop (Installment 3/12)"
    assert paid.json()["parent_transaction_id"] == parent["id"]

    schedule = client.get("/api/installments", params={"month": "2024-03"}).json()
    assert schedule[0]["paid_this_month"] is True
    assert schedule[0]["remaining"] == 11

    missing = client.post(
        "/api/installments/missing/pay",
        json={"installment_number": 1, "year": 2024, "month": 3},
    )
    assert missing.status_code == 404

    plain = client.post("/api/transactions", json=_expense_payload()).json()
    no_plan = client.post(
        f"/api/installments/{plain['id']}/pay",
        json={"installment_number": 1, "year": 2024, "month": 3},
    )
    assert no_plan.status_code == 400


def test_recurring_rule_endpoints(client: TestClient) -> None:
    created = client.post(
        "/api/recurring",
        json={
            "description": "Streaming",
            "amount_cents": 1_299,
            "category": "Entertainment",
            "day_of_month": 31,
        },
    )
    assert created.status_code == 200
    rule_id = created.json()["id"]

    toggled = client.post(f"/api/recurring/{rule_id}/toggle", params={"active": False})
    assert toggled.json()["active"] is False

    overview = client.get("/api/recurring", params={"month": "2024-03"}).json()
    assert overview == [{"rule": toggled.json(), "state": "not_due"}]

    assert client.post("/api/recurring/missing/toggle", params={"active": True}).status_code == 404
    assert client.delete(f"/api/recurring/{rule_id}").status_code == 204
    assert client.delete(f"/api/recurring/{rule_id}").status_code == 404


def test_materialize_endpoint_is_idempotent() -> None:
    store = SqlLedgerStore(create_session_factory("sqlite://", create_all=True))
    asyncio.run(
        store.upsert_recurring_rule(
            RecurringRule(
                id="rule-rent",
                description="Rent",
                amount_cents=90_000,
                category="Housing",
                day_of_month=1,
                active=True,
                created_at=datetime(2024, 1, 1),
            )
        )
    )
    client, service = make_client(store)
    try:
        # load already posted March
        assert client.post("/api/recurring/materialize").json() == {"created": 0}
        instances = client.get("/api/recurring/rule-rent/instances").json()
        assert len(instances) == 1
        assert instances[0]["status"] == "pending"
        assert instances[0]["occurred_at"].startswith("2024-03-01T12:00")
    finally:
        main.app.dependency_overrides.clear()


def test_categories_endpoints(client: TestClient) -> None:
    categories = client.get("/api/categories").json()
    assert len(categories) == 10

    created = client.post("/api/categories", json={"name": "Pets", "color": "amber"})
    assert created.json()["kind"] == "custom"

    assert client.delete(f"/api/categories/{created.json()['id']}").status_code == 204
    assert "Pets" not in {c["name"] for c in client.get("/api/categories").json()}


def test_storage_failure_maps_to_503() -> None:
    store = BrokenStore(create_session_factory("sqlite://", create_all=True))
    service = LedgerService(store, clock=lambda: date(2024, 3, 15))
    main.app.dependency_overrides[main.get_ledger] = lambda: service
    try:
        response = TestClient(main.app).post("/api/sync")
        assert response.status_code == 503
        assert response.json() == {"detail": "Storage unavailable"}
    finally:
        main.app.dependency_overrides.clear()


def test_amounts_beyond_cent_range_are_rejected(client: TestClient) -> None:
    too_big = 2**63

    assert (
        client.post("/api/transactions", json=_expense_payload(amount_cents=too_big)).status_code
        == 422
    )
    rule = client.post(
        "/api/recurring",
        json={
            "description": "Yacht",
            "amount_cents": too_big,
            "category": "Other",
            "day_of_month": 1,
        },
    )
    assert rule.status_code == 422
    assert client.get("/api/transactions").json() == []
