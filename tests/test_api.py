from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from auth import issue_session_token
from dashboard import SessionRegistry, make_snapshot_fetcher
from database import init_db
from main import app, get_db, get_registry, get_today

TODAY = date(2026, 10, 18)


@pytest.fixture()
def client():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    registry = SessionRegistry(make_snapshot_fetcher(factory))

    def override_db():
        db = factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_today] = lambda: TODAY
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        engine.dispose()


def _headers(user_id: str = "alice") -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_session_token(user_id)}"}


def _create_card(client: TestClient, headers: dict[str, str], **overrides) -> dict:
    payload = {
        "name": "Regalia",
        "bank": "HDFC Bank",
        "last_four_digits": "4321",
        "credit_limit": "100000",
        "current_balance": "95000",
        "due_date": "2026-10-13",
        "min_payment": "2500",
        "reward_type": "reward_points",
    }
    payload.update(overrides)
    response = client.post("/api/cards", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client: TestClient) -> None:
    assert client.get("/health").json()["status"] == "ok"


def test_requests_without_session_are_rejected(client: TestClient) -> None:
    assert client.get("/api/cards").status_code == 401
    bad = {"Authorization": "Bearer not-a-token"}
    assert client.get("/api/summary", headers=bad).status_code == 401


def test_card_payload_includes_derived_fields(client: TestClient) -> None:
    headers = _headers()
    card = _create_card(client, headers)

    assert card["utilization"] == 95.0
    assert card["utilization_level"] == "high"
    assert card["days_until_due"] == -5
    assert card["reward_label"] == "Reward Points"
    assert float(card["available_credit"]) == 5000.0

    listed = client.get("/api/cards", headers=headers).json()["items"]
    assert [c["id"] for c in listed] == [card["id"]]
    assert client.get("/api/cards", headers=_headers("bob")).json()["items"] == []


def test_invalid_card_payload_is_rejected(client: TestClient) -> None:
    response = client.post(
        "/api/cards",
        json={
            "name": "Regalia",
            "bank": "HDFC Bank",
            "last_four_digits": "43a1",
            "credit_limit": "1000",
            "due_date": "2026-10-13",
        },
        headers=_headers(),
    )
    assert response.status_code == 422


def test_expenses_filter_and_total(client: TestClient) -> None:
    headers = _headers()
    card = _create_card(client, headers)
    for amount, category in (("300", "dining"), ("200", "dining"), ("50", "fuel")):
        response = client.post(
            "/api/expenses",
            json={
                "card_id": card["id"],
                "amount": amount,
                "description": "spend",
                "category": category,
                "date": "2026-10-10",
            },
            headers=headers,
        )
        assert response.status_code == 201

    body = client.get("/api/expenses?category=dining", headers=headers).json()
    assert body["count"] == 2
    assert float(body["total"]) == 500.0

    everything = client.get("/api/expenses?category=bogus", headers=headers).json()
    assert everything["count"] == 3


def test_expense_on_foreign_card_is_bad_request(client: TestClient) -> None:
    card = _create_card(client, _headers("alice"))
    response = client.post(
        "/api/expenses",
        json={
            "card_id": card["id"],
            "amount": "10",
            "description": "sneaky",
            "date": "2026-10-10",
        },
        headers=_headers("bob"),
    )
    assert response.status_code == 400


def test_offer_toggle_and_delete(client: TestClient) -> None:
    headers = _headers()
    card = _create_card(client, headers)
    offer = client.post(
        "/api/offers",
        json={
            "card_id": card["id"],
            "title": "10% off dining",
            "category": "dining",
            "cashback": "10",
            "expiry_date": "2026-10-21",
        },
        headers=headers,
    ).json()
    assert offer["days_until_expiry"] == 3
    assert offer["expired"] is False

    toggled = client.post(f"/api/offers/{offer['id']}/toggle", headers=headers).json()
    assert toggled["is_active"] is False

    assert client.delete(f"/api/offers/{offer['id']}", headers=headers).status_code == 200
    assert client.delete(f"/api/offers/{offer['id']}", headers=headers).status_code == 404


def test_summary_rejects_bad_period(client: TestClient) -> None:
    headers = _headers()
    assert client.get("/api/summary?period=abc", headers=headers).status_code == 400

    _create_card(client, headers)
    summary = client.get("/api/summary?period=7", headers=headers).json()
    assert summary["period_days"] == 7
    assert float(summary["totals"]["total_balance"]) == 95000.0


def test_notifications_dismiss_and_restore(client: TestClient) -> None:
    headers = _headers()
    card = _create_card(client, headers)

    body = client.get("/api/notifications", headers=headers).json()
    ids = [n["id"] for n in body["items"]]
    assert ids == [f"due-overdue-{card['id']}", f"utilization-{card['id']}"]
    assert "5 days overdue" in body["items"][0]["message"]

    client.post(f"/api/notifications/due-overdue-{card['id']}/dismiss", headers=headers)
    body = client.get("/api/notifications", headers=headers).json()
    assert [n["id"] for n in body["items"]] == [f"utilization-{card['id']}"]
    assert body["dismissed_count"] == 1

    restored = client.post("/api/notifications/restore", headers=headers).json()
    assert restored == {"restored": 1}


def test_sign_out_revokes_session(client: TestClient) -> None:
    headers = _headers()
    assert client.get("/api/due-dates", headers=headers).status_code == 200

    assert client.post("/api/session/sign-out", headers=headers).status_code == 200
    assert client.get("/api/cards", headers=headers).status_code == 401


def test_blank_text_fields_are_rejected(client: TestClient) -> None:
    headers = _headers()
    card = _create_card(client, headers)

    expense = client.post(
        "/api/expenses",
        json={
            "card_id": card["id"],
            "amount": "10",
            "description": "   ",
            "date": "2026-10-10",
        },
        headers=headers,
    )
    assert expense.status_code == 422

    offer = client.post(
        "/api/offers",
        json={
            "card_id": card["id"],
            "title": " ",
            "cashback": "5",
            "expiry_date": "2026-10-21",
        },
        headers=headers,
    )
    assert offer.status_code == 422

    rename = client.patch(
        f"/api/cards/{card['id']}", json={"name": "  "}, headers=headers
    )
    assert rename.status_code == 422
    assert client.get("/api/expenses", headers=headers).json()["count"] == 0


def test_lifespan_initialises_store_and_scheduler(monkeypatch) -> None:
    import main

    events: list[str] = []

    class RecordingScheduler:
        def start(self) -> None:
            events.append("start")

        def stop(self) -> None:
            events.append("stop")

    monkeypatch.setattr(main, "init_db", lambda: events.append("init_db"))
    monkeypatch.setattr(main, "scheduler_manager", RecordingScheduler())

    with TestClient(main.app) as lifespan_client:
        assert lifespan_client.get("/health").status_code == 200
        assert events == ["init_db", "start"]

    assert events == ["init_db", "start", "stop"]
