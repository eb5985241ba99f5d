import logging
import tomllib
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from sqlalchemy.orm import Session

import analytics
from auth import AuthContext, bearer_token, read_session_token
from categories import ExpenseCategory, reward_type_label
from config import get_settings
from dashboard import DashboardSession, SessionRegistry, make_snapshot_fetcher
from database import SessionLocal, init_db
from filters import ExpenseFilters, expense_total, filter_expenses
from periods import days_until, parse_period_days, today_in
from records import CardRecord, OfferRecord, Snapshot
from scheduler import SchedulerManager
from schemas import CardIn, CardUpdate, ExpenseIn, ExpenseUpdate, OfferIn, OfferUpdate
from services import CardService, ExpenseService, OfferService


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_db()
    scheduler_manager.start()
    try:
        yield
    finally:
        scheduler_manager.stop()


app = FastAPI(title="Card Dashboard", lifespan=lifespan)


def _load_app_version() -> str:
    try:
        with open("pyproject.toml", "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        return "unknown"
    return str(data.get("project", {}).get("version", "unknown"))


APP_VERSION = _load_app_version()

settings = get_settings()
scheduler_manager = SchedulerManager()
registry = SessionRegistry(
    make_snapshot_fetcher(),
    currency_symbol=settings.currency_symbol,
    revocation_ttl_seconds=settings.session_max_age_hours * 3600,
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_registry() -> SessionRegistry:
    return registry


def get_today() -> date:
    return today_in(get_settings().timezone)


def current_auth(
    request: Request, sessions: SessionRegistry = Depends(get_registry)
) -> AuthContext:
    auth = read_session_token(bearer_token(request.headers.get("authorization")))
    if not auth.signed_in or sessions.is_revoked(auth):
        raise HTTPException(status_code=401, detail="Not signed in")
    return auth


def current_dashboard(
    auth: AuthContext = Depends(current_auth),
    sessions: SessionRegistry = Depends(get_registry),
) -> DashboardSession:
    return sessions.get(auth)


def period_from_request(request: Request) -> int:
    try:
        return parse_period_days(
            request.query_params.get("period"), get_settings().default_period_days
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def filters_from_request(request: Request) -> ExpenseFilters:
    card_param = request.query_params.get("card_id")
    category_param = request.query_params.get("category")
    card_id = None
    if card_param:
        try:
            card_id = int(card_param)
        except ValueError:
            card_id = None
    category = None
    if category_param and category_param != "all":
        try:
            category = ExpenseCategory(category_param)
        except ValueError:
            category = None
    return ExpenseFilters(card_id=card_id, category=category)


def card_payload(card: CardRecord, today: date) -> dict[str, object]:
    utilization = analytics.card_utilization(card)
    payload = asdict(card)
    payload.update(
        {
            "available_credit": card.credit_limit - card.current_balance,
            "utilization": utilization,
            "utilization_level": analytics.utilization_level(utilization),
            "days_until_due": days_until(card.due_date, today),
            "reward_label": reward_type_label(card.reward_type),
        }
    )
    return payload


def offer_payload(offer: OfferRecord, today: date) -> dict[str, object]:
    payload = asdict(offer)
    payload.update(
        {
            "days_until_expiry": days_until(offer.expiry_date, today),
            "expired": offer.expiry_date < today,
        }
    )
    return payload


async def refreshed_snapshot(
    dashboard: DashboardSession, today: date, scope: str
) -> Snapshot:
    snapshot = await dashboard.refresh(today=today, scope=scope)
    if snapshot is None:
        raise HTTPException(status_code=409, detail="Superseded by a newer load")
    return snapshot


@app.get("/health")
def health():
    return {"status": "ok", "version": APP_VERSION}


@app.get("/api/cards")
def list_cards(
    auth: AuthContext = Depends(current_auth),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    cards = CardService(db, auth.user_id).list()
    return {"items": [card_payload(card, today) for card in cards]}


@app.post("/api/cards", status_code=201)
def create_card(
    payload: CardIn,
    auth: AuthContext = Depends(current_auth),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    card = CardService(db, auth.user_id).create(payload)
    if card is None:
        raise HTTPException(status_code=503, detail="Card could not be saved")
    return card_payload(card, today)


@app.patch("/api/cards/{card_id}")
def update_card(
    card_id: int,
    payload: CardUpdate,
    auth: AuthContext = Depends(current_auth),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    card = CardService(db, auth.user_id).update(card_id, payload)
    if card is None:
        raise HTTPException(status_code=404, detail="Card not found or not saved")
    return card_payload(card, today)


@app.delete("/api/cards/{card_id}")
def delete_card(
    card_id: int,
    auth: AuthContext = Depends(current_auth),
    db: Session = Depends(get_db),
):
    if not CardService(db, auth.user_id).delete(card_id):
        raise HTTPException(status_code=404, detail="Card not found or not deleted")
    return {"deleted": True}


@app.get("/api/expenses")
def list_expenses(
    request: Request,
    auth: AuthContext = Depends(current_auth),
    db: Session = Depends(get_db),
):
    filters = filters_from_request(request)
    # The card filter is pushed down to the store; category stays in memory.
    expenses = ExpenseService(db, auth.user_id).list(card_id=filters.card_id)
    items = filter_expenses(expenses, filters)
    return {"items": items, "total": expense_total(items), "count": len(items)}


@app.post("/api/expenses", status_code=201)
def create_expense(
    payload: ExpenseIn,
    auth: AuthContext = Depends(current_auth),
    db: Session = Depends(get_db),
):
    try:
        expense = ExpenseService(db, auth.user_id).create(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if expense is None:
        raise HTTPException(status_code=503, detail="Expense could not be saved")
    return expense


@app.patch("/api/expenses/{expense_id}")
def update_expense(
    expense_id: int,
    payload: ExpenseUpdate,
    auth: AuthContext = Depends(current_auth),
    db: Session = Depends(get_db),
):
    try:
        expense = ExpenseService(db, auth.user_id).update(expense_id, payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if expense is None:
        raise HTTPException(status_code=404, detail="Expense not found or not saved")
    return expense


@app.delete("/api/expenses/{expense_id}")
def delete_expense(
    expense_id: int,
    auth: AuthContext = Depends(current_auth),
    db: Session = Depends(get_db),
):
    if not ExpenseService(db, auth.user_id).delete(expense_id):
        raise HTTPException(status_code=404, detail="Expense not found or not deleted")
    return {"deleted": True}


@app.get("/api/offers")
def list_offers(
    card_id: Optional[int] = None,
    auth: AuthContext = Depends(current_auth),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    offers = OfferService(db, auth.user_id).list(card_id=card_id)
    return {"items": [offer_payload(offer, today) for offer in offers]}


@app.post("/api/offers", status_code=201)
def create_offer(
    payload: OfferIn,
    auth: AuthContext = Depends(current_auth),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    try:
        offer = OfferService(db, auth.user_id).create(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if offer is None:
        raise HTTPException(status_code=503, detail="Offer could not be saved")
    return offer_payload(offer, today)


@app.patch("/api/offers/{offer_id}")
def update_offer(
    offer_id: int,
    payload: OfferUpdate,
    auth: AuthContext = Depends(current_auth),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    try:
        offer = OfferService(db, auth.user_id).update(offer_id, payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if offer is None:
        raise HTTPException(status_code=404, detail="Offer not found or not saved")
    return offer_payload(offer, today)


@app.post("/api/offers/{offer_id}/toggle")
def toggle_offer(
    offer_id: int,
    auth: AuthContext = Depends(current_auth),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    offer = OfferService(db, auth.user_id).toggle_active(offer_id)
    if offer is None:
        raise HTTPException(status_code=404, detail="Offer not found or not saved")
    return offer_payload(offer, today)


@app.delete("/api/offers/{offer_id}")
def delete_offer(
    offer_id: int,
    auth: AuthContext = Depends(current_auth),
    db: Session = Depends(get_db),
):
    if not OfferService(db, auth.user_id).delete(offer_id):
        raise HTTPException(status_code=404, detail="Offer not found or not deleted")
    return {"deleted": True}


@app.get("/api/summary")
async def summary(
    request: Request,
    dashboard: DashboardSession = Depends(current_dashboard),
    today: date = Depends(get_today),
):
    period_days = period_from_request(request)
    snapshot = await refreshed_snapshot(dashboard, today, "summary")
    return analytics.spending_summary(
        snapshot.cards,
        snapshot.expenses,
        snapshot.offers,
        period_days=period_days,
        today=today,
    )


@app.get("/api/analytics")
async def analytics_view(
    request: Request,
    dashboard: DashboardSession = Depends(current_dashboard),
    today: date = Depends(get_today),
):
    period_days = period_from_request(request)
    snapshot = await refreshed_snapshot(dashboard, today, "analytics")
    return analytics.analytics_overview(
        snapshot.cards, snapshot.expenses, period_days=period_days, today=today
    )


@app.get("/api/due-dates")
async def due_dates(
    dashboard: DashboardSession = Depends(current_dashboard),
    today: date = Depends(get_today),
):
    snapshot = await refreshed_snapshot(dashboard, today, "due-dates")
    return analytics.due_date_schedule(snapshot.cards, today)


@app.get("/api/notifications")
async def notifications(
    dashboard: DashboardSession = Depends(current_dashboard),
    today: date = Depends(get_today),
):
    await refreshed_snapshot(dashboard, today, "notifications")
    return {
        "items": dashboard.visible_notifications,
        "dismissed_count": len(dashboard.dismissed),
    }


@app.post("/api/notifications/{notification_id}/dismiss")
async def dismiss_notification(
    notification_id: str,
    dashboard: DashboardSession = Depends(current_dashboard),
):
    dashboard.dismiss(notification_id)
    return {"dismissed_count": len(dashboard.dismissed)}


@app.post("/api/notifications/restore")
async def restore_notifications(
    dashboard: DashboardSession = Depends(current_dashboard),
):
    restored = dashboard.restore_dismissed()
    return {"restored": restored}


@app.post("/api/session/sign-out")
async def sign_out(
    auth: AuthContext = Depends(current_auth),
    sessions: SessionRegistry = Depends(get_registry),
):
    dropped = sessions.drop(auth)
    logging.info(f"session_sign_out: user={auth.user_id} had_state={dropped}")
    return {"signed_out": True}


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
