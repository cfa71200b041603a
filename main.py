import asyncio
import logging
import os
from contextlib import asynccontextmanager, suppress
from datetime import date
from typing import List, Literal, Optional

from fastapi import Depends, FastAPI, Query, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel
from sqlalchemy import case, func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

import analytics
import ledger
from auth import authenticate, create_access_token, get_current_user, get_password_hash, user_from_token
from database import DATABASE_URL, USING_SQLITE, async_session, engine, get_db, init_models
from errors import api_error, message_for, not_found
from feeds import COLLECTIONS, hub
from models import BudgetModel, CardModel, GoalModel, SubscriptionModel, TransactionModel, UserModel
from schemas import (
    BudgetIn,
    BudgetOut,
    BudgetUpdate,
    CardIn,
    CardOut,
    CardTotals,
    CardUpdate,
    CategoryShare,
    GoalIn,
    GoalMovement,
    GoalOut,
    GoalUpdate,
    HealthReport,
    SubscriptionIn,
    SubscriptionOut,
    SubscriptionTotals,
    SubscriptionUpdate,
    Token,
    Totals,
    TransactionIn,
    TransactionOut,
    TransactionUpdate,
    TrendItem,
    UserOut,
    UserRegister,
    UserUpdate,
)

# ----------------------------------------------------------------------------
# Config
# ----------------------------------------------------------------------------
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger("finance-tracker")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


def get_today() -> date:
    """Reference date for every derived value (countdowns, month windows)."""
    return date.today()


# ----------------------------------------------------------------------------
# App setup
# ----------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(_: FastAPI):
    try:
        await init_models()
    except SQLAlchemyError:
        # Keep booting; /test reports the store status
        logger.exception("Could not create tables on %s", DATABASE_URL)
    yield
    await engine.dispose()


app = FastAPI(title="Personal Finance API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request, exc: SQLAlchemyError):
    logger.error("Store error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": message_for("store/unavailable")},
    )


# ----------------------------------------------------------------------------
# Serialisation and snapshots
# ----------------------------------------------------------------------------
def card_out(card: CardModel, today: date) -> CardOut:
    return CardOut(
        id=card.id,
        name=card.name,
        limit=card.limit,
        current_debt=card.current_debt,
        cutoff_day=card.cutoff_day,
        payment_day=card.payment_day,
        color_tag=card.color_tag,
        **analytics.card_status(card, today),
    )


def subscription_out(sub: SubscriptionModel, today: date) -> SubscriptionOut:
    return SubscriptionOut(
        id=sub.id,
        name=sub.name,
        amount=sub.amount,
        payment_day=sub.payment_day,
        category=sub.category,
        frequency=sub.frequency,
        status=sub.status,
        last_paid_date=sub.last_paid_date,
        **analytics.subscription_status(sub, today),
    )


def budget_out(budget: BudgetModel) -> BudgetOut:
    return BudgetOut(
        id=budget.id,
        name=budget.name,
        amount=budget.amount,
        spent=budget.spent,
        category=budget.category,
        period=budget.period,
        start_date=budget.start_date,
        **analytics.budget_status(budget),
    )


def goal_out(goal: GoalModel, today: date) -> GoalOut:
    return GoalOut(
        id=goal.id,
        name=goal.name,
        target_amount=goal.target_amount,
        current_amount=goal.current_amount,
        icon=goal.icon,
        target_date=goal.target_date,
        **analytics.goal_status(goal, today),
    )


async def load_rows(db: AsyncSession, model, user_id: int) -> list:
    result = await db.execute(select(model).where(model.user_id == user_id).order_by(model.id))
    return list(result.scalars().all())


async def load_owned(db: AsyncSession, model, user_id: int, row_id: int):
    result = await db.execute(select(model).where(model.id == row_id, model.user_id == user_id))
    row = result.scalar_one_or_none()
    if row is None:
        raise not_found()
    return row


async def list_transactions_for(db: AsyncSession, user_id: int) -> List[TransactionModel]:
    result = await db.execute(
        select(TransactionModel)
        .where(TransactionModel.user_id == user_id)
        .order_by(TransactionModel.date.desc(), TransactionModel.id.desc())
    )
    return list(result.scalars().all())


async def list_subscriptions_for(db: AsyncSession, user_id: int, today: date) -> List[SubscriptionOut]:
    items = [subscription_out(s, today) for s in await load_rows(db, SubscriptionModel, user_id)]
    items.sort(key=lambda s: s.days_left)
    return items


async def list_goals_for(db: AsyncSession, user_id: int, today: date) -> List[GoalOut]:
    items = [goal_out(g, today) for g in await load_rows(db, GoalModel, user_id)]
    items.sort(key=lambda g: (g.is_completed, -g.progress))
    return items


async def build_snapshot(db: AsyncSession, user_id: int, collection: str, today: date) -> list:
    if collection == "transactions":
        items = [TransactionOut.model_validate(t) for t in await list_transactions_for(db, user_id)]
    elif collection == "cards":
        items = [card_out(c, today) for c in await load_rows(db, CardModel, user_id)]
    elif collection == "subscriptions":
        items = await list_subscriptions_for(db, user_id, today)
    elif collection == "budgets":
        items = [budget_out(b) for b in await load_rows(db, BudgetModel, user_id)]
    else:
        items = await list_goals_for(db, user_id, today)
    return jsonable_encoder(items)


async def publish(db: AsyncSession, user_id: int, today: date, *collections: str) -> None:
    for collection in collections:
        if hub.has_subscribers(user_id, collection):
            hub.publish(user_id, collection, await build_snapshot(db, user_id, collection, today))


# ----------------------------------------------------------------------------
# Health & test
# ----------------------------------------------------------------------------
@app.get("/")
async def read_root():
    return {"message": "Personal Finance Backend is running"}


@app.get("/test")
async def test_database():
    info = {
        "backend": "✅ Running",
        "using_sqlite_fallback": USING_SQLITE,
        "connection_status": "Not Connected",
        "database": "❌ Not Available",
    }
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
            info["database"] = "✅ Available"
            info["connection_status"] = "Connected"
    except SQLAlchemyError as e:
        info["database"] = f"❌ Error: {str(e)[:160]}"
    return info


# ----------------------------------------------------------------------------
# Auth routes
# ----------------------------------------------------------------------------
@app.post("/auth/register", response_model=UserOut)
async def register(payload: UserRegister, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(UserModel).where(UserModel.email == payload.email))
    if result.scalar_one_or_none():
        raise api_error("auth/email-already-in-use")

    user = UserModel(
        name=payload.name,
        email=payload.email,
        password_hash=get_password_hash(payload.password),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


@app.post("/auth/login", response_model=Token)
async def login(form_data: OAuth2PasswordRequestForm = Depends(), db: AsyncSession = Depends(get_db)):
    user = await authenticate(db, form_data.username, form_data.password)
    if user is None:
        raise api_error("auth/invalid-credential")

    access_token = create_access_token({"sub": str(user.id)})
    return {"access_token": access_token, "token_type": "bearer"}


@app.get("/auth/me", response_model=UserOut)
async def me(current_user: UserModel = Depends(get_current_user)):
    return current_user


@app.patch("/auth/me", response_model=UserOut)
async def update_me(
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    for field, value in payload.model_dump(exclude_none=True).items():
        setattr(current_user, field, value)
    await db.commit()
    await db.refresh(current_user)
    return current_user


# ----------------------------------------------------------------------------
# Transactions
# ----------------------------------------------------------------------------
@app.post("/transactions", response_model=TransactionOut, status_code=status.HTTP_201_CREATED)
async def create_transaction(
    payload: TransactionIn,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    tx = await ledger.record_transaction(db, current_user.id, payload, today)
    await publish(db, current_user.id, today, "transactions", "budgets")
    return tx


@app.get("/transactions", response_model=List[TransactionOut])
async def list_transactions(
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    ttype: Optional[Literal["income", "expense"]] = None,
    category: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    query = select(TransactionModel).where(TransactionModel.user_id == current_user.id)
    if from_date:
        query = query.where(TransactionModel.date >= from_date)
    if to_date:
        query = query.where(TransactionModel.date <= to_date)
    if ttype:
        query = query.where(TransactionModel.type == ttype)
    if category:
        query = query.where(TransactionModel.category == category.lower())
    query = query.order_by(TransactionModel.date.desc(), TransactionModel.id.desc())

    result = await db.execute(query)
    return result.scalars().all()


@app.patch("/transactions/{tx_id}", response_model=TransactionOut)
async def edit_transaction(
    tx_id: int,
    payload: TransactionUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    tx = await ledger.update_transaction(db, current_user.id, tx_id, payload)
    if tx is None:
        raise not_found()
    await publish(db, current_user.id, today, "transactions", "budgets")
    return tx


@app.delete("/transactions/{tx_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_transaction(
    tx_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    if not await ledger.delete_transaction(db, current_user.id, tx_id):
        raise not_found()
    await publish(db, current_user.id, today, "transactions", "budgets")


# ----------------------------------------------------------------------------
# Credit cards
# ----------------------------------------------------------------------------
@app.post("/cards", response_model=CardOut, status_code=status.HTTP_201_CREATED)
async def create_card(
    payload: CardIn,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    card = CardModel(user_id=current_user.id, **payload.model_dump())
    db.add(card)
    await db.commit()
    await db.refresh(card)
    await publish(db, current_user.id, today, "cards")
    return card_out(card, today)


@app.get("/cards", response_model=List[CardOut])
async def list_cards(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    return [card_out(c, today) for c in await load_rows(db, CardModel, current_user.id)]


@app.patch("/cards/{card_id}", response_model=CardOut)
async def edit_card(
    card_id: int,
    payload: CardUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    card = await load_owned(db, CardModel, current_user.id, card_id)
    changes = payload.model_dump(exclude_none=True)
    limit = changes.get("limit", card.limit)
    if changes.get("current_debt", card.current_debt) > limit:
        raise api_error("validation/debt-over-limit", status.HTTP_422_UNPROCESSABLE_ENTITY)
    for field, value in changes.items():
        setattr(card, field, value)
    await db.commit()
    await db.refresh(card)
    await publish(db, current_user.id, today, "cards")
    return card_out(card, today)


@app.delete("/cards/{card_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_card(
    card_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    card = await load_owned(db, CardModel, current_user.id, card_id)
    await db.delete(card)
    await db.commit()
    await publish(db, current_user.id, today, "cards")


# ----------------------------------------------------------------------------
# Subscriptions
# ----------------------------------------------------------------------------
@app.post("/subscriptions", response_model=SubscriptionOut, status_code=status.HTTP_201_CREATED)
async def create_subscription(
    payload: SubscriptionIn,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    sub = SubscriptionModel(user_id=current_user.id, **payload.model_dump())
    db.add(sub)
    await db.commit()
    await db.refresh(sub)
    await publish(db, current_user.id, today, "subscriptions")
    return subscription_out(sub, today)


@app.get("/subscriptions", response_model=List[SubscriptionOut])
async def list_subscriptions(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    return await list_subscriptions_for(db, current_user.id, today)


@app.patch("/subscriptions/{sub_id}", response_model=SubscriptionOut)
async def edit_subscription(
    sub_id: int,
    payload: SubscriptionUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    sub = await load_owned(db, SubscriptionModel, current_user.id, sub_id)
    for field, value in payload.model_dump(exclude_none=True).items():
        setattr(sub, field, value)
    await db.commit()
    await db.refresh(sub)
    await publish(db, current_user.id, today, "subscriptions")
    return subscription_out(sub, today)


@app.post("/subscriptions/{sub_id}/pay", response_model=SubscriptionOut)
async def mark_subscription_paid(
    sub_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    sub = await load_owned(db, SubscriptionModel, current_user.id, sub_id)
    sub.last_paid_date = today
    await db.commit()
    await db.refresh(sub)
    await publish(db, current_user.id, today, "subscriptions")
    return subscription_out(sub, today)


@app.delete("/subscriptions/{sub_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_subscription(
    sub_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    sub = await load_owned(db, SubscriptionModel, current_user.id, sub_id)
    await db.delete(sub)
    await db.commit()
    await publish(db, current_user.id, today, "subscriptions")


# ----------------------------------------------------------------------------
# Budgets
# ----------------------------------------------------------------------------
@app.post("/budgets", response_model=BudgetOut, status_code=status.HTTP_201_CREATED)
async def create_budget(
    payload: BudgetIn,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    budget = BudgetModel(user_id=current_user.id, spent=0, start_date=today, **payload.model_dump())
    db.add(budget)
    await db.commit()
    await db.refresh(budget)
    await publish(db, current_user.id, today, "budgets")
    return budget_out(budget)


@app.get("/budgets", response_model=List[BudgetOut])
async def list_budgets(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return [budget_out(b) for b in await load_rows(db, BudgetModel, current_user.id)]


@app.patch("/budgets/{budget_id}", response_model=BudgetOut)
async def edit_budget(
    budget_id: int,
    payload: BudgetUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    budget = await load_owned(db, BudgetModel, current_user.id, budget_id)
    for field, value in payload.model_dump(exclude_none=True).items():
        setattr(budget, field, value)
    await db.commit()
    await db.refresh(budget)
    await publish(db, current_user.id, today, "budgets")
    return budget_out(budget)


@app.post("/budgets/{budget_id}/reset", response_model=BudgetOut)
async def reset_budget(
    budget_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    budget = await load_owned(db, BudgetModel, current_user.id, budget_id)
    budget.spent = 0
    await db.commit()
    await db.refresh(budget)
    await publish(db, current_user.id, today, "budgets")
    return budget_out(budget)


@app.delete("/budgets/{budget_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_budget(
    budget_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    budget = await load_owned(db, BudgetModel, current_user.id, budget_id)
    await db.delete(budget)
    await db.commit()
    await publish(db, current_user.id, today, "budgets")


# ----------------------------------------------------------------------------
# Savings goals
# ----------------------------------------------------------------------------
@app.post("/goals", response_model=GoalOut, status_code=status.HTTP_201_CREATED)
async def create_goal(
    payload: GoalIn,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    goal = GoalModel(user_id=current_user.id, current_amount=0, **payload.model_dump())
    db.add(goal)
    await db.commit()
    await db.refresh(goal)
    await publish(db, current_user.id, today, "goals")
    return goal_out(goal, today)


@app.get("/goals", response_model=List[GoalOut])
async def list_goals(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    return await list_goals_for(db, current_user.id, today)


@app.patch("/goals/{goal_id}", response_model=GoalOut)
async def edit_goal(
    goal_id: int,
    payload: GoalUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    goal = await load_owned(db, GoalModel, current_user.id, goal_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        # target_date may be cleared explicitly
        if value is not None or field == "target_date":
            setattr(goal, field, value)
    await db.commit()
    await db.refresh(goal)
    await publish(db, current_user.id, today, "goals")
    return goal_out(goal, today)


async def _move_savings(db: AsyncSession, user_id: int, goal_id: int, amount: float, today: date) -> GoalOut:
    goal = await load_owned(db, GoalModel, user_id, goal_id)
    goal.current_amount = max(0.0, goal.current_amount + amount)
    await db.commit()
    await db.refresh(goal)
    await publish(db, user_id, today, "goals")
    return goal_out(goal, today)


@app.post("/goals/{goal_id}/deposit", response_model=GoalOut)
async def deposit_to_goal(
    goal_id: int,
    payload: GoalMovement,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    return await _move_savings(db, current_user.id, goal_id, payload.amount, today)


@app.post("/goals/{goal_id}/withdraw", response_model=GoalOut)
async def withdraw_from_goal(
    goal_id: int,
    payload: GoalMovement,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    return await _move_savings(db, current_user.id, goal_id, -payload.amount, today)


@app.delete("/goals/{goal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_goal(
    goal_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    goal = await load_owned(db, GoalModel, current_user.id, goal_id)
    await db.delete(goal)
    await db.commit()
    await publish(db, current_user.id, today, "goals")


# ----------------------------------------------------------------------------
# Reports
# ----------------------------------------------------------------------------
class ReportItem(BaseModel):
    label: str
    income: float
    expense: float
    balance: float


@app.get("/reports/summary", response_model=Totals)
async def reports_summary(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return analytics.summarize_transactions(await list_transactions_for(db, current_user.id))


@app.get("/reports/periods", response_model=List[ReportItem])
async def reports_periods(
    period: Literal["daily", "monthly", "yearly"] = "monthly",
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    """Income, expense and balance grouped by day, month or year, in the database."""
    if USING_SQLITE:
        fmt = {"daily": "%Y-%m-%d", "monthly": "%Y-%m", "yearly": "%Y"}[period]
        label = func.strftime(fmt, TransactionModel.date)
    else:
        unit = {"daily": "day", "monthly": "month", "yearly": "year"}[period]
        fmt = {"daily": "YYYY-MM-DD", "monthly": "YYYY-MM", "yearly": "YYYY"}[period]
        label = func.to_char(func.date_trunc(unit, TransactionModel.date), fmt)

    income = func.sum(case((TransactionModel.type == "income", TransactionModel.amount), else_=0))
    expense = func.sum(case((TransactionModel.type == "expense", TransactionModel.amount), else_=0))
    query = select(label.label("label"), income.label("income"), expense.label("expense")).where(
        TransactionModel.user_id == current_user.id
    )
    if from_date:
        query = query.where(TransactionModel.date >= from_date)
    if to_date:
        query = query.where(TransactionModel.date <= to_date)
    query = query.group_by(text("label")).order_by(text("label"))

    rows = (await db.execute(query)).fetchall()
    data = []
    for r in rows:
        inc = float(r.income or 0)
        exp = float(r.expense or 0)
        data.append(ReportItem(label=r.label, income=inc, expense=exp, balance=inc - exp))
    return data


@app.get("/reports/categories", response_model=List[CategoryShare])
async def reports_categories(
    kind: Literal["income", "expense"] = "expense",
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    month = analytics.in_month(await list_transactions_for(db, current_user.id), today)
    return analytics.category_breakdown(month, kind)


@app.get("/reports/trend", response_model=List[TrendItem])
async def reports_trend(
    months: int = Query(analytics.TREND_MONTHS, ge=1, le=24),
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    return analytics.monthly_trend(await list_transactions_for(db, current_user.id), today, months)


@app.get("/reports/comparison")
async def reports_comparison(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    return analytics.month_comparison(await list_transactions_for(db, current_user.id), today)


@app.get("/reports/daily")
async def reports_daily(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    transactions = await list_transactions_for(db, current_user.id)
    totals = analytics.summarize_transactions(analytics.in_month(transactions, today))
    return {
        **analytics.daily_averages(totals["income"], totals["expense"], today),
        "top_expenses": [
            TransactionOut.model_validate(t) for t in analytics.top_expenses(transactions, today)
        ],
    }


@app.get("/reports/cards")
async def reports_cards(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    cards = await load_rows(db, CardModel, current_user.id)
    items = [card_out(c, today) for c in cards]
    upcoming = sorted((c for c in items if c.days_to_payment <= 7), key=lambda c: c.days_to_payment)
    return {
        "totals": CardTotals(**analytics.summarize_cards(cards)),
        "high_utilization": [c for c in items if c.utilization >= 70],
        "upcoming_payments": upcoming,
    }


@app.get("/reports/subscriptions")
async def reports_subscriptions(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    subs = await load_rows(db, SubscriptionModel, current_user.id)
    alerts = analytics.subscription_alerts(subs, today)
    return {
        "totals": SubscriptionTotals(**analytics.summarize_subscriptions(subs, today)),
        "alerts": {level: [subscription_out(s, today) for s in items] for level, items in alerts.items()},
    }


@app.get("/reports/budgets")
async def reports_budgets(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return analytics.summarize_budgets(await load_rows(db, BudgetModel, current_user.id))


@app.get("/reports/goals")
async def reports_goals(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    return analytics.summarize_goals(await load_rows(db, GoalModel, current_user.id))


@app.get("/reports/health", response_model=HealthReport)
async def reports_health(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    return analytics.financial_health(
        await list_transactions_for(db, current_user.id),
        await load_rows(db, CardModel, current_user.id),
        await load_rows(db, SubscriptionModel, current_user.id),
        today,
    )


@app.get("/reports/overview")
async def reports_overview(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    today: date = Depends(get_today),
):
    transactions = await list_transactions_for(db, current_user.id)
    cards = await load_rows(db, CardModel, current_user.id)
    subs = await load_rows(db, SubscriptionModel, current_user.id)
    month = analytics.in_month(transactions, today)
    return {
        "totals": analytics.summarize_transactions(transactions),
        "expenses_by_category": analytics.category_breakdown(month, "expense"),
        "income_by_category": analytics.category_breakdown(month, "income"),
        "trend": analytics.monthly_trend(transactions, today),
        "comparison": analytics.month_comparison(transactions, today),
        "cards": analytics.summarize_cards(cards),
        "subscriptions": analytics.summarize_subscriptions(subs, today),
        "budgets": analytics.summarize_budgets(await load_rows(db, BudgetModel, current_user.id)),
        "goals": analytics.summarize_goals(await load_rows(db, GoalModel, current_user.id)),
        "health": analytics.financial_health(transactions, cards, subs, today),
    }


# ----------------------------------------------------------------------------
# Live feed
# ----------------------------------------------------------------------------
@app.websocket("/ws/{collection}")
async def live_feed(
    websocket: WebSocket,
    collection: str,
    token: str = Query(...),
    today: date = Depends(get_today),
):
    """Push the collection's snapshot on connect and after every change."""
    async with async_session() as db:
        user = await user_from_token(db, token)
    if user is None or collection not in COLLECTIONS:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await websocket.accept()

    async def pump():
        while True:
            await websocket.send_json(await queue.get())

    queue = hub.subscribe(user.id, collection)
    sender = None
    try:
        async with async_session() as db:
            snapshot = await build_snapshot(db, user.id, collection, today)
        await websocket.send_json(snapshot)
        sender = asyncio.create_task(pump())
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Live feed %s closed for user %s", collection, user.id)
    finally:
        hub.unsubscribe(user.id, collection, queue)
        if sender is not None:
            sender.cancel()
            with suppress(asyncio.CancelledError, WebSocketDisconnect):
                await sender


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
