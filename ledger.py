"""
Budget/transaction consistency

Recording, editing or removing an expense also moves the ``spent`` counter
of the user's budget for that category. Both rows are written in the same
database transaction, with the budget row locked while it is read, so the
counter never drifts from the recorded expenses. When no budget matches,
only the transaction is written.
"""
import logging
import os
from datetime import date
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from models import BudgetModel, TransactionModel
from schemas import EXPENSE_CATEGORIES, INCOME_CATEGORIES, TransactionIn, TransactionUpdate, normalize_category

logger = logging.getLogger("finance-tracker")

LEDGER_MAX_RETRIES = int(os.getenv("LEDGER_MAX_RETRIES", 3))

T = TypeVar("T")


async def run_atomic(db: AsyncSession, work: Callable[[], Awaitable[T]]) -> T:
    """Run ``work`` and commit, retrying from scratch when the store reports a conflict."""
    for attempt in range(1, LEDGER_MAX_RETRIES + 1):
        try:
            result = await work()
            await db.commit()
            return result
        except OperationalError:
            await db.rollback()
            if attempt == LEDGER_MAX_RETRIES:
                raise
            logger.warning("Ledger write conflicted, retrying (%d/%d)", attempt, LEDGER_MAX_RETRIES)


async def matching_budget(db: AsyncSession, user_id: int, category: str) -> Optional[BudgetModel]:
    """First budget (lowest id) of the user for ``category``, locked for update."""
    query = (
        select(BudgetModel)
        .where(BudgetModel.user_id == user_id, BudgetModel.category == category)
        .order_by(BudgetModel.id)
        .limit(1)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    result = await db.execute(query)
    return result.scalars().first()


async def adjust_budget(db: AsyncSession, user_id: int, tx_type: str, category: str, amount: float) -> None:
    """Move the matching budget's ``spent`` by ``amount`` (negative to reverse), floored at 0."""
    if tx_type != "expense":
        return
    budget = await matching_budget(db, user_id, category)
    if budget is None:
        logger.debug("No budget for category %s (user %s), skipping", category, user_id)
        return
    budget.spent = max(0.0, budget.spent + amount)
    logger.debug("Budget %s spent -> %.2f", budget.id, budget.spent)


async def _load(db: AsyncSession, user_id: int, tx_id: int) -> Optional[TransactionModel]:
    result = await db.execute(
        select(TransactionModel)
        .where(TransactionModel.id == tx_id, TransactionModel.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def record_transaction(db: AsyncSession, user_id: int, payload: TransactionIn, today: date) -> TransactionModel:
    async def work():
        tx = TransactionModel(
            user_id=user_id,
            type=payload.type,
            category=payload.category,
            amount=payload.amount,
            description=payload.description,
            date=payload.date or today,
        )
        db.add(tx)
        await adjust_budget(db, user_id, tx.type, tx.category, tx.amount)
        return tx

    tx = await run_atomic(db, work)
    await db.refresh(tx)
    return tx


async def update_transaction(
    db: AsyncSession, user_id: int, tx_id: int, changes: TransactionUpdate
) -> Optional[TransactionModel]:
    async def work():
        tx = await _load(db, user_id, tx_id)
        if tx is None:
            return None
        await adjust_budget(db, user_id, tx.type, tx.category, -tx.amount)

        data = changes.model_dump(exclude_unset=True)
        for field, value in data.items():
            if value is not None:
                setattr(tx, field, value)
        allowed = INCOME_CATEGORIES if tx.type == "income" else EXPENSE_CATEGORIES
        tx.category = normalize_category(tx.category, allowed)

        await adjust_budget(db, user_id, tx.type, tx.category, tx.amount)
        return tx

    tx = await run_atomic(db, work)
    if tx is not None:
        await db.refresh(tx)
    return tx


async def delete_transaction(db: AsyncSession, user_id: int, tx_id: int) -> bool:
    async def work():
        tx = await _load(db, user_id, tx_id)
        if tx is None:
            return False
        await adjust_budget(db, user_id, tx.type, tx.category, -tx.amount)
        await db.delete(tx)
        return True

    return await run_atomic(db, work)
