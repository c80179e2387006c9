"""
Kindred - Coin balance operations.

Every balance change is a single conditional ``UPDATE`` so two concurrent
requests can never spend the same coins twice; the caller's request
transaction makes the deduction atomic with the action it pays for.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import InsufficientFundsError, NotFoundError
from app.models.user import User

logger = structlog.get_logger("kindred.wallet_service")


async def get_balance(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(select(User.coins).where(User.id == user_id))
    balance = result.scalar_one_or_none()
    if balance is None:
        raise NotFoundError("User not found")
    return balance


async def spend_coins(db: AsyncSession, user_id: uuid.UUID, amount: int) -> int:
    """Deduct *amount* if the balance covers it and return the new balance.

    Raises ``InsufficientFundsError`` (and changes nothing) otherwise.
    """
    if amount <= 0:
        return await get_balance(db, user_id)

    stmt = (
        update(User)
        .where(User.id == user_id, User.coins >= amount)
        .values(coins=User.coins - amount)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    if result.rowcount == 0:
        logger.info("coins_insufficient", user_id=str(user_id), required=amount)
        raise InsufficientFundsError(amount)

    balance = await get_balance(db, user_id)
    logger.info("coins_spent", user_id=str(user_id), amount=amount, balance=balance)
    return balance


async def credit_coins(db: AsyncSession, user_id: uuid.UUID, amount: int) -> int:
    stmt = (
        update(User)
        .where(User.id == user_id)
        .values(coins=User.coins + amount)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    if result.rowcount == 0:
        raise NotFoundError("User not found")

    balance = await get_balance(db, user_id)
    logger.info("coins_credited", user_id=str(user_id), amount=amount, balance=balance)
    return balance
