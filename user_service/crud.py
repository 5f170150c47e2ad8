"""Database queries for user management.

Every function runs on the caller's session so several of them can share one
transaction.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .logger import logger
from .models import User


# ==================== Single User Operations ====================

async def insert_user(session: AsyncSession, values: dict) -> User:
    """Stage a new user and flush so generated fields are populated."""
    user = User(**values)
    session.add(user)
    await session.flush()
    return user


async def select_user(session: AsyncSession, user_id: uuid.UUID) -> User | None:
    """Retrieve a user by ID, active or not."""
    return await session.get(User, user_id)


async def select_user_by_email(session: AsyncSession, email: str) -> User | None:
    """Retrieve a user by email address, active or not."""
    result = await session.execute(select(User).where(User.email == email))
    return result.scalars().first()


async def update_user_fields(session: AsyncSession, user: User, values: dict) -> User:
    """Apply the given column values to a loaded user and flush."""
    for key, value in values.items():
        setattr(user, key, value)
    user.updated_at = datetime.now(timezone.utc)
    await session.flush()
    return user


async def deactivate_user(session: AsyncSession, user_id: uuid.UUID) -> int:
    """Flip is_active to false. Returns the number of rows matched."""
    result = await session.execute(
        update(User)
        .where(User.id == user_id)
        .values(is_active=False, updated_at=datetime.now(timezone.utc))
    )
    return result.rowcount


# ==================== Listing ====================

async def list_users(
    session: AsyncSession,
    skip: int,
    limit: int,
    min_age: int | None = None,
    max_age: int | None = None,
) -> tuple[list[User], int]:
    """List active users newest first with optional age bounds. Returns users and total count."""
    conditions: list = [User.is_active.is_(True)]
    if min_age is not None:
        conditions.append(User.age >= min_age)
    if max_age is not None:
        conditions.append(User.age <= max_age)

    # Total count w/ same filters
    count_stmt = select(func.count()).select_from(User).where(*conditions)
    total = (await session.execute(count_stmt)).scalar() or 0

    stmt = (
        select(User)
        .where(*conditions)
        .order_by(User.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    users = list((await session.execute(stmt)).scalars().all())
    logger.debug(f"Query executed: returned {len(users)} users out of {total} total")
    return users, total
