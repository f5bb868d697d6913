"""
User store: user lookup and creation, org membership, active org.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import hash_password
from app.core.errors import (
    OrgUserAlreadyAddedError,
    OrgUserNotFoundError,
    UserAlreadyExistsError,
    UserNotFoundError,
)
from app.models.user import User
from app.models.user_org import UserOrg

log = structlog.get_logger()


async def get_by_login(login_or_email: str, session: AsyncSession) -> User:
    """Find a user by login or email. Raises UserNotFoundError."""
    result = await session.execute(
        select(User).where(
            or_(User.login == login_or_email, User.email == login_or_email)
        )
    )
    user = result.scalars().first()
    if not user:
        raise UserNotFoundError(login_or_email)
    return user


async def find_conflicting_user(email: str, login: str, session: AsyncSession) -> User | None:
    result = await session.execute(
        select(User).where(or_(User.email == email, User.login == login))
    )
    return result.scalars().first()


async def create_user(
    email: str,
    name: str,
    login: str,
    password: str,
    session: AsyncSession,
) -> User:
    """Create a user without any org membership. Raises UserAlreadyExistsError."""
    login = login or email
    if await find_conflicting_user(email, login, session):
        raise UserAlreadyExistsError(email, login)

    user = User(
        email=email,
        login=login,
        name=name,
        password_hash=hash_password(password),
    )
    try:
        # Savepoint: a concurrent signup for the same email or login only undoes this insert
        async with session.begin_nested():
            session.add(user)
    except IntegrityError:
        raise UserAlreadyExistsError(email, login)

    log.info("user.created", user_id=str(user.id), login=login)
    return user


async def get_membership(
    org_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> UserOrg | None:
    result = await session.execute(
        select(UserOrg).where(UserOrg.org_id == org_id, UserOrg.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def add_org_user(
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    role: str,
    session: AsyncSession,
) -> UserOrg:
    """Add a user to an org. Raises OrgUserAlreadyAddedError on a duplicate."""
    if await get_membership(org_id, user_id, session):
        raise OrgUserAlreadyAddedError()

    membership = UserOrg(user_id=user_id, org_id=org_id, role=role)
    try:
        async with session.begin_nested():
            session.add(membership)
    except IntegrityError:
        raise OrgUserAlreadyAddedError()

    log.info("org_user.added", user_id=str(user_id), org_id=str(org_id), role=role)
    return membership


async def list_user_org_ids(user_id: uuid.UUID, session: AsyncSession) -> list[uuid.UUID]:
    result = await session.execute(
        select(UserOrg.org_id).where(UserOrg.user_id == user_id)
    )
    return list(result.scalars().all())


async def set_using_org(
    user_id: uuid.UUID, org_id: uuid.UUID, session: AsyncSession
) -> None:
    """Make `org_id` the user's active org. The user must be a member."""
    if not await get_membership(org_id, user_id, session):
        raise OrgUserNotFoundError()

    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one()
    user.active_org_id = org_id
    session.add(user)
    await session.flush()
    log.info("user.active_org_set", user_id=str(user_id), org_id=str(org_id))
