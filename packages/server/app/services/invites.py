"""
Invite store: business logic for org invite records and their lifecycle.
"""

from __future__ import annotations

import secrets
import string
import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import InviteNotFoundError, InviteStatusError
from app.models.invite import Invite
from app.models.user import User
from dashhub_shared.schemas.invites import InviteStatus, can_transition

log = structlog.get_logger()

INVITE_CODE_LENGTH = 30
_CODE_ALPHABET = string.ascii_letters + string.digits


def generate_invite_code(length: int = INVITE_CODE_LENGTH) -> str:
    """Random alphanumeric code, unguessable and URL safe."""
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(length))


def _first_non_empty(*values: Optional[str]) -> str:
    for value in values:
        if value:
            return value
    return ""


def invited_by_display(row: dict) -> str:
    """Inviter display name: name, then login, then email."""
    return _first_non_empty(
        row.get("invited_by_name"),
        row.get("invited_by_login"),
        row.get("invited_by_email"),
    )


def _to_dict(invite: Invite, inviter: Optional[User]) -> dict:
    return {
        "id": invite.id,
        "org_id": invite.org_id,
        "name": invite.name,
        "email": invite.email,
        "role": invite.role,
        "invited_by_login": inviter.login if inviter else None,
        "invited_by_email": inviter.email if inviter else None,
        "invited_by_name": inviter.name if inviter else None,
        "code": invite.code,
        "status": invite.status,
        "email_sent": invite.email_sent,
        "email_sent_on": invite.email_sent_on,
        "created_on": invite.created_at,
    }


async def list_invites(
    org_id: uuid.UUID,
    status: InviteStatus,
    session: AsyncSession,
) -> list[dict]:
    """List an org's invites in one status, joined with inviter details."""
    result = await session.execute(
        select(Invite, User)
        .join(User, User.id == Invite.invited_by_user_id, isouter=True)
        .where(Invite.org_id == org_id, Invite.status == status.value)
        .order_by(Invite.created_at.desc())
    )
    return [_to_dict(invite, inviter) for invite, inviter in result.all()]


async def create_invite(
    org_id: uuid.UUID,
    email: str,
    name: str,
    role: str,
    invited_by_user_id: uuid.UUID,
    session: AsyncSession,
    *,
    remote_addr: Optional[str] = None,
) -> Invite:
    """Store a new pending invite with a fresh random code."""
    invite = Invite(
        org_id=org_id,
        code=generate_invite_code(),
        email=email,
        name=name,
        role=role,
        status=InviteStatus.PENDING.value,
        invited_by_user_id=invited_by_user_id,
        remote_addr=remote_addr,
    )
    session.add(invite)
    await session.flush()

    log.info("invite.created", invite_id=str(invite.id), org_id=str(org_id), role=role)
    return invite


async def get_invite_by_code(code: str, session: AsyncSession) -> dict:
    """Look up an invite (any status) with inviter details. Raises InviteNotFoundError."""
    result = await session.execute(
        select(Invite, User)
        .join(User, User.id == Invite.invited_by_user_id, isouter=True)
        .where(Invite.code == code)
    )
    row = result.one_or_none()
    if not row:
        raise InviteNotFoundError(code)
    invite, inviter = row
    return _to_dict(invite, inviter)


async def _load(code: str, session: AsyncSession) -> Invite:
    result = await session.execute(select(Invite).where(Invite.code == code))
    invite = result.scalar_one_or_none()
    if not invite:
        raise InviteNotFoundError(code)
    return invite


async def update_invite_status(
    code: str, status: InviteStatus, session: AsyncSession
) -> Invite:
    """Move an invite along its lifecycle. Terminal invites are never changed."""
    invite = await _load(code, session)
    current = InviteStatus(invite.status)
    if not can_transition(current, status):
        raise InviteStatusError(code, current.value, status.value)

    invite.status = status.value
    invite.updated_at = datetime.now(timezone.utc)
    session.add(invite)
    await session.flush()

    log.info("invite.status_changed", invite_id=str(invite.id), status=status.value)
    return invite


async def mark_email_sent(code: str, session: AsyncSession) -> Invite:
    """Record that the invitation mail went out."""
    invite = await _load(code, session)
    invite.email_sent = True
    invite.email_sent_on = datetime.now(timezone.utc)
    session.add(invite)
    await session.flush()
    return invite
