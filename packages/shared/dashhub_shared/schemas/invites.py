"""
Invite-related Pydantic schemas.

Covers: invite lifecycle states, create/complete request bodies, pending
invite listing and the public invite-info payload.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from .common import CamelModel


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class InviteStatus(str, Enum):
    PENDING = "pending"
    REVOKED = "revoked"
    COMPLETED = "completed"


# ---------------------------------------------------------------------------
# Lifecycle transitions
# ---------------------------------------------------------------------------

INVITE_TRANSITIONS: dict[InviteStatus, list[InviteStatus]] = {
    InviteStatus.PENDING: [InviteStatus.COMPLETED, InviteStatus.REVOKED],
    InviteStatus.REVOKED: [],
    InviteStatus.COMPLETED: [],
}


def can_transition(current: InviteStatus, target: InviteStatus) -> bool:
    return target in INVITE_TRANSITIONS.get(current, [])


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class InviteCreateRequest(CamelModel):
    """Invite someone (new or existing user) into the caller's org."""
    login_or_email: str = Field(..., min_length=1, max_length=190)
    # Kept as a raw string so an unknown role gets its own error message
    role: str
    name: str = Field(default="", max_length=255)
    send_email: bool = False


class CompleteInviteRequest(CamelModel):
    """Sign up through an invite code."""
    invite_code: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1, max_length=190)
    name: str = Field(default="", max_length=255)
    username: str = Field(default="", max_length=190)
    password: str = Field(..., min_length=8)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class InviteResponse(CamelModel):
    """A pending invite as listed for org administrators."""
    id: uuid.UUID
    org_id: uuid.UUID
    name: str
    email: str
    role: str
    invited_by_login: Optional[str] = None
    invited_by_email: Optional[str] = None
    invited_by_name: Optional[str] = None
    code: str
    status: InviteStatus
    url: str
    email_sent: bool = False
    email_sent_on: Optional[datetime] = None
    created_on: datetime


class InviteInfoResponse(CamelModel):
    """Public view of a pending invite, shown on the signup page."""
    email: str
    name: str
    username: str
    invited_by: str


class InviteUserResponse(CamelModel):
    """Returned when an existing user is added or an invite is completed."""
    message: str
    user_id: uuid.UUID
