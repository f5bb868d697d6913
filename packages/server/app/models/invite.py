"""Org invite model (pending claim to join an organization)."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Invite(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "org_invites"

    org_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    code: str = Field(unique=True, nullable=False, index=True)
    email: str = Field(nullable=False)
    name: str = Field(default="", nullable=False)
    role: str = Field(nullable=False)
    status: str = Field(default="pending", nullable=False, index=True)  # pending | revoked | completed
    invited_by_user_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    email_sent: bool = Field(default=False, nullable=False)
    email_sent_on: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    remote_addr: Optional[str] = None
