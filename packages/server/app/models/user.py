"""User model."""

from datetime import datetime, timezone
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin


class User(UUIDMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(unique=True, index=True, nullable=False)
    login: str = Field(unique=True, index=True, nullable=False)
    name: str = Field(default="", nullable=False)
    password_hash: Optional[str] = Field(default=None)  # bcrypt hash
    is_superuser: bool = Field(default=False, nullable=False)
    active_org_id: Optional[uuid.UUID] = Field(default=None, foreign_key="organizations.id")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )

    def name_or_fallback(self) -> str:
        return self.name or self.login or self.email
