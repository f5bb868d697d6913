"""Dashboard model, the corpus behind dashboard search."""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Dashboard(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "dashboards"
    __table_args__ = (sa.UniqueConstraint("org_id", "uid"),)

    org_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    uid: str = Field(nullable=False, index=True)
    title: str = Field(nullable=False, index=True)
    folder: Optional[str] = None  # folder uid, None for the root
    tags: list = Field(
        default_factory=list,
        sa_type=sa.JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
    )
