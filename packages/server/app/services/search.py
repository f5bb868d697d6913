"""
Dashboard search service.

`SearchService` is the contract the search endpoint talks to: a readiness
gate plus a query that returns result frames. `SQLSearchService` is the
default implementation, matching dashboard titles, uids, tags and folder
directly in the database.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

import structlog
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import AuthenticatedUser
from app.core.config import Settings
from app.models.dashboard import Dashboard
from dashhub_shared.schemas.search import DashboardQuery, FrameField, ResultFrame

log = structlog.get_logger()

RESULTS_FRAME_NAME = "search-results"

REASON_DISABLED = "search-disabled"

RESULT_FIELDS = [
    FrameField(name="kind"),
    FrameField(name="uid"),
    FrameField(name="name"),
    FrameField(name="url"),
    FrameField(name="tags", type="other"),
    FrameField(name="location"),
]


@dataclass
class ReadinessCheck:
    is_ready: bool
    reason: str = ""


class SearchService:
    """Interface for dashboard search backends."""

    async def is_ready(self, org_id: uuid.UUID) -> ReadinessCheck:
        raise NotImplementedError

    async def query_dashboards(
        self,
        auth: AuthenticatedUser,
        org_id: uuid.UUID,
        query: DashboardQuery,
        session: AsyncSession,
    ) -> list[ResultFrame]:
        raise NotImplementedError


class SQLSearchService(SearchService):
    """Search straight over the dashboards table."""

    def __init__(self, settings: Settings):
        self.settings = settings

    async def is_ready(self, org_id: uuid.UUID) -> ReadinessCheck:
        if not self.settings.search_enabled:
            return ReadinessCheck(is_ready=False, reason=REASON_DISABLED)
        return ReadinessCheck(is_ready=True)

    async def query_dashboards(
        self,
        auth: AuthenticatedUser,
        org_id: uuid.UUID,
        query: DashboardQuery,
        session: AsyncSession,
    ) -> list[ResultFrame]:
        if query.kind and "dashboard" not in query.kind:
            return [_to_frame([], self.settings)]

        stmt = select(Dashboard).where(Dashboard.org_id == org_id)
        if query.query:
            stmt = stmt.where(Dashboard.title.ilike(f"%{query.query}%"))
        if query.uid:
            stmt = stmt.where(Dashboard.uid.in_(query.uid))
        if query.location:
            stmt = stmt.where(Dashboard.folder == query.location)

        if query.sort == "alpha-desc":
            stmt = stmt.order_by(Dashboard.title.desc())
        else:
            stmt = stmt.order_by(Dashboard.title.asc())

        result = await session.execute(stmt)
        dashboards = list(result.scalars().all())

        # Tag filtering happens here so it works the same on every backend
        if query.tags:
            wanted = set(query.tags)
            dashboards = [d for d in dashboards if wanted.issubset(d.tags or [])]

        limit = query.limit if query.limit is not None else self.settings.search_default_limit
        page = dashboards[query.from_:query.from_ + limit]

        log.debug(
            "search.query",
            org_id=str(org_id),
            user_id=str(auth.user_id),
            matched=len(dashboards),
            returned=len(page),
        )
        return [_to_frame(page, self.settings)]


def _to_frame(dashboards: list[Dashboard], settings: Settings) -> ResultFrame:
    return ResultFrame(
        name=RESULTS_FRAME_NAME,
        fields=RESULT_FIELDS,
        values=[
            ["dashboard" for _ in dashboards],
            [d.uid for d in dashboards],
            [d.title for d in dashboards],
            [settings.to_abs_url(f"d/{d.uid}") for d in dashboards],
            [list(d.tags or []) for d in dashboards],
            [d.folder or "" for d in dashboards],
        ],
    )


def get_search_service(request: Request) -> SearchService:
    """FastAPI dependency: the app's search service."""
    return request.app.state.search
