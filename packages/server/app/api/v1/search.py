"""
Dashboard search API endpoint.

POST /api/v1/search/  Run a dashboard query in the caller's active org
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, require_member
from app.core.database import get_session
from app.core.errors import internal_error
from app.core.metrics import DASHBOARD_SEARCH_NOT_SERVED, MetricsCollector, get_metrics
from app.services.search import SearchService, get_search_service
from dashhub_shared.schemas.search import DashboardQuery, loading_frame

log = structlog.get_logger()

router = APIRouter()


@router.post("/", tags=["Search"])
async def search_dashboards(
    request: Request,
    auth: AuthenticatedUser = Depends(require_member),
    session: AsyncSession = Depends(get_session),
    search: SearchService = Depends(get_search_service),
    metrics: MetricsCollector = Depends(get_metrics),
):
    """Query dashboards. Answers with a `Loading` frame while search is warming up."""
    readiness = await search.is_ready(auth.org_id)
    if not readiness.is_ready:
        metrics.inc(DASHBOARD_SEARCH_NOT_SERVED, reason=readiness.reason)
        log.info("search.not_ready", org_id=str(auth.org_id), reason=readiness.reason)
        return JSONResponse(loading_frame().to_wire())

    body = await request.body()
    try:
        query = DashboardQuery.model_validate_json(body)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"error parsing body: {exc.errors()[0]['msg']}")

    try:
        frames = await search.query_dashboards(auth, auth.org_id, query, session)
    except Exception as exc:
        raise internal_error("error handling search request", exc)

    if len(frames) != 1:
        raise internal_error(f"invalid search response: expected 1 frame, got {len(frames)}")

    return JSONResponse(frames[0].to_wire())
