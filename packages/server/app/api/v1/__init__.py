"""
API v1 Router

Org-scoped endpoints act on the active org carried by the caller's session.
"""

from fastapi import APIRouter
from . import search
from .invites import router_org as invites_org_router
from .invites import router_public as invites_public_router

router = APIRouter()

# Invite management for the active org
router.include_router(invites_org_router, prefix="/org")

# Public invite lookup and signup
router.include_router(invites_public_router, prefix="/user")

# Dashboard search
router.include_router(search.router, prefix="/search")


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/org/invites",
            "/user/invite/{code}",
            "/user/invite/complete",
            "/search",
        ],
    }
