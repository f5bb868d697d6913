"""
Authentication endpoints.

- Email/Password login issuing a JWT session
- Logout (JWT revocation)
"""

from __future__ import annotations

import jwt
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    SESSION_COOKIE,
    clear_session_cookies,
    decode_jwt,
    login_user,
    revoke_jwt,
    verify_password,
)
from app.core.database import get_session
from app.core.errors import UserNotFoundError
from app.services import users as user_service

log = structlog.get_logger()
router = APIRouter()


class LoginRequest(BaseModel):
    user: str  # login or email
    password: str


class AuthResponse(BaseModel):
    user_id: str
    email: str
    message: str


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Authenticate with login/email and password and receive a JWT session."""
    try:
        user = await user_service.get_by_login(body.user, session)
    except UserNotFoundError:
        raise HTTPException(status_code=401, detail="Invalid username or password")

    if not user.password_hash or not verify_password(body.password, user.password_hash):
        log.warning("auth.login_failure", user=body.user, reason="bad_password")
        raise HTTPException(status_code=401, detail="Invalid username or password")

    org_ids = await user_service.list_user_org_ids(user.id, session)
    if not org_ids:
        raise HTTPException(status_code=403, detail="User has no organization memberships")

    active_org = user.active_org_id if user.active_org_id in org_ids else org_ids[0]
    membership = await user_service.get_membership(active_org, user.id, session)

    login_user(
        response,
        user,
        org_ids=[str(org_id) for org_id in org_ids],
        active_org=str(active_org),
        role=membership.role,
    )

    log.info("auth.login_success", user_id=str(user.id))
    return AuthResponse(
        user_id=str(user.id),
        email=user.email,
        message="Login successful",
    )


@router.post("/logout")
async def logout(request: Request, response: Response):
    """Invalidate the current session."""
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        try:
            payload = decode_jwt(token)
        except jwt.PyJWTError:
            payload = {}  # Token already invalid, just clear cookies
        jti = payload.get("jti")
        if jti:
            await revoke_jwt(jti)

    clear_session_cookies(response)
    return {"message": "Logged out"}
