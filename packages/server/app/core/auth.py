"""
Authentication and Authorization for Dashhub.

Supports:
- Email/Password login with bcrypt password hashes
- JWT session management with Redis revocation list
- Role-based authorization dependencies
- Org scoping through the session's active org
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends, HTTPException, Request, Response
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.database import get_session
from app.core.redis import get_redis
from app.models.organization import Organization
from app.models.user import User
from app.models.user_org import UserOrg

log = structlog.get_logger()
settings = get_settings()

auth_header = APIKeyHeader(name="Authorization", auto_error=False)

SESSION_COOKIE = "dh_session"
CSRF_COOKIE = "dh_csrf"

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with cost factor 12."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode(), hashed.encode())


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    org_ids: list[str],
    active_org: str,
    role: str,
    *,
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a signed JWT. Returns (token, jti)."""
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "org_ids": org_ids,
        "active_org": active_org,
        "role": role,
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


# ---------------------------------------------------------------------------
# JWT Revocation (Redis)
# ---------------------------------------------------------------------------

async def revoke_jwt(jti: str, ttl_seconds: int = 3600) -> None:
    """Add a JWT ID to the revocation list in Redis."""
    redis = await get_redis()
    await redis.setex(f"jwt:revoked:{jti}", ttl_seconds, "1")


async def is_jwt_revoked(jti: str) -> bool:
    """Check if a JWT ID has been revoked."""
    redis = await get_redis()
    return await redis.exists(f"jwt:revoked:{jti}") > 0


# ---------------------------------------------------------------------------
# CSRF Token & session cookies
# ---------------------------------------------------------------------------

def generate_csrf_token() -> str:
    """Generate a random CSRF token."""
    return secrets.token_urlsafe(32)


def set_session_cookies(response: Response, token: str, csrf: str) -> None:
    """Set the session JWT and CSRF cookies on a response."""
    max_age = settings.jwt_expire_minutes * 60
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        httponly=True,
        secure=not settings.debug,  # allow non-HTTPS in dev
        samesite="lax",
        path="/",
        max_age=max_age,
    )
    response.set_cookie(
        key=CSRF_COOKIE,
        value=csrf,
        httponly=False,  # JS must read this
        secure=not settings.debug,
        samesite="lax",
        path="/",
        max_age=max_age,
    )


def clear_session_cookies(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE, path="/")
    response.delete_cookie(CSRF_COOKIE, path="/")


def login_user(
    response: Response,
    user: User,
    org_ids: list[str],
    active_org: str,
    role: str,
) -> str:
    """Issue a session for `user` and attach it to the response. Returns the JWT."""
    token, _jti = create_jwt(
        user_id=user.id,
        org_ids=org_ids,
        active_org=active_org,
        role=role,
    )
    set_session_cookies(response, token, generate_csrf_token())
    log.info("auth.session_issued", user_id=str(user.id), active_org=active_org)
    return token


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

class AuthenticatedUser:
    """Container for an authenticated user + their active org context."""

    def __init__(self, user: User, org: Organization, user_org: UserOrg):
        self.user = user
        self.org = org
        self.user_org = user_org
        self.user_id = user.id
        self.org_id = org.id
        self.org_name = org.name
        self.role = user_org.role
        self.is_superuser = user.is_superuser


def _session_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip()
    return request.cookies.get(SESSION_COOKIE)


async def get_authenticated_user(
    request: Request,
    authorization: Optional[str] = Depends(auth_header),
    session: AsyncSession = Depends(get_session),
) -> AuthenticatedUser:
    """Main authentication dependency. Reads a Bearer JWT or the session cookie."""
    token = _session_token(request, authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Authentication required")

    try:
        payload = decode_jwt(token)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    jti = payload.get("jti")
    if jti and await is_jwt_revoked(jti):
        raise HTTPException(status_code=401, detail="Session has been revoked")

    try:
        user_id = uuid.UUID(payload["sub"])
        org_id = uuid.UUID(payload["active_org"])
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    result = await session.execute(
        select(User, Organization, UserOrg)
        .join(UserOrg, UserOrg.user_id == User.id)
        .join(Organization, Organization.id == UserOrg.org_id)
        .where(User.id == user_id, UserOrg.org_id == org_id)
    )
    row = result.one_or_none()
    if not row:
        log.warning("auth.membership_missing", user_id=str(user_id), org_id=str(org_id))
        raise HTTPException(status_code=401, detail="User not found in active organization")

    user, org, user_org = row
    auth_user = AuthenticatedUser(user=user, org=org, user_org=user_org)
    request.state.auth = auth_user
    return auth_user


# ---------------------------------------------------------------------------
# Authorization dependencies (role checks)
# ---------------------------------------------------------------------------

async def require_member(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
) -> AuthenticatedUser:
    """Any org member can access this endpoint."""
    return auth


async def require_contributor(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
) -> AuthenticatedUser:
    """Requires contributor or administrator role."""
    if auth.is_superuser:
        return auth
    if auth.role not in ("contributor", "administrator"):
        raise HTTPException(status_code=403, detail="Contributor access required")
    return auth


async def require_admin(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
) -> AuthenticatedUser:
    """Requires administrator role."""
    if auth.is_superuser:
        return auth
    if auth.role != "administrator":
        raise HTTPException(status_code=403, detail="Administrator access required")
    return auth
