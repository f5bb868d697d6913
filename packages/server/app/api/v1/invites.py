"""
Org invite API endpoints.

GET    /api/v1/org/invites                List pending invites of the active org
POST   /api/v1/org/invites                Invite a new user or add an existing one
DELETE /api/v1/org/invites/{code}/revoke  Revoke a pending invite (Admin only)
GET    /api/v1/user/invite/{code}         Public info for a pending invite
POST   /api/v1/user/invite/complete       Sign up through an invite and log in
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.accesscontrol import (
    ACTION_ORG_USERS_ADD,
    AccessControl,
    get_access_control,
    scope,
)
from app.core.auth import (
    AuthenticatedUser,
    login_user,
    require_admin,
    require_contributor,
)
from app.core.config import Settings, get_app_settings
from app.core.database import get_session
from app.core.errors import (
    InviteNotFoundError,
    OrgUserAlreadyAddedError,
    SmtpNotEnabledError,
    UserAlreadyExistsError,
    UserNotFoundError,
    internal_error,
)
from app.core.events import SIGNUP_COMPLETED, EventPublisher, get_event_publisher
from app.core.metrics import (
    USER_SIGNUP_COMPLETED,
    USER_SIGNUP_INVITE,
    MetricsCollector,
    get_metrics,
)
from app.models.user import User
from app.services import invites as invite_service
from app.services import users as user_service
from app.services.notifications import (
    TEMPLATE_INVITED_TO_ORG,
    TEMPLATE_NEW_USER_INVITE,
    EmailService,
    SendEmailCommand,
    get_email_service,
    is_email,
)
from dashhub_shared.schemas.common import MessageResponse, parse_role, role_includes
from dashhub_shared.schemas.invites import (
    CompleteInviteRequest,
    InviteCreateRequest,
    InviteInfoResponse,
    InviteResponse,
    InviteStatus,
    InviteUserResponse,
)

log = structlog.get_logger()

# ---------------------------------------------------------------------------
# Org-scoped routes (active org of the session)
# ---------------------------------------------------------------------------
router_org = APIRouter()


def _invite_url(settings: Settings, code: str) -> str:
    return settings.to_abs_url(f"invite/{code}")


def _inviter_name(auth: AuthenticatedUser) -> str:
    return auth.user.name or auth.user.email or auth.user.login


@router_org.get("/invites", response_model=list[InviteResponse], tags=["Invites"])
async def list_pending_invites(
    auth: AuthenticatedUser = Depends(require_contributor),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
):
    """List pending invites for the caller's org."""
    try:
        items = await invite_service.list_invites(auth.org_id, InviteStatus.PENDING, session)
    except Exception as exc:
        raise internal_error("Failed to get invites from db", exc)

    return [InviteResponse(**item, url=_invite_url(settings, item["code"])) for item in items]


@router_org.post("/invites", tags=["Invites"])
async def add_org_invite(
    body: InviteCreateRequest,
    request: Request,
    auth: AuthenticatedUser = Depends(require_contributor),
    session: AsyncSession = Depends(get_session),
    access_control: AccessControl = Depends(get_access_control),
    email: EmailService = Depends(get_email_service),
    settings: Settings = Depends(get_app_settings),
):
    """Invite someone into the org. Existing users are added directly."""
    role = parse_role(body.role)
    if role is None:
        raise HTTPException(status_code=400, detail="Invalid role specified")

    caller_role = parse_role(auth.role)
    if not auth.is_superuser and (caller_role is None or not role_includes(caller_role, role)):
        raise HTTPException(status_code=403, detail="Cannot assign a role higher than user's role")

    try:
        existing = await user_service.get_by_login(body.login_or_email, session)
    except UserNotFoundError:
        existing = None
    except Exception as exc:
        raise internal_error("Failed to query db for existing user check", exc)

    if existing is not None:
        try:
            allowed = await access_control.evaluate(
                auth, ACTION_ORG_USERS_ADD, scope("users", "id", existing.id)
            )
        except Exception as exc:
            raise internal_error("Failed to evaluate permissions", exc)
        if not allowed:
            raise HTTPException(
                status_code=403,
                detail="Permission denied: not permitted to add an existing user to this organisation",
            )
        return await _invite_existing_user(auth, existing, body, role.value, session, email)

    if settings.disable_login_form:
        raise HTTPException(status_code=400, detail="Cannot invite when login is disabled.")

    try:
        invite = await invite_service.create_invite(
            auth.org_id,
            email=body.login_or_email,
            name=body.name,
            role=role.value,
            invited_by_user_id=auth.user_id,
            session=session,
            remote_addr=request.client.host if request.client else None,
        )
        # Kept even if the invitation mail below fails
        await session.commit()
    except Exception as exc:
        raise internal_error("Failed to save invite to database", exc)

    if not (body.send_email and is_email(body.login_or_email)):
        return MessageResponse(message=f"Created invite for {body.login_or_email}")

    cmd = SendEmailCommand(
        to=[body.login_or_email],
        template=TEMPLATE_NEW_USER_INVITE,
        data={
            "Name": invite.name or invite.email,
            "OrgName": auth.org_name,
            "Email": auth.user.email,
            "LinkUrl": _invite_url(settings, invite.code),
            "InvitedBy": _inviter_name(auth),
        },
    )
    try:
        await email.send_email(cmd)
    except SmtpNotEnabledError as exc:
        raise HTTPException(status_code=412, detail=str(exc))
    except Exception as exc:
        raise internal_error("Failed to send email invite", exc)

    try:
        await invite_service.mark_email_sent(invite.code, session)
    except Exception as exc:
        raise internal_error("Failed to update invite with email sent info", exc)

    return MessageResponse(message=f"Sent invite to {body.login_or_email}")


async def _invite_existing_user(
    auth: AuthenticatedUser,
    user: User,
    body: InviteCreateRequest,
    role: str,
    session: AsyncSession,
    email: EmailService,
) -> InviteUserResponse:
    try:
        await user_service.add_org_user(auth.org_id, user.id, role, session)
        await session.commit()
    except OrgUserAlreadyAddedError:
        raise HTTPException(
            status_code=412,
            detail=f"User {body.login_or_email} is already added to organization",
        )
    except Exception as exc:
        raise internal_error("Error while trying to create org user", exc)

    if body.send_email and is_email(user.email):
        cmd = SendEmailCommand(
            to=[user.email],
            template=TEMPLATE_INVITED_TO_ORG,
            data={
                "Name": user.name_or_fallback(),
                "OrgName": auth.org_name,
                "InvitedBy": _inviter_name(auth),
            },
        )
        try:
            await email.send_email(cmd)
        except Exception as exc:
            raise internal_error("Failed to send email invited_to_org", exc)

    return InviteUserResponse(
        message=f"Existing user {user.name_or_fallback()} added to org {auth.org_name}",
        user_id=user.id,
    )


@router_org.delete("/invites/{code}/revoke", response_model=MessageResponse, tags=["Invites"])
async def revoke_invite(
    code: str,
    auth: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Revoke a pending invite (Admin only)."""
    try:
        await invite_service.update_invite_status(code, InviteStatus.REVOKED, session)
    except Exception as exc:
        raise internal_error("Failed to update invite status", exc)

    log.info("invite.revoked", org_id=str(auth.org_id), revoked_by=str(auth.user_id))
    return MessageResponse(message="Invite revoked")


# ---------------------------------------------------------------------------
# Public routes (no session required)
# ---------------------------------------------------------------------------
router_public = APIRouter()


@router_public.get("/invite/{code}", response_model=InviteInfoResponse, tags=["Invites"])
async def get_invite_info(
    code: str,
    session: AsyncSession = Depends(get_session),
):
    """Info for a pending invite. Any other status is reported as not found."""
    try:
        invite = await invite_service.get_invite_by_code(code, session)
    except InviteNotFoundError:
        raise HTTPException(status_code=404, detail="Invite not found")
    except Exception as exc:
        raise internal_error("Failed to get invite", exc)

    if invite["status"] != InviteStatus.PENDING.value:
        raise HTTPException(status_code=404, detail="Invite not found")

    return InviteInfoResponse(
        email=invite["email"],
        name=invite["name"],
        username=invite["email"],
        invited_by=invite_service.invited_by_display(invite),
    )


@router_public.post("/invite/complete", response_model=InviteUserResponse, tags=["Invites"])
async def complete_invite(
    body: CompleteInviteRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
    events: EventPublisher = Depends(get_event_publisher),
    metrics: MetricsCollector = Depends(get_metrics),
):
    """Create the invited user, join them to the org and log them in.

    Steps are committed one by one; a failure leaves earlier steps applied.
    """
    try:
        invite = await invite_service.get_invite_by_code(body.invite_code, session)
    except InviteNotFoundError:
        raise HTTPException(status_code=404, detail="Invite not found")
    except Exception as exc:
        raise internal_error("Failed to get invite", exc)

    if invite["status"] != InviteStatus.PENDING.value:
        raise HTTPException(
            status_code=412,
            detail=f"Invite cannot be used in status {invite['status']}",
        )

    try:
        user = await user_service.create_user(
            email=body.email,
            name=body.name,
            login=body.username,
            password=body.password,
            session=session,
        )
        await session.commit()
    except UserAlreadyExistsError as exc:
        raise HTTPException(
            status_code=412,
            detail=f"User with email '{body.email}' or username '{body.username}' already exists",
        ) from exc
    except Exception as exc:
        raise internal_error("failed to create user", exc)

    try:
        await events.publish(
            SIGNUP_COMPLETED,
            {"name": user.name_or_fallback(), "email": user.email},
            org_id=invite["org_id"],
        )
    except Exception as exc:
        raise internal_error("failed to publish event", exc)

    await _apply_user_invite(user, invite, session)

    try:
        org_ids = await user_service.list_user_org_ids(user.id, session)
        login_user(
            response,
            user,
            org_ids=[str(org_id) for org_id in org_ids],
            active_org=str(invite["org_id"]),
            role=invite["role"],
        )
    except Exception as exc:
        raise internal_error("failed to accept invite", exc)

    metrics.inc(USER_SIGNUP_COMPLETED)
    metrics.inc(USER_SIGNUP_INVITE)

    log.info("user.signup_completed", user_id=str(user.id), org_id=str(invite["org_id"]))
    return InviteUserResponse(message="User created and logged in", user_id=user.id)


async def _apply_user_invite(user: User, invite: dict, session: AsyncSession) -> None:
    """Join the org, close the invite and switch the user to the org."""
    try:
        await user_service.add_org_user(invite["org_id"], user.id, invite["role"], session)
        await session.commit()
    except OrgUserAlreadyAddedError:
        log.info("invite.member_already_added", user_id=str(user.id), org_id=str(invite["org_id"]))
    except Exception as exc:
        raise internal_error("Error while trying to create org user", exc)

    try:
        await invite_service.update_invite_status(invite["code"], InviteStatus.COMPLETED, session)
        await session.commit()
    except Exception as exc:
        raise internal_error("Failed to update invite status", exc)

    try:
        await user_service.set_using_org(user.id, invite["org_id"], session)
        await session.commit()
    except Exception as exc:
        raise internal_error("Failed to set org as active", exc)
