"""
Domain errors raised by the store and notification layers.

Route handlers switch on these to pick a status code. Anything that is not
one of these falls through to a 500 built by `internal_error`.
"""

from __future__ import annotations

import structlog
from fastapi import HTTPException

log = structlog.get_logger()


class DashhubError(Exception):
    """Base class for recognised collaborator failures."""


class InviteNotFoundError(DashhubError):
    def __init__(self, code: str):
        super().__init__(f"invite {code!r} not found")
        self.code = code


class InviteStatusError(DashhubError):
    """An invite was asked to move to a status its lifecycle forbids."""

    def __init__(self, code: str, current: str, target: str):
        super().__init__(
            f"invite {code!r} cannot move from {current} to {target}"
        )
        self.code = code
        self.current = current
        self.target = target


class UserNotFoundError(DashhubError):
    def __init__(self, login_or_email: str):
        super().__init__(f"user {login_or_email!r} not found")


class UserAlreadyExistsError(DashhubError):
    def __init__(self, email: str, login: str):
        super().__init__(f"user with email {email!r} or login {login!r} already exists")


class OrgUserAlreadyAddedError(DashhubError):
    def __init__(self):
        super().__init__("user is already a member of this organization")


class OrgUserNotFoundError(DashhubError):
    def __init__(self):
        super().__init__("user is not a member of this organization")


class SmtpNotEnabledError(DashhubError):
    def __init__(self):
        super().__init__("SMTP not configured, check the DH_SMTP_* settings")


def internal_error(message: str, exc: BaseException | None = None) -> HTTPException:
    """Log an unexpected failure and build the 500 to raise for it."""
    if exc is None:
        log.error("request.internal_error", message=message)
        return HTTPException(status_code=500, detail=message)
    log.error("request.internal_error", message=message, error=str(exc), exc_info=exc)
    return HTTPException(status_code=500, detail=f"{message}: {exc}")
