"""
Email notification service: renders templated mails and sends them over SMTP.
"""

from __future__ import annotations

import asyncio
import smtplib
from dataclasses import dataclass, field
from email.message import EmailMessage
from typing import Any

import structlog
from email_validator import EmailNotValidError, validate_email
from fastapi import Request

from app.core.config import Settings
from app.core.errors import SmtpNotEnabledError

log = structlog.get_logger()

TEMPLATE_NEW_USER_INVITE = "new_user_invite"
TEMPLATE_INVITED_TO_ORG = "invited_to_org"

# template name -> (subject, plain-text body); both use str.format fields
TEMPLATES: dict[str, tuple[str, str]] = {
    TEMPLATE_NEW_USER_INVITE: (
        "{InvitedBy} has invited you to join {OrgName}",
        "Hi {Name},\n\n"
        "{InvitedBy} has invited you to join the {OrgName} organization on Dashhub.\n\n"
        "Accept the invitation and create your account here:\n{LinkUrl}\n\n"
        "If you were not expecting this invitation you can ignore this email.\n",
    ),
    TEMPLATE_INVITED_TO_ORG: (
        "{InvitedBy} has added you to {OrgName}",
        "Hi {Name},\n\n"
        "{InvitedBy} has added you to the {OrgName} organization on Dashhub.\n"
        "Switch to it from your profile the next time you sign in.\n",
    ),
}


def is_email(value: str) -> bool:
    """True when `value` is a syntactically valid email address."""
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


@dataclass
class SendEmailCommand:
    to: list[str]
    template: str
    data: dict[str, Any] = field(default_factory=dict)


class EmailService:
    """SMTP-backed mail sender configured from application settings."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def render(self, cmd: SendEmailCommand) -> EmailMessage:
        if cmd.template not in TEMPLATES:
            raise ValueError(f"unknown email template {cmd.template!r}")
        subject, body = TEMPLATES[cmd.template]

        msg = EmailMessage()
        msg["Subject"] = subject.format(**cmd.data)
        msg["From"] = f"{self.settings.smtp_from_name} <{self.settings.smtp_from_address}>"
        msg["To"] = ", ".join(cmd.to)
        msg.set_content(body.format(**cmd.data))
        return msg

    def _smtp_send(self, msg: EmailMessage) -> None:
        s = self.settings
        with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=30) as server:
            if s.smtp_starttls:
                server.starttls()
            if s.smtp_user:
                server.login(s.smtp_user, s.smtp_password)
            server.send_message(msg)

    async def send_email(self, cmd: SendEmailCommand) -> None:
        """Render and send. Raises SmtpNotEnabledError when SMTP is switched off."""
        if not self.settings.smtp_enabled:
            raise SmtpNotEnabledError()

        msg = self.render(cmd)
        await asyncio.to_thread(self._smtp_send, msg)
        log.info("email.sent", template=cmd.template, recipients=len(cmd.to))


def get_email_service(request: Request) -> EmailService:
    """FastAPI dependency: the app's email service."""
    return request.app.state.email
