"""
Invite and user store tests against an in-memory SQLite database.
"""

from __future__ import annotations

import string
from unittest.mock import AsyncMock, patch

import pytest

from app.core.auth import verify_password
from app.core.errors import (
    InviteNotFoundError,
    InviteStatusError,
    OrgUserAlreadyAddedError,
    OrgUserNotFoundError,
    UserAlreadyExistsError,
    UserNotFoundError,
)
from app.models.user import User
from app.services import invites as invite_service
from app.services import users as user_service
from dashhub_shared.schemas.invites import InviteStatus


async def _create(seed, session, email="new@example.com", name="New Person", role="viewer"):
    invite = await invite_service.create_invite(
        seed["org"].id,
        email=email,
        name=name,
        role=role,
        invited_by_user_id=seed["admin"].id,
        session=session,
        remote_addr="10.0.0.1",
    )
    await session.commit()
    return invite


# ---------------------------------------------------------------------------
# Invite codes
# ---------------------------------------------------------------------------

class TestInviteCode:
    def test_length_and_alphabet(self):
        code = invite_service.generate_invite_code()
        assert len(code) == 30
        assert set(code) <= set(string.ascii_letters + string.digits)

    def test_codes_differ(self):
        assert invite_service.generate_invite_code() != invite_service.generate_invite_code()


class TestInvitedByDisplay:
    def test_prefers_name(self):
        row = {"invited_by_name": "Ada", "invited_by_login": "ada", "invited_by_email": "a@x.io"}
        assert invite_service.invited_by_display(row) == "Ada"

    def test_falls_back_to_login_then_email(self):
        assert invite_service.invited_by_display(
            {"invited_by_name": "", "invited_by_login": "ada", "invited_by_email": "a@x.io"}
        ) == "ada"
        assert invite_service.invited_by_display(
            {"invited_by_name": None, "invited_by_login": "", "invited_by_email": "a@x.io"}
        ) == "a@x.io"

    def test_no_inviter(self):
        assert invite_service.invited_by_display({}) == ""


# ---------------------------------------------------------------------------
# Invite store
# ---------------------------------------------------------------------------

class TestInviteStore:
    async def test_create_is_pending(self, seed, session):
        invite = await _create(seed, session)
        assert invite.status == InviteStatus.PENDING.value
        assert len(invite.code) == 30
        assert invite.email_sent is False
        assert invite.remote_addr == "10.0.0.1"

    async def test_get_by_code_joins_inviter(self, seed, session):
        invite = await _create(seed, session)
        row = await invite_service.get_invite_by_code(invite.code, session)
        assert row["email"] == "new@example.com"
        assert row["org_id"] == seed["org"].id
        assert row["invited_by_login"] == "admin"
        assert row["invited_by_name"] == "Ada Admin"
        assert row["status"] == "pending"

    async def test_get_by_unknown_code(self, seed, session):
        with pytest.raises(InviteNotFoundError):
            await invite_service.get_invite_by_code("nope", session)

    async def test_list_filters_by_status_and_org(self, seed, session):
        first = await _create(seed, session, email="one@example.com")
        second = await _create(seed, session, email="two@example.com")
        await invite_service.update_invite_status(second.code, InviteStatus.REVOKED, session)
        await session.commit()

        pending = await invite_service.list_invites(seed["org"].id, InviteStatus.PENDING, session)
        assert [row["code"] for row in pending] == [first.code]

        revoked = await invite_service.list_invites(seed["org"].id, InviteStatus.REVOKED, session)
        assert [row["code"] for row in revoked] == [second.code]

    async def test_list_empty_org(self, seed, session):
        assert await invite_service.list_invites(seed["org"].id, InviteStatus.PENDING, session) == []

    async def test_pending_to_completed(self, seed, session):
        invite = await _create(seed, session)
        updated = await invite_service.update_invite_status(invite.code, InviteStatus.COMPLETED, session)
        assert updated.status == "completed"

    @pytest.mark.parametrize("terminal", [InviteStatus.REVOKED, InviteStatus.COMPLETED])
    @pytest.mark.parametrize("target", [InviteStatus.REVOKED, InviteStatus.COMPLETED, InviteStatus.PENDING])
    async def test_terminal_states_never_change(self, seed, session, terminal, target):
        invite = await _create(seed, session)
        await invite_service.update_invite_status(invite.code, terminal, session)
        await session.commit()

        with pytest.raises(InviteStatusError):
            await invite_service.update_invite_status(invite.code, target, session)

        row = await invite_service.get_invite_by_code(invite.code, session)
        assert row["status"] == terminal.value

    async def test_update_unknown_code(self, seed, session):
        with pytest.raises(InviteNotFoundError):
            await invite_service.update_invite_status("nope", InviteStatus.REVOKED, session)

    async def test_mark_email_sent(self, seed, session):
        invite = await _create(seed, session)
        updated = await invite_service.mark_email_sent(invite.code, session)
        assert updated.email_sent is True
        assert updated.email_sent_on is not None


# ---------------------------------------------------------------------------
# User store
# ---------------------------------------------------------------------------

class TestUserStore:
    async def test_get_by_login_or_email(self, seed, session):
        assert (await user_service.get_by_login("carl", session)).id == seed["contributor"].id
        assert (await user_service.get_by_login("carl@example.com", session)).id == seed["contributor"].id

    async def test_get_by_login_missing(self, seed, session):
        with pytest.raises(UserNotFoundError):
            await user_service.get_by_login("ghost", session)

    async def test_create_user_hashes_password(self, seed, session):
        user = await user_service.create_user(
            email="fresh@example.com", name="Fresh", login="fresh", password="password123", session=session
        )
        assert user.password_hash != "password123"
        assert verify_password("password123", user.password_hash)

    async def test_create_user_login_defaults_to_email(self, seed, session):
        user = await user_service.create_user(
            email="fresh@example.com", name="", login="", password="password123", session=session
        )
        assert user.login == "fresh@example.com"

    @pytest.mark.parametrize("email,login", [
        ("carl@example.com", "someone-else"),
        ("someone@example.com", "carl"),
    ])
    async def test_create_user_conflict(self, seed, session, email, login):
        with pytest.raises(UserAlreadyExistsError):
            await user_service.create_user(
                email=email, name="", login=login, password="password123", session=session
            )

    async def test_add_org_user_duplicate(self, seed, session):
        with pytest.raises(OrgUserAlreadyAddedError):
            await user_service.add_org_user(seed["org"].id, seed["viewer"].id, "viewer", session)

    async def test_add_org_user_lost_race_is_already_added(self, seed, session):
        # The membership row appears between the existence check and the insert
        with patch("app.services.users.get_membership", AsyncMock(return_value=None)):
            with pytest.raises(OrgUserAlreadyAddedError):
                await user_service.add_org_user(seed["org"].id, seed["viewer"].id, "viewer", session)

        assert await user_service.get_membership(seed["org"].id, seed["viewer"].id, session) is not None

    async def test_create_user_lost_race_is_conflict(self, seed, session):
        with patch("app.services.users.find_conflicting_user", AsyncMock(return_value=None)):
            with pytest.raises(UserAlreadyExistsError):
                await user_service.create_user(
                    email="carl@example.com", name="", login="carl-two", password="password123", session=session
                )

    async def test_add_and_switch_org(self, seed, session):
        outsider = seed["outsider"]
        await user_service.add_org_user(seed["org"].id, outsider.id, "contributor", session)
        await user_service.set_using_org(outsider.id, seed["org"].id, session)
        await session.commit()

        user = await session.get(User, outsider.id)
        assert user.active_org_id == seed["org"].id
        assert await user_service.list_user_org_ids(outsider.id, session) == [seed["org"].id]

    async def test_set_using_org_requires_membership(self, seed, session):
        with pytest.raises(OrgUserNotFoundError):
            await user_service.set_using_org(seed["outsider"].id, seed["org"].id, session)
