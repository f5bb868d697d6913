"""
Role-based access control evaluation.

Permissions are (action, scope) pairs. A role grants an action on every
scope; superusers are granted everything.
"""

from __future__ import annotations

from fastapi import Request

from app.core.auth import AuthenticatedUser

ACTION_ORG_USERS_ADD = "org.users:add"
ACTION_ORG_USERS_READ = "org.users:read"
ACTION_ORG_USERS_REMOVE = "org.users:remove"
ACTION_DASHBOARDS_READ = "dashboards:read"

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "viewer": frozenset({ACTION_DASHBOARDS_READ}),
    "contributor": frozenset({ACTION_DASHBOARDS_READ, ACTION_ORG_USERS_READ}),
    "administrator": frozenset({
        ACTION_DASHBOARDS_READ,
        ACTION_ORG_USERS_READ,
        ACTION_ORG_USERS_ADD,
        ACTION_ORG_USERS_REMOVE,
    }),
}


def scope(kind: str, attribute: str, value: object) -> str:
    """Build a scope string, e.g. scope("users", "id", 7) -> "users:id:7"."""
    return f"{kind}:{attribute}:{value}"


class AccessControl:
    """Evaluates whether a signed-in user may perform an action on a scope."""

    def __init__(self, role_permissions: dict[str, frozenset[str]] | None = None):
        self._role_permissions = role_permissions or ROLE_PERMISSIONS

    async def evaluate(self, auth: AuthenticatedUser, action: str, target_scope: str) -> bool:
        if auth.is_superuser:
            return True
        if auth.role not in self._role_permissions:
            raise ValueError(f"unknown role {auth.role!r}")
        return action in self._role_permissions[auth.role]


def get_access_control(request: Request) -> AccessControl:
    """FastAPI dependency: the app's access-control evaluator."""
    return request.app.state.access_control
