from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Role(str, Enum):
    VIEWER = "viewer"
    CONTRIBUTOR = "contributor"
    ADMIN = "administrator"

# Ordered lowest to highest privilege
ROLE_ORDER: list["Role"] = [
    Role.VIEWER,
    Role.CONTRIBUTOR,
    Role.ADMIN,
]


def parse_role(value: str) -> Optional[Role]:
    """Return the Role for a raw value, or None if it is not a known role."""
    try:
        return Role(value)
    except ValueError:
        return None


def role_includes(held: Role, requested: Role) -> bool:
    """True when a member holding `held` may grant `requested`."""
    return ROLE_ORDER.index(held) >= ROLE_ORDER.index(requested)


class CamelModel(BaseModel):
    """Base for wire models that use camelCase keys on the JSON side."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageResponse(BaseModel):
    message: str
