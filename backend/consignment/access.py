# Overview: Role scoping applied by every read and write path.

"""
Access Policy

Two closed roles:
- ADMIN: staff, sees and changes everything
- PARTNER: a supplier account, restricted to records owned by its own partner

A Caller is resolved once per request (see decorators.require_auth) and
passed explicitly into services that need to scope queries.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from .errors import ForbiddenError


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    PARTNER = "PARTNER"


@dataclass(frozen=True)
class Caller:
    user_id: int
    role: Role
    partner_id: int | None = None

    def __post_init__(self):
        if self.role is Role.PARTNER and self.partner_id is None:
            raise ValueError("PARTNER callers must carry a partner_id")
        if self.role is Role.ADMIN and self.partner_id is not None:
            raise ValueError("ADMIN callers cannot carry a partner_id")

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @classmethod
    def admin(cls, user_id: int) -> "Caller":
        return cls(user_id=user_id, role=Role.ADMIN)

    @classmethod
    def partner(cls, user_id: int, partner_id: int) -> "Caller":
        return cls(user_id=user_id, role=Role.PARTNER, partner_id=partner_id)


def ensure_partner_access(caller: Caller, partner_id: int) -> None:
    """Raise ForbiddenError unless caller may act on partner_id's records."""
    if caller.is_admin:
        return
    if caller.partner_id != partner_id:
        raise ForbiddenError("Access denied")


def ensure_admin(caller: Caller) -> None:
    if not caller.is_admin:
        raise ForbiddenError("Access denied. Administrators only.")


def scope_partner_id(caller: Caller, requested: int | None) -> int | None:
    """
    Partner filter for list queries.

    PARTNER callers are always pinned to their own partner, whatever they
    asked for; ADMIN callers get their requested filter (or none).
    """
    if caller.is_admin:
        return requested
    return caller.partner_id
