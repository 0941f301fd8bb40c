# Overview: Service-layer operations for session; issues and validates bearer tokens.

"""
Bearer sessions

The client holds a random 32-byte token; the database keeps only its
SHA-256 digest. A session dies when it expires (SESSION_HOURS after login),
when the user logs out, or the first time it is presented after the user
or its partner has been deactivated.
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..access import Caller, Role
from consignment.time_utils import utcnow


@dataclass
class SessionContext:
    user: User
    session: SessionToken
    caller: Caller


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _live_session(token: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter(SessionToken.token_hash == hash_token(token), SessionToken.is_revoked.is_(False))
        .first()
    )


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def caller_for_user(user: User) -> Caller:
    """Map a stored account onto the closed role model."""
    role = Role(user.role)
    if role is Role.PARTNER:
        if not user.partner:
            raise ValueError(f"Partner account {user.id} has no partner record")
        return Caller.partner(user.id, user.partner.id)
    return Caller.admin(user.id)


def _account_usable(user: User | None) -> bool:
    if user is None or not user.is_active:
        return False
    if user.role == Role.PARTNER.value:
        return bool(user.partner and user.partner.is_active)
    return True


def create_session(user_id: int) -> tuple[SessionToken, str]:
    """
    Open a session for user_id.

    Returns (SessionToken, token). The token is handed to the client once
    and never persisted.
    """
    if db.session.get(User, user_id) is None:
        raise ValueError(f"User {user_id} not found")

    token = generate_token()
    issued_at = utcnow()
    lifetime = timedelta(hours=current_app.config.get("SESSION_HOURS", 24))

    record = SessionToken(
        user_id=user_id,
        token_hash=hash_token(token),
        created_at=issued_at,
        last_used_at=issued_at,
        expires_at=issued_at + lifetime,
        is_revoked=False,
    )
    db.session.add(record)
    db.session.commit()

    return record, token


def validate_session(token: str) -> SessionContext | None:
    """Resolve a bearer token to its user and Caller, or None."""
    record = _live_session(token)
    if record is None:
        return None

    now = utcnow()
    if record.expires_at < now:
        return None

    if not _account_usable(record.user):
        _revoke(record, "Account deactivated")
        current_app.logger.info("Session of user %s revoked: account deactivated", record.user_id)
        return None

    record.last_used_at = now
    db.session.commit()

    return SessionContext(user=record.user, session=record, caller=caller_for_user(record.user))


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """False when the token matched no live session."""
    record = _live_session(token)
    if record is None:
        return False
    _revoke(record, reason)
    return True
