# Overview: Service-layer operations for auth; password hashing and account creation.

"""
Authentication Service

Passwords are stored as bcrypt hashes only.

Two kinds of account:
- ADMIN: shop staff
- PARTNER: created together with its Partner row, in one transaction
"""

from __future__ import annotations

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User, Partner
from ..access import Role
from ..errors import ValidationError
from ..validation import parse_percent
from consignment.time_utils import utcnow


MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    """bcrypt hash at BCRYPT_ROUNDS cost. Enforces MIN_PASSWORD_LENGTH."""
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time comparison via bcrypt.checkpw."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed stored hash
        return False


def _normalize_email(email: str) -> str:
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    return email


def create_user(name: str, email: str, password: str, role: Role = Role.ADMIN, commit: bool = True) -> User:
    """
    Create a login account.

    Raises:
        ValidationError: missing name, bad email, weak password, email in use
    """
    if not name or not name.strip():
        raise ValidationError("Name is required")
    email = _normalize_email(email)

    if db.session.query(User).filter_by(email=email).first():
        raise ValidationError("Email already in use")

    user = User(
        name=name.strip(),
        email=email,
        password_hash=hash_password(password),
        role=Role(role).value,
        is_active=True,
    )
    db.session.add(user)
    if commit:
        db.session.commit()
    return user


def create_partner_account(
    name: str,
    email: str,
    password: str,
    commission_percent=None,
    phone: str | None = None,
    notes: str | None = None,
    default_percent="50",
) -> Partner:
    """Create a PARTNER user and its Partner row in one transaction."""
    percent = parse_percent(commission_percent if commission_percent is not None else default_percent)

    try:
        user = create_user(name, email, password, role=Role.PARTNER, commit=False)
        db.session.flush()
        partner = Partner(
            user_id=user.id,
            commission_percent=percent,
            phone=(phone or "").strip() or None,
            notes=notes,
            is_active=True,
        )
        db.session.add(partner)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("Email already in use")
    except Exception:
        db.session.rollback()
        raise
    return partner


def authenticate(email: str, password: str) -> User | None:
    """
    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        User.email == (email or "").strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if user.role == Role.PARTNER.value and (not user.partner or not user.partner.is_active):
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def admin_exists() -> bool:
    return db.session.query(User.id).filter_by(role=Role.ADMIN.value).first() is not None
