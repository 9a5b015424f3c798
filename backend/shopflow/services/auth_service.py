# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every sale and return must be attributable to a person and the role
they held at that moment. Passwords are hashed with bcrypt; roles live on
the user profile and are never taken from the client.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import bcrypt

from ..extensions import db
from ..models import User
from ..models.auth import ROLES
from shopflow.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


@dataclass(frozen=True)
class Actor:
    """Who is performing an engine operation, captured once per request."""
    id: str
    role: str
    display_name: str | None = None

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(id=user.id, role=user.role, display_name=user.display_name or user.email)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one letter
    - At least one digit

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Za-z]', password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is timing-safe.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash
        return False


def create_user(
    email: str,
    password: str,
    role: str,
    display_name: str | None = None,
    password_hash: str | None = None,
) -> User:
    """
    Create a user profile.

    Raises:
        ValueError: unknown role or email already taken
        PasswordValidationError: weak password
    """
    email = email.strip().lower()
    if role not in ROLES:
        raise ValueError(f"Role must be one of: {', '.join(ROLES)}")

    if db.session.query(User).filter_by(email=email).first():
        raise ValueError(f"User {email} already exists")

    user = User(
        email=email,
        display_name=display_name,
        role=role,
        password_hash=password_hash or hash_password(password),
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate by email and password.

    Returns the User on success, None on bad credentials or inactive account.
    Updates last_login_at on success.
    """
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user or not user.is_active:
        return None

    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
