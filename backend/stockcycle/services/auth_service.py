# Overview: Service-layer operations for auth; password hashing and user accounts.

"""
Authentication Service

Passwords are hashed with bcrypt (cost factor 12). Usernames are globally
unique. Roles are ADMIN or DISTRIBUTOR; distributors carry a group
(GOLD / SILVER / NEW) used by admin-side filtering.

Session tokens are handled separately (see session_service.py).
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..models.auth import DISTRIBUTOR_GROUPS, ROLE_ADMIN, ROLE_DISTRIBUTOR, VALID_ROLES
from stockcycle.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class AuthError(Exception):
    """Raised on failed authentication (401)."""
    pass


class UserNotFoundError(Exception):
    """Raised when a user is not found."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Minimum 8 characters with at least one letter and one digit.

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Za-z]', password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str, *, rounds: int = 12) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing. Tests may pass a low
    rounds value to keep fixtures fast.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    username: str,
    password: str,
    name: str,
    role: str = ROLE_DISTRIBUTOR,
    group: str | None = "NEW",
    *,
    rounds: int = 12,
) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises:
        ValueError: invalid role/group or username taken
        PasswordValidationError: weak password
    """
    username = (username or "").strip()
    if not username:
        raise ValueError("username is required")
    if not (name or "").strip():
        raise ValueError("name is required")
    if role not in VALID_ROLES:
        raise ValueError(f"role must be one of: {', '.join(sorted(VALID_ROLES))}")

    if role == ROLE_ADMIN:
        group = None
    elif group is None:
        group = "NEW"
    elif group not in DISTRIBUTOR_GROUPS:
        raise ValueError(f"group must be one of: {', '.join(sorted(DISTRIBUTOR_GROUPS))}")

    if db.session.query(User).filter_by(username=username).first():
        raise ValueError("User already exists")

    user = User(
        username=username,
        password_hash=hash_password(password, rounds=rounds),
        name=name.strip(),
        role=role,
        group=group,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()

    current_app.logger.info("Created %s user %s (id=%s)", role, username, user.id)
    return user


def authenticate(username: str, password: str) -> User:
    """Return the active user matching the credentials or raise AuthError."""
    user = db.session.query(User).filter_by(username=(username or "").strip()).first()
    if not user or not user.is_active:
        raise AuthError("Invalid credentials")
    if not verify_password(password or "", user.password_hash):
        raise AuthError("Invalid credentials")

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise UserNotFoundError(f"User {user_id} not found")
    return user


def list_distributors(group: str | None = None) -> list[User]:
    """Distributor accounts ordered by name, optionally limited to one group."""
    q = db.session.query(User).filter(User.role == ROLE_DISTRIBUTOR)
    if group is not None:
        q = q.filter(User.group == group)
    return q.order_by(User.name.asc(), User.id.asc()).all()
