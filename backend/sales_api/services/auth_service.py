# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Verifies email/password pairs against bcrypt hashes and turns a verified
user into Claims for the token service.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- A missing user and a wrong password produce the same error
- Minimum password strength enforced when accounts are created
"""

import functools
import re
import uuid
from datetime import datetime, timedelta
from typing import Iterable

import bcrypt
from opentelemetry import trace

from ..errors import AuthenticationFailureError
from ..extensions import db
from ..models import User
from ..models.auth import ROLE_ADMIN, ROLE_USER
from .token_service import Claims, new_claims

tracer = trace.get_tracer(__name__)

VALID_ROLES = (ROLE_ADMIN, ROLE_USER)


@functools.lru_cache(maxsize=1)
def _dummy_hash() -> str:
    """Hash checked when the email is unknown so both failure paths cost one bcrypt round."""
    return bcrypt.hashpw(b"not-a-real-password", bcrypt.gensalt(rounds=12)).decode("utf-8")


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str, rounds: int = 12) -> str:
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() compares in constant time.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed stored hash
        return False


def create_user(
    name: str,
    email: str,
    password: str,
    roles: Iterable[str],
    now: datetime,
    *,
    rounds: int = 12,
) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises:
        PasswordValidationError: password too weak
        ValueError: email already registered, or an unknown role
    """
    roles = list(dict.fromkeys(roles))
    unknown = [r for r in roles if r not in VALID_ROLES]
    if unknown:
        raise ValueError(f"Unknown role(s): {', '.join(unknown)}")

    email = email.strip().lower()
    existing = db.session.query(User).filter_by(email=email).first()
    if existing:
        raise ValueError("Email already registered")

    validate_password_strength(password)

    user = User(
        user_id=str(uuid.uuid4()),
        name=name,
        email=email,
        roles=roles,
        password_hash=hash_password(password, rounds=rounds),
        date_created=now,
        date_updated=now,
    )
    db.session.add(user)
    db.session.commit()
    return user


@tracer.start_as_current_span("services.auth.authenticate")
def authenticate(email: str, password: str, now: datetime, ttl: timedelta = timedelta(hours=1)) -> Claims:
    """
    Find the user by email and check the password.

    Returns Claims valid from `now` for `ttl`.
    Raises AuthenticationFailureError for an unknown email or a bad password,
    with the same message in both cases.
    """
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()

    if user is None:
        verify_password(password, _dummy_hash())
        raise AuthenticationFailureError()

    if not verify_password(password, user.password_hash):
        raise AuthenticationFailureError()

    return new_claims(user.user_id, user.roles or [], now, ttl)
