# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Users log in with email + password. Passwords are hashed with bcrypt; the
plaintext never reaches the database. Session tokens are handled separately
(see session_service.py).

SECURITY NOTES:
- Emails are normalized to lower case before storage and lookup
- Minimum 6 characters required
- Inactive users cannot authenticate
"""

import bcrypt
import re

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User
from ..validation import ConflictError, ValidationError
from fluxa.time_utils import utcnow

MIN_PASSWORD_LENGTH = 6
BCRYPT_ROUNDS = 12

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def validate_password_strength(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def register_user(email: str, password: str) -> User:
    """
    Create a user account.

    Raises:
        ValidationError: missing or malformed email
        PasswordValidationError: password too short
        ConflictError: email already registered
    """
    email = normalize_email(email)
    if not email or not _EMAIL_RE.match(email):
        raise ValidationError("A valid email is required")

    password_hash = hash_password(password)

    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError("Email already registered")

    user = User(email=email, password_hash=password_hash, is_active=True)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Email already registered")
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user by email and password.

    Returns User if credentials are valid and the account is active, None otherwise.
    Records last_login_at on success.
    """
    user = db.session.query(User).filter_by(email=normalize_email(email)).first()

    if not user or not user.is_active:
        return None

    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
