# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

Tokens are cryptographically secure, hashed in database, and time-limited.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- 24-hour absolute timeout (SESSION_ABSOLUTE_TIMEOUT)
- 2-hour idle timeout (SESSION_IDLE_TIMEOUT)
- Revocable on logout
"""

import secrets
import hashlib
from datetime import datetime, timedelta, timezone
from ..extensions import db
from ..models import SessionToken, User
from fluxa.time_utils import utcnow


# Configuration constants
SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)  # Maximum session length
SESSION_IDLE_TIMEOUT = timedelta(hours=2)        # Activity timeout


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)  # 32 bytes = 64 hex characters


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy, so a fast hash is sufficient.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _naive_utc(dt: datetime) -> datetime:
    # Postgres hands back aware datetimes, SQLite naive ones
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=user_agent[:512] if user_agent else None,
        ip_address=ip_address,
        is_revoked=False
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str, now: datetime) -> None:
    session.is_revoked = True
    session.revoked_at = now
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> User | None:
    """
    Validate session token and return its User if valid.

    Returns None if the token is unknown, expired, idle too long or revoked,
    or if the user account is deactivated. Updates last_used_at on success.
    """
    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    if _naive_utc(session.expires_at) < now:
        return None

    if now - _naive_utc(session.last_used_at) > SESSION_IDLE_TIMEOUT:
        _revoke(session, "Idle timeout", now)
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated", now)
        return None

    session.last_used_at = now
    db.session.commit()
    return user


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """
    Revoke session token.

    Returns True if session was revoked, False if not found.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return False

    _revoke(session, reason, utcnow())
    return True
