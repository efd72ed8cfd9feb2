# Overview: Service-layer operations for owner-app sessions; encapsulates business logic and database work.

"""
Session Token Management for the owner app

MULTI-TENANT: Sessions capture company_id at login. Every authenticated
request (approve, provision, audit reads) takes its tenant from here,
never from the request body.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- 24-hour absolute timeout, 2-hour idle timeout
- Revocable on logout
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from ..extensions import db
from ..models import Company, SessionToken, User
from ..time_utils import as_naive_utc, utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)


@dataclass
class SessionContext:
    """Authenticated user plus the tenant captured at login."""
    user: User
    session: SessionToken
    company_id: int


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy). Never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 hex digest; bearer tokens are high-entropy so no salt is needed."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create a session for a user. Returns (session_record, plaintext_token).

    Raises ValueError if the user or its company is missing or inactive.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    company = db.session.get(Company, user.company_id)
    if not company or not company.is_active:
        raise ValueError("Company is not active")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user.id,
        company_id=user.company_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> SessionContext | None:
    """
    Return the SessionContext for a bearer token, or None when the token is
    unknown, revoked, expired, idle too long, or its user/company is inactive.
    """
    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    if as_naive_utc(session.expires_at) < now:
        return None

    if now - as_naive_utc(session.last_used_at) > SESSION_IDLE_TIMEOUT:
        _revoke(session, "Idle timeout")
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        return None

    # Tenant is fixed at login; a user moved to another company must log in again
    if user.company_id != session.company_id:
        _revoke(session, "Company changed")
        return None

    company = session.company
    if not company or not company.is_active:
        _revoke(session, "Company deactivated")
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(user=user, session=session, company_id=session.company_id)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke a session. Returns False if it was not found."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return False

    _revoke(session, reason)
    return True
