# Overview: Service-layer operations for session tokens; creation,
# validation, revocation and cleanup.

"""
Session Token Management Service with Multi-Tenant Support

WHY: Secure session management with automatic timeout and revocation.
Tokens are cryptographically secure, hashed in database, and time-limited.

MULTI-TENANT: Sessions capture org_id and store_id at creation time.
For employees store_id is their assigned location; it pins every request
of the session to that location. Reassigning an employee revokes their
sessions (see employee_service.update_employee).

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- Absolute timeout (SESSION_ABSOLUTE_TIMEOUT_HOURS, default 24h)
- Idle timeout (SESSION_IDLE_TIMEOUT_HOURS, default 2h)
- Revocable on logout, password reset or account removal
- Tracks client IP and user agent for security monitoring
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app, has_app_context
from ..extensions import db
from ..models import SessionToken, User, Organization, Employee
from ..models.auth import ROLE_EMPLOYEE
from tienda.time_utils import utcnow
from .tenant_service import TenantContext


DEFAULT_ABSOLUTE_TIMEOUT_HOURS = 24
DEFAULT_IDLE_TIMEOUT_HOURS = 2


class SessionError(Exception):
    """Raised when a session cannot be created for an account."""
    pass


@dataclass
class SessionContext:
    """
    Session context returned by validate_session.

    All tenant fields are read from the session record, not the user.
    """
    user: User
    session: SessionToken
    org_id: int | None
    store_id: int | None
    employee_role: str | None = None

    def tenant_context(self) -> TenantContext:
        return TenantContext(
            user_id=self.user.id,
            org_id=self.org_id,
            role=self.user.role,
            employee_role=self.employee_role,
            store_id=self.store_id,
        )


def _timeout(key: str, default_hours: int) -> timedelta:
    hours = default_hours
    if has_app_context():
        hours = current_app.config.get(key, default_hours)
    return timedelta(hours=hours)


def absolute_timeout() -> timedelta:
    return _timeout("SESSION_ABSOLUTE_TIMEOUT_HOURS", DEFAULT_ABSOLUTE_TIMEOUT_HOURS)


def idle_timeout() -> timedelta:
    return _timeout("SESSION_IDLE_TIMEOUT_HOURS", DEFAULT_IDLE_TIMEOUT_HOURS)


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy, so a fast hash is sufficient.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for user with tenant context.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.

    Raises SessionError if the user is missing, its organization is
    inactive, or an employee account has no employee record.
    """
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise SessionError("User not found")

    if user.org_id is not None:
        org = db.session.query(Organization).filter_by(id=user.org_id).first()
        if not org or not org.is_active:
            raise SessionError("Organization is not active")

    store_id = None
    if user.role == ROLE_EMPLOYEE:
        employee = db.session.query(Employee).filter_by(user_id=user.id).first()
        if not employee:
            raise SessionError("Employee record not found")
        store_id = employee.store_id

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        org_id=user.org_id,
        store_id=store_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + absolute_timeout(),
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str, now) -> None:
    session.is_revoked = True
    session.revoked_at = now
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if:
    - Token is invalid, expired, or revoked
    - User account is deactivated
    - Organization is deactivated
    - Employee record no longer exists

    Updates last_used_at on successful validation (activity tracking).
    """
    if not token:
        return None

    now = utcnow()
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > idle_timeout():
        _revoke(session, "Idle timeout", now)
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated", now)
        return None

    if session.org_id is not None:
        org = session.organization
        if not org or not org.is_active:
            _revoke(session, "Organization deactivated", now)
            return None

    employee_role = None
    if user.role == ROLE_EMPLOYEE:
        employee = db.session.query(Employee).filter_by(user_id=user.id).first()
        if not employee:
            _revoke(session, "Employee removed", now)
            return None
        employee_role = employee.role

    session.last_used_at = now
    db.session.commit()

    return SessionContext(
        user=user,
        session=session,
        org_id=session.org_id,
        store_id=session.store_id,
        employee_role=employee_role,
    )


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


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """
    Revoke all active sessions for a user.

    Returns count of sessions revoked.
    """
    count = db.session.query(SessionToken).filter_by(
        user_id=user_id,
        is_revoked=False
    ).update(
        {"is_revoked": True, "revoked_at": utcnow(), "revoked_reason": reason},
        synchronize_session=False,
    )
    db.session.commit()
    return count


def cleanup_expired_sessions(max_age_days: int = 30) -> int:
    """
    Delete expired or revoked sessions older than max_age_days.

    Returns count of sessions deleted.
    """
    now = utcnow()
    cutoff = now - timedelta(days=max_age_days)

    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < now,
            SessionToken.is_revoked.is_(True)
        ),
        SessionToken.created_at < cutoff
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted
