# Overview: Service-layer operations for auth; password hashing, account
# creation and credential checks.

"""
Authentication Service

WHY: Every action must be attributable to an account. Uses bcrypt for
password hashing and validates password strength.

ACCOUNTS:
- superadmin: platform operator, no organization (org_id is NULL)
- admin: owner of one business (organization)
- employee: works at one location of one business (see models.staff)

Emails are globally unique (stored lowercased): login is by email only,
and the account's organization is derived from it.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
- Authentication rejects accounts of inactive organizations
"""

import re

import bcrypt
from ..extensions import db
from ..models import User, Organization
from ..models.auth import ROLE_SUPERADMIN, USER_ROLES
from tienda.time_utils import utcnow


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class AccountError(Exception):
    """Raised when an account cannot be created or changed."""
    pass


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() compares in constant time. A malformed stored hash
    counts as a mismatch.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    email: str,
    password: str,
    role: str,
    org_id: int | None = None,
    name: str | None = None,
    *,
    commit: bool = True,
) -> User:
    """
    Create a login account.

    superadmin accounts have no organization; every other role requires
    an active organization.

    With commit=False the user is only flushed, so callers can create it
    together with the rows that depend on it (employee, business) in one
    transaction.

    Raises:
        AccountError: unknown role, bad email, missing/inactive org, duplicate email
        PasswordValidationError: weak password
    """
    if role not in USER_ROLES:
        raise AccountError(f"Unknown role: {role}")

    email = normalize_email(email)
    if not EMAIL_RE.match(email):
        raise AccountError("Invalid email address")

    if role == ROLE_SUPERADMIN:
        org_id = None
    else:
        if org_id is None:
            raise AccountError("Organization is required")
        org = db.session.query(Organization).filter_by(id=org_id).first()
        if not org:
            raise AccountError("Organization not found")
        if not org.is_active:
            raise AccountError("Organization is not active")

    existing = db.session.query(User).filter(User.email == email).first()
    if existing:
        raise AccountError("Email already registered")

    password_hash = hash_password(password)

    user = User(
        org_id=org_id,
        email=email,
        name=name,
        password_hash=password_hash,
        role=role,
    )

    db.session.add(user)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate by email and password.

    Returns the User if credentials are valid, the account is active and
    (for tenant accounts) its organization is active. Returns None
    otherwise. Updates last_login_at on success.
    """
    user = db.session.query(User).filter(
        User.email == normalize_email(email),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if user.org_id is not None:
        org = db.session.query(Organization).filter_by(id=user.org_id).first()
        if not org or not org.is_active:
            return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def set_password(user: User, new_password: str) -> None:
    """Replace a user's password hash. Does not commit."""
    user.password_hash = hash_password(new_password)


def reset_password(user: User, new_password: str) -> User:
    """
    Set a new password and revoke every open session of the user.

    Raises PasswordValidationError for weak passwords (nothing is changed).
    """
    from .session_service import revoke_all_user_sessions

    set_password(user, new_password)
    db.session.flush()
    revoke_all_user_sessions(user.id, reason="Password reset")
    return user
