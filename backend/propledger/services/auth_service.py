# Overview: Service-layer operations for auth; encapsulates user and password handling.

"""
Authentication Service

WHY: Every posting and audit row must be attributable. Uses bcrypt for
password hashing and validates password strength.

ROLES: A user carries exactly one role. Route guards compare it against the
roles allowed for an endpoint (see decorators.require_role).

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper, lower, digit and special character required
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt

from ..extensions import db
from ..errors import ConflictError, ValidationError
from ..models import User
from propledger.time_utils import utcnow


ROLE_ADMIN = "admin"
ROLE_FINANCE = "finance"
ROLE_FINANCE_ADMIN = "finance_admin"
ROLE_FINANCE_USER = "finance_user"
ROLE_CEO = "ceo"
ROLE_PROPERTY_MANAGER = "property_manager"

VALID_ROLES = [
    ROLE_ADMIN,
    ROLE_FINANCE,
    ROLE_FINANCE_ADMIN,
    ROLE_FINANCE_USER,
    ROLE_CEO,
    ROLE_PROPERTY_MANAGER,
]

# Roles allowed to post to the ledger
FINANCE_ROLES = (ROLE_ADMIN, ROLE_FINANCE, ROLE_FINANCE_ADMIN, ROLE_FINANCE_USER)
# Roles allowed to read statements
REPORT_ROLES = FINANCE_ROLES + (ROLE_CEO,)
# Roles allowed to manage the chart of accounts
ACCOUNT_ADMIN_ROLES = (ROLE_ADMIN, ROLE_FINANCE_ADMIN)


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    if len(password) < 8:
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
    """Validate strength, then hash with bcrypt (cost factor 12)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt verification. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    role: str,
    first_name: str | None = None,
    last_name: str | None = None,
) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises:
        ValidationError: unknown role or weak password
        ConflictError: username or email already taken
    """
    if role not in VALID_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(VALID_ROLES)}", details={"field": "role"})

    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ConflictError("Username or email already exists")

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=role,
        first_name=first_name,
        last_name=last_name,
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate by username or email.

    Returns the User and stamps last_login_at on success, None otherwise.
    """
    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
