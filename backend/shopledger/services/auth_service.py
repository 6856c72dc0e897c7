# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

OWNER accounts authenticate with email + password, STAFF accounts with a
staff code + numeric PIN. Both secrets are bcrypt-hashed into
User.password_hash.

SECURITY NOTES:
- bcrypt cost factor 12
- Owner passwords: minimum 8 characters with upper, lower, digit and special char
- Staff PINs: 4 to 6 digits
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import User
from ..models.auth import ROLE_OWNER, ROLE_STAFF
from ..time_utils import utcnow
from ..validation import require_text


class PasswordValidationError(ValidationError):
    """Raised when a password or PIN doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)
    """
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


def validate_pin(pin: str) -> None:
    if not re.fullmatch(r"\d{4,6}", pin or ""):
        raise PasswordValidationError("PIN must be 4 to 6 digits")


def _hash_secret(secret: str) -> str:
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(secret.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def hash_password(password: str) -> str:
    """Validate owner password strength, then bcrypt it."""
    validate_password_strength(password)
    return _hash_secret(password)


def hash_pin(pin: str) -> str:
    validate_pin(pin)
    return _hash_secret(pin)


def verify_secret(secret: str, secret_hash: str) -> bool:
    """Timing-safe bcrypt comparison; malformed hashes never match."""
    try:
        return bcrypt.checkpw(secret.encode('utf-8'), secret_hash.encode('utf-8'))
    except ValueError:
        return False


def create_owner(name: str, email: str, password: str) -> User:
    name = require_text(name, "name", max_length=128)
    email = require_text(email, "email").lower()

    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError("Email already registered")

    user = User(
        name=name,
        role=ROLE_OWNER,
        email=email,
        password_hash=hash_password(password),
    )
    db.session.add(user)
    db.session.commit()
    return user


def register_staff(name: str, staff_code: str, pin: str) -> User:
    """
    Create a STAFF account. Owner-only at the HTTP layer.

    Raises:
        ValidationError: missing fields or malformed PIN
        ConflictError: staff code already taken
    """
    name = require_text(name, "name", max_length=128)
    staff_code = require_text(staff_code, "staff_code", max_length=64)
    pin = require_text(pin, "pin", max_length=6)

    if db.session.query(User).filter_by(staff_code=staff_code).first():
        raise ConflictError("Staff ID already exists")

    user = User(
        name=name,
        role=ROLE_STAFF,
        staff_code=staff_code,
        password_hash=hash_pin(pin),
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(*, email: str | None = None, staff_code: str | None = None, secret: str | None = None) -> User | None:
    """
    Resolve credentials to an active user.

    Owners are looked up by email, staff by staff code. Returns None for any
    mismatch so callers cannot tell which half of the credentials was wrong.
    Updates last_login_at on success.
    """
    if not secret:
        return None

    query = db.session.query(User).filter(User.is_active.is_(True))
    if email:
        user = query.filter(User.email == email.strip().lower()).first()
    elif staff_code:
        user = query.filter(User.staff_code == staff_code.strip()).first()
    else:
        return None

    if not user or not verify_secret(secret, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
