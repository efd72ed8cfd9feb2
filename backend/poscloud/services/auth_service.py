# Overview: Service-layer operations for owner-app users; encapsulates business logic and database work.

"""
Owner-app authentication

Passwords are hashed with bcrypt (cost factor 12). Users are scoped to a
company; username uniqueness is per company.
"""

import re

import bcrypt

from ..extensions import db
from ..models import Company, User
from ..models.auth import USER_ROLES
from ..time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Minimum 8 characters with an uppercase letter, a lowercase letter and
    a digit. Raises PasswordValidationError otherwise.
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
    """Validate strength, then bcrypt-hash. Stored as str."""
    validate_password_strength(password)
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def create_user(
    company_id: int,
    username: str,
    password: str,
    role: str = "cashier",
    email: str | None = None,
    rounds: int = 12,
) -> User:
    """
    Create a user in a company.

    Raises ValueError for an unknown company, unknown role or duplicate
    username, PasswordValidationError for a weak password.
    """
    if role not in USER_ROLES:
        raise ValueError(f"Unknown role: {role}")

    if not db.session.get(Company, company_id):
        raise ValueError("Company not found")

    existing = db.session.query(User).filter_by(company_id=company_id, username=username).first()
    if existing:
        raise ValueError(f"Username '{username}' already exists")

    user = User(
        company_id=company_id,
        username=username,
        email=email,
        password_hash=hash_password(password, rounds=rounds),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(company_id: int, username: str, password: str) -> User | None:
    """Return the active user on valid credentials, else None."""
    user = db.session.query(User).filter_by(company_id=company_id, username=username).first()
    if not user or not user.is_active:
        return None

    if not verify_password(password, user.password_hash):
        return None

    company = db.session.get(Company, user.company_id)
    if not company or not company.is_active:
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
