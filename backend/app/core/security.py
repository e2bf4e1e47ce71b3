"""
Security Utilities
Handles password hashing and verification using bcrypt.

This module provides secure password hashing functionality using passlib
with bcrypt algorithm for storing user passwords safely, plus the
constant-time credential check used by the API documentation guard.
"""

import secrets

from passlib.context import CryptContext


# Password hashing context using bcrypt
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """
    Hash a plain text password using bcrypt.

    Args:
        password: Plain text password to hash

    Returns:
        Hashed password string (safe to store in database)
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain text password against a hashed password.

    Args:
        plain_password: Plain text password from user input
        hashed_password: Hashed password from database

    Returns:
        True if password matches, False otherwise
    """
    return pwd_context.verify(plain_password, hashed_password)


def credentials_match(given_user: str, given_password: str, user: str, password: str) -> bool:
    """Compare basic-auth credentials without leaking timing information."""
    user_ok = secrets.compare_digest(given_user.encode("utf-8"), user.encode("utf-8"))
    password_ok = secrets.compare_digest(given_password.encode("utf-8"), password.encode("utf-8"))
    return user_ok and password_ok
