"""
Password hashing.

Bcrypt hashing for local account passwords.
"""

import bcrypt


def hash_password(password: str) -> str:
    """
    Hash a password with bcrypt.

    Args:
        password: Plain text password.

    Returns:
        Bcrypt hash string.
    """
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    """
    Verify a password against a bcrypt hash.

    Args:
        password: Plain text password.
        password_hash: Stored hash (None for accounts without a password).

    Returns:
        True if the password matches.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False
