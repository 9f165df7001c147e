"""
GitHub personal access token helpers.

Tokens are validated for format and stored only as a salted
PBKDF2-SHA512 digest.
"""

import hashlib
import hmac
import re
import secrets

PAT_PATTERN = re.compile(r"^gh[pso]_[a-zA-Z0-9]{36,251}$")

PBKDF2_ITERATIONS = 100_000
PBKDF2_KEY_LENGTH = 64
SALT_BYTES = 32


def is_valid_pat_format(token: str) -> bool:
    """Whether a string looks like a GitHub PAT (ghp_, gho_ or ghs_)."""
    return bool(PAT_PATTERN.match(token))


def hash_pat(token: str, salt: str | None = None) -> tuple[str, str]:
    """
    Hash a PAT with PBKDF2-SHA512.

    Args:
        token: Plain token.
        salt: Hex salt; a new random salt is generated when omitted.

    Returns:
        Tuple of (hex digest, hex salt).
    """
    salt = salt or secrets.token_hex(SALT_BYTES)
    digest = hashlib.pbkdf2_hmac(
        "sha512", token.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ITERATIONS, PBKDF2_KEY_LENGTH
    )
    return digest.hex(), salt


def verify_pat(token: str, hashed_token: str, salt: str) -> bool:
    """Constant-time comparison of a PAT against a stored digest."""
    digest, _ = hash_pat(token, salt)
    return hmac.compare_digest(digest, hashed_token)
