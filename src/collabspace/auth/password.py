"""Password hashing utilities.

Learn: Uses bcrypt for salted, adaptive-cost hashing. The cost factor is
embedded in the hash itself ("$2b$10$..."), so raising
COLLAB_BCRYPT_ROUNDS later lets logins re-hash old passwords on the fly.
"""

import bcrypt

from collabspace.config import settings


def hash_password(password: str) -> str:
    """Hash a password with bcrypt.

    Passwords are truncated to 72 bytes (bcrypt's limit).
    """
    pw_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash. Malformed hashes never match."""
    if not password_hash:
        return False
    try:
        pw_bytes = password.encode("utf-8")[:72]
        return bcrypt.checkpw(pw_bytes, password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def needs_rehash(password_hash: str) -> bool:
    """Check if a hash was made with a different cost than configured."""
    return _cost(password_hash) != settings.bcrypt_rounds


def _cost(password_hash: str) -> int:
    # "$2b$10$<salt+digest>" → 10
    try:
        return int(password_hash.split("$")[2])
    except (IndexError, ValueError):
        return -1
