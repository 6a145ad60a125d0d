"""Account password hashing (argon2 through passlib)."""

from functools import lru_cache
from typing import Optional

from passlib.context import CryptContext


pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


@lru_cache(maxsize=1)
def _timing_guard_hash() -> str:
    return pwd_context.hash("treasure-hunt-timing-guard")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Check a password against a stored hash.

    A missing account still pays for one argon2 verify so unknown emails and
    wrong passwords take about the same time. Malformed hashes never match.
    """
    if not hashed_password:
        pwd_context.verify(plain_password, _timing_guard_hash())
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


def needs_rehash(hashed_password: str) -> bool:
    """True when the stored hash was made with outdated argon2 parameters."""
    return pwd_context.needs_update(hashed_password)
