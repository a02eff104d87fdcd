from functools import lru_cache

from passlib.context import CryptContext

from joke_factory.config.loader import get_instructor_settings

# Password Hashing Context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verifies a plain password against a stored hash.
    Args:
        plain_password: The password attempt.
        hashed_password: The stored hash to compare against.
    Returns:
        True if the password matches the hash, False otherwise.
    """
    return pwd_context.verify(plain_password.strip(), hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password.strip())


@lru_cache(maxsize=4)
def _hash_for(password: str) -> str:
    return get_password_hash(password)


def instructor_password_hash() -> str:
    """Hash of the configured instructor password, computed once per value."""
    return _hash_for(get_instructor_settings()["password"])


def verify_instructor_password(candidate: str) -> bool:
    if not candidate or not candidate.strip():
        return False
    return verify_password(candidate, instructor_password_hash())
