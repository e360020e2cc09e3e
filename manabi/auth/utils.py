"""Password hashing and credential checks."""
import re

from flask import current_app
from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# bcrypt ignores everything after 72 bytes
BCRYPT_MAX_BYTES = 72

EMAIL_REGEX = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _bcrypt_input(plain_password: str) -> str:
    encoded = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    return encoded.decode("utf-8", errors="ignore")


def hash_password(plain_password: str) -> str:
    return pwd_context.hash(_bcrypt_input(plain_password))


def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(_bcrypt_input(plain_password), password_hash)


def password_needs_rehash(password_hash: str) -> bool:
    """True when the stored hash was made with outdated bcrypt settings."""
    return pwd_context.needs_update(password_hash)


def normalize_email(email) -> str:
    return (email or "").strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(email and EMAIL_REGEX.match(email))


def validate_password(password: str) -> tuple[bool, str | None]:
    """Returns (is_valid, error_message)."""
    min_length = current_app.config.get("MIN_PASSWORD_LENGTH", 8)
    if len(password) < min_length:
        return False, f"Password must be at least {min_length} characters long"
    if not password.strip():
        return False, "Password must not be blank"
    return True, None
