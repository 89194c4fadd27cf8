"""
Credential Codec

Password hashing/verification and the format rules for emails, passwords
and phone numbers used at registration and login.

New hashes are salted bcrypt digests of the base64 SHA-256 of the
password, so every character of a long password counts. Accounts
imported from the previous platform carry unsalted SHA-256 hex digests;
those still verify, and ``needs_rehash`` tells the login flow to replace
them with bcrypt on the next successful sign-in.
"""

import base64
import hashlib
import hmac
import re
from dataclasses import dataclass

import bcrypt

PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 100

_EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
_PHONE_RE = re.compile(r"\+?[1-9]\d{0,15}")
_LEGACY_SHA256_RE = re.compile(r"[0-9a-f]{64}")


@dataclass(frozen=True)
class PasswordCheck:
    """Outcome of a password rule check."""
    valid: bool
    reason: str = ""


def _password_bytes(password: str) -> bytes:
    # bcrypt ignores input past 72 bytes; a base64 SHA-256 digest is 44
    return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest())


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def is_legacy_hash(password_hash: str) -> bool:
    return bool(_LEGACY_SHA256_RE.fullmatch(password_hash or ""))


def verify_password(password: str, password_hash: str) -> bool:
    """
    Check a plaintext password against a stored digest.

    Accepts bcrypt digests and legacy unsalted SHA-256 hex digests.
    Any other stored value never verifies.
    """
    if not password_hash:
        return False
    if is_legacy_hash(password_hash):
        candidate = hashlib.sha256(password.encode("utf-8")).hexdigest()
        return hmac.compare_digest(candidate, password_hash)
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        # not a bcrypt digest
        return False


def needs_rehash(password_hash: str) -> bool:
    return is_legacy_hash(password_hash)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_email_format(email: str) -> bool:
    """Exactly one ``@``, non-empty local part, dotted domain, no whitespace."""
    return bool(_EMAIL_RE.fullmatch(email or ""))


def validate_password(password: str) -> PasswordCheck:
    if len(password) < PASSWORD_MIN_LENGTH:
        return PasswordCheck(
            valid=False,
            reason=f"Password must be at least {PASSWORD_MIN_LENGTH} characters long",
        )
    if len(password) > PASSWORD_MAX_LENGTH:
        return PasswordCheck(
            valid=False,
            reason=f"Password must be less than {PASSWORD_MAX_LENGTH} characters",
        )
    return PasswordCheck(valid=True)


def validate_phone(phone: str) -> bool:
    return bool(_PHONE_RE.fullmatch(phone or ""))
