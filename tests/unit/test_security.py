"""Unit tests for password hashing and credential format rules."""

import hashlib

import pytest

from preplate.core.security import (
    hash_password,
    is_legacy_hash,
    needs_rehash,
    normalize_email,
    validate_email_format,
    validate_password,
    validate_phone,
    verify_password,
)


@pytest.mark.unit
class TestPasswordHashing:
    """Test suite for hash_password / verify_password."""

    def test_hash_verifies_with_same_password(self) -> None:
        digest = hash_password("secret1")
        assert verify_password("secret1", digest) is True

    def test_hash_rejects_other_password(self) -> None:
        digest = hash_password("secret1")
        assert verify_password("secret2", digest) is False

    def test_hashes_are_salted(self) -> None:
        assert hash_password("secret1") != hash_password("secret1")

    def test_hash_is_not_plaintext(self) -> None:
        assert "secret1" not in hash_password("secret1")

    def test_legacy_sha256_digest_still_verifies(self) -> None:
        legacy = hashlib.sha256(b"secret1").hexdigest()
        assert verify_password("secret1", legacy) is True
        assert verify_password("secret2", legacy) is False

    def test_legacy_digest_needs_rehash(self) -> None:
        legacy = hashlib.sha256(b"secret1").hexdigest()
        assert is_legacy_hash(legacy) is True
        assert needs_rehash(legacy) is True
        assert needs_rehash(hash_password("secret1")) is False

    def test_garbage_stored_hash_never_verifies(self) -> None:
        assert verify_password("secret1", "not-a-hash") is False
        assert verify_password("secret1", "") is False

    def test_long_password_is_accepted(self) -> None:
        password = "p" * 100
        assert verify_password(password, hash_password(password)) is True

    def test_long_passwords_differing_past_72_bytes(self) -> None:
        digest = hash_password("a" * 72 + "X" * 28)
        assert verify_password("a" * 72 + "Y" * 28, digest) is False
        assert verify_password("a" * 72, digest) is False

    def test_multibyte_passwords_differing_late(self) -> None:
        digest = hash_password("\u00e9" * 40 + "1")
        assert verify_password("\u00e9" * 40 + "2", digest) is False


@pytest.mark.unit
class TestEmailRules:
    """Test suite for email normalization and format checks."""

    def test_normalize_lowercases_and_strips(self) -> None:
        assert normalize_email("  Ada@Example.COM ") == "ada@example.com"

    @pytest.mark.parametrize("email", ["a@x.com", "first.last@sub.example.org"])
    def test_valid_emails(self, email: str) -> None:
        assert validate_email_format(email) is True

    @pytest.mark.parametrize("email", ["", "ax.com", "a@x", "a@@x.com", "a b@x.com", "@x.com"])
    def test_invalid_emails(self, email: str) -> None:
        assert validate_email_format(email) is False


@pytest.mark.unit
class TestPasswordRules:
    """Test suite for validate_password."""

    def test_six_characters_is_enough(self) -> None:
        assert validate_password("123456").valid is True

    def test_too_short(self) -> None:
        check = validate_password("12345")
        assert check.valid is False
        assert "at least 6" in check.reason

    def test_too_long(self) -> None:
        check = validate_password("x" * 101)
        assert check.valid is False
        assert "less than 100" in check.reason


@pytest.mark.unit
class TestPhoneRules:
    """Test suite for validate_phone."""

    @pytest.mark.parametrize("phone", ["+15551234567", "5551234567", "7"])
    def test_valid_phones(self, phone: str) -> None:
        assert validate_phone(phone) is True

    @pytest.mark.parametrize("phone", ["", "0123", "+0123", "555-1234", "12345678901234567"])
    def test_invalid_phones(self, phone: str) -> None:
        assert validate_phone(phone) is False
