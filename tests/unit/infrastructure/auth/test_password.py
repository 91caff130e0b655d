"""Tests for the argon2 password hasher."""

from idlink.infrastructure.auth.password import Argon2PasswordHasher


class TestArgon2PasswordHasher:
    def test_hash_and_verify(self):
        hasher = Argon2PasswordHasher()

        password_hash = hasher.hash("correct horse")

        assert password_hash.startswith("$argon2")
        assert hasher.verify(password_hash, "correct horse") is True

    def test_wrong_password(self):
        hasher = Argon2PasswordHasher()
        assert hasher.verify(hasher.hash("correct horse"), "battery staple") is False

    def test_garbage_hash(self):
        assert Argon2PasswordHasher().verify("not-a-hash", "anything") is False
