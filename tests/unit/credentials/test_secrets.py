"""Unit tests for secret generation and hashing."""

from __future__ import annotations

from depot.services.secrets import generate_secret, hash_secret, verify_secret


class TestGenerateSecret:
    def test_format(self):
        """Secrets are 128-bit hex strings without separators."""
        secret = generate_secret()

        assert len(secret) == 32
        int(secret, 16)

    def test_uniqueness(self):
        secrets = {generate_secret() for _ in range(20)}
        assert len(secrets) == 20


class TestHashAndVerify:
    def test_hash_does_not_contain_plaintext(self):
        secret = generate_secret()
        assert secret not in hash_secret(secret, iterations=1000)

    def test_hash_is_salted(self):
        """Same input hashes differently each time."""
        h1 = hash_secret("same-secret", iterations=1000)
        h2 = hash_secret("same-secret", iterations=1000)
        assert h1 != h2

    def test_hash_records_work_factor(self):
        assert hash_secret("s", iterations=1234).split("$")[1] == "1234"

    def test_verify_correct(self):
        secret_hash = hash_secret("correct horse", iterations=1000)
        assert verify_secret("correct horse", secret_hash) is True

    def test_verify_wrong(self):
        secret_hash = hash_secret("correct horse", iterations=1000)
        assert verify_secret("battery staple", secret_hash) is False

    def test_verify_malformed_hash(self):
        assert verify_secret("x", "") is False
        assert verify_secret("x", "not-a-hash") is False
        assert verify_secret("x", "md5$1000$00$00") is False
        assert verify_secret("x", "pbkdf2_sha256$abc$00$00") is False
        assert verify_secret("x", "pbkdf2_sha256$1000$zz$00") is False
        assert verify_secret("x", "pbkdf2_sha256$0$00$00") is False
