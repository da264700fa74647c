import hashlib
from datetime import timedelta
from unittest.mock import patch

import pytest

from src.app.security.secret_hasher import HashingFailure, SecretHasher
from src.domain.base import utcnow


def test_generate_token_is_hex_of_requested_length(hasher):
    token = hasher.generate_token()

    assert len(token) == 64
    int(token, 16)
    assert len(hasher.generate_token(16)) == 32


def test_generated_tokens_do_not_collide(hasher):
    tokens = {hasher.generate_token() for _ in range(10_000)}

    assert len(tokens) == 10_000


def test_hash_token_is_sha256_and_deterministic(hasher):
    digest = hasher.hash_token("abc")

    assert digest == hashlib.sha256(b"abc").hexdigest()
    assert hasher.hash_token("abc") == digest
    assert hasher.hash_token("abd") != digest


def test_otp_hash_uses_pepper(hasher):
    other = SecretHasher(bcrypt_rounds=4, otp_secret="another-secret")

    assert hasher.hash_otp("123456") != hasher.hash_token("123456")
    assert hasher.hash_otp("123456") != other.hash_otp("123456")
    assert hasher.verify_otp("123456", hasher.hash_otp("123456"))
    assert not hasher.verify_otp("654321", hasher.hash_otp("123456"))


def test_generate_otp_is_numeric(hasher):
    otp = hasher.generate_otp()

    assert len(otp) == 6
    assert otp.isdigit()


def test_password_hash_round_trip_with_random_salt(hasher):
    first = hasher.hash_password("Aa1!aaaa")
    second = hasher.hash_password("Aa1!aaaa")

    assert first != second
    assert hasher.verify_password("Aa1!aaaa", first)
    assert hasher.verify_password("Aa1!aaaa", second)
    assert not hasher.verify_password("Aa1!aaab", first)


def test_verify_password_rejects_malformed_or_missing_hash(hasher):
    assert not hasher.verify_password("Aa1!aaaa", "not-a-bcrypt-hash")
    assert not hasher.verify_password("Aa1!aaaa", None)
    assert not hasher.verify_password("", hasher.hash_password("Aa1!aaaa"))


def test_verify_token_handles_missing_values(hasher):
    assert not hasher.verify_token("", "digest")
    assert not hasher.verify_token("token", None)
    assert hasher.verify_token("token", hasher.hash_token("token"))


def test_hash_password_failure_is_fatal(hasher):
    with patch("src.app.security.secret_hasher.bcrypt.hashpw", side_effect=RuntimeError("boom")):
        with pytest.raises(HashingFailure):
            hasher.hash_password("Aa1!aaaa")


def test_token_generation_failure_is_fatal(hasher):
    with patch("src.app.security.secret_hasher.secrets.token_hex", side_effect=OSError("no entropy")):
        with pytest.raises(HashingFailure):
            hasher.generate_token()


def test_issue_otp_and_reset_token_store_only_hashes(hasher):
    otp = hasher.issue_otp(timedelta(minutes=10))
    reset = hasher.issue_reset_token(timedelta(hours=1))

    assert otp.hashed == hasher.hash_otp(otp.plain)
    assert reset.hashed == hasher.hash_token(reset.plain)
    assert otp.expires_at > utcnow()
    assert reset.expires_at > otp.expires_at
