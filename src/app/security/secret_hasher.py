"""
Secret Hasher

One-way hashing and secure generation of every secret the service handles:
- Passwords: bcrypt, random salt per call (cost factor 12)
- Short-lived tokens (CSRF, reset links): unsalted SHA-256, so a presented
  token can be looked up by equality on its digest
- OTPs: SHA-256 over the code plus a server-side pepper
"""

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import bcrypt

from src.domain.base import utcnow

logger = logging.getLogger(__name__)


class HashingFailure(Exception):
    """Underlying crypto primitive failed; fatal to the calling operation."""


@dataclass(frozen=True)
class Challenge:
    """Plain value goes to the user exactly once; only the hash is stored."""

    plain: str
    hashed: str
    expires_at: datetime


class SecretHasher:
    def __init__(self, bcrypt_rounds: int = 12, otp_secret: str = "", otp_length: int = 6):
        self.bcrypt_rounds = bcrypt_rounds
        self.otp_secret = otp_secret
        self.otp_length = otp_length
        self._dummy_hash: Optional[bytes] = None

    def generate_token(self, byte_length: int = 32) -> str:
        """Hex-encoded CSPRNG token, 256 bits by default."""
        try:
            return secrets.token_hex(byte_length)
        except Exception as exc:
            raise HashingFailure("Token generation failed") from exc

    def generate_otp(self, length: Optional[int] = None) -> str:
        length = length or self.otp_length
        try:
            return "".join(secrets.choice("0123456789") for _ in range(length))
        except Exception as exc:
            raise HashingFailure("OTP generation failed") from exc

    def hash_token(self, token: str, pepper: Optional[str] = None) -> str:
        material = token if pepper is None else token + pepper
        try:
            return hashlib.sha256(material.encode("utf-8")).hexdigest()
        except Exception as exc:
            raise HashingFailure("Token hashing failed") from exc

    def hash_otp(self, otp: str) -> str:
        return self.hash_token(otp, pepper=self.otp_secret)

    def verify_token(self, plain: str, stored_hash: Optional[str]) -> bool:
        if not plain or not stored_hash:
            return False
        return hmac.compare_digest(self.hash_token(plain), stored_hash)

    def verify_otp(self, plain: str, stored_hash: Optional[str]) -> bool:
        if not plain or not stored_hash:
            return False
        return hmac.compare_digest(self.hash_otp(plain), stored_hash)

    def hash_password(self, password: str) -> str:
        try:
            hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(self.bcrypt_rounds))
        except Exception as exc:
            raise HashingFailure("Password hashing failed") from exc
        return hashed.decode("utf-8")

    def verify_password(self, password: str, password_hash: Optional[str]) -> bool:
        """Constant-time bcrypt check; a malformed stored hash never matches."""
        if not password or not password_hash:
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            logger.warning("Password verification against malformed hash")
            return False

    def burn_password_check(self) -> None:
        """Spend one bcrypt verification so unknown accounts cost the same."""
        if self._dummy_hash is None:
            self._dummy_hash = bcrypt.hashpw(b"dummy_password", bcrypt.gensalt(self.bcrypt_rounds))
        bcrypt.checkpw(b"not_the_password", self._dummy_hash)

    def issue_otp(self, ttl: timedelta) -> Challenge:
        otp = self.generate_otp()
        return Challenge(plain=otp, hashed=self.hash_otp(otp), expires_at=utcnow() + ttl)

    def issue_reset_token(self, ttl: timedelta) -> Challenge:
        token = self.generate_token(32)
        return Challenge(plain=token, hashed=self.hash_token(token), expires_at=utcnow() + ttl)
