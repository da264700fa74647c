"""
NestGuard Domain Enums

All enumeration types used across domain entities.
"""

from enum import Enum


class AccountRole(str, Enum):
    """Account role"""

    user = "user"
    admin = "admin"


class ChallengePurpose(str, Enum):
    """What the account's active challenge (OTP or reset token) unlocks"""

    registration = "registration"
    password_reset = "password_reset"
    password_reset_otp = "password_reset_otp"
