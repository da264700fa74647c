"""
Authentication Use Case DTOs (Data Transfer Objects)

All Command and Response classes for auth domain.
Provides type safety and clear contracts between layers.
"""

from datetime import datetime
from pydantic import BaseModel


# ============================================================================
# Command DTOs
# ============================================================================


class RegisterCommand(BaseModel):
    """Validated intent to create an account"""

    name: str
    email: str
    password: str
    confirm_password: str


# ============================================================================
# Response DTOs
# ============================================================================


class MessageResponse(BaseModel):
    """Generic success envelope for flows that only report a status"""

    success: bool = True
    status: str
    message: str


class AccountInfo(BaseModel):
    """Account information in authentication responses"""

    id: str
    name: str
    email: str
    role: str
    is_verified: bool


class LoginResponse(BaseModel):
    """Response for account login use case"""

    success: bool = True
    access_token: str
    token_type: str = "bearer"
    account: AccountInfo
    password_expires_at: datetime
