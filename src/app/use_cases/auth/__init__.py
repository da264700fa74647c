"""
Authentication Use Cases

All account authentication and credential lifecycle business logic.
"""

from .register_use_case import RegisterUseCase
from .verify_otp_use_case import VerifyOTPUseCase
from .login_use_case import LoginUseCase
from .change_password_use_case import ChangePasswordUseCase
from .request_password_reset_use_case import RequestPasswordResetUseCase
from .confirm_password_reset_use_case import ConfirmPasswordResetUseCase
from .request_password_reset_otp_use_case import RequestPasswordResetOTPUseCase
from .verify_password_reset_otp_use_case import VerifyPasswordResetOTPUseCase
from .reset_password_with_otp_use_case import ResetPasswordWithOTPUseCase
from .dtos import (
    RegisterCommand,
    MessageResponse,
    AccountInfo,
    LoginResponse,
)

__all__ = [
    # Use Cases
    "RegisterUseCase",
    "VerifyOTPUseCase",
    "LoginUseCase",
    "ChangePasswordUseCase",
    "RequestPasswordResetUseCase",
    "ConfirmPasswordResetUseCase",
    "RequestPasswordResetOTPUseCase",
    "VerifyPasswordResetOTPUseCase",
    "ResetPasswordWithOTPUseCase",
    # DTOs - Commands
    "RegisterCommand",
    # DTOs - Responses
    "MessageResponse",
    "AccountInfo",
    "LoginResponse",
]
