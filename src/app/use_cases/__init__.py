"""
Use Cases

Organized into domain folders:
- auth/: Registration, login and credential lifecycle flows

Import from subdirectories for better organization.
"""

from .auth import (
    RegisterUseCase,
    VerifyOTPUseCase,
    LoginUseCase,
    ChangePasswordUseCase,
    RequestPasswordResetUseCase,
    ConfirmPasswordResetUseCase,
    RequestPasswordResetOTPUseCase,
    VerifyPasswordResetOTPUseCase,
    ResetPasswordWithOTPUseCase,
)

__all__ = [
    "RegisterUseCase",
    "VerifyOTPUseCase",
    "LoginUseCase",
    "ChangePasswordUseCase",
    "RequestPasswordResetUseCase",
    "ConfirmPasswordResetUseCase",
    "RequestPasswordResetOTPUseCase",
    "VerifyPasswordResetOTPUseCase",
    "ResetPasswordWithOTPUseCase",
]
