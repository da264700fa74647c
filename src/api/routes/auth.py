import logging
from datetime import timedelta
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from config import ApplicationConfig
from src.api.error import ClientError, ServerError
from src.app.security.password_lifecycle import PasswordLifecycle
from src.app.security.secret_hasher import SecretHasher
from src.app.services.attempt_limiter import AttemptPolicy, IAttemptLimiter
from src.app.services.csrf_token_store import ICSRFTokenStore
from src.app.services.email_sender import IEmailSender
from src.app.services.unit_of_work import UnitOfWork
from src.app.use_cases.auth import (
    ChangePasswordUseCase,
    ConfirmPasswordResetUseCase,
    LoginResponse,
    LoginUseCase,
    MessageResponse,
    RegisterCommand,
    RegisterUseCase,
    RequestPasswordResetOTPUseCase,
    RequestPasswordResetUseCase,
    ResetPasswordWithOTPUseCase,
    VerifyOTPUseCase,
    VerifyPasswordResetOTPUseCase,
)
from src.depends import (
    get_attempt_limiter,
    get_csrf_token_store,
    get_current_account,
    get_email_sender,
    get_otp_ttl,
    get_password_lifecycle,
    get_reset_token_ttl,
    get_secret_hasher,
    get_unit_of_work,
)
from src.domain.result import Error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

ERROR_STATUS = {
    "PASSWORD_MISMATCH": status.HTTP_400_BAD_REQUEST,
    "WEAK_PASSWORD": status.HTTP_400_BAD_REQUEST,
    "PASSWORD_REUSED": status.HTTP_400_BAD_REQUEST,
    "INVALID_OTP": status.HTTP_400_BAD_REQUEST,
    "INVALID_TOKEN": status.HTTP_400_BAD_REQUEST,
    "INVALID_CREDENTIALS": status.HTTP_401_UNAUTHORIZED,
    "ACCOUNT_NOT_VERIFIED": status.HTTP_403_FORBIDDEN,
    "PASSWORD_EXPIRED": status.HTTP_403_FORBIDDEN,
    "ACCOUNT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "EMAIL_ALREADY_EXISTS": status.HTTP_409_CONFLICT,
}


def _raise_for(error: Error):
    status_code = ERROR_STATUS.get(error.code)
    if status_code is None:
        raise ServerError(error)
    raise ClientError(error, status_code=status_code)


LOGIN_ATTEMPTS = AttemptPolicy(
    name="login",
    limit=ApplicationConfig.LOGIN_RATE_LIMIT,
    error_code="RATE_LIMIT_LOGIN",
    message="Too many login attempts. Please try again later.",
)
OTP_ATTEMPTS = AttemptPolicy(
    name="otp",
    limit=ApplicationConfig.OTP_RATE_LIMIT,
    error_code="RATE_LIMIT_OTP",
    message="Too many OTP verification attempts. Please try again later.",
)


def _attempt_keys(http_request: Request, email: str) -> list:
    client_ip = http_request.client.host if http_request.client else "unknown"
    return [f"ip:{client_ip}", f"email:{email.lower()}"]


def _throttle(limiter: IAttemptLimiter, policy: AttemptPolicy, keys: list):
    retry_after = limiter.retry_after(policy, keys)
    if retry_after is None:
        return
    logger.warning(f"Throttled: policy={policy.name} retry_after={retry_after}s")
    raise ClientError(
        Error(policy.error_code, policy.message, details=[f"Retry after {retry_after} seconds"]),
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        headers={"Retry-After": str(retry_after)},
    )


class CamelRequest(BaseModel):
    """Accepts both the camelCase names web clients send and snake_case."""

    model_config = ConfigDict(populate_by_name=True)


class RegisterRequest(CamelRequest):
    """
    Register HTTP request payload

    Only shape is checked here; the password policy lives in the use case.
    """

    name: str = Field(..., min_length=1, max_length=100, description="Display name")
    email: EmailStr = Field(..., description="Account email address")
    password: str = Field(..., description="Password")
    confirm_password: str = Field(..., alias="confirmPassword", description="Password confirmation")


class VerifyOTPRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=1, max_length=12)


class LoginRequest(BaseModel):
    email: EmailStr = Field(..., description="Account email address")
    password: str = Field(..., description="Account password")


class ChangePasswordRequest(CamelRequest):
    current_password: str = Field(..., alias="currentPassword")
    new_password: str = Field(..., alias="newPassword")


class EmailRequest(BaseModel):
    email: EmailStr = Field(..., description="Account email address")


class ResetPasswordRequest(CamelRequest):
    token: str = Field(..., description="Password reset token from email")
    new_password: str = Field(..., alias="newPassword")


class ResetPasswordWithOTPRequest(CamelRequest):
    email: EmailStr
    otp: str = Field(..., min_length=1, max_length=12)
    new_password: str = Field(..., alias="newPassword")


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=MessageResponse)
async def register(
    request: RegisterRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),
    hasher: SecretHasher = Depends(get_secret_hasher),
    lifecycle: PasswordLifecycle = Depends(get_password_lifecycle),
    email_sender: IEmailSender = Depends(get_email_sender),
    otp_ttl: timedelta = Depends(get_otp_ttl),
):
    """
    Register a new account.

    The account starts unverified; a registration OTP is emailed.

    Raises:
        - 400 Bad Request: Passwords differ, weak password
        - 409 Conflict: Email already registered
        - 500 Internal Server Error: Server error
    """
    command = RegisterCommand(
        name=request.name,
        email=request.email,
        password=request.password,
        confirm_password=request.confirm_password,
    )

    use_case = RegisterUseCase(uow, hasher, lifecycle, email_sender, otp_ttl)
    result = await use_case.execute(command)

    if result.is_err():
        _raise_for(result.error)

    return result.value


@router.post("/verify-otp", status_code=status.HTTP_200_OK, response_model=MessageResponse)
async def verify_otp(
    request: VerifyOTPRequest,
    http_request: Request,
    uow: UnitOfWork = Depends(get_unit_of_work),
    hasher: SecretHasher = Depends(get_secret_hasher),
    limiter: IAttemptLimiter = Depends(get_attempt_limiter),
):
    """
    Confirm the registration OTP.

    Raises:
        - 400 Bad Request: Invalid or expired OTP, or account already verified
        - 429 Too Many Requests: Too many wrong codes
    """
    keys = _attempt_keys(http_request, request.email)
    _throttle(limiter, OTP_ATTEMPTS, keys)

    use_case = VerifyOTPUseCase(uow, hasher, max_failures=ApplicationConfig.OTP_MAX_FAILURES)
    result = await use_case.execute(request.email, request.otp)

    if result.is_err():
        if result.error.code == "INVALID_OTP":
            limiter.record_failure(OTP_ATTEMPTS, keys)
        _raise_for(result.error)

    return result.value


@router.post("/login", status_code=status.HTTP_200_OK, response_model=LoginResponse)
async def login(
    request: LoginRequest,
    http_request: Request,
    uow: UnitOfWork = Depends(get_unit_of_work),
    hasher: SecretHasher = Depends(get_secret_hasher),
    limiter: IAttemptLimiter = Depends(get_attempt_limiter),
):
    """
    Account Login

    Only wrong credentials count toward the attempt limit.

    Raises:
        - 401 Unauthorized: Invalid credentials (unknown email included)
        - 403 Forbidden: Account not verified, or password expired
        - 429 Too Many Requests: Too many failed logins for this client or email
        - 500 Internal Server Error: Server error
    """
    keys = _attempt_keys(http_request, request.email)
    _throttle(limiter, LOGIN_ATTEMPTS, keys)

    use_case = LoginUseCase(uow, hasher)
    result = await use_case.execute(request.email, request.password)

    if result.is_err():
        if result.error.code == "INVALID_CREDENTIALS":
            limiter.record_failure(LOGIN_ATTEMPTS, keys)
        _raise_for(result.error)

    return result.value


@router.post("/change-password", status_code=status.HTTP_200_OK, response_model=MessageResponse)
async def change_password(
    request: ChangePasswordRequest,
    current_account: dict = Depends(get_current_account),
    uow: UnitOfWork = Depends(get_unit_of_work),
    hasher: SecretHasher = Depends(get_secret_hasher),
    lifecycle: PasswordLifecycle = Depends(get_password_lifecycle),
):
    """
    Change password for the authenticated account.

    Requires a bearer token and a valid CSRF token.

    Raises:
        - 400 Bad Request: Weak or recently used password
        - 401 Unauthorized: Missing token or wrong current password
        - 404 Not Found: Account no longer exists
    """
    use_case = ChangePasswordUseCase(uow, hasher, lifecycle)
    result = await use_case.execute(
        UUID(current_account["account_id"]), request.current_password, request.new_password
    )

    if result.is_err():
        _raise_for(result.error)

    return result.value


@router.post("/forgot-password", status_code=status.HTTP_200_OK, response_model=MessageResponse)
@router.post("/forgotpassword", status_code=status.HTTP_200_OK, response_model=MessageResponse, include_in_schema=False)
async def forgot_password(
    request: EmailRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),
    hasher: SecretHasher = Depends(get_secret_hasher),
    email_sender: IEmailSender = Depends(get_email_sender),
    token_ttl: timedelta = Depends(get_reset_token_ttl),
):
    """
    Request a password reset link.

    Always answers 200 with the same message so account existence does
    not leak.
    """
    use_case = RequestPasswordResetUseCase(uow, hasher, email_sender, token_ttl)
    result = await use_case.execute(request.email)

    if result.is_err():
        raise ServerError(result.error)

    return result.value


@router.post("/reset-password", status_code=status.HTTP_200_OK, response_model=MessageResponse)
async def reset_password(
    request: ResetPasswordRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),
    hasher: SecretHasher = Depends(get_secret_hasher),
    lifecycle: PasswordLifecycle = Depends(get_password_lifecycle),
):
    """
    Confirm Password Reset

    Raises:
        - 400 Bad Request: Invalid or expired token, weak or reused password
    """
    use_case = ConfirmPasswordResetUseCase(uow, hasher, lifecycle)
    result = await use_case.execute(request.token, request.new_password)

    if result.is_err():
        _raise_for(result.error)

    return result.value


@router.post("/forgot-password-otp", status_code=status.HTTP_200_OK, response_model=MessageResponse)
async def forgot_password_otp(
    request: EmailRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),
    hasher: SecretHasher = Depends(get_secret_hasher),
    email_sender: IEmailSender = Depends(get_email_sender),
    otp_ttl: timedelta = Depends(get_otp_ttl),
):
    use_case = RequestPasswordResetOTPUseCase(uow, hasher, email_sender, otp_ttl)
    result = await use_case.execute(request.email)

    if result.is_err():
        raise ServerError(result.error)

    return result.value


@router.post("/verify-forgot-password-otp", status_code=status.HTTP_200_OK, response_model=MessageResponse)
async def verify_forgot_password_otp(
    request: VerifyOTPRequest,
    http_request: Request,
    uow: UnitOfWork = Depends(get_unit_of_work),
    hasher: SecretHasher = Depends(get_secret_hasher),
    limiter: IAttemptLimiter = Depends(get_attempt_limiter),
):
    keys = _attempt_keys(http_request, request.email)
    _throttle(limiter, OTP_ATTEMPTS, keys)

    use_case = VerifyPasswordResetOTPUseCase(uow, hasher, max_failures=ApplicationConfig.OTP_MAX_FAILURES)
    result = await use_case.execute(request.email, request.otp)

    if result.is_err():
        if result.error.code == "INVALID_OTP":
            limiter.record_failure(OTP_ATTEMPTS, keys)
        _raise_for(result.error)

    return result.value


@router.post("/reset-password-with-otp", status_code=status.HTTP_200_OK, response_model=MessageResponse)
async def reset_password_with_otp(
    request: ResetPasswordWithOTPRequest,
    http_request: Request,
    uow: UnitOfWork = Depends(get_unit_of_work),
    hasher: SecretHasher = Depends(get_secret_hasher),
    lifecycle: PasswordLifecycle = Depends(get_password_lifecycle),
    limiter: IAttemptLimiter = Depends(get_attempt_limiter),
):
    """
    Reset the password with a reset OTP.

    Raises:
        - 400 Bad Request: Invalid or expired OTP, weak or reused password
        - 429 Too Many Requests: Too many wrong codes
    """
    keys = _attempt_keys(http_request, request.email)
    _throttle(limiter, OTP_ATTEMPTS, keys)

    use_case = ResetPasswordWithOTPUseCase(
        uow, hasher, lifecycle, max_failures=ApplicationConfig.OTP_MAX_FAILURES
    )
    result = await use_case.execute(request.email, request.otp, request.new_password)

    if result.is_err():
        if result.error.code == "INVALID_OTP":
            limiter.record_failure(OTP_ATTEMPTS, keys)
        _raise_for(result.error)

    return result.value


@router.post("/logout", status_code=status.HTTP_200_OK, response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    store: ICSRFTokenStore = Depends(get_csrf_token_store),
):
    """
    Logout

    Revokes every CSRF token of the session and clears the cookie. The
    request itself must carry a valid CSRF token.
    """
    cookie_name = ApplicationConfig.CSRF_COOKIE_NAME
    session_id = request.cookies.get(cookie_name)
    if session_id:
        revoked = store.revoke_session(session_id)
        logger.info(f"Logout: revoked {revoked} CSRF tokens")

    response.delete_cookie(
        key=cookie_name,
        httponly=True,
        secure=ApplicationConfig.CSRF_COOKIE_SECURE,
        samesite="strict",
    )

    return MessageResponse(status="logged_out", message="Logged out successfully")
