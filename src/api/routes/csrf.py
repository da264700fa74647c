import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, ConfigDict, Field

from config import ApplicationConfig
from src.api.error import ServerError
from src.app.security.secret_hasher import HashingFailure, SecretHasher
from src.app.services.csrf_token_store import ICSRFTokenStore
from src.depends import get_csrf_token_store, get_secret_hasher
from src.domain.result import Error

logger = logging.getLogger(__name__)

router = APIRouter(tags=["CSRF"])


class CSRFTokenResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    csrf_token: str = Field(..., alias="csrfToken")
    expires_at: datetime = Field(..., alias="expiresAt")


@router.get("/auth/csrf-token", status_code=status.HTTP_200_OK, response_model=CSRFTokenResponse)
@router.get("/csrf-token", status_code=status.HTTP_200_OK, response_model=CSRFTokenResponse)
async def issue_csrf_token(
    request: Request,
    response: Response,
    store: ICSRFTokenStore = Depends(get_csrf_token_store),
    hasher: SecretHasher = Depends(get_secret_hasher),
):
    """
    Issue a CSRF token bound to the caller's session cookie.

    An existing ``csrf-secret`` cookie is reused so several tabs can hold
    tokens for one session; otherwise a fresh session id is minted. The
    cookie is HTTP-only and SameSite=Strict.

    Raises:
        - 500 Internal Server Error: Token could not be generated
    """
    cookie_name = ApplicationConfig.CSRF_COOKIE_NAME
    try:
        session_id = request.cookies.get(cookie_name) or hasher.generate_token(32)
        issued = store.issue(session_id)
    except HashingFailure:
        logger.exception("CSRF token generation failed")
        raise ServerError(Error("CSRF_TOKEN_GENERATION_FAILED", "Failed to generate CSRF token"))

    response.set_cookie(
        key=cookie_name,
        value=session_id,
        max_age=ApplicationConfig.CSRF_TOKEN_TTL_SECONDS,
        httponly=True,
        secure=ApplicationConfig.CSRF_COOKIE_SECURE,
        samesite="strict",
    )

    return CSRFTokenResponse(csrf_token=issued.plain_token, expires_at=issued.expires_at)
