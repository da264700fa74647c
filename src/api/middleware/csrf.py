"""
CSRF Middleware

Double-submit check for every state-changing request that is not in the
exemption table. The session id travels in an HTTP-only cookie; the token
is read from (first match wins):

1. ``X-CSRF-Token`` header
2. ``CSRF-Token`` header
3. ``_csrf`` query parameter
4. ``_csrf`` field of a JSON or form-encoded body

Failures answer 403 with the standard error envelope and never reach the
route.
"""

import json
import logging
from typing import Optional
from urllib.parse import parse_qs

from fastapi import status
from fastapi.responses import JSONResponse
from starlette.requests import HTTPConnection
from starlette.types import ASGIApp, Receive, Scope, Send

from src.api.error import error_body
from src.api.middleware.body import content_type, read_body, replay_body
from src.api.middleware.csrf_exemptions import CSRFExemptions
from src.app.services.csrf_token_store import ICSRFTokenStore
from src.domain.result import Error

logger = logging.getLogger(__name__)

TOKEN_HEADERS = ("x-csrf-token", "csrf-token")
TOKEN_FIELD = "_csrf"

SECRET_MISSING = Error("CSRF_SECRET_MISSING", "CSRF secret not found. Please get a new CSRF token.")
TOKEN_MISSING = Error("CSRF_TOKEN_MISSING", "CSRF token missing. Please include CSRF token in request.")
TOKEN_INVALID = Error("CSRF_TOKEN_INVALID", "Invalid CSRF token.")


def _token_from_body(body: bytes, media_type: str) -> Optional[str]:
    if not body:
        return None

    if media_type.startswith("application/json"):
        try:
            payload = json.loads(body)
        except ValueError:
            return None
        if isinstance(payload, dict) and isinstance(payload.get(TOKEN_FIELD), str):
            return payload[TOKEN_FIELD]
        return None

    if media_type.startswith("application/x-www-form-urlencoded"):
        values = parse_qs(body.decode("latin-1")).get(TOKEN_FIELD)
        return values[0] if values else None

    return None


class CSRFMiddleware:
    def __init__(
        self,
        app: ASGIApp,
        store: ICSRFTokenStore,
        exemptions: Optional[CSRFExemptions] = None,
        cookie_name: str = "csrf-secret",
    ):
        self.app = app
        self.store = store
        self.exemptions = exemptions or CSRFExemptions()
        self.cookie_name = cookie_name

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope["method"]
        path = scope["path"]
        if self.exemptions.is_exempt(method, path):
            await self.app(scope, receive, send)
            return

        conn = HTTPConnection(scope)
        session_id = conn.cookies.get(self.cookie_name)
        if not session_id:
            logger.warning(f"CSRF secret missing: method={method} path={path}")
            await self._reject(SECRET_MISSING, scope, receive, send)
            return

        token = None
        for header in TOKEN_HEADERS:
            token = conn.headers.get(header)
            if token:
                break
        if not token:
            token = conn.query_params.get(TOKEN_FIELD)
        if not token:
            body = await read_body(receive)
            receive = replay_body(body, receive)
            token = _token_from_body(body, content_type(scope))

        if not token:
            logger.warning(f"CSRF token missing: method={method} path={path}")
            await self._reject(TOKEN_MISSING, scope, receive, send)
            return

        if not self.store.verify(session_id, token):
            logger.warning(f"CSRF token rejected: method={method} path={path}")
            await self._reject(TOKEN_INVALID, scope, receive, send)
            return

        await self.app(scope, receive, send)

    async def _reject(self, error: Error, scope: Scope, receive: Receive, send: Send) -> None:
        response = JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content=error_body(error))
        await response(scope, receive, send)
