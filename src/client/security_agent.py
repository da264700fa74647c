"""
Client Security Agent

Client-side counterpart of the CSRF middleware:
- fetches a CSRF token from the issuance endpoint and refreshes it on a
  fixed interval shorter than its lifetime
- attaches the bearer token and the CSRF header to outgoing calls
- refreshes the token and retries once when the server rejects a call
  for CSRF reasons
- scrubs outgoing payloads before they are sent

A missing issuance endpoint (404) is not an error: the agent keeps
working with CSRF disabled.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Callable, Mapping, Optional

import httpx

from src.client.http import HttpClient, HttpResponse
from src.client.output_sanitizer import sanitize_outgoing
from src.client.retry import attempt

logger = logging.getLogger(__name__)

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})
BODYLESS_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "DELETE"})
CSRF_HEADER = "X-CSRF-Token"


class CSRFTokenUnavailable(Exception):
    """Token fetch failed, no usable cached token, failure budget not yet spent."""


@dataclass
class ClientSession:
    access_token: Optional[str] = None

    def clear(self) -> None:
        self.access_token = None


def _now() -> datetime:
    return datetime.now(UTC)


def _json(response: HttpResponse) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _parse_expiry(value: Any) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


class ClientSecurityAgent:
    def __init__(
        self,
        http: HttpClient,
        session: Optional[ClientSession] = None,
        token_path: str = "/api/auth/csrf-token",
        refresh_interval_seconds: float = 30 * 60,
        max_failures: int = 3,
        clock: Callable[[], datetime] = _now,
    ):
        self.http = http
        self.session = session or ClientSession()
        self.token_path = token_path
        self.refresh_interval_seconds = refresh_interval_seconds
        self.max_failures = max_failures
        self.clock = clock

        # None until the first fetch decides it
        self.csrf_enabled: Optional[bool] = None
        self.csrf_token: Optional[str] = None
        self.token_expires_at: Optional[datetime] = None
        self.failure_count = 0

        self._cached_token: Optional[str] = None
        self._cached_expiry: Optional[datetime] = None
        self._refresh_task: Optional[asyncio.Task] = None
        self._owns_http = False

    @classmethod
    def from_config(cls, ApplicationConfig, session: Optional[ClientSession] = None) -> "ClientSecurityAgent":
        http = httpx.AsyncClient(
            base_url=ApplicationConfig.CLIENT_BASE_URL,
            timeout=ApplicationConfig.CLIENT_TIMEOUT_SECONDS,
            follow_redirects=False,
        )
        agent = cls(
            http,
            session=session,
            refresh_interval_seconds=ApplicationConfig.CLIENT_TOKEN_REFRESH_SECONDS,
            max_failures=ApplicationConfig.CLIENT_MAX_TOKEN_FAILURES,
        )
        agent._owns_http = True
        return agent

    async def initialize(self) -> Optional[str]:
        return await self.fetch_token()

    async def fetch_token(self) -> Optional[str]:
        """
        Fetch a fresh token from the issuance endpoint.

        Returns the token, or ``None`` when CSRF is disabled. Raises
        ``CSRFTokenUnavailable`` when the fetch failed and neither a cached
        token nor the failure budget allows carrying on.
        """
        try:
            response = await self.http.get(self.token_path, headers={"Accept": "application/json"})
        except httpx.HTTPError as exc:
            return self._fetch_failed(f"{type(exc).__name__}: {exc}")

        if response.status_code == 404:
            logger.warning("CSRF endpoint not found, running without CSRF protection")
            self.csrf_enabled = False
            self.csrf_token = None
            return None

        data = _json(response)
        if response.status_code == 200 and data.get("success") and data.get("csrfToken"):
            self.csrf_token = data["csrfToken"]
            self.token_expires_at = _parse_expiry(data.get("expiresAt"))
            self.csrf_enabled = True
            self.failure_count = 0
            if self.token_expires_at is not None:
                self._cached_token = self.csrf_token
                self._cached_expiry = self.token_expires_at
            self._start_refresh()
            logger.info("CSRF protection enabled")
            return self.csrf_token

        return self._fetch_failed(f"unexpected response status={response.status_code}")

    def _fetch_failed(self, reason: str) -> Optional[str]:
        self.failure_count += 1
        logger.warning(
            f"CSRF token request failed (attempt {self.failure_count}/{self.max_failures}): {reason}"
        )

        if self._cached_token and self._cached_expiry and self._cached_expiry > self.clock():
            logger.info("Using cached CSRF token as fallback")
            self.csrf_token = self._cached_token
            self.token_expires_at = self._cached_expiry
            self.csrf_enabled = True
            return self.csrf_token

        if self.failure_count >= self.max_failures:
            logger.error("Max CSRF token failures reached, disabling CSRF protection")
            self.csrf_enabled = False
            self.csrf_token = None
            return None

        raise CSRFTokenUnavailable(reason)

    def _start_refresh(self) -> None:
        if self._refresh_task is not None and not self._refresh_task.done():
            return
        self._refresh_task = asyncio.create_task(self._refresh_loop())

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval_seconds)
            try:
                await self.fetch_token()
            except CSRFTokenUnavailable:
                logger.exception("CSRF token auto-refresh failed")

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        params: Optional[Mapping] = None,
        headers: Optional[Mapping] = None,
    ) -> HttpResponse:
        method = method.upper()
        if method not in BODY_METHODS and method not in BODYLESS_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")
        if self.csrf_enabled is None and method not in SAFE_METHODS:
            await self.initialize()

        payload = sanitize_outgoing(json) if json is not None else None

        async def send() -> HttpResponse:
            return await self._send(method, url, payload, params, headers)

        response = await attempt(send, self._is_csrf_rejection, self._refresh_after_rejection, max_retries=1)

        if response.status_code == 401:
            logger.warning("Authentication failed, clearing session")
            self.session.clear()

        return response

    async def get(self, url: str, **kwargs) -> HttpResponse:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs) -> HttpResponse:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs) -> HttpResponse:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs) -> HttpResponse:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs) -> HttpResponse:
        return await self.request("DELETE", url, **kwargs)

    async def head(self, url: str, **kwargs) -> HttpResponse:
        return await self.request("HEAD", url, **kwargs)

    async def options(self, url: str, **kwargs) -> HttpResponse:
        return await self.request("OPTIONS", url, **kwargs)

    def _headers(self, method: str, extra: Optional[Mapping]) -> dict:
        headers = {"Accept": "application/json", "X-Requested-With": "XMLHttpRequest"}
        if extra:
            headers.update(extra)
        if self.session.access_token:
            headers["Authorization"] = f"Bearer {self.session.access_token}"
        if method not in SAFE_METHODS and self.csrf_enabled and self.csrf_token:
            headers[CSRF_HEADER] = self.csrf_token
        return headers

    async def _send(
        self, method: str, url: str, payload: Any, params: Optional[Mapping], extra: Optional[Mapping]
    ) -> HttpResponse:
        headers = self._headers(method, extra)
        if method in BODY_METHODS:
            send = getattr(self.http, method.lower())
            return await send(url, json=payload, params=params, headers=headers)
        if method in BODYLESS_METHODS:
            send = getattr(self.http, method.lower())
            return await send(url, params=params, headers=headers)
        raise ValueError(f"Unsupported HTTP method: {method}")

    def _is_csrf_rejection(self, response: HttpResponse) -> bool:
        if not self.csrf_enabled or response.status_code != 403:
            return False
        data = _json(response)
        error = data.get("error")
        error_message = error.get("message") if isinstance(error, dict) else error
        return "CSRF" in str(data.get("message") or "") or "CSRF" in str(error_message or "")

    async def _refresh_after_rejection(self, response: HttpResponse) -> None:
        logger.warning("CSRF token rejected, refreshing before retry")
        try:
            await self.fetch_token()
        except CSRFTokenUnavailable as exc:
            logger.warning(f"CSRF token refresh before retry failed: {exc}")

    async def close(self) -> None:
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._refresh_task
            self._refresh_task = None
        if self._owns_http:
            await self.http.aclose()
