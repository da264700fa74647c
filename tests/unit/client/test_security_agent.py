import asyncio
from datetime import UTC, datetime, timedelta

import httpx
import pytest
import pytest_asyncio

from src.client import ClientSecurityAgent, ClientSession, CSRFTokenUnavailable


class FakeHttp:
    """Queued responses per method, records every call."""

    def __init__(self):
        self.responses = {method: [] for method in ("GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE")}
        self.calls = []

    def queue(self, method, response):
        self.responses[method].append(response)

    async def _next(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        item = self.responses[method].pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def get(self, url, *, params=None, headers=None):
        return await self._next("GET", url, params=params, headers=headers)

    async def post(self, url, *, json=None, params=None, headers=None):
        return await self._next("POST", url, json=json, params=params, headers=headers)

    async def put(self, url, *, json=None, params=None, headers=None):
        return await self._next("PUT", url, json=json, params=params, headers=headers)

    async def patch(self, url, *, json=None, params=None, headers=None):
        return await self._next("PATCH", url, json=json, params=params, headers=headers)

    async def delete(self, url, *, params=None, headers=None):
        return await self._next("DELETE", url, params=params, headers=headers)

    async def head(self, url, *, params=None, headers=None):
        return await self._next("HEAD", url, params=params, headers=headers)

    async def options(self, url, *, params=None, headers=None):
        return await self._next("OPTIONS", url, params=params, headers=headers)


def token_response(token="tok-1", expires_at=None):
    expires_at = expires_at or datetime.now(UTC) + timedelta(hours=24)
    return httpx.Response(
        200, json={"success": True, "csrfToken": token, "expiresAt": expires_at.isoformat()}
    )


def csrf_rejection():
    return httpx.Response(
        403,
        json={"success": False, "message": "Invalid CSRF token.", "error": {"code": "CSRF_TOKEN_INVALID"}},
    )


@pytest.fixture
def http():
    return FakeHttp()


@pytest_asyncio.fixture
async def agent(http):
    agent = ClientSecurityAgent(http, refresh_interval_seconds=3600)
    yield agent
    await agent.close()


@pytest.mark.asyncio
async def test_initialize_caches_token_and_schedules_refresh(agent, http):
    http.queue("GET", token_response("tok-1"))

    token = await agent.initialize()

    assert token == "tok-1"
    assert agent.csrf_enabled is True
    assert agent.token_expires_at is not None
    assert agent._refresh_task is not None and not agent._refresh_task.done()


@pytest.mark.asyncio
async def test_missing_endpoint_disables_csrf(agent, http):
    http.queue("GET", httpx.Response(404, json={}))
    http.queue("POST", httpx.Response(200, json={"ok": True}))

    assert await agent.initialize() is None
    response = await agent.post("/api/contact", json={"a": 1})

    assert response.status_code == 200
    assert agent.csrf_enabled is False
    assert "X-CSRF-Token" not in http.calls[-1][2]["headers"]


@pytest.mark.asyncio
async def test_mutating_calls_carry_bearer_and_csrf_headers(http):
    agent = ClientSecurityAgent(http, session=ClientSession(access_token="jwt-1"))
    http.queue("GET", token_response("tok-1"))
    http.queue("PUT", httpx.Response(200, json={}))
    http.queue("GET", httpx.Response(200, json={}))

    await agent.initialize()
    await agent.put("/api/rooms/1", json={"title": "Flat"})
    await agent.get("/api/rooms")
    await agent.close()

    put_headers = http.calls[1][2]["headers"]
    get_headers = http.calls[2][2]["headers"]
    assert put_headers["Authorization"] == "Bearer jwt-1"
    assert put_headers["X-CSRF-Token"] == "tok-1"
    assert get_headers["Authorization"] == "Bearer jwt-1"
    assert "X-CSRF-Token" not in get_headers


@pytest.mark.asyncio
async def test_first_mutating_call_initializes(agent, http):
    http.queue("GET", token_response("tok-1"))
    http.queue("POST", httpx.Response(201, json={}))

    await agent.post("/api/auth/change-password", json={})

    assert http.calls[0][0] == "GET"
    assert http.calls[1][2]["headers"]["X-CSRF-Token"] == "tok-1"


@pytest.mark.asyncio
async def test_csrf_rejection_refreshes_and_retries_once(agent, http):
    http.queue("GET", token_response("tok-1"))
    http.queue("POST", csrf_rejection())
    http.queue("GET", token_response("tok-2"))
    http.queue("POST", httpx.Response(200, json={"success": True}))

    await agent.initialize()
    response = await agent.post("/api/auth/logout")

    assert response.status_code == 200
    post_calls = [call for call in http.calls if call[0] == "POST"]
    assert [call[2]["headers"]["X-CSRF-Token"] for call in post_calls] == ["tok-1", "tok-2"]


@pytest.mark.asyncio
async def test_second_csrf_rejection_is_surfaced(agent, http):
    http.queue("GET", token_response("tok-1"))
    http.queue("POST", csrf_rejection())
    http.queue("GET", token_response("tok-2"))
    http.queue("POST", csrf_rejection())

    await agent.initialize()
    response = await agent.post("/api/auth/logout")

    assert response.status_code == 403
    assert len([call for call in http.calls if call[0] == "POST"]) == 2


@pytest.mark.asyncio
async def test_non_csrf_forbidden_is_not_retried(agent, http):
    http.queue("GET", token_response("tok-1"))
    http.queue(
        "POST",
        httpx.Response(403, json={"success": False, "message": "Password has expired."}),
    )

    await agent.initialize()
    response = await agent.post("/api/auth/login", json={})

    assert response.status_code == 403
    assert len(http.calls) == 2


@pytest.mark.asyncio
async def test_unauthorized_clears_session(http):
    session = ClientSession(access_token="jwt-1")
    agent = ClientSecurityAgent(http, session=session)
    http.queue("GET", httpx.Response(401, json={}))

    await agent.get("/api/profile")

    assert session.access_token is None


@pytest.mark.asyncio
async def test_outgoing_payload_is_sanitized(agent, http):
    http.queue("GET", httpx.Response(404, json={}))
    http.queue("POST", httpx.Response(200, json={}))

    await agent.post("/api/contact", json={"$where": "x", "msg": "<script>alert(1)</script>hi"})

    assert http.calls[-1][2]["json"] == {"where": "x", "msg": "hi"}


@pytest.mark.asyncio
async def test_fetch_failure_falls_back_to_cached_token(agent, http):
    http.queue("GET", token_response("tok-1"))
    http.queue("GET", httpx.Response(500, json={}))

    await agent.initialize()
    token = await agent.fetch_token()

    assert token == "tok-1"
    assert agent.csrf_enabled is True
    assert agent.failure_count == 1


@pytest.mark.asyncio
async def test_expired_cache_is_not_used(agent, http):
    http.queue("GET", token_response("tok-1", expires_at=datetime.now(UTC) - timedelta(minutes=1)))
    http.queue("GET", httpx.Response(500, json={}))

    await agent.initialize()

    with pytest.raises(CSRFTokenUnavailable):
        await agent.fetch_token()


@pytest.mark.asyncio
async def test_repeated_failures_disable_csrf(agent, http):
    for _ in range(3):
        http.queue("GET", httpx.ConnectError("refused"))

    for _ in range(2):
        with pytest.raises(CSRFTokenUnavailable):
            await agent.fetch_token()
    assert await agent.fetch_token() is None

    assert agent.csrf_enabled is False
    assert agent.failure_count == 3


@pytest.mark.asyncio
async def test_background_refresh_replaces_token(http):
    agent = ClientSecurityAgent(http, refresh_interval_seconds=0.01)
    http.queue("GET", token_response("tok-1"))
    for i in range(2, 50):
        http.queue("GET", token_response(f"tok-{i}"))

    await agent.initialize()
    await asyncio.sleep(0.05)
    await agent.close()

    assert agent.csrf_token != "tok-1"
    assert agent._refresh_task is None


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["HEAD", "OPTIONS"])
async def test_safe_bodyless_methods_skip_csrf(agent, http, method):
    http.queue("GET", token_response("tok-1"))
    http.queue(method, httpx.Response(200))

    await agent.initialize()
    response = await getattr(agent, method.lower())("/api/rooms", params={"page": "1"})

    assert response.status_code == 200
    sent_method, url, kwargs = http.calls[-1]
    assert (sent_method, url) == (method, "/api/rooms")
    assert kwargs["params"] == {"page": "1"}
    assert "X-CSRF-Token" not in kwargs["headers"]


@pytest.mark.asyncio
async def test_unsupported_method_is_rejected_before_any_call(agent, http):
    with pytest.raises(ValueError):
        await agent.request("TRACE", "/api/rooms")

    assert http.calls == []
