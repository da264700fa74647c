from urllib.parse import parse_qsl

import pytest
import pytest_asyncio
from fastapi import APIRouter, Request
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.adapter.services.in_memory_csrf_token_store import InMemoryCSRFTokenStore
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.app.security.password_lifecycle import PasswordLifecycle
from src.app.security.secret_hasher import SecretHasher
from src.app.services.email_sender import IEmailSender
from src.depends import get_email_sender, get_password_lifecycle, get_secret_hasher, get_unit_of_work


class CapturingEmailSender(IEmailSender):
    """Keeps every outgoing secret so tests can play the user's inbox."""

    def __init__(self):
        self.otps = []
        self.reset_tokens = []

    async def send_otp(self, email: str, otp: str, purpose: str) -> None:
        self.otps.append((email, otp, purpose))

    async def send_password_reset(self, email: str, token: str) -> None:
        self.reset_tokens.append((email, token))

    def last_otp(self, email: str) -> str:
        return [otp for to, otp, _ in self.otps if to == email][-1]


def build_mirror_router() -> APIRouter:
    """Routes that expose what a handler actually receives."""
    router = APIRouter(prefix="/api/mirror")

    @router.post("/protected")
    async def protected():
        return {"ok": True}

    @router.post("/echo")
    async def echo(request: Request):
        return {"body": await request.json(), "query": dict(request.query_params)}

    @router.post("/form")
    async def form(request: Request):
        return {"form": dict(parse_qsl((await request.body()).decode("utf-8"), keep_blank_values=True))}

    @router.get("/search")
    async def search(request: Request):
        return {"query": dict(request.query_params)}

    @router.get("/items/{item_id}")
    async def item(item_id: str, request: Request):
        return {"item_id": item_id, "path_params": request.path_params}

    return router


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite:///./test.db")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine):
    Session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with Session() as session:
        yield session


@pytest.fixture
def hasher():
    return SecretHasher(bcrypt_rounds=4, otp_secret="test-otp-secret")


@pytest.fixture
def email_sender():
    return CapturingEmailSender()


@pytest.fixture
def csrf_store(hasher):
    return InMemoryCSRFTokenStore(hasher)


@pytest.fixture
def app_factory(db_session, hasher, email_sender):
    from src.api.app import create_app

    def build(csrf_store):
        app = create_app(ApplicationConfig, csrf_store=csrf_store)
        app.include_router(build_mirror_router())

        async def override_get_unit_of_work():
            yield SqlAlchemyUnitOfWork(db_session)

        app.dependency_overrides[get_unit_of_work] = override_get_unit_of_work
        app.dependency_overrides[get_secret_hasher] = lambda: hasher
        app.dependency_overrides[get_password_lifecycle] = lambda: PasswordLifecycle(hasher)
        app.dependency_overrides[get_email_sender] = lambda: email_sender
        return app

    return build


@pytest.fixture
def app(app_factory, csrf_store):
    return app_factory(csrf_store)


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def csrf_token(client: AsyncClient) -> str:
    """Issues a token; the client keeps the session cookie."""
    response = await client.get("/api/auth/csrf-token")
    assert response.status_code == 200
    return response.json()["csrfToken"]
