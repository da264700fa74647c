import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import SQLModel

from src.adapter.services.in_memory_csrf_token_store import InMemoryCSRFTokenStore
from src.adapter.services.limits_attempt_limiter import LimitsAttemptLimiter
from src.api.middleware.csrf import CSRFMiddleware
from src.api.middleware.csrf_exemptions import CSRFExemptions
from src.api.middleware.sanitizer import NoSQLSanitizerMiddleware, sanitize_path_params
from src.app.security.secret_hasher import HashingFailure
from src.app.services.attempt_limiter import IAttemptLimiter
from src.app.services.csrf_token_store import ICSRFTokenStore
from src.domain.result import Error
from .error import ClientError, ServerError, error_body

logger = logging.getLogger(__name__)


async def handle_client_error(request: Request, exc: ClientError):
    logger.warning(f"Client error: code={exc.base_error.code} path={request.url.path}")
    return JSONResponse(
        status_code=exc.status_code, content=error_body(exc.base_error), headers=exc.headers
    )


async def handle_server_error(request: Request, exc: ServerError):
    logger.error(f"Server error: code={exc.base_error.code} path={request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(Error(exc.base_error.code, "Internal server error")),
    )


async def handle_hashing_failure(request: Request, exc: HashingFailure):
    logger.error(f"Hashing failure: {exc} path={request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(Error("HASHING_FAILURE", "Internal server error")),
    )


def build_csrf_token_store(ApplicationConfig) -> InMemoryCSRFTokenStore:
    from src.depends import get_secret_hasher

    return InMemoryCSRFTokenStore(
        get_secret_hasher(),
        ttl=timedelta(seconds=ApplicationConfig.CSRF_TOKEN_TTL_SECONDS),
        max_tokens_per_session=ApplicationConfig.CSRF_MAX_TOKENS_PER_SESSION,
        single_use=ApplicationConfig.CSRF_SINGLE_USE,
        sweep_batch_size=ApplicationConfig.CSRF_SWEEP_BATCH_SIZE,
    )


def create_app(
    ApplicationConfig,
    csrf_store: Optional[ICSRFTokenStore] = None,
    attempt_limiter: Optional[IAttemptLimiter] = None,
) -> FastAPI:
    logging.basicConfig(level=ApplicationConfig.LOG_LEVEL)

    store = csrf_store or build_csrf_token_store(ApplicationConfig)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        from src.depends import engine

        async with engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

        sweeper = asyncio.create_task(
            store.run_sweeper(ApplicationConfig.CSRF_SWEEP_INTERVAL_SECONDS)
        )
        try:
            yield
        finally:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper
            store.close()

    app = FastAPI(
        title="NestGuard",
        version="0.1.0",
        lifespan=lifespan,
        dependencies=[Depends(sanitize_path_params)],
    )
    app.state.csrf_token_store = store
    app.state.attempt_limiter = attempt_limiter or LimitsAttemptLimiter()

    # Last added runs first: CORS, then CSRF, then sanitization
    app.add_middleware(NoSQLSanitizerMiddleware)
    app.add_middleware(
        CSRFMiddleware,
        store=store,
        exemptions=CSRFExemptions.from_config(ApplicationConfig.CSRF_EXEMPT_ROUTES),
        cookie_name=ApplicationConfig.CSRF_COOKIE_NAME,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ApplicationConfig.CORS_ORIGINS,
        allow_credentials=ApplicationConfig.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from src.api.routes import auth, csrf, health_check

    app.include_router(health_check.router, tags=["Health"])
    app.include_router(csrf.router, prefix=ApplicationConfig.API_PREFIX)
    app.include_router(auth.router, prefix=ApplicationConfig.API_PREFIX)

    app.add_exception_handler(ClientError, handle_client_error)
    app.add_exception_handler(ServerError, handle_server_error)
    app.add_exception_handler(HashingFailure, handle_hashing_failure)

    return app
