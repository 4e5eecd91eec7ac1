"""
api/main.py -- FastAPI application factory for BookApp.

Run with:      uvicorn asgi:app --reload

create_app(settings) builds everything from one explicit Settings value:
the hash policy, the hashing pool, the password hasher, the token codec,
the pooled Engine and both stores. Nothing under auth/ reads configuration
on its own.

Middleware stack (outermost to innermost):
  1. log_requests          -- method, path, status, latency
  2. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  3. CORSMiddleware        -- adds CORS headers for allowed browser origins

Lifespan handles startup (engine, stores, hashing pool, optional admin
bootstrap) and shutdown (pool shutdown, engine dispose) symmetrically.

Error mapping lives here and only here: route code raises HTTPException or
lets AuthError subclasses propagate; the handlers below turn them into the
{code, message} envelope.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ApiMessage, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.users import router as users_router
from auth.errors import AuthError, DuplicateUser
from auth.gate import AuthGate
from auth.login import LoginService
from auth.models import User
from auth.passwords import PasswordHasher
from auth.policy import HashPolicy
from auth.schema import create_db_engine
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import TokenCodec
from auth.workers import HashingPool
from core.config import Settings

VERSION = "0.3.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("bookapp.api")


# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------


async def _bootstrap_admin(settings: Settings, users: UserStore, hasher: PasswordHasher) -> None:
    """Create the first "admin" account when configured and the table is empty."""
    if not settings.bootstrap_admin_password:
        return
    if await run_in_threadpool(users.has_users):
        return
    admin = User(
        username="admin",
        name="Admin",
        surname="Admin",
        phone="admin",
        email="admin@localhost",
        pwd=await hasher.hash(settings.bootstrap_admin_password),
        created_by="admin",
    )
    await run_in_threadpool(users.create_user, admin)
    logger.warning("Bootstrap admin account created -- change its password and unset BOOTSTRAP_ADMIN_PASSWORD")


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(settings: Settings) -> FastAPI:
    """Build the ASGI app from an explicit Settings value.

    Policy and codec are built eagerly so a bad ARGON_* value or signing
    secret fails here (ConfigInvalid), before the server binds a port.
    """
    policy = HashPolicy.from_settings(settings)
    codec = TokenCodec(settings.jwt_secret, settings.token_ttl_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Manage application-level resources across the full server lifetime.

        Startup order matters:
          1. Engine first -- both stores share its connection pool.
          2. Hashing pool and hasher -- needed by bootstrap and login.
          3. Gate and login service compose the above.
        """
        logger.info("BookApp API starting up")
        engine = create_db_engine(settings.database_url)
        pool = HashingPool(settings.hash_workers)
        hasher = PasswordHasher(policy, pool)
        user_store = UserStore(engine)
        session_store = SessionStore(engine)

        app.state.user_store = user_store
        app.state.session_store = session_store
        app.state.password_hasher = hasher
        app.state.token_codec = codec
        app.state.auth_gate = AuthGate(codec, session_store)
        app.state.login_service = LoginService(user_store, hasher, codec, session_store)
        logger.info(
            "Auth initialized (argon2 %s m=%d t=%d p=%d, %d hash workers)",
            policy.variant.value,
            policy.memory_cost_kb,
            policy.iterations,
            policy.parallelism,
            pool.max_workers,
        )
        try:
            await _bootstrap_admin(settings, user_store, hasher)
            yield
        finally:
            pool.shutdown(wait=False)
            engine.dispose()
            logger.info("BookApp API shutdown complete")

    app = FastAPI(
        title="BookApp API",
        description="User accounts, password login and revocable bearer sessions.",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # -----------------------------------------------------------------------
    # Middleware stack
    #
    # add_middleware() wraps the current stack, so the last one added is the
    # outermost. Register innermost first: CORS, TrustedHost, then logging.
    # -----------------------------------------------------------------------

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=3600,
    )
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s %d %.1fms %s",
            request.method,
            request.url.path,
            response.status_code,
            ms,
            request.client.host if request.client else "unknown",
        )
        return response

    # -----------------------------------------------------------------------
    # Routers
    # -----------------------------------------------------------------------

    app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
    app.include_router(users_router, prefix="/api/v1", tags=["Users"])

    _register_exception_handlers(app)

    @app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
    async def health(request: Request) -> HealthResponse:
        """Return API liveness, version and database reachability. No auth."""
        try:
            await run_in_threadpool(request.app.state.user_store.ping)
            database = "ok"
        except AuthError:
            database = "error"
        return HealthResponse(
            status="healthy" if database == "ok" else "degraded",
            version=VERSION,
            components={"app": "ok", "database": database},
        )

    return app


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {code, message} envelope so API clients can
# parse errors uniformly.
# ---------------------------------------------------------------------------


def _envelope(status_code: int, message: str, detail: str | None = None, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiMessage(code=status_code, message=message, detail=detail).model_dump(exclude_none=True),
        headers=headers,
    )


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Return 422 when request body or query params fail validation.

        exc.errors() is not echoed: it can contain the submitted input, and
        for login that input is a password.
        """
        return _envelope(422, "Request validation failed.")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _envelope(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(DuplicateUser)
    async def duplicate_user_handler(request: Request, exc: DuplicateUser) -> JSONResponse:
        return _envelope(409, "Conflict")

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
        """HashingFailed / InternalError / StorageError and friends.

        Logged with context server-side; the client only ever sees a generic
        500. Storage errors are not retried.
        """
        logger.error(
            "%s on %s %s: %s",
            exc.__class__.__name__,
            request.method,
            request.url.path,
            exc,
        )
        return _envelope(500, "Internal Server Error")

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all handler for unexpected server errors.

        Security note: the raw exception is written to the log only, never to
        the response body.
        """
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return _envelope(500, "Internal Server Error")
