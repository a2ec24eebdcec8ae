"""
Boilerplate API

FastAPI application factory: user accounts, JWT sessions with refresh-token
rotation, and role-based authorization.
"""

import secrets
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.v1.api import api_router
from app.auth.dependencies import get_client_ip
from app.auth.guard import AuthGuardMiddleware
from app.auth.jwt import JwtSigner
from app.auth.password import generate_temp_password, hash_password
from app.core.config import Settings
from app.core.database import close_db, create_engine, create_session_maker, init_db
from app.core.errors import ConstraintViolation, ServiceError
from app.core.logging import bind_request_id, configure_logging, get_logger
from app.models.user import ADMIN_ROLE
from app.services.repository import RoleRepository, UserRepository

logger = get_logger(__name__)

VERSION = "1.0.0"


# =============================================================================
# Application Lifespan (startup/shutdown)
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, seed roles and the bootstrap admin; dispose the pool on shutdown."""
    engine = app.state.engine
    logger.info("startup", version=VERSION)

    await init_db(engine)
    await seed_roles(app)
    await create_bootstrap_admin_if_needed(app)

    yield

    logger.info("shutdown")
    await close_db(engine)


async def seed_roles(app: FastAPI) -> None:
    async with app.state.session_maker() as session:
        await RoleRepository(session).ensure_role(ADMIN_ROLE)
        await session.commit()


async def create_bootstrap_admin_if_needed(app: FastAPI) -> None:
    """Create the configured admin account if it does not exist yet."""
    settings: Settings = app.state.settings
    if not settings.bootstrap_admin_email:
        return

    async with app.state.session_maker() as session:
        users = UserRepository(session)
        if await users.find_by_email(settings.bootstrap_admin_email) is not None:
            return
        if await users.find_by_username(settings.bootstrap_admin_username) is not None:
            logger.warning(
                "bootstrap_admin_skipped",
                reason="username_taken",
                username=settings.bootstrap_admin_username,
            )
            return

        password = settings.bootstrap_admin_password or generate_temp_password()
        password_hash = await run_in_threadpool(hash_password, password)

        try:
            admin = await users.insert_identity(settings.bootstrap_admin_username)
            await users.insert_credential(admin.id, settings.bootstrap_admin_email, password_hash)
            await RoleRepository(session).grant(admin.id, ADMIN_ROLE)
            await session.commit()
        except ConstraintViolation as e:
            # Another process created a conflicting account first
            await session.rollback()
            logger.warning("bootstrap_admin_skipped", reason="conflict", column=e.column)
            return

    if settings.bootstrap_admin_password:
        logger.info("bootstrap_admin_created", user_id=admin.id)
    else:
        # The only place the generated password is ever shown
        print("=" * 60)
        print("DEFAULT ADMIN ACCOUNT CREATED")
        print(f"   Email:    {settings.bootstrap_admin_email}")
        print(f"   Password: {password}")
        print("   CHANGE THIS PASSWORD IMMEDIATELY!")
        print("=" * 60)


# =============================================================================
# Middleware
# =============================================================================

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next: Callable):
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if not request.url.path.startswith(("/docs", "/redoc")):
            response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        return response


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add unique request ID for tracing and bind it to the logger context."""

    async def dispatch(self, request: Request, call_next: Callable):
        request_id = request.headers.get("X-Request-ID") or secrets.token_urlsafe(8)
        request.state.request_id = request_id
        bind_request_id(request_id)
        logger.debug(
            "request_started",
            method=request.method,
            path=request.url.path,
            client_ip=get_client_ip(request),
        )

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response


# =============================================================================
# Error Handlers
# =============================================================================

async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler to prevent information leakage."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.error("unhandled_exception", error=str(exc), exc_info=exc)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "request_id": request_id,
        },
    )


# =============================================================================
# FastAPI Application
# =============================================================================

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application.

    Settings, the JWT signer and the database pool are created here once
    and live on `app.state` for the lifetime of the process.
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level, settings.log_json)

    signer = JwtSigner.from_settings(settings)
    engine = create_engine(settings.database_url, echo=settings.sql_echo)

    app = FastAPI(
        title="Boilerplate API",
        version=VERSION,
        description="User accounts, JWT sessions and role-based authorization",
        lifespan=lifespan,
        docs_url="/docs" if settings.enable_docs else None,
        redoc_url="/redoc" if settings.enable_docs else None,
    )
    app.state.settings = settings
    app.state.signer = signer
    app.state.engine = engine
    app.state.session_maker = create_session_maker(engine)

    # Order matters - last added runs first
    app.add_middleware(AuthGuardMiddleware, signer=signer)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    app.include_router(api_router, prefix="/api")

    return app


# =============================================================================
# Development Server
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=4000,
        reload=True,
        log_level="info",
    )
