"""Main FastAPI application."""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import Engine

from credential_service.config import Settings, settings, validate_settings
from credential_service.database import create_db_engine, create_session_factory
from credential_service.exceptions import CredentialServiceError, InternalServiceError
from credential_service.responses import INTERNAL_ERROR_MESSAGE, error_response
from credential_service.routers import auth
from credential_service.services.account_service import AccountService
from credential_service.services.email_service import EmailService
from credential_service.services.password_hasher import PasswordHasher
from credential_service.services.repositories.account_store import AccountStore
from credential_service.services.session_issuer import SessionIssuer

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def build_services(config: Settings, engine: Engine) -> tuple[AccountService, SessionIssuer]:
    """Validate configuration and wire the account service around one engine.

    Raises:
        ConfigurationError: if required settings are missing.
    """
    validate_settings(config)

    store = AccountStore(create_session_factory(engine))
    session_issuer = SessionIssuer(
        config.jwt_secret_key,
        algorithm=config.jwt_algorithm,
        expire_minutes=config.access_token_expire_minutes,
    )
    email_service = EmailService(
        api_key=config.sendgrid_api_key if config.email_delivery_enabled else "",
        from_address=config.email_from_address,
        from_name=config.email_from_name,
        app_url=config.app_url,
        verification_path=config.verification_path,
    )
    account_service = AccountService(
        store=store,
        hasher=PasswordHasher(rounds=config.bcrypt_rounds),
        session_issuer=session_issuer,
        notify=email_service.send_verification_email,
        password_min_length=config.password_min_length,
        timeout_seconds=config.request_timeout_seconds,
    )
    return account_service, session_issuer


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build services before serving traffic; dispose the pool on shutdown."""
    config: Settings = app.state.settings
    owns_engine = app.state.engine is None
    engine = app.state.engine or create_db_engine(config)
    try:
        app.state.account_service, app.state.session_issuer = build_services(config, engine)
    except CredentialServiceError:
        logger.critical("Startup aborted: invalid configuration")
        if owns_engine:
            engine.dispose()
        raise

    logger.info("Credential service started")
    yield

    if owns_engine:
        engine.dispose()
    logger.info("Credential service stopped")


def _register_error_handlers(app: FastAPI) -> None:
    """Translate service failures into JSON error responses."""

    @app.exception_handler(CredentialServiceError)
    async def _handle_service_error(request: Request, exc: CredentialServiceError):
        if isinstance(exc, InternalServiceError):
            logger.error(
                f"Internal failure on {request.method} {request.url.path}: {exc!r}",
                exc_info=exc,
            )
        return error_response(exc)

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": INTERNAL_ERROR_MESSAGE})


def create_app(config: Settings | None = None, engine: Engine | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Settings to run with (defaults to the environment)
        engine: Existing engine to use instead of one built from config.database_url
    """
    config = config or settings

    app = FastAPI(
        title="Credential Service API",
        description="Account registration, email verification and session issuance",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.engine = engine

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"{request.method} {request.url.path} {response.status_code} {elapsed_ms:.1f}ms"
        )
        return response

    _register_error_handlers(app)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    app.include_router(auth.router, prefix="/api")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
