"""
Lockbox - authenticated object storage gateway
Main FastAPI application with frontend serving
"""
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from slowapi.errors import RateLimitExceeded
from sqlalchemy.engine import Engine
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from lockbox.api.router import router as api_router
from lockbox.auth.credentials import CredentialStore
from lockbox.auth.strategy import build_authenticator
from lockbox.auth.sweeper import SessionSweeper
from lockbox.core.config import Settings
from lockbox.core.db.engine import create_db_engine
from lockbox.core.errors import AuthError, BackendError
from lockbox.core.logger import configure_app_logging, get_logger
from lockbox.core.middleware import (
    AuthGateMiddleware,
    CORSPreflightMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    resolve_principal,
)
from lockbox.core.rate_limit import limiter
from lockbox.storage.backend import ObjectBackend
from lockbox.storage.gateway import ObjectGateway
from lockbox.storage.local import LocalObjectBackend
from lockbox.storage.memory import MemoryObjectBackend

# Get logger for this module
logger = get_logger(__name__)

# Base directory for templates and static files
BASE_DIR = Path(__file__).resolve().parent

# Templates
templates = Jinja2Templates(directory=BASE_DIR / "frontend" / "templates")


def build_backend(settings: Settings) -> ObjectBackend:
    if settings.backend == "memory":
        return MemoryObjectBackend()
    return LocalObjectBackend(settings.storage_path)


def create_app(
    settings: Settings | None = None,
    backend: ObjectBackend | None = None,
    engine: Engine | None = None,
    bcrypt_rounds: int = 12,
) -> FastAPI:
    """
    Build the application.

    Nothing touches the database or backend until startup; a credential
    store that cannot be loaded aborts startup with ConfigurationError.
    """
    settings = settings or Settings.from_env()
    credentials = CredentialStore(engine or create_db_engine(settings.db_url), bcrypt_rounds=bcrypt_rounds)
    authenticator = build_authenticator(settings, credentials, bcrypt_rounds=bcrypt_rounds)
    gateway = ObjectGateway(
        backend or build_backend(settings),
        max_upload_bytes=settings.max_upload_bytes,
        timeout=settings.backend_timeout,
    )
    sweeper = SessionSweeper(authenticator, settings.sweep_interval)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await run_in_threadpool(credentials.load)
        logger.info(f"Credential store loaded (auth strategy: {authenticator.name})")

        try:
            backend_status = await run_in_threadpool(gateway.status)
            logger.info(
                f"Object backend status - {backend_status.backend}: "
                f"{backend_status.objects} objects, {backend_status.size} bytes"
            )
        except BackendError as e:
            logger.warning(f"Object backend status unavailable: {e}")

        await sweeper.start()
        try:
            yield
        finally:
            await sweeper.stop()
            authenticator.close()
            gateway.close()
            logger.info("Lockbox shutdown completed")

    app = FastAPI(title="Lockbox", debug=settings.debug, lifespan=lifespan)
    app.state.settings = settings
    app.state.credentials = credentials
    app.state.authenticator = authenticator
    app.state.gateway = gateway
    app.state.sweeper = sweeper

    # The limiter is process-wide; main_app() applies rate_limit_enabled once
    app.state.limiter = limiter

    # Last added runs first: logging -> CORS -> security headers -> auth gate
    app.add_middleware(AuthGateMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(CORSPreflightMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    _register_exception_handlers(app)

    app.mount("/static", StaticFiles(directory=BASE_DIR / "frontend" / "static"), name="static")
    app.include_router(api_router)
    _register_pages(app)

    logger.info("Lockbox application initialized")
    return app


def _error_body(message: str) -> dict:
    return {"status": "error", "message": message}


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            _error_body(str(exc.detail)),
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        fields = sorted({str(err["loc"][-1]) for err in exc.errors() if err.get("loc")})
        message = f"Invalid or missing field: {', '.join(fields)}" if fields else "Invalid request"
        return JSONResponse(_error_body(message), status_code=400)

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning(f"Rate limit exceeded for {request.method} {request.url.path}")
        return JSONResponse(_error_body("Too many requests"), status_code=429)


def _register_pages(app: FastAPI) -> None:
    @app.get("/login", response_class=HTMLResponse)
    async def login_page(request: Request):
        """Login page"""
        try:
            principal = await resolve_principal(request)
        except AuthError:
            principal = None

        if principal:
            return RedirectResponse(url="/", status_code=302)

        authenticator = request.app.state.authenticator
        return templates.TemplateResponse(
            request,
            "login.html",
            {"fields": authenticator.required_fields},
        )

    @app.get("/", response_class=HTMLResponse)
    def index_page(request: Request):
        """Object listing with upload form"""
        gateway: ObjectGateway = request.app.state.gateway
        error = None
        try:
            objects = gateway.list()
        except BackendError:
            objects, error = [], "Failed to list objects"

        objects.sort(key=lambda ref: ref.created_at, reverse=True)
        return templates.TemplateResponse(
            request,
            "index.html",
            {
                "objects": objects,
                "error": error,
                "principal": request.state.principal,
            },
        )


def main_app() -> FastAPI:
    """Application factory for `uvicorn --factory lockbox.app:main_app`."""
    settings = Settings.from_env()
    configure_app_logging(level=settings.log_level, log_to_file=settings.log_to_file)
    limiter.enabled = settings.rate_limit_enabled
    return create_app(settings)
