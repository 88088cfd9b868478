"""
Middleware chain for Lockbox
Handles request logging, CORS, security headers and the authentication gate
"""
from typing import Callable
from fastapi import Request, Response
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, RedirectResponse

from lockbox.auth.base import Principal
from lockbox.core.cookies import SESSION_COOKIE, clear_session_cookie
from lockbox.core.errors import AuthError
from lockbox.core.logger import get_logger

logger = get_logger(__name__)


# Security headers configuration
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    "Content-Security-Policy": (
        "default-src 'self'; "
        "script-src 'self'; "
        "style-src 'self'; "
        "img-src 'self' data:; "
        "connect-src 'self'; "
        "frame-ancestors 'none';"
    ),
}

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

# Routes reachable without a session
PUBLIC_PATHS = {"/login", "/api/auth/login", "/api/auth/logout"}
PUBLIC_PREFIXES = ("/static/",)

LOGIN_PATH = "/login"


def is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES)


def wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "")


async def resolve_principal(request: Request) -> Principal | None:
    """
    Validate the session cookie, if any.

    Raises:
        AuthError: If a cookie is present but does not validate
    """
    artifact = request.cookies.get(SESSION_COOKIE)
    if not artifact:
        return None
    authenticator = request.app.state.authenticator
    # Stateful validation takes the session table's read lock
    return await run_in_threadpool(authenticator.validate, artifact)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log requests for audit purposes"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        client_ip = request.client.host if request.client else "unknown"
        logger.info(f"{request.method} {request.url.path} - IP: {client_ip}")

        response = await call_next(request)

        logger.info(f"{request.method} {request.url.path} - Status: {response.status_code}")
        return response


class CORSPreflightMiddleware(BaseHTTPMiddleware):
    """
    Attach CORS headers to every response.

    OPTIONS requests are answered here with 204 and never reach the
    authentication gate.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.method == "OPTIONS":
            response = Response(status_code=204)
        else:
            response = await call_next(request)

        for header, value in CORS_HEADERS.items():
            response.headers[header] = value
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        for header, value in SECURITY_HEADERS.items():
            response.headers[header] = value

        return response


class AuthGateMiddleware(BaseHTTPMiddleware):
    """
    Require a valid session for every route outside the public allow-list.

    Browsers (Accept: text/html) are redirected to the login page, API
    clients get 401. A cookie that fails validation is cleared.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if is_public_path(request.url.path):
            return await call_next(request)

        try:
            principal = await resolve_principal(request)
        except AuthError as e:
            logger.warning(
                f"Rejected session for {request.method} {request.url.path}: {e.kind}"
            )
            return self._reject(request, "Invalid or expired session", clear_cookie=True)

        if principal is None:
            return self._reject(request, "Authentication required", clear_cookie=False)

        request.state.principal = principal
        return await call_next(request)

    def _reject(self, request: Request, message: str, clear_cookie: bool) -> Response:
        if wants_html(request):
            response = RedirectResponse(url=LOGIN_PATH, status_code=303)
        else:
            response = JSONResponse({"status": "error", "message": message}, status_code=401)

        if clear_cookie:
            clear_session_cookie(response)
        return response
