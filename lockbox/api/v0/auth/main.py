import os

from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from lockbox.api.deps import get_authenticator, get_settings
from lockbox.api.v0.auth.models import LoginRequest, StatusMessageResponse
from lockbox.auth.base import AuthStrategy
from lockbox.core.config import Settings
from lockbox.core.cookies import (
    SESSION_COOKIE,
    clear_session_cookie,
    cookie_should_be_secure,
    set_session_cookie,
)
from lockbox.core.errors import AuthError
from lockbox.core.logger import get_logger
from lockbox.core.rate_limit import limiter

# Initialize logger
logger = get_logger(__name__)

router = APIRouter(prefix="/auth")


def login_rate_limit() -> str:
    return os.getenv("LOCKBOX_LOGIN_RATE_LIMIT", "10/minute")


async def read_login_request(request: Request) -> LoginRequest:
    """Accept login fields as JSON or as a form submission."""
    try:
        if request.headers.get("content-type", "").startswith("application/json"):
            payload = await request.json()
            if not isinstance(payload, dict):
                raise ValueError("JSON body must be an object")
        else:
            payload = dict(await request.form())
        return LoginRequest.model_validate(payload)
    except (ValueError, ValidationError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid request body",
        )


@router.post("/login")
@limiter.limit(login_rate_limit)
async def login(
    request: Request,
    authenticator: AuthStrategy = Depends(get_authenticator),
    settings: Settings = Depends(get_settings),
):
    """
    Exchange the access token (stateless) or username/password (stateful)
    for a session cookie.

    Rate limited per client IP.
    """
    fields = (await read_login_request(request)).present_fields()

    missing = [name for name in authenticator.required_fields if name not in fields]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Missing field: {', '.join(missing)}",
        )

    try:
        # bcrypt checks are slow; keep them off the event loop
        artifact = await run_in_threadpool(authenticator.login, fields)
    except AuthError as e:
        logger.warning(f"Failed login attempt ({authenticator.name}): {e.kind}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    response = JSONResponse(
        StatusMessageResponse(message="Login successful").model_dump()
    )
    set_session_cookie(
        response,
        artifact,
        max_age=authenticator.session_seconds,
        secure=cookie_should_be_secure(request, settings.cookie_secure),
    )

    logger.info(f"Successful login ({authenticator.name}) for user: {fields.get('username', '-')}")
    return response


@router.post("/logout", response_model=StatusMessageResponse)
async def logout(
    request: Request,
    authenticator: AuthStrategy = Depends(get_authenticator),
):
    """
    Revoke the current session (if the strategy keeps server state) and
    clear the HttpOnly cookie.
    """
    artifact = request.cookies.get(SESSION_COOKIE)
    if artifact:
        await run_in_threadpool(authenticator.revoke, artifact)

    response = JSONResponse(
        StatusMessageResponse(message="Logout successful").model_dump()
    )
    clear_session_cookie(response)
    logger.info("User logged out")
    return response
