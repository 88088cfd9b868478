from starlette.requests import Request
from starlette.responses import Response

SESSION_COOKIE = "lockbox_session"


def cookie_should_be_secure(request: Request, force_secure: bool = False) -> bool:
    """Mark the cookie Secure only when served over TLS (or when forced by settings)."""
    return force_secure or request.url.scheme == "https"


def set_session_cookie(response: Response, artifact: str, max_age: int, secure: bool) -> None:
    # HttpOnly prevents JavaScript access (XSS protection)
    # SameSite=Strict prevents CSRF attacks
    response.set_cookie(
        key=SESSION_COOKIE,
        value=artifact,
        httponly=True,
        secure=secure,
        samesite="strict",
        max_age=max_age,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=SESSION_COOKIE,
        path="/",
        httponly=True,
        samesite="strict",
    )
