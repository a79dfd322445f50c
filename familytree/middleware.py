"""Request-level authentication middleware.

Reads the session JWT from the session cookie (browser clients) or from an
``Authorization: Bearer`` header (API clients), validates it, and populates
``request.state.user`` with a dict holding ``id``, ``name`` and ``email``.

Unauthenticated requests to protected paths get a 401. Cookie-authenticated
state-changing requests must also pass the double-submit CSRF check.
"""

from __future__ import annotations

import re
import secrets

import jwt as pyjwt
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from .auth import (
    _JWT_COOKIE_NAME,
    _should_refresh,
    create_jwt,
    decode_jwt,
    set_session_cookie,
)

# Paths that do NOT require authentication.
_PUBLIC_PATHS: list[re.Pattern[str]] = [
    re.compile(r"^/health$"),
    re.compile(r"^/auth/logout$"),
    re.compile(r"^/docs$"),
    re.compile(r"^/openapi\.json$"),
]

# CSRF settings.
_CSRF_COOKIE_NAME = "familytree_csrf"
_CSRF_HEADER_NAME = "x-csrf-token"
_CSRF_TOKEN_LENGTH = 32
_CSRF_SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def _is_public(path: str) -> bool:
    for pat in _PUBLIC_PATHS:
        if pat.search(path):
            return True
    return False


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return None


def _csrf_ok(request: Request) -> bool:
    csrf_cookie = request.cookies.get(_CSRF_COOKIE_NAME, "")
    csrf_header = request.headers.get(_CSRF_HEADER_NAME, "")
    return bool(csrf_cookie) and bool(csrf_header) and secrets.compare_digest(csrf_cookie, csrf_header)


def _ensure_csrf_cookie(request: Request, response: Response) -> None:
    """Set the CSRF cookie if not already present so JS can read it."""
    if request.cookies.get(_CSRF_COOKIE_NAME):
        return
    token = secrets.token_hex(_CSRF_TOKEN_LENGTH)
    response.set_cookie(
        key=_CSRF_COOKIE_NAME,
        value=token,
        httponly=False,  # JS must be able to read it.
        samesite="lax",
        path="/",
    )


class AuthMiddleware(BaseHTTPMiddleware):
    """Starlette middleware that enforces JWT-based authentication and CSRF."""

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path

        # Always allow public endpoints.
        if _is_public(path):
            response = await call_next(request)
            _ensure_csrf_cookie(request, response)
            return response

        bearer = _bearer_token(request)
        token = bearer or request.cookies.get(_JWT_COOKIE_NAME)
        if not token:
            return JSONResponse({"detail": "Not authenticated"}, status_code=401)

        try:
            claims = decode_jwt(token)
        except pyjwt.ExpiredSignatureError:
            return JSONResponse({"detail": "Session expired"}, status_code=401)
        except pyjwt.PyJWTError:
            return JSONResponse({"detail": "Invalid session"}, status_code=401)

        # Bearer clients do not carry cookies, so CSRF only applies to the cookie session.
        if bearer is None and request.method not in _CSRF_SAFE_METHODS and not _csrf_ok(request):
            return JSONResponse({"detail": "CSRF token mismatch"}, status_code=403)

        request.state.user = {
            "id": str(claims["sub"]),
            "name": claims.get("name", ""),
            "email": claims.get("email", ""),
        }

        response = await call_next(request)

        if bearer is None:
            _ensure_csrf_cookie(request, response)

            # Sliding window refresh: issue a new token when >50% of lifetime is gone.
            if _should_refresh(claims):
                new_token = create_jwt(
                    user_id=str(claims["sub"]),
                    display_name=claims.get("name", ""),
                    email=claims.get("email", ""),
                )
                set_session_cookie(response, new_token)

        return response
