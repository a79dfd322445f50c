"""Session and authorization helpers.

Provides:
- JWT creation and verification (PyJWT) for the session cookie. Tokens are
  minted once the external identity provider has signed the user in.
- FastAPI dependency for extracting the current user
- The mutation authorization collaborator handed to relationship routes
"""

from __future__ import annotations

import os
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Protocol

import jwt
from fastapi import HTTPException, Request, Response

# ---------------------------------------------------------------------------
# JWT helpers
# ---------------------------------------------------------------------------

_JWT_SECRET_ENV = "JWT_SECRET"
_JWT_ALGORITHM = "HS256"
_JWT_LIFETIME_HOURS = 24
_JWT_COOKIE_NAME = "familytree_session"
_JWT_REFRESH_FRACTION = 0.5  # issue new token when >50 % of lifetime has passed


def _get_jwt_secret() -> str:
    secret = os.environ.get(_JWT_SECRET_ENV, "")
    if not secret:
        # Development fallback; set JWT_SECRET in production.
        secret = "dev-secret-change-me"
    return secret


def create_jwt(user_id: str, display_name: str = "", email: str = "") -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "name": display_name,
        "email": email,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=_JWT_LIFETIME_HOURS)).timestamp()),
    }
    return jwt.encode(payload, _get_jwt_secret(), algorithm=_JWT_ALGORITHM)


def decode_jwt(token: str) -> dict[str, Any]:
    """Decode and verify a JWT.  Raises ``jwt.PyJWTError`` on failure."""
    return jwt.decode(token, _get_jwt_secret(), algorithms=[_JWT_ALGORITHM])


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=_JWT_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        max_age=_JWT_LIFETIME_HOURS * 3600,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=_JWT_COOKIE_NAME, path="/")


def _should_refresh(claims: dict[str, Any]) -> bool:
    """Return True when >50 % of the token lifetime has elapsed."""
    iat = claims.get("iat", 0)
    exp = claims.get("exp", 0)
    if not iat or not exp:
        return False
    lifetime = exp - iat
    if lifetime <= 0:
        return False
    elapsed = time.time() - iat
    return elapsed > (lifetime * _JWT_REFRESH_FRACTION)


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------


def get_current_user(request: Request) -> dict[str, Any]:
    """Extract the authenticated user from ``request.state`` (set by middleware).

    Raises 401 if not authenticated.
    """
    user = getattr(request.state, "user", None)
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


# ---------------------------------------------------------------------------
# Mutation authorization
# ---------------------------------------------------------------------------


class MutationAuthorizer(Protocol):
    def authorize(self, user: dict[str, Any], person_ids: Iterable[str]) -> None:
        """Raise ``HTTPException(403)`` if *user* may not touch *person_ids*."""


class AuthenticatedUserAuthorizer:
    """Any signed-in user may edit any person; there is no per-tree ownership."""

    def authorize(self, user: dict[str, Any], person_ids: Iterable[str]) -> None:
        if not user or not user.get("id"):
            raise HTTPException(status_code=401, detail="Not authenticated")


_default_authorizer = AuthenticatedUserAuthorizer()


def authorize_mutation(request: Request, *person_ids: str) -> dict[str, Any]:
    """Run the app's configured authorizer and return the current user.

    The authorizer lives on ``app.state.authorizer`` so deployments can inject
    an ACL check without touching the relationship engine.
    """
    user = get_current_user(request)
    app = getattr(request, "app", None)
    authorizer = getattr(getattr(app, "state", None), "authorizer", None) or _default_authorizer
    authorizer.authorize(user, [pid for pid in person_ids if pid])
    return user
