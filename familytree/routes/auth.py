"""Auth routes: current-user info and logout.

Sign-in itself happens at the identity provider; this service only consumes
the resulting session token.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request, Response

from ..auth import clear_session_cookie, get_current_user

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me")
def me(request: Request) -> dict[str, Any]:
    user = get_current_user(request)
    return {"id": user["id"], "name": user.get("name", ""), "email": user.get("email", "")}


@router.post("/logout")
def logout(response: Response) -> dict[str, Any]:
    clear_session_cookie(response)
    return {"ok": True}
