"""
auth/dependencies.py -- FastAPI Depends() helpers: the per-request AuthGate.

The access token is looked for in priority order:
  1. "accessToken" cookie -- set by login/refresh for browser clients.
  2. Authorization: Bearer <token> header -- API clients and mobile apps.

get_current_user() verifies the token as an access token, loads the profile,
attaches it to request.state.user, and returns it. Each failure raises its
own Unauthorized subclass so the envelope code tells the client what to do:
  missing_token   -- nothing presented; log in.
  invalid_token   -- tampered, malformed, or a refresh token in the wrong slot.
  token_expired   -- call /users/refresh-token.
  user_not_found  -- the account behind a valid token is gone.

The gate is read-only. It never touches session state, so an access token
keeps working until its own TTL even after logout.

Layer rule: no imports from api/. auth/dependencies.py may import from
fastapi because this module is part of the dependency injection system.
"""

from __future__ import annotations

import asyncio

from fastapi import Request

from auth.controller import SessionController
from auth.errors import MissingToken, UserNotFound
from auth.models import UserProfile
from auth.tokens import ACCESS, ACCESS_COOKIE


def _extract_access_token(request: Request) -> str | None:
    token: str | None = request.cookies.get(ACCESS_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:].strip()
    return token or None


async def get_current_user(request: Request) -> UserProfile:
    """Require a valid access token. Raises an Unauthorized subclass otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: UserProfile = Depends(get_current_user)): ...
    """
    token = _extract_access_token(request)
    if token is None:
        raise MissingToken()

    issuer = request.app.state.token_issuer
    claims = issuer.verify(token, ACCESS)

    user = await asyncio.to_thread(request.app.state.user_store.find_by_id, claims.user_id)
    if user is None:
        raise UserNotFound()

    request.state.user = user
    return user


def get_controller(request: Request) -> SessionController:
    return request.app.state.controller
