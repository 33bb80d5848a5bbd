"""
api/routes/v1/users.py -- Account and session REST endpoints.

Routes:
  POST   /api/v1/users/register                       -- multipart form + avatar file; 201
  POST   /api/v1/users/login                          -- sets accessToken/refreshToken cookies
  POST   /api/v1/users/logout                         -- ends session, clears cookies (auth)
  POST   /api/v1/users/refresh-token                  -- rotates the pair, sets new cookies
  POST   /api/v1/users/change-password                -- (auth)
  GET    /api/v1/users/current-user                   -- (auth)
  PATCH  /api/v1/users/update-account                 -- fullName + email (auth)
  PATCH  /api/v1/users/avatar                         -- multipart avatar file (auth)
  POST   /api/v1/users/save-product-to-saved-content  -- (auth)
  DELETE /api/v1/users/remove-product                 -- (auth)
  GET    /api/v1/users/saved-products                 -- (auth)

Auth policy:
  register, login:  public.
  refresh-token:    no access token required -- the refresh token itself is
                    the credential, and the access token is usually expired
                    by the time a client calls this.
  everything else:  get_current_user (AuthGate).

Security:
  Login and refresh responses carry Cache-Control: no-store so tokens in the
  JSON body are never cached by intermediaries.
  Logout clears both cookies even though the access token stays valid until
  its TTL.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from api.models import ApiResponse, LoginOut, SavedContentOut, TokenPairOut, UserProfileOut
from auth.controller import SessionController
from auth.dependencies import get_controller, get_current_user
from auth.models import AvatarUpload, UserProfile
from auth.schemas import (
    ChangePasswordInput,
    LoginInput,
    RefreshInput,
    RegisterInput,
    SavedProductInput,
    UpdateAccountInput,
    parse_input,
)
from auth.tokens import REFRESH_COOKIE, clear_session_cookies, set_session_cookies

router = APIRouter(prefix="/users")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _respond(status_code: int, data, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ApiResponse.ok(status_code, data, message).body())


def _profile(profile: UserProfile) -> dict:
    return UserProfileOut.from_profile(profile).model_dump(by_alias=True)


async def _read_avatar(request: Request, avatar: UploadFile | None) -> AvatarUpload | None:
    """Read at most max_bytes + 1 so an oversize upload is rejected without buffering it all."""
    if avatar is None:
        return None
    limit = request.app.state.media.max_bytes + 1
    content = await avatar.read(limit)
    return AvatarUpload(
        filename=avatar.filename or "",
        content_type=avatar.content_type or "",
        content=content,
    )


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/register", status_code=201)
async def register(
    request: Request,
    username: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    full_name: Optional[str] = Form(None, alias="fullName"),
    password: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    controller: SessionController = Depends(get_controller),
) -> JSONResponse:
    """Create an account. Fields arrive as multipart form data alongside the avatar file."""
    payload = parse_input(
        RegisterInput,
        {"username": username, "email": email, "fullName": full_name, "password": password},
    )
    profile = await controller.register(payload, await _read_avatar(request, avatar))
    return _respond(201, _profile(profile), "User registered successfully")


@router.post("/login")
async def login(
    request: Request,
    body: LoginInput,
    controller: SessionController = Depends(get_controller),
) -> JSONResponse:
    """Verify credentials, start a session, and set both token cookies."""
    result = await controller.login(body)
    data = LoginOut(
        user=UserProfileOut.from_profile(result.user),
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
    ).model_dump(by_alias=True)
    resp = _respond(200, data, "User logged in successfully")
    set_session_cookies(resp, result.tokens, controller.issuer, request.app.state.settings)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/refresh-token")
async def refresh_token(
    request: Request,
    body: Optional[RefreshInput] = None,
    controller: SessionController = Depends(get_controller),
) -> JSONResponse:
    """Rotate the refresh token. The cookie wins over the body when both are present."""
    presented = request.cookies.get(REFRESH_COOKIE) or (body.refresh_token if body else None)
    pair = await controller.refresh_access_token(presented)
    data = TokenPairOut(access_token=pair.access_token, refresh_token=pair.refresh_token).model_dump(by_alias=True)
    resp = _respond(200, data, "Access token refreshed")
    set_session_cookies(resp, pair, controller.issuer, request.app.state.settings)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/logout")
async def logout(
    request: Request,
    current_user: UserProfile = Depends(get_current_user),
    controller: SessionController = Depends(get_controller),
) -> JSONResponse:
    """End the session server-side and clear both cookies."""
    await controller.logout(current_user)
    resp = _respond(200, {}, "User logged out")
    clear_session_cookies(resp, request.app.state.settings)
    return resp


@router.post("/change-password")
async def change_password(
    body: ChangePasswordInput,
    current_user: UserProfile = Depends(get_current_user),
    controller: SessionController = Depends(get_controller),
) -> JSONResponse:
    await controller.change_password(current_user, body)
    return _respond(200, {}, "Password changed successfully")


@router.get("/current-user")
async def current_user(
    current_user: UserProfile = Depends(get_current_user),
    controller: SessionController = Depends(get_controller),
) -> JSONResponse:
    profile = await controller.current_user(current_user)
    return _respond(200, _profile(profile), "Current user fetched successfully")


@router.patch("/update-account")
async def update_account(
    body: UpdateAccountInput,
    current_user: UserProfile = Depends(get_current_user),
    controller: SessionController = Depends(get_controller),
) -> JSONResponse:
    profile = await controller.update_account_details(current_user, body)
    return _respond(200, _profile(profile), "Account details updated successfully")


@router.patch("/avatar")
async def update_avatar(
    request: Request,
    avatar: Optional[UploadFile] = File(None),
    current_user: UserProfile = Depends(get_current_user),
    controller: SessionController = Depends(get_controller),
) -> JSONResponse:
    profile = await controller.update_avatar(current_user, await _read_avatar(request, avatar))
    return _respond(200, _profile(profile), "Avatar updated successfully")


# ---------------------------------------------------------------------------
# Saved products
# ---------------------------------------------------------------------------


@router.post("/save-product-to-saved-content")
async def save_product(
    body: SavedProductInput,
    current_user: UserProfile = Depends(get_current_user),
    controller: SessionController = Depends(get_controller),
) -> JSONResponse:
    saved = await controller.save_product(current_user, body.product_id)
    return _respond(200, SavedContentOut(saved_content=saved).model_dump(by_alias=True), "Product added to saved content")


@router.delete("/remove-product")
async def remove_product(
    body: SavedProductInput,
    current_user: UserProfile = Depends(get_current_user),
    controller: SessionController = Depends(get_controller),
) -> JSONResponse:
    saved = await controller.remove_product(current_user, body.product_id)
    return _respond(
        200, SavedContentOut(saved_content=saved).model_dump(by_alias=True), "Product removed from saved content"
    )


@router.get("/saved-products")
async def saved_products(
    current_user: UserProfile = Depends(get_current_user),
    controller: SessionController = Depends(get_controller),
) -> JSONResponse:
    saved = await controller.get_saved_products(current_user)
    return _respond(200, SavedContentOut(saved_content=saved).model_dump(by_alias=True), "Saved content retrieved")
