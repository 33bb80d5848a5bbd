"""
auth/controller.py -- SessionController: the account and session state machine.

States per user:
  Anonymous                -- no refresh token on file.
  Authenticated(n)         -- refresh token generation n on file.
  Anonymous (terminal)     -- after logout or a detected replay.

Transitions:
  login                    Anonymous        -> Authenticated(1)
  refresh_access_token     Authenticated(n) -> Authenticated(n + 1)
  logout                   Authenticated(n) -> Anonymous

Every other operation here (register, change_password, account details,
avatar, saved products) acts on the user record and leaves the session alone,
except change_password when REVOKE_SESSIONS_ON_PASSWORD_CHANGE is set.

Concurrency: methods are coroutines. Blocking store calls go through
asyncio.to_thread; bcrypt goes through the bounded pool in auth/passwords.py.
Once a store call is issued it runs to completion even if the client goes
away.

Errors: every failure is an ApiError subclass from auth/errors.py. Anything
else escaping from a collaborator is a bug and is turned into a logged 500
by the api/ exception handler.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from auth.errors import BadCredentials, Conflict, MissingToken, NotFound, ValidationError
from auth.models import AvatarUpload, TokenPair, UserProfile
from auth.passwords import hash_password_async, verify_password_async
from auth.schemas import ChangePasswordInput, LoginInput, RegisterInput, UpdateAccountInput
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import REFRESH, TokenIssuer
from core.media import AvatarStore, MediaError

logger = logging.getLogger("tradepost.auth.controller")


@dataclass(frozen=True)
class LoginResult:
    user: UserProfile
    tokens: TokenPair


class SessionController:
    def __init__(
        self,
        users: UserStore,
        sessions: SessionStore,
        issuer: TokenIssuer,
        media: AvatarStore,
        revoke_sessions_on_password_change: bool = False,
    ) -> None:
        self.users = users
        self.sessions = sessions
        self.issuer = issuer
        self.media = media
        self.revoke_sessions_on_password_change = revoke_sessions_on_password_change

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    async def register(self, payload: RegisterInput, avatar: AvatarUpload | None) -> UserProfile:
        """Create an account. The password is hashed here, once.

        Order: uniqueness, then avatar presence, then upload, then hash and
        insert. The avatar is not uploaded for a registration that is going
        to be rejected anyway.
        """
        taken = await asyncio.to_thread(self.users.username_or_email_taken, payload.username, payload.email)
        if taken:
            raise Conflict()
        if avatar is None or not avatar.content:
            raise ValidationError("Avatar file is required.")

        avatar_url = await self._upload_avatar(avatar)
        password_hash = await hash_password_async(payload.password)
        profile = await asyncio.to_thread(
            self.users.create_user,
            payload.username,
            payload.email,
            payload.full_name,
            avatar_url,
            password_hash,
        )
        logger.info("Registered user_id=%s", profile.id)
        return profile

    async def login(self, payload: LoginInput) -> LoginResult:
        user = await asyncio.to_thread(self.users.find_by_username_or_email, payload.username, payload.email)
        if user is None:
            raise NotFound()
        if not await verify_password_async(payload.password, user.password_hash):
            logger.info("Failed login for user_id=%s", user.id)
            raise BadCredentials()

        pair = self.issuer.issue(user.id)
        await asyncio.to_thread(self.sessions.persist, user.id, pair.refresh_token)
        profile = await asyncio.to_thread(self.users.find_by_id, user.id)
        if profile is None:
            raise NotFound()
        return LoginResult(user=profile, tokens=pair)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def refresh_access_token(self, refresh_token: str | None) -> TokenPair:
        """Exchange the current refresh token for a new pair.

        Raises MissingToken, InvalidToken, TokenExpired or SessionMismatch.
        All four are Unauthorized; the client must log in again.
        """
        if not refresh_token:
            raise MissingToken("Refresh token is missing.")
        claims = self.issuer.verify(refresh_token, REFRESH)
        return await asyncio.to_thread(self.sessions.rotate, claims.user_id, refresh_token)

    async def logout(self, user: UserProfile) -> None:
        await asyncio.to_thread(self.sessions.invalidate, user.id)

    async def change_password(self, user: UserProfile, payload: ChangePasswordInput) -> None:
        if payload.new_password != payload.confirm_password:
            raise ValidationError("Password and confirm password don't match.")

        record = await asyncio.to_thread(self.users.get_credentials, user.id)
        if record is None:
            raise NotFound()
        if not await verify_password_async(payload.old_password, record.password_hash):
            raise BadCredentials("Invalid old password.")

        new_hash = await hash_password_async(payload.new_password)
        await asyncio.to_thread(
            self.users.update_password_hash,
            user.id,
            new_hash,
            self.revoke_sessions_on_password_change,
        )
        logger.info(
            "Password changed for user_id=%s (session revoked=%s)",
            user.id,
            self.revoke_sessions_on_password_change,
        )

    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------

    async def current_user(self, user: UserProfile) -> UserProfile:
        return user

    async def update_account_details(self, user: UserProfile, payload: UpdateAccountInput) -> UserProfile:
        profile = await asyncio.to_thread(self.users.update_account, user.id, payload.full_name, payload.email)
        if profile is None:
            raise NotFound()
        return profile

    async def update_avatar(self, user: UserProfile, avatar: AvatarUpload | None) -> UserProfile:
        if avatar is None or not avatar.content:
            raise ValidationError("Avatar file is missing.")
        avatar_url = await self._upload_avatar(avatar)
        profile = await asyncio.to_thread(self.users.update_avatar, user.id, avatar_url)
        if profile is None:
            raise NotFound()
        return profile

    # ------------------------------------------------------------------
    # Saved products
    # ------------------------------------------------------------------

    async def save_product(self, user: UserProfile, product_id: str) -> list[str]:
        added = await asyncio.to_thread(self.users.add_saved_product, user.id, product_id)
        if not added:
            raise ValidationError("Product is already in saved content.")
        return await asyncio.to_thread(self.users.list_saved_products, user.id)

    async def remove_product(self, user: UserProfile, product_id: str) -> list[str]:
        removed = await asyncio.to_thread(self.users.remove_saved_product, user.id, product_id)
        if not removed:
            raise ValidationError("Product is not in saved content.")
        return await asyncio.to_thread(self.users.list_saved_products, user.id)

    async def get_saved_products(self, user: UserProfile) -> list[str]:
        return await asyncio.to_thread(self.users.list_saved_products, user.id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _upload_avatar(self, avatar: AvatarUpload) -> str:
        try:
            return await asyncio.to_thread(self.media.save, avatar.content_type, avatar.content)
        except MediaError as exc:
            raise ValidationError(str(exc)) from exc
