"""
auth/sessions.py -- Server-side session state: the one live refresh token per user.

A session is the binding of a user to the refresh token currently on file in
users.refresh_token_hash. Only a SHA-256 digest of the token is stored, so a
read of the users table does not yield usable tokens.

Rotation is a single conditional UPDATE:

    UPDATE users SET refresh_token_hash = :new
    WHERE id = :user_id AND refresh_token_hash = :presented

The compare and the replace happen in one statement, so the database
serializes concurrent refreshes for the same user. Whichever UPDATE commits
first sees its WHERE clause match; the other re-evaluates against the new
digest, matches zero rows, and gets SessionMismatch. There is never a
separate read followed by a write.

SHA-256 rather than bcrypt: refresh tokens are long random JWTs, not
low-entropy secrets, and the digest must be deterministic for the WHERE
clause to work.
"""

from __future__ import annotations

import hashlib
import logging

from sqlalchemy import select

from auth.errors import SessionMismatch
from auth.models import TokenPair
from auth.store import UserStore, users
from auth.tokens import TokenIssuer

logger = logging.getLogger("tradepost.auth.sessions")


def fingerprint(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class SessionStore:
    """Persists, rotates and invalidates each user's current refresh token."""

    def __init__(self, user_store: UserStore, issuer: TokenIssuer) -> None:
        self._engine = user_store.engine
        self._issuer = issuer

    def persist(self, user_id: int, refresh_token: str) -> None:
        """Overwrite the user's current refresh token unconditionally (login)."""
        with self._engine.begin() as conn:
            conn.execute(
                users.update().where(users.c.id == user_id).values(refresh_token_hash=fingerprint(refresh_token))
            )
        logger.info("Session started for user_id=%s", user_id)

    def rotate(self, user_id: int, presented_token: str) -> TokenPair:
        """Atomically swap presented_token for a freshly issued pair.

        Raises SessionMismatch if presented_token is not the one on file:
        already rotated, replayed, lost a concurrent race, or logged out.
        """
        pair = self._issuer.issue(user_id)
        with self._engine.begin() as conn:
            result = conn.execute(
                users.update()
                .where((users.c.id == user_id) & (users.c.refresh_token_hash == fingerprint(presented_token)))
                .values(refresh_token_hash=fingerprint(pair.refresh_token))
            )
        if result.rowcount != 1:
            logger.warning("Refresh token mismatch for user_id=%s", user_id)
            raise SessionMismatch()
        logger.info("Session rotated for user_id=%s", user_id)
        return pair

    def invalidate(self, user_id: int) -> None:
        """Clear the user's refresh token. A no-op when there is no session."""
        with self._engine.begin() as conn:
            conn.execute(users.update().where(users.c.id == user_id).values(refresh_token_hash=None))
        logger.info("Session ended for user_id=%s", user_id)

    def has_session(self, user_id: int) -> bool:
        with self._engine.connect() as conn:
            digest = conn.execute(
                select(users.c.refresh_token_hash).where(users.c.id == user_id)
            ).scalar()
        return digest is not None
