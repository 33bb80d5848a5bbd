"""
auth/tokens.py -- Access/refresh JWT issuance and verification, cookie helpers.

Security design decisions:
  JWT: python-jose with HS256. Access and refresh tokens are signed with two
       different secrets and carry two different TTLs (minutes vs days). A
       leaked access secret cannot mint refresh tokens and vice versa. Each
       token also carries a "type" claim, so even with a misconfigured shared
       secret one kind is never accepted as the other.

  jti: every token gets a random id. Two pairs minted for the same user in
       the same second are still different strings, which rotation relies on.

  Errors: verify() distinguishes TokenExpired (valid signature, past exp)
       from InvalidToken (anything else). Callers react differently: an
       expired refresh token means "log in again", an invalid one is treated
       as tampering.

  Config: TokenIssuer takes an explicit TokenConfig instead of reading
       settings at import time, so tests can build issuers with their own
       secrets and TTLs.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import InvalidToken, TokenExpired
from auth.models import TokenClaims, TokenPair
from core.config import Settings

ACCESS = "access"
REFRESH = "refresh"

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


@dataclass(frozen=True)
class TokenConfig:
    access_secret: str
    refresh_secret: str
    access_ttl_seconds: int
    refresh_ttl_seconds: int
    algorithm: str = "HS256"

    def __post_init__(self) -> None:
        if secrets.compare_digest(self.access_secret, self.refresh_secret):
            raise ValueError("access and refresh secrets must differ")

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenConfig:
        return cls(
            access_secret=settings.access_token_secret,
            refresh_secret=settings.refresh_token_secret,
            access_ttl_seconds=settings.access_token_expire_seconds,
            refresh_ttl_seconds=settings.refresh_token_expire_seconds,
        )


class TokenIssuer:
    """Creates and verifies signed access/refresh tokens.

    Owns both signing secrets exclusively. Nothing else in the codebase sees
    them after construction.
    """

    def __init__(self, config: TokenConfig) -> None:
        self._config = config

    @property
    def access_ttl_seconds(self) -> int:
        return self._config.access_ttl_seconds

    @property
    def refresh_ttl_seconds(self) -> int:
        return self._config.refresh_ttl_seconds

    def issue(self, user_id: int) -> TokenPair:
        """Mint a fresh access/refresh pair for user_id."""
        now = datetime.now(timezone.utc)
        return TokenPair(
            access_token=self._encode(user_id, ACCESS, now),
            refresh_token=self._encode(user_id, REFRESH, now),
        )

    def verify(self, token: str, kind: str) -> TokenClaims:
        """Decode and verify token as the given kind.

        Raises TokenExpired if the signature checks out but exp has passed,
        InvalidToken for every other failure.
        """
        secret = self._secret_for(kind)
        try:
            payload = jwt.decode(token, secret, algorithms=[self._config.algorithm])
        except ExpiredSignatureError as exc:
            raise TokenExpired() from exc
        except JWTError as exc:
            raise InvalidToken() from exc

        if payload.get("type") != kind:
            raise InvalidToken()
        try:
            return TokenClaims(
                user_id=int(payload["sub"]),
                kind=kind,
                issued_at=int(payload["iat"]),
                expires_at=int(payload["exp"]),
                jti=str(payload["jti"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidToken() from exc

    def _encode(self, user_id: int, kind: str, now: datetime) -> str:
        ttl = self._config.access_ttl_seconds if kind == ACCESS else self._config.refresh_ttl_seconds
        payload = {
            "sub": str(user_id),
            "type": kind,
            "iat": now,
            "exp": now + timedelta(seconds=ttl),
            "jti": secrets.token_hex(16),
        }
        return jwt.encode(payload, self._secret_for(kind), algorithm=self._config.algorithm)

    def _secret_for(self, kind: str) -> str:
        if kind == ACCESS:
            return self._config.access_secret
        if kind == REFRESH:
            return self._config.refresh_secret
        raise ValueError(f"unknown token kind: {kind!r}")


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookies(response, pair: TokenPair, issuer: TokenIssuer, settings: Settings) -> None:
    """Write both tokens as httpOnly cookies on the response.

    httponly=True: JS cannot read the cookies (XSS mitigation).
    secure: only sent over HTTPS when SECURE_COOKIES=true (the default).
    max_age: matches each token's own TTL so cookie and token expire together.
    """
    response.set_cookie(
        ACCESS_COOKIE,
        value=pair.access_token,
        httponly=True,
        secure=settings.secure_cookies,
        samesite=settings.cookie_samesite,
        max_age=issuer.access_ttl_seconds,
    )
    response.set_cookie(
        REFRESH_COOKIE,
        value=pair.refresh_token,
        httponly=True,
        secure=settings.secure_cookies,
        samesite=settings.cookie_samesite,
        max_age=issuer.refresh_ttl_seconds,
    )


def clear_session_cookies(response, settings: Settings) -> None:
    """Delete both cookies. Attributes must match the ones used to set them."""
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            name,
            httponly=True,
            secure=settings.secure_cookies,
            samesite=settings.cookie_samesite,
        )
