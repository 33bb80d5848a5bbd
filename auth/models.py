"""
auth/models.py -- Domain dataclasses for account and session entities.

Pattern: Data class (pure data container, zero logic). Stores and the
controller do the work; routes map these onto API response models.

Two user shapes exist on purpose:
  User        -- internal record including password_hash and
                 refresh_token_hash. Never leaves auth/.
  UserProfile -- public projection. The only user shape returned to api/.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class User:
    """Full user record as stored.

    refresh_token_hash is the SHA-256 hex digest of the one refresh token
    currently accepted for this user, or None when no session is active.
    """

    username: str
    email: str
    full_name: str
    password_hash: str
    avatar_url: str
    id: int | None = None
    refresh_token_hash: str | None = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""


@dataclass
class UserProfile:
    """User as seen by callers outside the auth subsystem."""

    id: int
    username: str
    email: str
    full_name: str
    avatar_url: str
    saved_content: list[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""


@dataclass(frozen=True)
class TokenPair:
    """Transient access/refresh pair. Never persisted as-is."""

    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    kind: str  # "access" | "refresh"
    issued_at: int  # epoch seconds
    expires_at: int
    jti: str


@dataclass(frozen=True)
class AvatarUpload:
    """Raw avatar file as received from the client, before hosting."""

    filename: str
    content_type: str
    content: bytes
