"""
API response models for Tradepost REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
separate from the dataclasses in auth/models.py, which own the internal
domain representation. Route handlers map between the two. Request models
live in auth/schemas.py because the controller validates against them too.

Every response, success or failure, uses the same envelope:

    {"statusCode": 200, "data": ..., "message": "...", "success": true, "code": null}

code is null on success and carries the machine-readable error code
(e.g. "session_mismatch") on failure.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import UserProfile


class _Out(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


class ApiResponse(_Out):
    status_code: int
    data: Any = None
    message: str
    success: bool
    code: Optional[str] = None

    @classmethod
    def ok(cls, status_code: int, data: Any, message: str) -> "ApiResponse":
        return cls(status_code=status_code, data=data, message=message, success=True)

    @classmethod
    def fail(cls, status_code: int, code: str, message: str) -> "ApiResponse":
        return cls(status_code=status_code, data=None, message=message, success=False, code=code)

    def body(self) -> dict:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


class UserProfileOut(_Out):
    """Public user shape. Has no password or refresh token field to leak."""

    id: int
    username: str
    email: str
    full_name: str
    avatar: str
    saved_content: list[str] = Field(default_factory=list)
    created_at: str
    updated_at: str

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "UserProfileOut":
        return cls(
            id=profile.id,
            username=profile.username,
            email=profile.email,
            full_name=profile.full_name,
            avatar=profile.avatar_url,
            saved_content=list(profile.saved_content),
            created_at=profile.created_at,
            updated_at=profile.updated_at,
        )


class TokenPairOut(_Out):
    access_token: str
    refresh_token: str


class LoginOut(_Out):
    user: UserProfileOut
    access_token: str
    refresh_token: str


class SavedContentOut(_Out):
    saved_content: list[str]


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
