"""
auth/schemas.py -- Validated input models, one per operation.

Every request payload is parsed into one of these before any store access.
A payload that fails validation never reaches the controller: FastAPI's
RequestValidationError (JSON bodies) and parse_input() (form bodies) both end
up as a 400 ValidationError in the response envelope.

Field names are snake_case in Python and camelCase on the wire
(fullName, refreshToken, oldPassword, productId ...). Both spellings are
accepted on input.

Passwords are capped at 72 bytes (not characters): bcrypt ignores or rejects
anything past that, and a silent truncation would let two different
passwords share one hash.
"""

from __future__ import annotations

from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from auth.errors import ValidationError

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
_USERNAME_PATTERN = r"^[A-Za-z0-9_.-]+$"
_BCRYPT_MAX_BYTES = 72


class _Input(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > _BCRYPT_MAX_BYTES:
        raise ValueError(f"must be at most {_BCRYPT_MAX_BYTES} bytes")
    return value


_NewPassword = Annotated[str, Field(min_length=1), AfterValidator(_check_password_bytes)]


class RegisterInput(_Input):
    username: str = Field(min_length=1, max_length=64, pattern=_USERNAME_PATTERN)
    email: str = Field(min_length=3, max_length=255, pattern=_EMAIL_PATTERN)
    full_name: str = Field(min_length=1, max_length=255)
    password: _NewPassword


class LoginInput(_Input):
    username: Optional[str] = None
    email: Optional[str] = None
    password: str = Field(min_length=1)

    @model_validator(mode="after")
    def require_identifier(self) -> "LoginInput":
        if not self.username and not self.email:
            raise ValueError("username or email is required")
        return self


class RefreshInput(_Input):
    refresh_token: Optional[str] = None


class ChangePasswordInput(_Input):
    """Mismatch between new_password and confirm_password is checked by the
    controller, which owns the "hash unchanged on failure" guarantee."""

    old_password: str = Field(min_length=1)
    new_password: _NewPassword
    confirm_password: str = Field(min_length=1)


class UpdateAccountInput(_Input):
    full_name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255, pattern=_EMAIL_PATTERN)


class SavedProductInput(_Input):
    product_id: str = Field(min_length=1, max_length=64)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def describe_errors(errors: list) -> str:
    """Flatten pydantic error dicts into one safe, human-readable line.

    Only field locations and pydantic's own messages are used. Input values
    are never echoed back, so a rejected password cannot leak into a response.
    """
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        msg = str(err.get("msg", "invalid value")).removeprefix("Value error, ")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "Request validation failed."


def parse_input(model: type[_Input], data: dict) -> _Input:
    """Validate a raw dict into model, raising the 400 ValidationError on failure."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(describe_errors(exc.errors())) from exc
