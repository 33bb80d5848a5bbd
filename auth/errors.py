"""
auth/errors.py -- Error taxonomy for the account and session subsystem.

Every failure a client can observe is an ApiError subclass carrying an HTTP
status, a stable machine-readable code, and a safe message. The api/ layer
renders these into the response envelope; nothing here knows about FastAPI.

Unauthorized has one subclass per distinguishable 401 cause. Callers that
only care about "not allowed" catch Unauthorized; callers that react
differently (expired refresh token vs tampered token) catch the subclass.

Messages must never contain hashes, secrets, tokens, or exception text from
collaborators.
"""

from __future__ import annotations


class ApiError(Exception):
    status_code: int = 500
    code: str = "internal_error"
    message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(ApiError):
    status_code = 400
    code = "validation_error"
    message = "Request validation failed."


class Conflict(ApiError):
    status_code = 409
    code = "conflict"
    message = "User with username or email already exists."


class NotFound(ApiError):
    status_code = 404
    code = "not_found"
    message = "User does not exist."


class InternalError(ApiError):
    pass


# ---------------------------------------------------------------------------
# 401 family
# ---------------------------------------------------------------------------


class Unauthorized(ApiError):
    status_code = 401
    code = "unauthorized"
    message = "Unauthorized request."


class MissingToken(Unauthorized):
    code = "missing_token"
    message = "Authentication token is missing."


class InvalidToken(Unauthorized):
    """Bad signature, malformed token, or a token of the wrong kind."""

    code = "invalid_token"
    message = "Invalid token."


class TokenExpired(Unauthorized):
    """Signature is valid but the token is past its TTL."""

    code = "token_expired"
    message = "Token has expired."


class BadCredentials(Unauthorized):
    code = "bad_credentials"
    message = "Invalid user credentials."


class SessionMismatch(Unauthorized):
    """A cryptographically valid refresh token that is not the one on file.

    Either it was already rotated away (replay, or a concurrent refresh won
    the race) or the session was invalidated by logout.
    """

    code = "session_mismatch"
    message = "Refresh token is expired or used."


class UserNotFound(Unauthorized):
    """The token is valid but its subject no longer exists."""

    code = "user_not_found"
    message = "Invalid access token."
