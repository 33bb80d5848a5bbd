"""
tests/conftest.py -- Shared test fixtures for Tradepost.

This module provides:
  - make_services(): builds isolated stores, issuer, and controller under a dir
  - _patch_lifespan(): wires test services into app.state, bypassing real startup
  - services: the test collaborators for direct (non-HTTP) tests
  - client: TestClient over the real app with isolated stores
  - register_user() / login_user(): HTTP helpers for the users routes

Design: each test gets its own file-backed SQLite DB under tmp_path. File DBs
(not shared-cache :memory: URIs) are used because the session tests rotate
from several threads at once, and SQLite only serializes concurrent writers
with a busy timeout on real files.

DEBUG and BCRYPT_ROUNDS must be set before any auth/core import: get_settings()
generates dev secrets only in DEBUG mode, and auth/passwords.py reads the
cost factor at import time. Rounds=4 is bcrypt's minimum and keeps the suite fast.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

# Set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.controller import SessionController
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import TokenConfig, TokenIssuer
from core.config import get_settings
from core.media import AvatarStore

ACCESS_SECRET = "a" * 40
REFRESH_SECRET = "r" * 40

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@dataclass
class Services:
    users: UserStore
    issuer: TokenIssuer
    sessions: SessionStore
    media: AvatarStore
    controller: SessionController


def make_issuer(access_ttl: int = 900, refresh_ttl: int = 864000) -> TokenIssuer:
    return TokenIssuer(
        TokenConfig(
            access_secret=ACCESS_SECRET,
            refresh_secret=REFRESH_SECRET,
            access_ttl_seconds=access_ttl,
            refresh_ttl_seconds=refresh_ttl,
        )
    )


def make_services(base: Path, revoke_on_password_change: bool = False) -> Services:
    """Build a full set of collaborators backed by files under base."""
    users = UserStore(db_url=f"sqlite:///{base / 'tradepost_test.db'}")
    issuer = make_issuer()
    sessions = SessionStore(users, issuer)
    media = AvatarStore(base / "media", "/media", max_bytes=1024)
    controller = SessionController(
        users,
        sessions,
        issuer,
        media,
        revoke_sessions_on_password_change=revoke_on_password_change,
    )
    return Services(users, issuer, sessions, media, controller)


def _patch_lifespan(services: Services):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = get_settings()
        app.state.user_store = services.users
        app.state.token_issuer = services.issuer
        app.state.session_store = services.sessions
        app.state.media = services.media
        app.state.controller = services.controller
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def services(tmp_path) -> Generator[Services, None, None]:
    svc = make_services(tmp_path)
    yield svc
    svc.users.close()


@pytest.fixture
def client(services) -> Generator[TestClient, None, None]:
    """TestClient over the real app, wired to the per-test services.

    The base URL is plain http, so the Secure token cookies set by login are
    never sent back automatically. Tests pass tokens explicitly (Bearer header,
    JSON body, or a Cookie header) and read Set-Cookie to check the flags.
    """
    app.router.lifespan_context = _patch_lifespan(services)
    with TestClient(app) as c:
        yield c


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------


def register_user(
    client: TestClient,
    username: str = "alice",
    email: str = "alice@x.com",
    password: str = "p@ss1",
    full_name: str = "Alice Liddell",
    avatar: bytes | None = PNG_BYTES,
):
    files = {"avatar": ("me.png", avatar, "image/png")} if avatar is not None else None
    return client.post(
        "/api/v1/users/register",
        data={"username": username, "email": email, "fullName": full_name, "password": password},
        files=files,
    )


def login_user(client: TestClient, username: str = "alice", password: str = "p@ss1"):
    return client.post("/api/v1/users/login", json={"username": username, "password": password})


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
