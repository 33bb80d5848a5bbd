"""
auth/passwords.py -- bcrypt password hashing on a bounded worker pool.

Using bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug
detection trips bcrypt 4.x and later, and direct usage has no shim.

bcrypt is CPU-bound by design. The async helpers push it onto a dedicated
ThreadPoolExecutor sized by HASH_WORKERS so a burst of logins cannot occupy
every event-loop-adjacent thread, and never run it on the event loop itself.
bcrypt releases the GIL while hashing, so the pool gives real parallelism.

Hashing happens only where a credential is created or changed. Nothing else
in the codebase calls hash_password().

bcrypt rejects or truncates input longer than 72 bytes depending on version;
auth/schemas.py caps password length in bytes before it gets here.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor

import bcrypt

from core.config import get_settings

_settings = get_settings()

_pool: ThreadPoolExecutor | None = None


def _hash_pool() -> ThreadPoolExecutor:
    global _pool
    if _pool is None:
        _pool = ThreadPoolExecutor(max_workers=_settings.hash_workers, thread_name_prefix="bcrypt")
    return _pool


def shutdown_hash_pool() -> None:
    """Stop the hashing pool. Called from the app lifespan on shutdown."""
    global _pool
    if _pool is not None:
        _pool.shutdown(wait=True)
        _pool = None


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. Malformed hashes and oversize
    input are treated as a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


async def hash_password_async(plain: str) -> str:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_hash_pool(), hash_password, plain)


async def verify_password_async(plain: str, hashed: str) -> bool:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_hash_pool(), verify_password, plain, hashed)
