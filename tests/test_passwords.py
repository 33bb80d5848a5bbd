"""
tests/test_passwords.py -- Unit tests for auth/passwords.py.

Coverage:
  - hash_password never returns the plaintext and salts every call
  - verify_password accepts the original and rejects anything else
  - malformed stored hashes verify as False rather than raising
  - the async wrappers agree with the sync functions
"""

from __future__ import annotations

import asyncio

from auth.passwords import hash_password, hash_password_async, verify_password, verify_password_async


class TestHashPassword:
    def test_hash_is_not_plaintext(self) -> None:
        hashed = hash_password("p@ss1")
        assert hashed != "p@ss1"
        assert "p@ss1" not in hashed
        assert hashed.startswith("$2")

    def test_same_password_hashes_differently(self) -> None:
        """A fresh salt per call means equal passwords never share a stored hash."""
        assert hash_password("p@ss1") != hash_password("p@ss1")


class TestVerifyPassword:
    def test_original_verifies(self) -> None:
        hashed = hash_password("p@ss1")
        assert verify_password("p@ss1", hashed) is True

    def test_other_strings_fail(self) -> None:
        hashed = hash_password("p@ss1")
        for candidate in ("p@ss2", "P@SS1", "p@ss1 ", "", "p@ss"):
            assert verify_password(candidate, hashed) is False, candidate

    def test_malformed_hash_is_false(self) -> None:
        assert verify_password("p@ss1", "not-a-bcrypt-hash") is False

    def test_unicode_password(self) -> None:
        hashed = hash_password("pässwörd-密码")
        assert verify_password("pässwörd-密码", hashed) is True
        assert verify_password("passwort-密码", hashed) is False


class TestAsyncWrappers:
    def test_async_round_trip(self) -> None:
        async def scenario() -> tuple[bool, bool]:
            hashed = await hash_password_async("p@ss1")
            ok = await verify_password_async("p@ss1", hashed)
            bad = await verify_password_async("wrong", hashed)
            return ok, bad

        assert asyncio.run(scenario()) == (True, False)

    def test_async_hash_verifies_sync(self) -> None:
        hashed = asyncio.run(hash_password_async("p@ss1"))
        assert verify_password("p@ss1", hashed) is True
