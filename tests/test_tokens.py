"""
tests/test_tokens.py -- Unit tests for TokenIssuer, TokenConfig and Settings secrets.

Coverage:
  - issue() returns an access/refresh pair whose claims verify
  - the two kinds are signed with different secrets and cannot be swapped
  - expired vs tampered tokens raise different errors
  - equal secrets are rejected by both TokenConfig and Settings
  - Settings refuses to start in production without secrets
"""

from __future__ import annotations

import pytest
from jose import jwt

from auth.errors import InvalidToken, TokenExpired
from auth.tokens import ACCESS, REFRESH, TokenConfig, TokenIssuer
from conftest import ACCESS_SECRET, REFRESH_SECRET, make_issuer
from core.config import Settings


class TestIssue:
    def test_pair_verifies_with_matching_kind(self) -> None:
        issuer = make_issuer()
        pair = issuer.issue(7)

        access = issuer.verify(pair.access_token, ACCESS)
        refresh = issuer.verify(pair.refresh_token, REFRESH)

        assert access.user_id == 7 and access.kind == ACCESS
        assert refresh.user_id == 7 and refresh.kind == REFRESH
        assert access.expires_at - access.issued_at == 900
        assert refresh.expires_at - refresh.issued_at == 864000

    def test_each_issue_is_unique(self) -> None:
        """jti makes two pairs minted in the same second differ."""
        issuer = make_issuer()
        first, second = issuer.issue(7), issuer.issue(7)
        assert first.access_token != second.access_token
        assert first.refresh_token != second.refresh_token

    def test_kinds_use_separate_secrets(self) -> None:
        pair = make_issuer().issue(7)
        assert jwt.decode(pair.access_token, ACCESS_SECRET, algorithms=["HS256"])["type"] == "access"
        assert jwt.decode(pair.refresh_token, REFRESH_SECRET, algorithms=["HS256"])["type"] == "refresh"


class TestVerify:
    def test_refresh_token_rejected_as_access(self) -> None:
        issuer = make_issuer()
        pair = issuer.issue(7)
        with pytest.raises(InvalidToken):
            issuer.verify(pair.refresh_token, ACCESS)

    def test_access_token_rejected_as_refresh(self) -> None:
        issuer = make_issuer()
        pair = issuer.issue(7)
        with pytest.raises(InvalidToken):
            issuer.verify(pair.access_token, REFRESH)

    def test_wrong_type_claim_under_right_secret(self) -> None:
        """A token signed with the access secret but typed refresh is still invalid."""
        forged = jwt.encode({"sub": "7", "type": "refresh", "iat": 0, "exp": 2**31, "jti": "x"}, ACCESS_SECRET)
        with pytest.raises(InvalidToken):
            make_issuer().verify(forged, ACCESS)

    def test_expired_token(self) -> None:
        issuer = make_issuer(access_ttl=-10, refresh_ttl=60)
        pair = issuer.issue(7)
        with pytest.raises(TokenExpired) as excinfo:
            issuer.verify(pair.access_token, ACCESS)
        assert excinfo.value.code == "token_expired"
        assert excinfo.value.status_code == 401

    def test_tampered_token(self) -> None:
        issuer = make_issuer()
        token = issuer.issue(7).access_token
        head, body, sig = token.split(".")
        tampered = ".".join([head, body, sig[::-1]])
        with pytest.raises(InvalidToken):
            issuer.verify(tampered, ACCESS)

    def test_garbage_token(self) -> None:
        with pytest.raises(InvalidToken):
            make_issuer().verify("not.a.jwt", ACCESS)

    def test_missing_claims(self) -> None:
        token = jwt.encode({"type": "access", "exp": 2**31}, ACCESS_SECRET)
        with pytest.raises(InvalidToken):
            make_issuer().verify(token, ACCESS)

    def test_foreign_secret(self) -> None:
        other = TokenIssuer(
            TokenConfig(
                access_secret="x" * 40,
                refresh_secret="y" * 40,
                access_ttl_seconds=900,
                refresh_ttl_seconds=864000,
            )
        )
        with pytest.raises(InvalidToken):
            make_issuer().verify(other.issue(7).access_token, ACCESS)


class TestSecretConfiguration:
    def test_token_config_rejects_equal_secrets(self) -> None:
        with pytest.raises(ValueError):
            TokenConfig(access_secret="s" * 40, refresh_secret="s" * 40, access_ttl_seconds=1, refresh_ttl_seconds=2)

    def test_settings_rejects_equal_secrets(self) -> None:
        with pytest.raises(ValueError, match="must differ"):
            Settings(debug=True, access_token_secret="s" * 40, refresh_token_secret="s" * 40)

    def test_settings_rejects_short_secret(self) -> None:
        with pytest.raises(ValueError, match="at least 32"):
            Settings(debug=True, access_token_secret="short", refresh_token_secret="r" * 40)

    def test_settings_requires_secrets_in_production(self, monkeypatch) -> None:
        monkeypatch.delenv("ACCESS_TOKEN_SECRET", raising=False)
        monkeypatch.delenv("REFRESH_TOKEN_SECRET", raising=False)
        with pytest.raises(ValueError, match="required in production"):
            Settings(debug=False, _env_file=None)

    def test_settings_generates_distinct_dev_secrets(self, monkeypatch) -> None:
        monkeypatch.delenv("ACCESS_TOKEN_SECRET", raising=False)
        monkeypatch.delenv("REFRESH_TOKEN_SECRET", raising=False)
        settings = Settings(debug=True, _env_file=None)
        assert len(settings.access_token_secret) >= 32
        assert settings.access_token_secret != settings.refresh_token_secret

    def test_settings_rejects_access_ttl_not_shorter(self) -> None:
        with pytest.raises(ValueError, match="shorter"):
            Settings(
                debug=True,
                access_token_secret="a" * 40,
                refresh_token_secret="r" * 40,
                access_token_expire_seconds=600,
                refresh_token_expire_seconds=600,
            )
