from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from momantza.core.errors import ConfigurationMissingError
from momantza.domain.models import User
from momantza.services.auth.tokens import TokenIssuer, strip_bearer


SECRET = "unit-test-signing-secret-0123456789abcdef"


def _user() -> User:
    return User(id="u-1", name="Asha", email="asha@example.com", role="manager", organization_id="org-1")


def _issuer(**kwargs) -> TokenIssuer:
    return TokenIssuer(secret=SECRET, issuer="MomantzaAPI", audience="MomantzaClient", **kwargs)


def test_issue_carries_identity_claims() -> None:
    issued = _issuer().issue(_user())
    claims = _issuer().decode(issued.access_token)
    assert claims is not None
    assert claims["sub"] == "u-1"
    assert claims["email"] == "asha@example.com"
    assert claims["organizationId"] == "org-1"
    assert claims["role"] == "manager"
    assert issued.refresh_token
    assert issued.expires_at > datetime.now(timezone.utc) + timedelta(days=6)


def test_tokens_are_unique_per_issue() -> None:
    issuer = _issuer()
    first = issuer.issue(_user())
    second = issuer.issue(_user())
    assert first.access_token != second.access_token
    assert first.refresh_token != second.refresh_token


def test_expired_token_rejected() -> None:
    past = datetime.now(timezone.utc) - timedelta(days=8)
    issued = _issuer(clock=lambda: past).issue(_user())
    assert _issuer().decode(issued.access_token) is None


def test_wrong_audience_or_signature_rejected() -> None:
    issued = _issuer().issue(_user())
    other_audience = TokenIssuer(secret=SECRET, issuer="MomantzaAPI", audience="Elsewhere")
    other_secret = TokenIssuer(secret="x" * 48, issuer="MomantzaAPI", audience="MomantzaClient")
    assert other_audience.decode(issued.access_token) is None
    assert other_secret.decode(issued.access_token) is None
    assert _issuer().decode("not-a-token") is None


def test_token_uses_hs256() -> None:
    issued = _issuer().issue(_user())
    assert jwt.get_unverified_header(issued.access_token)["alg"] == "HS256"


def test_missing_secret_fails_fast() -> None:
    with pytest.raises(ConfigurationMissingError):
        TokenIssuer(secret="", issuer="MomantzaAPI", audience="MomantzaClient")


def test_strip_bearer() -> None:
    assert strip_bearer("Bearer abc") == "abc"
    assert strip_bearer("  Bearer   abc ") == "abc"
    assert strip_bearer("abc") == "abc"
    assert strip_bearer(None) == ""
