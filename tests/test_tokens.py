"""Unit tests for auth/tokens.py -- claims building, signing and verification.

Covers:
- Round trip: email and role claims come back exactly as issued
- Wire shape: unique_name/email/jti/iss/aud present, role string vs array
- 3-hour expiry from issue time
- Two tokens for the same account differ only by jti (and exp)
- Rejection: wrong key, wrong audience, expired, garbage
"""

from dataclasses import FrozenInstanceError, replace
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.models import Account, ClaimsSet, Provider, Role
from auth.tokens import TokenIssuer, build_claims


def _account() -> Account:
    return Account(id="a-1", username="alice", email="alice@example.com", provider=Provider.PASSWORD)


class TestBuildClaims:
    def test_claims_use_email_as_subject_and_name(self):
        claims = build_claims(_account(), {Role.USER})
        assert claims.email == "alice@example.com"
        assert claims.name == "alice@example.com"
        assert claims.roles == (Role.USER,)

    def test_each_claims_set_gets_a_new_token_id(self):
        first = build_claims(_account(), {Role.USER})
        second = build_claims(_account(), {Role.USER})
        assert first.token_id != second.token_id


class TestTokenIssuer:
    def test_round_trip_returns_email_and_roles(self, config):
        issuer = TokenIssuer(config)
        token = issuer.issue(build_claims(_account(), {Role.USER, Role.ADMIN}))

        payload = issuer.decode(token)
        assert payload is not None
        assert payload["email"] == "alice@example.com"
        assert payload["sub"] == "alice@example.com"
        assert sorted(payload["roles"]) == [Role.ADMIN, Role.USER]

    def test_single_role_is_a_plain_string(self, config):
        token = TokenIssuer(config).issue(build_claims(_account(), {Role.USER}))
        raw = jwt.get_unverified_claims(token)
        assert raw["role"] == "User"

    def test_several_roles_are_an_array(self, config):
        token = TokenIssuer(config).issue(build_claims(_account(), {Role.USER, Role.ADMIN}))
        raw = jwt.get_unverified_claims(token)
        assert raw["role"] == ["Admin", "User"]

    def test_no_roles_omits_role_claim(self, config):
        issuer = TokenIssuer(config)
        token = issuer.issue(build_claims(_account(), set()))
        assert "role" not in jwt.get_unverified_claims(token)
        assert issuer.decode(token)["roles"] == []

    def test_header_and_registered_claims(self, config):
        token = TokenIssuer(config).issue(build_claims(_account(), {Role.USER}))
        header = jwt.get_unverified_header(token)
        raw = jwt.get_unverified_claims(token)
        assert header["alg"] == "HS256"
        assert header["typ"] == "JWT"
        assert raw["unique_name"] == "alice@example.com"
        assert raw["iss"] == "test-issuer"
        assert raw["aud"] == "test-audience"
        assert raw["jti"]

    def test_expiry_is_three_hours_after_issue(self, config):
        now = datetime.now(timezone.utc).replace(microsecond=0)
        token = TokenIssuer(config).issue(build_claims(_account(), {Role.USER}), now=now)
        raw = jwt.get_unverified_claims(token)
        assert raw["exp"] == int((now + timedelta(hours=3)).timestamp())

    def test_two_tokens_for_same_account_are_distinct_and_both_valid(self, config):
        issuer = TokenIssuer(config)
        first = issuer.issue(build_claims(_account(), {Role.USER}))
        second = issuer.issue(build_claims(_account(), {Role.USER}))
        assert first != second
        p1, p2 = issuer.decode(first), issuer.decode(second)
        assert p1["jti"] != p2["jti"]
        assert p1["email"] == p2["email"]


class TestTokenRejection:
    def test_wrong_key_rejected(self, config):
        token = TokenIssuer(config).issue(build_claims(_account(), {Role.USER}))
        other = TokenIssuer(replace(config, jwt_secret="another-secret-another-secret-1234"))
        assert other.decode(token) is None

    def test_wrong_audience_rejected(self, config):
        token = TokenIssuer(config).issue(build_claims(_account(), {Role.USER}))
        other = TokenIssuer(replace(config, jwt_audience="someone-else"))
        assert other.decode(token) is None

    def test_wrong_issuer_rejected(self, config):
        token = TokenIssuer(config).issue(build_claims(_account(), {Role.USER}))
        other = TokenIssuer(replace(config, jwt_issuer="someone-else"))
        assert other.decode(token) is None

    def test_expired_token_rejected(self, config):
        issuer = TokenIssuer(config)
        long_ago = datetime.now(timezone.utc) - timedelta(hours=4)
        token = issuer.issue(build_claims(_account(), {Role.USER}), now=long_ago)
        assert issuer.decode(token) is None

    def test_garbage_rejected(self, config):
        assert TokenIssuer(config).decode("not.a.jwt") is None

    def test_claims_set_is_immutable(self):
        claims = ClaimsSet(email="a@example.com", name="a@example.com", token_id="x")
        with pytest.raises(FrozenInstanceError):
            claims.email = "b@example.com"  # type: ignore[misc]
