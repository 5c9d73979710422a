"""
auth/tokens.py -- Claims building and JWT signing / verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with the configured secret
       and carry the account email, a fresh jti and the account's roles, plus
       iss/aud from configuration and a fixed 3-hour expiry. Tokens are not
       tracked server-side: no refresh, no revocation.

  Claim names match what existing verifiers of these tokens already read:
       unique_name and email both carry the email, role is a plain string
       when the account holds one role and an array when it holds several.
       sub repeats the email for standard JWT consumers.

  jti: uuid4 per token, so two logins with the same credentials never yield
       the same token even inside one second.

  TokenIssuer.decode() returns None on any failure -- callers treat that as
       unauthenticated.

Layer rule: no imports from api/ or core/. Configuration arrives as an
AuthConfig value.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.models import Account, AuthConfig, ClaimsSet

logger = logging.getLogger("authgateway.auth.tokens")

_ALGORITHM = "HS256"

# Fixed for every token; not configurable.
TOKEN_LIFETIME = timedelta(hours=3)


def build_claims(account: Account, roles: set[str]) -> ClaimsSet:
    """Return a fresh ClaimsSet for the account. Each call gets a new token id."""
    return ClaimsSet(
        email=account.email,
        name=account.email,
        token_id=str(uuid.uuid4()),
        roles=tuple(sorted(roles)),
    )


class TokenIssuer:
    """Signs ClaimsSets into compact JWS strings and verifies them back."""

    def __init__(self, config: AuthConfig) -> None:
        self._config = config

    def issue(self, claims: ClaimsSet, now: datetime | None = None) -> str:
        """Encode a signed JWT valid for TOKEN_LIFETIME from now."""
        issued_at = now or datetime.now(timezone.utc)
        payload: dict = {
            "sub": claims.email,
            "unique_name": claims.name,
            "email": claims.email,
            "jti": claims.token_id,
        }
        if len(claims.roles) == 1:
            payload["role"] = claims.roles[0]
        elif claims.roles:
            payload["role"] = list(claims.roles)
        payload["exp"] = issued_at + TOKEN_LIFETIME
        payload["iss"] = self._config.jwt_issuer
        payload["aud"] = self._config.jwt_audience
        return jwt.encode(payload, self._config.jwt_secret, algorithm=_ALGORITHM)

    def decode(self, token: str) -> dict | None:
        """Verify signature, expiry, issuer and audience. Returns the payload or None.

        The role claim is normalized to a list under "roles" so callers do not
        need to care whether the token carried one role or several.
        """
        try:
            payload = jwt.decode(
                token,
                self._config.jwt_secret,
                algorithms=[_ALGORITHM],
                audience=self._config.jwt_audience,
                issuer=self._config.jwt_issuer,
            )
        except JWTError as exc:
            logger.debug("Token rejected: %s", exc)
            return None
        role = payload.get("role")
        if role is None:
            payload["roles"] = []
        elif isinstance(role, str):
            payload["roles"] = [role]
        else:
            payload["roles"] = list(role)
        return payload
