"""
auth/providers.py -- Verification of access tokens issued by social login providers.

One ProviderVerifier per provider, kept in a registry keyed by Provider.
ProviderTokenValidator.validate() looks the verifier up and turns its outcome
into an AuthResult. Adding a provider means writing one verifier and
registering it in ProviderTokenValidator.from_config() -- validate() itself
never changes.

Supported providers:
  Google   -- the caller's token is a Google-signed ID token (JWT). It is
              checked against Google's published signing keys with authlib:
              RS256 signature, issuer, expiry, and the configured audience.
  Facebook -- two Graph API calls: exchange this service's client id/secret
              for an app access token, then ask /debug_token whether the
              caller's token is valid.

Error policy:
  Verifiers raise ProviderTokenError for an invalid token. Transport errors
  (requests.RequestException), malformed JSON and JOSE errors are caught at
  this boundary too and reported as InvalidProviderToken -- raw transport
  errors never reach the Authenticator. Nothing is retried.

Concurrency:
  All HTTP calls are blocking requests calls with a per-call timeout. The
  route layer runs the engine in FastAPI's worker threads, so a slow provider
  stalls only its own request. Verifiers hold no mutable state.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from typing import Protocol

import requests
from authlib.jose import JsonWebKey, JsonWebToken
from authlib.jose.errors import JoseError

from auth.models import AuthConfig, Provider
from auth.results import AuthError, AuthResult

logger = logging.getLogger("authgateway.auth.providers")

GOOGLE_CERTS_URL = "https://www.googleapis.com/oauth2/v3/certs"
GOOGLE_ISSUERS = ["accounts.google.com", "https://accounts.google.com"]

# Google signs ID tokens with RS256 only. Restricting the accepted algorithms
# stops a token from choosing its own (e.g. "none" or an HMAC variant).
_google_jwt = JsonWebToken(["RS256"])


def _new_session() -> requests.Session:
    # max_redirects=3 -- these are known provider APIs; a long redirect chain
    # is a misconfiguration or an SSRF attempt.
    session = requests.Session()
    session.max_redirects = 3
    return session


class ProviderTokenError(Exception):
    """The provider did not confirm the access token."""


class ProviderVerifier(Protocol):
    """One provider's verification protocol.

    verify() returns normally when the provider confirms the token and raises
    ProviderTokenError (or a transport / decoding error) otherwise.
    """

    provider: Provider

    def verify(self, access_token: str) -> None: ...


# ---------------------------------------------------------------------------
# Google
# ---------------------------------------------------------------------------


class GoogleTokenVerifier:
    provider = Provider.GOOGLE

    def __init__(self, audience: str, session: requests.Session, timeout: float = 10.0) -> None:
        self._audience = audience
        self._session = session
        self._timeout = timeout

    def verify(self, access_token: str) -> None:
        """Check a Google ID token's signature and claims.

        An empty audience would make authlib skip the aud check entirely, so
        an unconfigured verifier rejects every token instead.
        """
        if not self._audience:
            raise ProviderTokenError("Google token audience is not configured")

        resp = self._session.get(GOOGLE_CERTS_URL, timeout=self._timeout)
        resp.raise_for_status()
        key_set = JsonWebKey.import_key_set(resp.json())

        claims = _google_jwt.decode(
            access_token,
            key_set,
            claims_options={
                "iss": {"essential": True, "values": GOOGLE_ISSUERS},
                "aud": {"essential": True, "value": self._audience},
                "exp": {"essential": True},
            },
        )
        claims.validate()


# ---------------------------------------------------------------------------
# Facebook
# ---------------------------------------------------------------------------


class FacebookTokenVerifier:
    provider = Provider.FACEBOOK

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        session: requests.Session,
        graph_url: str = "https://graph.facebook.com",
        timeout: float = 10.0,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._session = session
        self._graph_url = graph_url.rstrip("/")
        self._timeout = timeout

    def verify(self, access_token: str) -> None:
        if not (self._client_id and self._client_secret):
            raise ProviderTokenError("Facebook client credentials are not configured")

        app_token = self._fetch_app_access_token()

        resp = self._session.get(
            f"{self._graph_url}/debug_token",
            params={"input_token": access_token, "access_token": app_token},
            timeout=self._timeout,
        )
        resp.raise_for_status()
        body = resp.json()
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict) or data.get("is_valid") is not True:
            raise ProviderTokenError("Facebook reported the token as invalid")

    def _fetch_app_access_token(self) -> str:
        """Exchange this service's client credentials for a Graph API app token."""
        resp = self._session.get(
            f"{self._graph_url}/oauth/access_token",
            params={
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "grant_type": "client_credentials",
            },
            timeout=self._timeout,
        )
        resp.raise_for_status()
        body = resp.json()
        app_token = body.get("access_token") if isinstance(body, dict) else None
        if not isinstance(app_token, str) or not app_token:
            raise ProviderTokenError("Facebook returned no app access token")
        return app_token


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


class ProviderTokenValidator:
    """Selects the verifier for a provider name and reports the outcome as an AuthResult."""

    def __init__(self, verifiers: list[ProviderVerifier]) -> None:
        self._verifiers: dict[Provider, ProviderVerifier] = {v.provider: v for v in verifiers}

    @classmethod
    def from_config(cls, config: AuthConfig, session: requests.Session | None = None) -> ProviderTokenValidator:
        session = session or _new_session()
        return cls(
            [
                GoogleTokenVerifier(config.google_token_audience, session, config.provider_http_timeout),
                FacebookTokenVerifier(
                    config.facebook_client_id,
                    config.facebook_client_secret,
                    session,
                    graph_url=config.facebook_graph_url,
                    timeout=config.provider_http_timeout,
                ),
            ]
        )

    @property
    def providers(self) -> list[Provider]:
        return list(self._verifiers)

    def validate(self, provider: str, access_token: str) -> AuthResult:
        """Verify access_token with the named provider. No local state is touched."""
        verifier = self._lookup(provider)
        if verifier is None:
            return AuthResult.fail(AuthError.UNSUPPORTED_PROVIDER, f"{provider} provider is not supported.")

        try:
            verifier.verify(access_token)
        except (ProviderTokenError, JoseError, ValueError, requests.RequestException) as exc:
            # Log the reason, never the token.
            logger.info("%s token rejected: %s", verifier.provider.value, exc)
            return AuthResult.fail(
                AuthError.INVALID_PROVIDER_TOKEN,
                f"{verifier.provider.value} access token is not valid.",
            )
        return AuthResult.ok()

    def _lookup(self, provider: str) -> ProviderVerifier | None:
        try:
            key = Provider(provider)
        except ValueError:
            return None
        return self._verifiers.get(key)
