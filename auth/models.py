"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the
Authenticator do the work; these types only own the domain shape.

Layer rule: no imports from api/ or core/. AuthConfig.from_settings() takes the
settings object as a plain argument instead of importing it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Provider(str, Enum):
    """Channel through which an account authenticates (its provider of record)."""

    PASSWORD = "Password"
    GOOGLE = "Google"
    FACEBOOK = "Facebook"


class Role:
    ADMIN = "Admin"
    USER = "User"


@dataclass
class Account:
    """One local identity.

    provider is fixed at creation. An account created through Google can only
    ever log in through Google; a Password account never through a social
    provider.

    hashed_password belongs to the store. The Authenticator never reads it --
    it hands the plaintext to AccountStore.verify_password() instead.
    """

    username: str
    email: str
    provider: Provider = Provider.PASSWORD
    id: str | None = None
    hashed_password: str | None = None
    security_stamp: str | None = None
    roles: set[str] = field(default_factory=set)
    created_at: str | None = None


@dataclass(frozen=True)
class AuthConfig:
    """Read-only configuration injected into the Authenticator and its helpers.

    Built once from core.config.Settings by from_settings(); nothing under
    auth/ reads environment variables or the settings singleton itself.
    """

    jwt_secret: str
    jwt_issuer: str
    jwt_audience: str
    google_token_audience: str = ""
    facebook_client_id: str = ""
    facebook_client_secret: str = ""
    facebook_graph_url: str = "https://graph.facebook.com"
    provider_http_timeout: float = 10.0

    @classmethod
    def from_settings(cls, settings) -> AuthConfig:
        return cls(
            jwt_secret=settings.jwt_secret,
            jwt_issuer=settings.jwt_valid_issuer,
            jwt_audience=settings.jwt_valid_audience,
            google_token_audience=settings.google_token_audience,
            facebook_client_id=settings.facebook_client_id,
            facebook_client_secret=settings.facebook_client_secret,
            facebook_graph_url=settings.facebook_graph_url.rstrip("/"),
            provider_http_timeout=settings.provider_http_timeout,
        )


@dataclass(frozen=True)
class ClaimsSet:
    """Facts embedded in one issued token. Built per login, never persisted."""

    email: str
    name: str
    token_id: str
    roles: tuple[str, ...] = ()
