"""
auth/results.py -- Success/failure values returned by the auth engine.

Every public Authenticator operation returns an AuthResult instead of raising.
Expected outcomes (duplicate account, wrong password, invalid provider token,
...) are data, not crashes. The route layer maps is_success=False to HTTP 400.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AuthError(str, Enum):
    DUPLICATE_ACCOUNT = "DuplicateAccount"
    REGISTRATION_FAILED = "RegistrationFailed"
    AUTHENTICATION_FAILED = "AuthenticationFailed"
    PROVIDER_MISMATCH = "ProviderMismatch"
    INVALID_PROVIDER_TOKEN = "InvalidProviderToken"
    UNSUPPORTED_PROVIDER = "UnsupportedProvider"


@dataclass(frozen=True)
class AuthResult:
    """Outcome of one engine step.

    value carries the signed token string for Register/Login/SocialLogin and
    is None for steps that only succeed or fail (provider token validation).
    errors is empty on success.
    """

    is_success: bool
    value: Any = None
    error: AuthError | None = None
    errors: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_failed(self) -> bool:
        return not self.is_success

    @classmethod
    def ok(cls, value: Any = None) -> AuthResult:
        return cls(is_success=True, value=value)

    @classmethod
    def fail(cls, error: AuthError, *messages: str) -> AuthResult:
        return cls(is_success=False, error=error, errors=tuple(messages))
