"""
API request and response models for the gateway's REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

JSON field names are camelCase (isSuccess, accessToken) for compatibility
with existing clients; Python attribute names stay snake_case via the alias
generator.

Input rules (username length, email syntax, password strength) are enforced
here, at the boundary, with the exact messages clients already display.
The store re-checks password strength as its own last line of defense.
"""

import re
from typing import Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from auth.results import AuthResult

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

USERNAME_MIN_LENGTH = 5

# Lookaheads are not supported by pydantic's default (Rust) regex engine, so
# the password rule is applied in a field_validator with Python's re.
PASSWORD_PATTERN = re.compile(r"^(?=.*[A-Z])(?=.*[\W])(?=.*[0-9])(?=.*[a-z]).{6,128}$")

USERNAME_LENGTH_ERROR = "Username must have more than 5 characters."
EMAIL_ERROR = "Email must have valid format."
PASSWORD_ERROR = (
    "Password must have more than 6 characters, min. 1 uppercase, min. 1 lowercase, min. 1 special characters."
)


def _check_username(value: str) -> str:
    if len(value) < USERNAME_MIN_LENGTH:
        raise PydanticCustomError("username_length", USERNAME_LENGTH_ERROR)
    return value


def _check_password(value: str) -> str:
    if not PASSWORD_PATTERN.match(value):
        raise PydanticCustomError("password_strength", PASSWORD_ERROR)
    return value


# No str_strip_whitespace: passwords are compared byte for byte.
_REQUEST_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /user/login. username may also be the account email."""

    model_config = _REQUEST_CONFIG

    username: str = Field(max_length=256)
    password: str = Field(max_length=128)

    check_username = field_validator("username")(_check_username)
    check_password = field_validator("password")(_check_password)


class RegisterRequest(BaseModel):
    """Request body for POST /user/register."""

    model_config = _REQUEST_CONFIG

    username: str = Field(max_length=256)
    email: str = Field(max_length=256)
    password: str = Field(max_length=128)

    check_username = field_validator("username")(_check_username)
    check_password = field_validator("password")(_check_password)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        """Syntax check only -- no DNS lookup, registration must not depend on the network."""
        try:
            validate_email(value, check_deliverability=False)
        except EmailNotValidError:
            raise PydanticCustomError("email_format", EMAIL_ERROR) from None
        return value


class SocialLoginRequest(BaseModel):
    """Request body for POST /user/social-login.

    provider is kept as a free string: an unknown provider is a normal
    UnsupportedProvider outcome from the engine, not a validation error.
    """

    model_config = _REQUEST_CONFIG

    email: str = Field(max_length=256)
    provider: str = Field(min_length=1, max_length=50)
    access_token: str = Field(min_length=1, max_length=8192)

    # Existing clients only get the username length rule on this email.
    check_email = field_validator("email")(_check_username)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class ResultResponse(BaseModel):
    """Envelope returned by every /user endpoint, success or failure.

    response carries the signed token on success. errors is empty on success
    and lists human-readable messages on failure.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    is_success: bool
    response: Optional[str] = None
    errors: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: AuthResult) -> "ResultResponse":
        return cls(
            is_success=result.is_success,
            response=result.value if isinstance(result.value, str) else None,
            errors=list(result.errors),
        )

    @classmethod
    def failure(cls, *messages: str) -> "ResultResponse":
        return cls(is_success=False, errors=list(messages))


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
