"""
api/routes/v1/user.py -- Register, login and social login endpoints.

Routes:
  POST /user/register      -- create a Password account, returns a token
  POST /user/login         -- username (or email) + password, returns a token
  POST /user/social-login  -- Google / Facebook access token, returns a token

Every route answers with the ResultResponse envelope:
  200 {"isSuccess": true,  "response": "<jwt>", "errors": []}
  400 {"isSuccess": false, "response": null,    "errors": ["..."]}

Handlers are plain `def`, not `async def`. FastAPI runs them in its worker
thread pool, so bcrypt and the blocking provider HTTP calls inside the
Authenticator never stall the event loop.

Security:
  Cache-Control: no-store on every response -- tokens must not be cached
  by intermediaries or the browser.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.models import LoginRequest, RegisterRequest, ResultResponse, SocialLoginRequest
from auth.results import AuthResult
from auth.service import Authenticator

# Auth policy: all three routes are public -- they are how a caller gets a token.
router = APIRouter()


def _respond(result: AuthResult) -> JSONResponse:
    body = ResultResponse.from_result(result)
    resp = JSONResponse(
        status_code=200 if result.is_success else 400,
        content=body.model_dump(by_alias=True),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/user/login", response_model=ResultResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username (or email) and password."""
    authenticator: Authenticator = request.app.state.authenticator
    return _respond(authenticator.login(body.username, body.password))


@router.post("/user/register", response_model=ResultResponse)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a Password account and return a token for it."""
    authenticator: Authenticator = request.app.state.authenticator
    return _respond(authenticator.register(body.username, body.email, body.password))


@router.post("/user/social-login", response_model=ResultResponse)
def social_login(request: Request, body: SocialLoginRequest) -> JSONResponse:
    """Log in with a provider access token; the account is created on first sight."""
    authenticator: Authenticator = request.app.state.authenticator
    return _respond(authenticator.social_login(body.email, body.provider, body.access_token))
