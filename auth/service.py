"""
auth/service.py -- The Authenticator: register, login and social login.

Flow:
  register()      uniqueness pre-check -> store.create_account() -> role User
                  -> login() with the same credentials
  login()         lookup by username, then email -> bcrypt check in the store
                  -> provider must be Password -> claims -> signed token
  social_login()  provider token check -> lookup by email (auto-provision on
                  first sight) -> provider of record must match -> claims
                  -> signed token

Every public method returns an AuthResult. Expected failures never raise.

The uniqueness pre-check in register() only produces a better error message.
Two concurrent registrations can both pass it; the store's UNIQUE
constraints reject the loser at create_account() time.

The engine holds no mutable state of its own. The store, the provider
validator and the token issuer are injected, so one Authenticator is shared
by all requests.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import uuid

from auth.models import Account, AuthConfig, Provider, Role
from auth.providers import ProviderTokenValidator
from auth.results import AuthError, AuthResult
from auth.store import AccountCreationError, AccountStore
from auth.tokens import TokenIssuer, build_claims

logger = logging.getLogger("authgateway.auth")


def _placeholder_password() -> str:
    """Random secret for social accounts.

    Satisfies the store's password policy (upper, lower, digit, symbol) and is
    never returned or logged. It cannot be used to log in: login() refuses
    any account whose provider is not Password.
    """
    return f"Pass!1{uuid.uuid4()}"


class Authenticator:
    """Authentication orchestration engine.

    Usage:
        config = AuthConfig.from_settings(get_settings())
        auth = Authenticator(store, config)
        result = auth.login("alice", "Secret!1")
        if result.is_success:
            token = result.value
    """

    def __init__(
        self,
        store: AccountStore,
        config: AuthConfig,
        provider_validator: ProviderTokenValidator | None = None,
        token_issuer: TokenIssuer | None = None,
    ) -> None:
        self._store = store
        self._providers = provider_validator or ProviderTokenValidator.from_config(config)
        self._issuer = token_issuer or TokenIssuer(config)

    @property
    def token_issuer(self) -> TokenIssuer:
        return self._issuer

    # ------------------------------------------------------------------
    # Credential Registrar
    # ------------------------------------------------------------------

    def register(self, username: str, email: str, password: str) -> AuthResult:
        """Create a Password account and log it in.

        Fails with DuplicateAccount when the username or email is already
        registered, RegistrationFailed when the store rejects the account.
        """
        by_email = self._store.get_by_email(email)
        by_username = self._store.get_by_username(username)
        if by_email is not None or by_username is not None:
            return AuthResult.fail(
                AuthError.DUPLICATE_ACCOUNT,
                f"User with email {email} or username {username} already exists.",
            )

        account = Account(
            username=username,
            email=email,
            provider=Provider.PASSWORD,
            security_stamp=str(uuid.uuid4()),
        )
        try:
            self._store.create_account(account, password)
        except AccountCreationError as exc:
            logger.info("Registration rejected for %s: %s", username, exc)
            return AuthResult.fail(
                AuthError.REGISTRATION_FAILED,
                f"Unable to register user {username}, errors: {', '.join(exc.errors)}",
            )
        self._store.add_role(account, Role.USER)

        return self.login(email, password)

    # ------------------------------------------------------------------
    # Credential Verifier
    # ------------------------------------------------------------------

    def login(self, username_or_email: str, password: str) -> AuthResult:
        """Check a local username (or email) and password and issue a token."""
        account = self._store.get_by_username(username_or_email) or self._store.get_by_email(username_or_email)

        # verify_password() runs bcrypt even when account is None [timing].
        if not self._store.verify_password(account, password):
            return AuthResult.fail(
                AuthError.AUTHENTICATION_FAILED,
                f"Unable to authenticate user {username_or_email}",
            )

        if account.provider != Provider.PASSWORD:
            return self._provider_mismatch(account, Provider.PASSWORD.value)

        return self._issue(account)

    # ------------------------------------------------------------------
    # Identity Reconciler
    # ------------------------------------------------------------------

    def social_login(self, email: str, provider: str, access_token: str) -> AuthResult:
        """Log in (or sign up) through a social provider.

        The provider token is checked before anything is read or written; a
        rejected token leaves the store untouched.
        """
        validation = self._providers.validate(provider, access_token)
        if validation.is_failed:
            return validation

        requested = Provider(provider)
        account = self._store.get_by_email(email)
        if account is None:
            account = self._provision_social_account(email, requested)
            if account is None:
                # Creation failed: hand back the validation outcome, as
                # callers of this endpoint have always received.
                return validation

        if account.provider != requested:
            return self._provider_mismatch(account, requested.value)

        return self._issue(account)

    def _provision_social_account(self, email: str, provider: Provider) -> Account | None:
        account = Account(
            username=email,
            email=email,
            provider=provider,
            security_stamp=str(uuid.uuid4()),
        )
        try:
            self._store.create_account(account, _placeholder_password())
        except AccountCreationError as exc:
            logger.warning("Unable to register %s user %s, errors: %s", provider.value, email, exc)
            return None
        self._store.add_role(account, Role.USER)
        logger.info("Provisioned %s account for %s", provider.value, email)
        return account

    # ------------------------------------------------------------------
    # Token Issuer
    # ------------------------------------------------------------------

    def _issue(self, account: Account) -> AuthResult:
        claims = build_claims(account, self._store.roles_of(account))
        return AuthResult.ok(self._issuer.issue(claims))

    @staticmethod
    def _provider_mismatch(account: Account, requested: str) -> AuthResult:
        return AuthResult.fail(
            AuthError.PROVIDER_MISMATCH,
            f"User was registered via {account.provider.value} and cannot be logged via {requested}.",
        )
