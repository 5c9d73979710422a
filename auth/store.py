"""
auth/store.py -- SQLAlchemy Core credential store for accounts and roles.

Pattern: Repository + Data Mapper. AccountStore is the repository;
_row_to_account is the mapper. The Authenticator never touches SQL or
password hashes directly -- it hands plaintext secrets to create_account()
and verify_password() and gets back accounts or booleans.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Passwords: bcrypt, used directly. The _DUMMY_HASH constant lets
  verify_password() spend the same bcrypt work whether or not the account
  exists, so response time does not reveal which usernames are registered.

  Uniqueness: the Authenticator looks accounts up before creating one, but
  two concurrent registrations can both pass that check. The UNIQUE
  constraints on normalized_username / normalized_email are the real
  enforcement point; create_account() turns the IntegrityError into an
  AccountCreationError so a racing duplicate fails instead of succeeding.

  Lookups are case-insensitive: usernames and emails are matched on their
  upper-cased normalized form, the stored form keeps the caller's casing.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import re
import uuid
from datetime import datetime, timezone

import bcrypt
from sqlalchemy import Column, MetaData, String, Table, Text, UniqueConstraint, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import Account, Provider, Role

logger = logging.getLogger("authgateway.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("username", String(256), nullable=False),
    Column("normalized_username", String(256), nullable=False, unique=True),
    Column("email", String(256), nullable=False),
    Column("normalized_email", String(256), nullable=False, unique=True),
    Column("hashed_password", Text),
    Column("provider", String(20), nullable=False),
    Column("security_stamp", String(36)),
    Column("created_at", String(32), nullable=False),
)

_roles = Table(
    "roles",
    _metadata,
    Column("name", String(50), primary_key=True),
)

_account_roles = Table(
    "account_roles",
    _metadata,
    Column("account_id", String(36), nullable=False),
    Column("role", String(50), nullable=False),
    UniqueConstraint("account_id", "role"),
)

_DEFAULT_ROLES = (Role.ADMIN, Role.USER)

# ---------------------------------------------------------------------------
# Password policy and hashing
# ---------------------------------------------------------------------------

_MIN_PASSWORD_LENGTH = 6


def password_policy_errors(password: str) -> list[str]:
    """Return every policy rule the password breaks (empty list if it passes)."""
    errors: list[str] = []
    if len(password) < _MIN_PASSWORD_LENGTH:
        errors.append(f"Passwords must be at least {_MIN_PASSWORD_LENGTH} characters.")
    if not re.search(r"[\W_]", password):
        errors.append("Passwords must have at least one non alphanumeric character.")
    if not re.search(r"[0-9]", password):
        errors.append("Passwords must have at least one digit ('0'-'9').")
    if not re.search(r"[a-z]", password):
        errors.append("Passwords must have at least one lowercase ('a'-'z').")
    if not re.search(r"[A-Z]", password):
        errors.append("Passwords must have at least one uppercase ('A'-'Z').")
    return errors


# bcrypt only looks at the first 72 bytes of its input, and allowed passwords
# run to 128 characters. The full secret is digested with SHA-256 and
# base64-encoded (44 bytes, no NUL) before it reaches bcrypt, so every
# character counts.
def _secret_bytes(plain: str) -> bytes:
    return base64.b64encode(hashlib.sha256(plain.encode("utf-8")).digest())


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(_secret_bytes(plain), bcrypt.gensalt()).decode("utf-8")


def check_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(_secret_bytes(plain), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# Computed once at module load so the first failed login is not measurably
# slower than later ones.
_DUMMY_HASH: str = hash_password("authgateway_timing_dummy")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class AccountCreationError(Exception):
    """The store refused to persist a new account.

    errors holds one human-readable message per violated rule (password
    policy, duplicate username, duplicate email).
    """

    def __init__(self, errors: list[str]) -> None:
        super().__init__(", ".join(errors))
        self.errors = errors


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _normalize(value: str) -> str:
    return value.strip().upper()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account entities and their roles.

    Usage:
        store = AccountStore("sqlite:///:memory:")
        store.create_account(Account(username="alice", email="alice@example.com"), "Secret!1")
        account = store.get_by_username("alice")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)
        self._ensure_roles()

    def _ensure_roles(self) -> None:
        """Insert the built-in roles if they are missing. Safe to call on every startup."""
        with self.engine.connect() as conn:
            existing = {row.name for row in conn.execute(_roles.select()).fetchall()}
            for name in _DEFAULT_ROLES:
                if name not in existing:
                    conn.execute(_roles.insert().values(name=name))
            conn.commit()

    # ------------------------------------------------------------------
    # Account queries
    # ------------------------------------------------------------------

    def get_by_username(self, username: str) -> Account | None:
        """Look up an account by username (case-insensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _accounts.select().where(_accounts.c.normalized_username == _normalize(username))
            ).fetchone()
            return self._load(conn, row)

    def get_by_email(self, email: str) -> Account | None:
        """Look up an account by email (case-insensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.normalized_email == _normalize(email))).fetchone()
            return self._load(conn, row)

    def get_by_id(self, account_id: str) -> Account | None:
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
            return self._load(conn, row)

    def count_accounts(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(text("SELECT COUNT(*) FROM accounts")).scalar()
        return result or 0

    def create_account(self, account: Account, password: str) -> str:
        """Hash the password, insert the account and return its new id.

        The account object is updated in place with its id, hash and
        creation timestamp. Roles are not written here -- call add_role().

        Raises AccountCreationError if the password breaks the policy or the
        username/email is already taken (including a concurrent insert that
        won the race).
        """
        errors = password_policy_errors(password)
        if errors:
            raise AccountCreationError(errors)

        account_id = account.id or str(uuid.uuid4())
        hashed = hash_password(password)
        created_at = _now_iso()
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _accounts.insert().values(
                        id=account_id,
                        username=account.username,
                        normalized_username=_normalize(account.username),
                        email=account.email,
                        normalized_email=_normalize(account.email),
                        hashed_password=hashed,
                        provider=account.provider.value,
                        security_stamp=account.security_stamp,
                        created_at=created_at,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise AccountCreationError(self._duplicate_errors(account)) from exc

        account.id = account_id
        account.hashed_password = hashed
        account.created_at = created_at
        logger.info("Account created (id=%s, provider=%s)", account_id, account.provider.value)
        return account_id

    def _duplicate_errors(self, account: Account) -> list[str]:
        errors: list[str] = []
        if self.get_by_username(account.username) is not None:
            errors.append(f"Username '{account.username}' is already taken.")
        if self.get_by_email(account.email) is not None:
            errors.append(f"Email '{account.email}' is already taken.")
        return errors or [f"Account '{account.username}' could not be stored."]

    def verify_password(self, account: Account | None, password: str) -> bool:
        """Check a plaintext password against the account's stored hash.

        Always runs bcrypt, even for a missing account or an account without
        a hash, so the caller cannot be timed into revealing which one it was.
        """
        if account is None or not account.hashed_password:
            check_password(password, _DUMMY_HASH)
            return False
        return check_password(password, account.hashed_password)

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def roles_of(self, account: Account) -> set[str]:
        with self.engine.connect() as conn:
            return self._roles_for(conn, account.id)

    def add_role(self, account: Account, role: str) -> None:
        """Grant a role to an account. Granting a role it already holds is a no-op.

        Raises ValueError for a role that does not exist.
        """
        with self.engine.connect() as conn:
            if conn.execute(_roles.select().where(_roles.c.name == role)).fetchone() is None:
                raise ValueError(f"Unknown role: {role!r}")
            held = self._roles_for(conn, account.id)
            if role not in held:
                conn.execute(_account_roles.insert().values(account_id=account.id, role=role))
                conn.commit()
        account.roles.add(role)

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _roles_for(self, conn, account_id: str | None) -> set[str]:
        rows = conn.execute(
            _account_roles.select().where(_account_roles.c.account_id == account_id).order_by(_account_roles.c.role)
        ).fetchall()
        return {r.role for r in rows}

    def _load(self, conn, row) -> Account | None:
        if row is None:
            return None
        return _row_to_account(row, self._roles_for(conn, row.id))


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row, roles: set[str]) -> Account:
    return Account(
        id=row.id,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        provider=Provider(row.provider),
        security_stamp=row.security_stamp,
        roles=roles,
        created_at=row.created_at,
    )
