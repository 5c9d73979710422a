"""
auth/seed.py -- First-run seeding of the admin account.

The built-in roles (Admin, User) are created by AccountStore itself. This
module only adds the administrator: a Password account holding the Admin
role. Seeding is idempotent -- an existing account with the admin username
is left alone.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import uuid

from auth.models import Account, Provider, Role
from auth.store import AccountStore

logger = logging.getLogger("authgateway.auth.seed")


def seed_admin(store: AccountStore, username: str, email: str, password: str) -> Account:
    """Return the admin account, creating it first if it does not exist.

    Raises auth.store.AccountCreationError if the store rejects the account
    (weak password, email already used by another account).
    """
    existing = store.get_by_username(username)
    if existing is not None:
        return existing

    admin = Account(
        username=username,
        email=email,
        provider=Provider.PASSWORD,
        security_stamp=str(uuid.uuid4()),
    )
    store.create_account(admin, password)
    store.add_role(admin, Role.ADMIN)
    logger.info("Seeded admin account %s", username)
    return admin
