#!/usr/bin/env python3
"""
Authentication gateway -- management CLI.

Works directly against the account database configured in the environment
(DATABASE_URL, JWT_SECRET, ... -- see core/config.py). No server required.

Usage:
  python main.py seed-admin
  python main.py add-role alice Admin
  python main.py login alice 'Secret!1'
  python main.py decode-token eyJhbGciOi...

Exit status is 0 on success and 1 on any failure.
"""

import argparse
import json
import logging
import sys
from typing import Optional

from auth.models import AuthConfig
from auth.seed import seed_admin
from auth.service import Authenticator
from auth.store import AccountCreationError, AccountStore
from auth.tokens import TokenIssuer
from core.config import get_settings

logger = logging.getLogger("authgateway.cli")


def _cmd_seed_admin(args: argparse.Namespace, store: AccountStore, config: AuthConfig) -> int:
    settings = get_settings()
    if not settings.admin_password:
        print("  [!] ADMIN_PASSWORD is not set -- nothing to seed.")
        return 1
    try:
        admin = seed_admin(store, settings.admin_username, settings.admin_email, settings.admin_password)
    except AccountCreationError as exc:
        print(f"  [!] Could not create admin: {exc}")
        return 1
    print(f"  Admin account: {admin.username} ({admin.email})")
    return 0


def _cmd_add_role(args: argparse.Namespace, store: AccountStore, config: AuthConfig) -> int:
    account = store.get_by_username(args.username) or store.get_by_email(args.username)
    if account is None:
        print(f"  [!] No account named '{args.username}'.")
        return 1
    try:
        store.add_role(account, args.role)
    except ValueError as exc:
        print(f"  [!] {exc}")
        return 1
    print(f"  {account.username}: {', '.join(sorted(store.roles_of(account)))}")
    return 0


def _cmd_login(args: argparse.Namespace, store: AccountStore, config: AuthConfig) -> int:
    result = Authenticator(store, config).login(args.username, args.password)
    if result.is_failed:
        for message in result.errors:
            print(f"  [!] {message}")
        return 1
    print(result.value)
    return 0


def _cmd_decode_token(args: argparse.Namespace, store: AccountStore, config: AuthConfig) -> int:
    payload = TokenIssuer(config).decode(args.token)
    if payload is None:
        print("  [!] Token is invalid, expired, or signed with a different key.")
        return 1
    print(json.dumps(payload, indent=2, sort_keys=True))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="authgateway",
        description="Manage accounts and inspect tokens of the authentication gateway.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ADMIN_PASSWORD='VerySecretPassword!1' python main.py seed-admin
  python main.py add-role alice Admin
  python main.py login alice 'Secret!1'
  python main.py decode-token "$(python main.py login alice 'Secret!1')"
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p = sub.add_parser("seed-admin", help="Create the admin account from ADMIN_* settings if missing")
    p.set_defaults(handler=_cmd_seed_admin)

    p = sub.add_parser("add-role", help="Grant a role (Admin, User) to an account")
    p.add_argument("username", help="Username or email of the account")
    p.add_argument("role", help="Role name, e.g. Admin")
    p.set_defaults(handler=_cmd_add_role)

    p = sub.add_parser("login", help="Log in with a local password and print the token")
    p.add_argument("username", help="Username or email")
    p.add_argument("password")
    p.set_defaults(handler=_cmd_login)

    p = sub.add_parser("decode-token", help="Verify a token with the configured key and print its claims")
    p.add_argument("token")
    p.set_defaults(handler=_cmd_decode_token)

    return parser


def main(argv: Optional[list[str]] = None, store: Optional[AccountStore] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "handler", None):
        parser.print_help()
        return 1

    logging.basicConfig(level=logging.WARNING, format="%(asctime)s %(levelname)-5s %(name)s %(message)s")

    settings = get_settings()
    config = AuthConfig.from_settings(settings)
    owns_store = store is None
    store = store or AccountStore(settings.database_url)
    try:
        return args.handler(args, store, config)
    finally:
        if owns_store:
            store.close()


if __name__ == "__main__":
    sys.exit(main())
