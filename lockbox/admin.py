#!/usr/bin/env python3
"""
Lockbox administration CLI

Manages the credential store directly; the server does not need to be
running. Uses the same LOCKBOX_DB_URL as the server.

Usage:
    lockbox-admin set-user alice --password 'correct horse' [--admin]
    lockbox-admin delete-user alice
    lockbox-admin list-users
    lockbox-admin show-token
    lockbox-admin rotate-secret

    lockbox-serve
"""
import argparse
import logging
import os
import sys

import uvicorn

from lockbox.auth.credentials import CredentialStore
from lockbox.core.config import Settings
from lockbox.core.db.engine import create_db_engine
from lockbox.core.errors import ConfigurationError, WeakCredentialError
from lockbox.core.logger import configure_app_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lockbox-admin",
        description="Manage Lockbox credentials and the server secret.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    set_user = commands.add_parser("set-user", help="Create or update a user")
    set_user.add_argument("username")
    set_user.add_argument("--password", required=True)
    set_user.add_argument("--admin", action="store_true", help="Mark the user as admin")

    delete_user = commands.add_parser("delete-user", help="Remove a user")
    delete_user.add_argument("username")

    commands.add_parser("list-users", help="List usernames")
    commands.add_parser("show-token", help="Print the access token for stateless login")
    commands.add_parser(
        "rotate-secret",
        help="Replace the server secret, invalidating every session token",
    )
    return parser


def run(argv: list[str] | None = None, store: CredentialStore | None = None) -> int:
    """Execute one admin command and return the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        if store is None:
            settings = Settings.from_env()
            store = CredentialStore(create_db_engine(settings.db_url))
        store.load()

        if args.command == "set-user":
            store.set_credential(args.username, args.password, is_admin=args.admin)
            print(f"User '{args.username}' saved")
        elif args.command == "delete-user":
            if not store.delete_credential(args.username):
                print(f"User '{args.username}' not found", file=sys.stderr)
                return 1
            print(f"User '{args.username}' deleted")
        elif args.command == "list-users":
            for username in store.list_usernames():
                print(username)
        elif args.command == "show-token":
            print(store.access_token)
        elif args.command == "rotate-secret":
            store.rotate_secret()
            print("Server secret rotated; all existing session tokens are now invalid")
    except (WeakCredentialError, ConfigurationError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


def main() -> None:
    configure_app_logging(level=logging.WARNING, log_to_file=False)
    sys.exit(run())


def serve() -> None:
    """Run the server with uvicorn on LOCKBOX_HOST:LOCKBOX_PORT."""
    uvicorn.run(
        "lockbox.app:main_app",
        factory=True,
        host=os.getenv("LOCKBOX_HOST", "127.0.0.1"),
        port=int(os.getenv("LOCKBOX_PORT", "8000")),
        log_config=None,
    )


if __name__ == "__main__":
    main()
