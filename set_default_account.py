#!/usr/bin/env python3
"""
Flag a connected mailbox as the shared default for its provider.

Recruiters without their own connected account fall back to the default
account when fetching applications.

Usage:
    python set_default_account.py <user_id> <gmail|microsoft>
    python set_default_account.py --list <user_id>
"""

import sys

from dotenv import load_dotenv

from hirebox.config import get_config
from hirebox.credentials import CredentialStore
from hirebox.database import configure_database, init_db
from hirebox.errors import NotFoundError


def main(argv=None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    load_dotenv()

    if len(argv) != 2:
        print(__doc__)
        return 2

    try:
        config = get_config()
        if config.database_path:
            configure_database(config.database_path)
    except FileNotFoundError:
        # No config.yaml: use the default database location
        pass
    init_db()

    store = CredentialStore()

    if argv[0] == "--list":
        credentials = store.list_for_user(argv[1])
        if not credentials:
            print(f"No accounts connected for user {argv[1]}")
        for credential in credentials:
            marker = " (default)" if credential.is_default else ""
            print(f"  {credential.provider.value:10} {credential.email}{marker}")
        return 0

    user_id, provider = argv
    try:
        credential = store.set_default(user_id, provider)
    except (NotFoundError, ValueError) as e:
        print(f"✗ {e}")
        return 1

    print(f"✓ Default {credential.provider.value} account is now {credential.email}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
