#!/usr/bin/env python3
"""
Create or reset an admin account.

The server bootstraps ADMIN_EMAIL / ADMIN_PASSWORD on startup; this script
covers additional admins and password resets without a restart.

Usage:
    python scripts/create_admin.py editor@example.com --name "Editor"
"""

import argparse
import asyncio
import getpass
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from portfolio.auth import ensure_admin_user
from portfolio.database import close_db, get_db_session, init_db


async def create_admin(email: str, password: str, name: str):
    await init_db()
    async for db in get_db_session():
        user = await ensure_admin_user(db, email, password, name)
        print(f"Admin ready: {user.email} (id {user.id})")
    await close_db()


def main():
    parser = argparse.ArgumentParser(description="Create or reset a portfolio admin account")
    parser.add_argument("email")
    parser.add_argument("--name", default="Admin")
    parser.add_argument("--password", help="Prompted for when omitted")
    args = parser.parse_args()

    password = args.password or getpass.getpass("Password: ")
    if len(password) < 8:
        print("Password must be at least 8 characters")
        sys.exit(1)

    asyncio.run(create_admin(args.email, password, args.name))


if __name__ == "__main__":
    main()
