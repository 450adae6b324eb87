#!/usr/bin/env python3
"""Create (or promote) a SUPER_ADMIN account.

Usage:
    python scripts/create_superuser.py --username admin --email admin@example.com
    python scripts/create_superuser.py --username admin --email admin@example.com --password '...'

Seeds the default roles first, so it also works against a freshly migrated database.
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import sys

from sqlalchemy import select

from hrms import models  # noqa: F401
from hrms.auth.models import Role, User
from hrms.auth.seed import seed_roles_and_permissions
from hrms.auth.service import hash_password
from hrms.common.constants import UserRole
from hrms.database import async_session_factory, engine


async def create_superuser(username: str, email: str, password: str) -> str:
    async with async_session_factory() as db:
        await seed_roles_and_permissions(db)
        role = (await db.execute(
            select(Role).where(Role.name == UserRole.super_admin.value)
        )).scalar_one()

        user = (await db.execute(select(User).where(User.username == username))).scalar_one_or_none()
        if user is None:
            user = User(
                username=username,
                email=email,
                password_hash=hash_password(password),
                enabled=True,
                email_verified=True,
                roles=[role],
            )
            db.add(user)
            outcome = "created"
        else:
            if role not in user.roles:
                user.roles.append(role)
            outcome = "promoted"
        await db.commit()
    await engine.dispose()
    return outcome


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a SUPER_ADMIN user")
    parser.add_argument("--username", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", help="prompted for when omitted")
    args = parser.parse_args()

    password = args.password or getpass.getpass("Password: ")
    if len(password) < 8:
        print("Password must be at least 8 characters", file=sys.stderr)
        return 1

    outcome = asyncio.run(create_superuser(args.username, args.email, password))
    print(f"User {args.username!r} {outcome} with role {UserRole.super_admin.value}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
