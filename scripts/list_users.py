#!/usr/bin/env python3
"""List users in the database.

Usage:
  DATABASE_URL="sqlite+aiosqlite:///./todo_app.db" python scripts/list_users.py

Prints id, username and creation time for every user. Password hashes and
sessions are never printed.
"""
import os
import sys
proj_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if proj_root not in sys.path:
    sys.path.insert(0, proj_root)

import asyncio


async def collect():
    # import here so we pick up DATABASE_URL if set
    from todo_app.auth import list_users
    from todo_app.db import init_db
    await init_db()
    return await list_users()


def format_users(users) -> str:
    if not users:
        return "No users found in DB."
    lines = [f"Found {len(users)} users:", ""]
    for u in users:
        created = u.created_at.isoformat() if u.created_at else '-'
        lines.append(f"{u.id}\t{u.username}\t{created}")
    return "\n".join(lines)


def main():
    from todo_app import config
    print(f"Using DATABASE_URL={config.DATABASE_URL}")
    print(format_users(asyncio.run(collect())))
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
