#!/usr/bin/env python3
"""Admin script to register a user in the app DB.

Usage:
    python scripts/add_user.py username [password]

The same validation rules as the registration page apply (username length,
password length). When the password is omitted it is prompted for twice.
"""
# Make the script runnable from the project root or from anywhere by
# adding the project root to sys.path.
import os
import sys
proj_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if proj_root not in sys.path:
    sys.path.insert(0, proj_root)

import argparse
import asyncio
import getpass


async def _register(username: str, password: str, confirm_password: str):
    # Import app modules lazily so running `-h` doesn't require installing
    # all runtime dependencies.
    from todo_app.auth import ANONYMOUS, delete_session
    from todo_app.auth_flow import register
    from todo_app.db import init_db
    await init_db()
    result = await register(ANONYMOUS, username, password, confirm_password)
    # registration opens a session; an operator-created account does not need one
    await delete_session(result.session_token)
    return result


def parse_args(argv):
    p = argparse.ArgumentParser(description="Register a user in the app DB")
    p.add_argument("username", help="username to create")
    # make password optional; if omitted we'll prompt securely
    p.add_argument("password", nargs="?", help="password for the user (omit to prompt)")
    p.add_argument("--db", default=None, help="path to sqlite file to use instead of DATABASE_URL")
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv if argv is not None else sys.argv[1:])
    # The todo_app.config module reads DATABASE_URL at import time.
    if args.db:
        os.environ['DATABASE_URL'] = f"sqlite+aiosqlite:///{args.db}"
    password = args.password
    confirm = password
    if not password:
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")

    from todo_app.errors import AuthFlowError
    try:
        result = asyncio.run(_register(args.username, password, confirm))
    except AuthFlowError as e:
        print(e.message, file=sys.stderr)
        return 2
    print(f"User '{result.username}' saved with id={result.user_id}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
