#!/usr/bin/env python3
"""
postgate -- Session-authenticated users and posts.

Usage:
  python main.py serve
  python main.py serve --host 127.0.0.1 --port 9000 --reload
  python main.py create-user alice@example.com
  python main.py purge-sessions

Configuration comes from the environment or a .env file (see core/config.py):
  SECRET_KEY      Required unless DEBUG=true. At least 32 characters.
  DATABASE_URL    SQLAlchemy URL for users and posts (default sqlite:///postgate.db).
  SESSION_BACKEND memory (default) or shared.
"""

import argparse
import getpass
import sys

from sqlalchemy.exc import IntegrityError

from core.config import get_settings


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _create_user(args: argparse.Namespace) -> int:
    """Create an account from the terminal without going through POST /users."""
    from auth.models import User
    from auth.passwords import hash_password
    from auth.store import UserStore

    password = getpass.getpass("Password: ")
    if not password:
        print("  [!] Password cannot be empty.")
        return 1
    if getpass.getpass("Repeat password: ") != password:
        print("  [!] Passwords do not match.")
        return 1

    store = UserStore(get_settings().database_url)
    try:
        if store.get_by_email(args.email) is not None:
            print(f"  [!] A user with email '{args.email}' already exists.")
            return 1
        user = store.create_user(User(email=args.email, password_hash=hash_password(password)))
    except IntegrityError:
        print(f"  [!] A user with email '{args.email}' already exists.")
        return 1
    finally:
        store.close()
    print(f"  Created user {user.id} ({user.email})")
    return 0


def _purge_sessions(args: argparse.Namespace) -> int:
    """Remove expired rows from the shared session store.

    The in-memory backend lives inside the server process, so there is
    nothing to purge from here.
    """
    from auth.sessions import build_session_store

    settings = get_settings()
    if settings.session_backend != "shared":
        print("  SESSION_BACKEND is 'memory'; expired sessions are purged by the server itself.")
        return 0
    store = build_session_store(settings)
    try:
        removed = store.purge_expired()
    finally:
        store.close()
    print(f"  Purged {removed} expired session(s).")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="postgate",
        description="Session-authenticated users and posts.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --reload
  DATABASE_URL=postgresql://app@db/postgate python main.py create-user admin@example.com
  SESSION_BACKEND=shared python main.py purge-sessions
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    serve.add_argument("--port", type=int, default=8080, help="Port (default: 8080)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    serve.set_defaults(func=_serve)

    create = sub.add_parser("create-user", help="Create an account; prompts for the password")
    create.add_argument("email", help="Email address of the new account")
    create.set_defaults(func=_create_user)

    purge = sub.add_parser("purge-sessions", help="Delete expired sessions from the shared store")
    purge.set_defaults(func=_purge_sessions)

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        return
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
