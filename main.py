"""Command-line interface for the registration service."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from typing import Sequence

from registration.config import Settings, load_settings
from registration.database import Database, resolve_database_path
from registration.errors import StorageError

logger = logging.getLogger("registration.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="User registration service")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    db_help = "Path to the SQLite database (defaults to REGISTRATION_DB_PATH or data/users.sqlite3)"

    init_parser = subparsers.add_parser("init-db", help="Create the users table and exit")
    init_parser.add_argument("--db", dest="db_path", default=None, help=db_help)

    list_parser = subparsers.add_parser("list-users", help="Print all registered users")
    list_parser.add_argument("--db", dest="db_path", default=None, help=db_help)

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP registration service")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, default=None, help="Listen port (default: 3000)")
    serve_parser.add_argument("--db", dest="db_path", default=None, help=db_help)

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "list-users"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    overrides = {}
    if getattr(args, "host", None):
        overrides["host"] = args.host
    if getattr(args, "port", None) is not None:
        overrides["port"] = args.port
    if getattr(args, "db_path", None):
        overrides["database_path"] = resolve_database_path(args.db_path)
    return replace(settings, **overrides)


def _initialise_database(settings: Settings) -> Database:
    database = Database(settings.database_path)
    try:
        database.initialize()
    except StorageError as exc:
        raise SystemExit(
            f"Unable to initialise the database at {settings.database_path}; refusing to start."
        ) from exc
    logger.info("Database initialised at %s", settings.database_path)
    return database


def _serve(*, database: Database, settings: Settings) -> None:
    from registration.service import create_app
    import uvicorn

    logger.info("Server running at http://%s:%s", settings.host, settings.port)

    app = create_app(database=database)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


def _list_users(database: Database) -> None:
    users = database.list_users()
    if not users:
        print("No users are currently registered.")
        return

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':>4}  {'Name':<20}  {'Gender':<8}  {'Email':<32}  {'Country':<12}  Created")
    print("-" * 100)
    for user in users:
        created = user.created_at.strftime("%Y-%m-%d %H:%M:%S %Z")
        print(
            f"{user.id:>4}  {user.name:<20}  {user.gender:<8}  {user.email:<32}  "
            f"{user.country:<12}  {created}"
        )


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    try:
        settings = _apply_overrides(load_settings(), args)
    except ValueError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    database = _initialise_database(settings)

    if args.command == "serve":
        _serve(database=database, settings=settings)
    elif args.command == "list-users":
        try:
            _list_users(database)
        finally:
            database.close()
    elif args.command == "init-db":
        database.close()
        print("Database initialisation complete.")


if __name__ == "__main__":
    main()
