"""Command-line interface for the user records service."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from crudapp.application import create_database
from crudapp.config import Settings
from crudapp.database import Database, StoreError

logger = logging.getLogger("crudapp.main")


def _add_database_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy URL of the database (defaults to DATABASE_URL or the DB_* variables)",
    )


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="User records service utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    init_parser = subparsers.add_parser("init-db", help="Create the users table if it is missing")
    _add_database_option(init_parser)

    list_parser = subparsers.add_parser("list-users", help="Print the stored user records")
    _add_database_option(list_parser)

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP service")
    serve_parser.add_argument(
        "--host",
        default=None,
        help="Bind address (default: HOST or 0.0.0.0)",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Listen port (default: PORT or 3000)",
    )
    _add_database_option(serve_parser)

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "list-users"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _serve(*, database: Database, settings: Settings, host: str, port: int) -> None:
    from crudapp.service import create_app
    import uvicorn

    logger.info("Starting user records service on http://%s:%s", host, port)
    logger.info("Database: %s", database.describe())

    # Schema was ensured before the listener starts; the app only has to own the pool.
    app = create_app(database=database, initialize_schema=False)
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
    )


def _list_users(database: Database) -> None:
    users = database.list_users()
    if not users:
        print("No users are currently stored.")
        return

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':>4}  {'Name':<24}  {'Email':<32}  {'Age':>4}  Created")
    print("-" * 88)
    for user in users:
        created = user.created_at.strftime("%Y-%m-%d %H:%M:%S")
        age = "" if user.age is None else str(user.age)
        print(f"{user.id:>4}  {user.name:<24}  {user.email:<32}  {age:>4}  {created}")


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    args = _parse_args(argv)

    try:
        settings = Settings.from_env()
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    database = create_database(settings, database_url=args.database_url)
    try:
        database.initialize()
    except StoreError:
        logger.exception("Error initialising database %s", database.describe())
        database.close()
        return 1

    if args.command == "serve":
        # uvicorn drains connections on SIGTERM/SIGINT; the app lifespan closes the pool.
        _serve(
            database=database,
            settings=settings,
            host=args.host or settings.host,
            port=args.port if args.port is not None else settings.port,
        )
        return 0

    try:
        if args.command == "list-users":
            _list_users(database)
        elif args.command == "init-db":
            reachable = "reachable" if database.ping() else "unreachable"
            print(f"Database initialisation complete ({database.describe()}, {reachable}).")
    except StoreError:
        logger.exception("Database command %s failed", args.command)
        return 1
    finally:
        database.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
