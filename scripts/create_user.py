import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from crudapp.application import create_database
from crudapp.config import Settings
from crudapp.database import StoreError, UserConflictError


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Insert a user record from the command line")
    parser.add_argument("name", help="Display name for the user")
    parser.add_argument("email", help="Unique email address")
    parser.add_argument("--age", type=int, default=None, help="Optional age")
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy URL of the database (defaults to DATABASE_URL or the DB_* variables)",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    name = args.name.strip()
    email = args.email.strip()
    if not name or not email:
        print("Error: name and email are required", file=sys.stderr)
        return 1

    database = create_database(Settings.from_env(), database_url=args.database_url)
    try:
        database.initialize()
        user = database.create_user(name, email, args.age)
    except UserConflictError:
        print(f"Error: a user with email {email} already exists", file=sys.stderr)
        return 1
    except StoreError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        database.close()

    print(f"Created user #{user.id}: {user.name} <{user.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
