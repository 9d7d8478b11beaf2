import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from usercrud.database import Database, ValidationError, resolve_database_path


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Add a user record directly to the users database")
    parser.add_argument("name", help="Full name of the user")
    parser.add_argument("email", help="Email address of the user")
    parser.add_argument("--phone", default=None, help="Phone number")
    parser.add_argument("--age", default=None, help="Age in years")
    parser.add_argument("--address", default=None, help="Postal address")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to USERCRUD_DB_PATH or data/users.sqlite3)",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    db_env = args.db_path or os.getenv("USERCRUD_DB_PATH")
    db_path = resolve_database_path(db_env)

    database = Database(db_path)
    database.initialize()

    try:
        user = database.create_user(
            {
                "name": args.name,
                "email": args.email,
                "phone": args.phone,
                "age": args.age,
                "address": args.address,
            }
        )
    except ValidationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Created user {user.id}: {user.name} <{user.email}>")
    print(f"The database now holds {database.count_users()} user(s).")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
