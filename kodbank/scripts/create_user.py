"""
Create a user (e.g. an admin) without going through the HTTP API. Run from project root:
  python -m kodbank.scripts.create_user USERNAME EMAIL PASSWORD [role]
Example:
  python -m kodbank.scripts.create_user admin admin@example.com your-secure-password admin
"""
import argparse
import sys

from dotenv import load_dotenv

from kodbank.core.config import get_settings
from kodbank.core.database import Database
from kodbank.core.errors import KodbankError
from kodbank.services.auth import ROLES, register_user


def main(argv: list[str] | None = None, database: Database | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a Kodbank user.")
    parser.add_argument("username", help="Username (3-50 chars)")
    parser.add_argument("email", help="Email address (stored lowercased)")
    parser.add_argument("password", help="Password (6-128 chars)")
    parser.add_argument("role", nargs="?", default="customer", choices=list(ROLES))
    parser.add_argument("--phone", default=None, help="Optional phone number")
    args = parser.parse_args(argv)

    if database is None:
        load_dotenv()
        database = Database.from_settings(get_settings(), pool_size=1, max_overflow=0)
    db = database.session()
    try:
        user = register_user(
            db,
            args.username,
            args.email,
            args.password,
            phone=args.phone,
            role=args.role,
        )
    except KodbankError as e:
        print(e.message, file=sys.stderr)
        return 1
    finally:
        db.close()
    print(f"Created user '{user.username}' with role '{user.role}'.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
