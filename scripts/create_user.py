import argparse
import getpass
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from campus.auth import RegisterRequest, ValidationError, parse_request
from campus.config import load_settings
from campus.database import Database, resolve_database_path

MIN_PASSWORD_LENGTH = 6


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a campus directory user")
    parser.add_argument("name", help="Display name for the user")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to the YAML configuration file (defaults to CAMPUS_CONFIG or config/campus.yaml)",
    )
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (overrides the configured database_path)",
    )
    return parser.parse_args()


def prompt_for_password() -> str:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if len(password) < MIN_PASSWORD_LENGTH:
            print(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.", file=sys.stderr)
            continue
        return password
    raise SystemExit("Failed to set password after three attempts.")


def main() -> int:
    args = parse_args()
    password = prompt_for_password()

    try:
        request = parse_request(
            RegisterRequest,
            {
                "name": args.name,
                "email": args.email,
                "password": password,
                "password_confirmation": password,
            },
        )
    except ValidationError as exc:
        for field, messages in exc.errors.items():
            for message in messages:
                print(f"Error: {field}: {message}", file=sys.stderr)
        return 1

    if args.db_path:
        db_path = resolve_database_path(args.db_path)
    else:
        config_path = Path(args.config_path).expanduser() if args.config_path else None
        db_path = load_settings(config_path).database_path

    database = Database(db_path)
    database.initialize()

    try:
        user = database.create_user(request.name, request.email, request.password)
    except ValueError as exc:  # duplicates, etc.
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Created user #{user.id}: {user.name} <{user.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
