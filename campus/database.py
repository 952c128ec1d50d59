"""SQLite-backed persistence for directory users."""
from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from passlib.context import CryptContext

from .models import User


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "campus.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _clean_email(email: str) -> str:
    return email.strip()


_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def _hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def _verify_password(password: str, hashed: str) -> bool:
    try:
        return _pwd_context.verify(password, hashed)
    except (ValueError, TypeError):
        return False


class Database:
    """Simple wrapper around SQLite for persisting users."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE COLLATE NOCASE,
                    password_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                """
            )

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def create_user(self, name: str, email: str, password: str) -> User:
        """Create a new user with a hashed password."""

        if not password:
            raise ValueError("Password must not be empty")

        normalized_name = name.strip()
        if not normalized_name:
            raise ValueError("Name must not be empty")

        created_at = _current_timestamp()
        serialized = _serialize_datetime(created_at)
        cleaned_email = _clean_email(email)
        password_hash = _hash_password(password)

        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO users (name, email, password_hash, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (normalized_name, cleaned_email, password_hash, serialized, serialized),
                )
            except sqlite3.IntegrityError as exc:
                raise ValueError("A user with that email already exists") from exc

            user_id = cursor.lastrowid

        return User(
            id=int(user_id),
            name=normalized_name,
            email=cleaned_email,
            created_at=created_at,
            updated_at=created_at,
        )

    def get_user(self, user_id: int) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def email_in_use(self, email: str, *, exclude_user_id: Optional[int] = None) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id FROM users WHERE email = ? COLLATE NOCASE",
                (_clean_email(email),),
            ).fetchone()
        if row is None:
            return False
        return exclude_user_id is None or int(row["id"]) != exclude_user_id

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ? COLLATE NOCASE",
                (_clean_email(email),),
            ).fetchone()
        if row is None:
            return None
        stored_hash = row["password_hash"]
        if not stored_hash or not _verify_password(password, stored_hash):
            return None
        return self._row_to_user(row)

    def update_user(
        self,
        user_id: int,
        *,
        name: str,
        email: str,
        password: str,
    ) -> Optional[User]:
        """Replace the profile and password of an existing user.

        Returns ``None`` when no user with ``user_id`` exists.
        """

        normalized_name = name.strip()
        if not normalized_name:
            raise ValueError("Name must not be empty")
        if not password:
            raise ValueError("Password must not be empty")

        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    """
                    UPDATE users
                       SET name = ?, email = ?, password_hash = ?, updated_at = ?
                     WHERE id = ?
                    """,
                    (
                        normalized_name,
                        _clean_email(email),
                        _hash_password(password),
                        _serialize_datetime(_current_timestamp()),
                        user_id,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise ValueError("A user with that email already exists") from exc
            if cursor.rowcount == 0:
                return None

        return self.get_user(user_id)

    def delete_user(self, user_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=int(row["id"]),
            name=str(row["name"]),
            email=str(row["email"]),
            created_at=_parse_datetime(str(row["created_at"])),
            updated_at=_parse_datetime(str(row["updated_at"])),
        )


__all__ = ["Database", "resolve_database_path"]
