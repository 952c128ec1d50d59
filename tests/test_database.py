from __future__ import annotations

from pathlib import Path

import pytest

from campus.database import Database


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db_path = tmp_path / "campus.sqlite3"
    db = Database(db_path)
    db.initialize()
    return db


def _stored_hash(database: Database, user_id: int) -> str:
    with database._connect() as conn:
        row = conn.execute("SELECT password_hash FROM users WHERE id = ?", (user_id,)).fetchone()
    return str(row["password_hash"])


def test_create_and_authenticate_user(database: Database) -> None:
    user = database.create_user("Ada Lovelace", " Ada@Example.com ", "analytical")

    assert user.email == "Ada@Example.com"
    assert database.get_user(user.id).email == "Ada@Example.com"
    assert user.created_at == user.updated_at

    retrieved = database.authenticate_user("ADA@example.com", "analytical")
    assert retrieved is not None
    assert retrieved.id == user.id

    assert database.authenticate_user("ada@example.com", "wrong-password") is None
    assert database.authenticate_user("nobody@example.com", "analytical") is None


def test_password_is_stored_hashed(database: Database) -> None:
    user = database.create_user("Grace", "grace@example.com", "cobol-rules")

    stored = _stored_hash(database, user.id)
    assert stored is not None
    assert stored != "cobol-rules"
    assert "cobol-rules" not in stored


def test_duplicate_email_is_rejected(database: Database) -> None:
    database.create_user("First", "dup@example.com", "secret1")
    with pytest.raises(ValueError):
        database.create_user("Second", "DUP@example.com", "secret2")


def test_create_user_requires_name_and_password(database: Database) -> None:
    with pytest.raises(ValueError):
        database.create_user("  ", "blank@example.com", "secret1")
    with pytest.raises(ValueError):
        database.create_user("Blank", "blank@example.com", "")


def test_email_in_use_can_exclude_owner(database: Database) -> None:
    user = database.create_user("Owner", "owner@example.com", "secret1")

    assert database.email_in_use("owner@example.com")
    assert not database.email_in_use("owner@example.com", exclude_user_id=user.id)
    assert not database.email_in_use("free@example.com")


def test_update_user_replaces_profile_and_password(database: Database) -> None:
    user = database.create_user("Old Name", "old@example.com", "old-secret")

    updated = database.update_user(user.id, name=" New Name ", email="New@example.com", password="new-secret")

    assert updated is not None
    assert updated.name == "New Name"
    assert updated.email == "New@example.com"
    assert updated.created_at == user.created_at
    assert updated.updated_at >= user.updated_at
    assert database.authenticate_user("new@example.com", "new-secret") is not None
    assert database.authenticate_user("new@example.com", "old-secret") is None


def test_update_user_reports_missing_and_duplicate(database: Database) -> None:
    first = database.create_user("First", "first@example.com", "secret1")
    database.create_user("Second", "second@example.com", "secret2")

    assert database.update_user(999, name="Ghost", email="ghost@example.com", password="secret3") is None
    with pytest.raises(ValueError):
        database.update_user(first.id, name="First", email="second@example.com", password="secret1")


def test_delete_user(database: Database) -> None:
    user = database.create_user("Temp", "temp@example.com", "secret1")

    assert database.delete_user(user.id) is True
    assert database.get_user(user.id) is None
    assert database.delete_user(user.id) is False
