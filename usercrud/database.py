"""SQLite-backed document store for user records."""
from __future__ import annotations

import json
import logging
import secrets
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional

from .models import User

logger = logging.getLogger("usercrud.database")


class UserStoreError(Exception):
    """Base class for record store failures."""


class ValidationError(UserStoreError, ValueError):
    """Raised when a record is missing a required field or has a malformed one."""


class NotFound(UserStoreError, LookupError):
    """Raised when no record exists for the requested identifier."""

    def __init__(self, user_id: str) -> None:
        super().__init__("User not found")
        self.user_id = user_id


class StoreUnavailable(UserStoreError, RuntimeError):
    """Raised when the underlying SQLite database cannot be used."""


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "users.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat(timespec="microseconds")


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _generate_user_id() -> str:
    return secrets.token_hex(12)


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def _clean_age(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError("Age must be a whole number")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError("Age must be a whole number")

    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError as exc:
        raise ValidationError("Age must be a whole number") from exc


def normalize_user_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate raw record fields and return the document to persist.

    ``name`` and ``email`` are required. Optional text fields collapse empty
    strings to ``None`` and ``age`` accepts integers or integer strings.
    Unknown keys are ignored.
    """

    name = _clean_text(fields.get("name"))
    email = _clean_text(fields.get("email"))

    missing = [label for label, value in (("Name", name), ("Email", email)) if value is None]
    if missing:
        raise ValidationError(f"{' and '.join(missing)} {'is' if len(missing) == 1 else 'are'} required")

    return {
        "name": name,
        "email": email,
        "phone": _clean_text(fields.get("phone")),
        "age": _clean_age(fields.get("age")),
        "address": _clean_text(fields.get("address")),
    }


class Database:
    """Simple wrapper around SQLite storing each user as a JSON document."""

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

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            logger.exception("Unable to open user database at %s", self._path)
            raise StoreUnavailable("User database is unavailable") from exc

        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            logger.exception("User database operation failed")
            raise StoreUnavailable("User database is unavailable") from exc
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the users collection if it does not already exist."""

        with self._transaction() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    document TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_users_created_at ON users(created_at);
                """
            )

    # ------------------------------------------------------------------
    # User records
    # ------------------------------------------------------------------
    def create_user(self, fields: Mapping[str, Any]) -> User:
        """Persist a new user and return it with its generated identifier."""

        document = normalize_user_fields(fields)
        created_at = _current_timestamp()
        user_id = _generate_user_id()

        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO users (id, document, created_at, updated_at) VALUES (?, ?, ?, ?)",
                (
                    user_id,
                    json.dumps(document),
                    _serialize_datetime(created_at),
                    _serialize_datetime(created_at),
                ),
            )

        return self._build_user(user_id, document, created_at, created_at)

    def list_users(self) -> List[User]:
        """Return every user, newest first."""

        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM users ORDER BY created_at DESC, rowid DESC"
            ).fetchall()
        return [self._row_to_user(row) for row in rows]

    def count_users(self) -> int:
        with self._transaction() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM users").fetchone()
        return int(row["total"])

    def get_user(self, user_id: str) -> User:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            raise NotFound(user_id)
        return self._row_to_user(row)

    def update_user(self, user_id: str, fields: Mapping[str, Any]) -> User:
        """Replace the mutable fields of an existing user.

        Optional fields missing from ``fields`` are cleared rather than kept,
        since the stored document is replaced as a whole.
        """

        with self._transaction() as conn:
            row = conn.execute(
                "SELECT created_at FROM users WHERE id = ?",
                (user_id,),
            ).fetchone()
            if row is None:
                raise NotFound(user_id)

            document = normalize_user_fields(fields)
            updated_at = _current_timestamp()
            conn.execute(
                "UPDATE users SET document = ?, updated_at = ? WHERE id = ?",
                (json.dumps(document), _serialize_datetime(updated_at), user_id),
            )

        return self._build_user(
            user_id,
            document,
            _parse_datetime(row["created_at"]),
            updated_at,
        )

    def delete_user(self, user_id: str) -> User:
        """Remove a user and return the record that was deleted."""

        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            if row is None:
                raise NotFound(user_id)
            conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
        return self._row_to_user(row)

    def _row_to_user(self, row: sqlite3.Row) -> User:
        try:
            document = json.loads(row["document"])
        except ValueError as exc:
            raise StoreUnavailable(f"Stored document for user {row['id']} is corrupt") from exc
        return self._build_user(
            row["id"],
            document,
            _parse_datetime(row["created_at"]),
            _parse_datetime(row["updated_at"]),
        )

    @staticmethod
    def _build_user(
        user_id: str,
        document: Mapping[str, Any],
        created_at: datetime,
        updated_at: datetime,
    ) -> User:
        return User(
            id=user_id,
            name=document["name"],
            email=document["email"],
            phone=document.get("phone"),
            age=document.get("age"),
            address=document.get("address"),
            created_at=created_at,
            updated_at=updated_at,
        )


__all__ = [
    "Database",
    "NotFound",
    "StoreUnavailable",
    "UserStoreError",
    "ValidationError",
    "normalize_user_fields",
    "resolve_database_path",
]
