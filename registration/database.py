"""SQLite-backed persistence for registration records."""
from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from .errors import ConflictError, NotFoundError, StorageError
from .models import Registration, User

logger = logging.getLogger("registration.database")

_USER_COLUMNS = "id, name, gender, email, country, created_at"


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the registration database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "users.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        # Rows written by CURRENT_TIMESTAMP are naive UTC.
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Database:
    """Owns a single SQLite connection to the ``users`` table.

    The connection is opened by :meth:`initialize` (or lazily on first use)
    and released by :meth:`close`. Access is serialised with a lock so the
    handle can be shared by the request handlers of one application.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def __enter__(self) -> "Database":
        self.initialize()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _open(self) -> sqlite3.Connection:
        try:
            _ensure_directory(self._path)
            conn = sqlite3.connect(self._path, check_same_thread=False)
        except (OSError, sqlite3.Error) as exc:
            logger.error("Error opening database %s: %s", self._path, exc)
            raise StorageError("Database error") from exc
        conn.row_factory = sqlite3.Row
        logger.info("Connected to SQLite database at %s", self._path)
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            if self._conn is None:
                self._conn = self._open()
            conn = self._conn
            try:
                with conn:
                    yield conn
            except sqlite3.IntegrityError:
                raise
            except sqlite3.Error as exc:
                logger.error("Database error: %s", exc)
                raise StorageError("Database error") from exc

    def initialize(self) -> None:
        """Create the ``users`` table if it does not already exist."""

        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    gender TEXT NOT NULL,
                    email TEXT UNIQUE NOT NULL,
                    country TEXT NOT NULL,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
        logger.info("Users table ready.")

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            conn, self._conn = self._conn, None
            try:
                conn.close()
            except sqlite3.Error as exc:
                logger.error("Error closing database: %s", exc)
                raise StorageError("Database error") from exc
        logger.info("Database connection closed.")

    def create_user(self, registration: Registration) -> User:
        """Insert a new record, raising :class:`ConflictError` on duplicate email."""

        created_at = _current_timestamp()
        try:
            with self._transaction() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO users (name, gender, email, country, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        registration.name,
                        registration.gender,
                        registration.email,
                        registration.country,
                        _serialize_datetime(created_at),
                    ),
                )
                user_id = cursor.lastrowid
        except sqlite3.IntegrityError as exc:
            if "UNIQUE constraint failed" in str(exc):
                raise ConflictError("Email already exists") from exc
            logger.error("Database error: %s", exc)
            raise StorageError("Database error") from exc

        return User(
            id=int(user_id),
            name=registration.name,
            gender=registration.gender,
            email=registration.email,
            country=registration.country,
            created_at=created_at,
        )

    def list_users(self) -> List[User]:
        """Return every record, most recently created first."""

        with self._transaction() as conn:
            rows = conn.execute(
                f"SELECT {_USER_COLUMNS} FROM users ORDER BY julianday(created_at) DESC, id DESC"
            ).fetchall()
        return [self._row_to_user(row) for row in rows]

    def get_user(self, user_id: int) -> User:
        with self._transaction() as conn:
            row = conn.execute(
                f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?",
                (user_id,),
            ).fetchone()
        if row is None:
            raise NotFoundError("User not found")
        return self._row_to_user(row)

    def delete_user(self, user_id: int) -> None:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            deleted = cursor.rowcount
        if deleted == 0:
            raise NotFoundError("User not found")

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            name=row["name"],
            gender=row["gender"],
            email=row["email"],
            country=row["country"],
            created_at=_parse_datetime(row["created_at"]),
        )


__all__ = ["Database", "resolve_database_path"]
