"""SQLAlchemy-backed persistence for user records."""
from __future__ import annotations

import enum
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    delete,
    func,
    insert,
    select,
    text,
    update,
)
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.schema import CreateTable

from .config import describe_database
from .models import User

logger = logging.getLogger("crudapp.database")

UNIQUE_VIOLATION = "23505"

# Drivers raise OverflowError for integers wider than the column type.
STORE_FAILURES = (SQLAlchemyError, OverflowError)

metadata = MetaData()

users_table = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("email", String(100), unique=True, nullable=False),
    Column("age", Integer, nullable=True),
    Column("created_at", DateTime, server_default=func.current_timestamp()),
    Column("updated_at", DateTime, server_default=func.current_timestamp()),
)


class ErrorKind(str, enum.Enum):
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    STORE_ERROR = "store_error"


class StoreError(Exception):
    """Raised when a statement against the user store fails."""

    kind = ErrorKind.STORE_ERROR


class UserConflictError(StoreError):
    """Raised when a write collides with an existing email address."""

    kind = ErrorKind.CONFLICT


class UserNotFoundError(StoreError):
    """Raised when no user matches the requested identifier."""

    kind = ErrorKind.NOT_FOUND


def _current_timestamp() -> datetime:
    # Columns are TIMESTAMP WITHOUT TIME ZONE; values are UTC.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _is_unique_violation(exc: IntegrityError) -> bool:
    original = exc.orig
    code = getattr(original, "sqlstate", None) or getattr(original, "pgcode", None)
    if code:
        return code == UNIQUE_VIOLATION
    return "unique" in str(original).lower()


class Database:
    """Owns the connection pool and issues one statement per operation."""

    def __init__(
        self,
        url: URL | str,
        *,
        pool_size: int = 5,
        max_overflow: int = 10,
        echo: bool = False,
    ) -> None:
        self._url = make_url(url)
        engine_options: Dict[str, Any] = {"pool_pre_ping": True, "echo": echo}
        # SQLite selects its own pool class and rejects the sizing options.
        if self._url.get_backend_name() != "sqlite":
            engine_options.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_recycle=3600,
            )
        self._engine: Engine = create_engine(self._url, **engine_options)

    @property
    def url(self) -> URL:
        return self._url

    def describe(self) -> str:
        return describe_database(self._url)

    def initialize(self) -> None:
        """Create the ``users`` table if it does not already exist."""

        try:
            with self._engine.begin() as conn:
                conn.execute(CreateTable(users_table, if_not_exists=True))
        except STORE_FAILURES as exc:
            raise StoreError(f"Unable to initialise schema on {self.describe()}") from exc
        logger.info("Users table ready on %s", self.describe())

    def ping(self) -> bool:
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except STORE_FAILURES:
            logger.warning("Database %s is not reachable", self.describe(), exc_info=True)
            return False
        return True

    def close(self) -> None:
        """Release every pooled connection."""

        self._engine.dispose()
        logger.info("Connection pool for %s closed", self.describe())

    # ------------------------------------------------------------------
    # User records
    # ------------------------------------------------------------------
    def list_users(self) -> List[User]:
        statement = select(users_table).order_by(
            users_table.c.created_at.desc(), users_table.c.id.desc()
        )
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(statement).mappings().all()
        except STORE_FAILURES as exc:
            raise StoreError("Failed to list users") from exc
        return [User.from_row(row) for row in rows]

    def get_user(self, user_id: int) -> Optional[User]:
        statement = select(users_table).where(users_table.c.id == user_id)
        try:
            with self._engine.connect() as conn:
                row = conn.execute(statement).mappings().first()
        except STORE_FAILURES as exc:
            raise StoreError(f"Failed to fetch user {user_id}") from exc
        if row is None:
            return None
        return User.from_row(row)

    def create_user(self, name: str, email: str, age: Optional[int]) -> User:
        """Insert a new user and return the stored record."""

        now = _current_timestamp()
        statement = (
            insert(users_table)
            .values(name=name, email=email, age=age, created_at=now, updated_at=now)
            .returning(*users_table.c)
        )
        try:
            with self._engine.begin() as conn:
                row = conn.execute(statement).mappings().one()
        except IntegrityError as exc:
            if _is_unique_violation(exc):
                raise UserConflictError("A user with that email already exists") from exc
            raise StoreError("Failed to create user") from exc
        except STORE_FAILURES as exc:
            raise StoreError("Failed to create user") from exc
        return User.from_row(row)

    def update_user(self, user_id: int, name: str, email: str, age: Optional[int]) -> User:
        """Replace the mutable fields of a user and refresh ``updated_at``."""

        statement = (
            update(users_table)
            .where(users_table.c.id == user_id)
            .values(name=name, email=email, age=age, updated_at=_current_timestamp())
            .returning(*users_table.c)
        )
        try:
            with self._engine.begin() as conn:
                row = conn.execute(statement).mappings().first()
        except IntegrityError as exc:
            if _is_unique_violation(exc):
                raise UserConflictError("A user with that email already exists") from exc
            raise StoreError(f"Failed to update user {user_id}") from exc
        except STORE_FAILURES as exc:
            raise StoreError(f"Failed to update user {user_id}") from exc
        if row is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return User.from_row(row)

    def delete_user(self, user_id: int) -> User:
        """Delete a user and return the removed record."""

        statement = (
            delete(users_table)
            .where(users_table.c.id == user_id)
            .returning(*users_table.c)
        )
        try:
            with self._engine.begin() as conn:
                row = conn.execute(statement).mappings().first()
        except STORE_FAILURES as exc:
            raise StoreError(f"Failed to delete user {user_id}") from exc
        if row is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return User.from_row(row)


__all__ = [
    "Database",
    "ErrorKind",
    "StoreError",
    "UserConflictError",
    "UserNotFoundError",
    "metadata",
    "users_table",
]
