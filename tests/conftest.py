from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterator, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from crudapp.database import Database, StoreError
from crudapp.models import User


def sqlite_url(path: Path) -> str:
    return f"sqlite:///{path}"


class FailingDatabase(Database):
    """Database whose record operations always fail like an unreachable store."""

    def initialize(self) -> None:
        return None

    def list_users(self):
        raise StoreError("connection refused")

    def get_user(self, user_id: int) -> Optional[User]:
        raise StoreError("connection refused")

    def create_user(self, name, email, age):
        raise StoreError("connection refused")

    def update_user(self, user_id, name, email, age):
        raise StoreError("connection refused")

    def delete_user(self, user_id):
        raise StoreError("connection refused")


@pytest.fixture()
def database(tmp_path: Path) -> Iterator[Database]:
    db = Database(sqlite_url(tmp_path / "users.sqlite3"))
    db.initialize()
    yield db
    db.close()


@pytest.fixture()
def failing_database(tmp_path: Path) -> Iterator[FailingDatabase]:
    db = FailingDatabase(sqlite_url(tmp_path / "unused.sqlite3"))
    yield db
    db.close()
