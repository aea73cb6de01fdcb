"""Domain models for the user records service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class User:
    """Represents a user record stored in the ``users`` table."""

    id: int
    name: str
    email: str
    age: Optional[int]
    created_at: datetime
    updated_at: datetime

    @staticmethod
    def from_row(row: Mapping[str, Any]) -> "User":
        return User(
            id=int(row["id"]),
            name=row["name"],
            email=row["email"],
            age=row["age"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


__all__ = ["User"]
