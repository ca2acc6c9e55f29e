from __future__ import annotations

from datetime import datetime
from typing import Optional

import aiosqlite

from todoshare.domain.common.errors import ConflictError, ValidationError
from todoshare.domain.common.time import to_utc_iso
from todoshare.domain.tasks.models import UserRef
from todoshare.domain.tasks.ports import UserDirectory
from todoshare.infra.db.connection import Database


class SqliteUserDirectory(UserDirectory):
    """Users as far as sharing needs them: id, display name and a unique email."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def add_user(self, user_id: str, name: str, email: str, created_at: datetime) -> UserRef:
        name = (name or "").strip()
        email = (email or "").strip().lower()
        if not name:
            raise ValidationError("Name is required.")
        if "@" not in email:
            raise ValidationError("A valid email is required.")
        try:
            await self._db.execute(
                "INSERT INTO users(user_id, name, email, created_at) VALUES (?, ?, ?, ?);",
                (user_id, name, email, to_utc_iso(created_at)),
            )
        except aiosqlite.IntegrityError as e:
            raise ConflictError("User already exists with this email.") from e
        return UserRef(user_id=user_id, name=name, email=email)

    async def find_by_email(self, email: str) -> Optional[UserRef]:
        row = await self._db.fetchone(
            "SELECT user_id, name, email FROM users WHERE email = ?;",
            ((email or "").strip().lower(),),
        )
        return self._row_to_user(row) if row else None

    async def find_by_id(self, user_id: str) -> Optional[UserRef]:
        row = await self._db.fetchone("SELECT user_id, name, email FROM users WHERE user_id = ?;", (user_id,))
        return self._row_to_user(row) if row else None

    def _row_to_user(self, row) -> UserRef:
        return UserRef(user_id=row["user_id"], name=row["name"], email=row["email"])
