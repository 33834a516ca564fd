"""Single-row store for the "last successful sync" timestamp."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from repositories.postgres_repo import PostgresRepository
from repositories.schema import sync_cursor
from utils.dates import as_utc
from utils.error_handling import SyncCursorError

CURSOR_ID = 1


class SyncCursorRepository(PostgresRepository):
    """Read/write the sync cursor singleton (always row id 1)."""

    def get_last_sync(self) -> Optional[datetime]:
        stmt = select(sync_cursor.c.last_sync_at).where(sync_cursor.c.id == CURSOR_ID)
        try:
            with self.engine.connect() as conn:
                value = conn.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise SyncCursorError(f"Failed to read sync cursor: {exc}") from exc
        return as_utc(value)

    def set_last_sync(self, timestamp: datetime) -> None:
        insert = postgresql.insert if self.is_postgres else sqlite.insert
        stmt = insert(sync_cursor).values(id=CURSOR_ID, last_sync_at=as_utc(timestamp))
        stmt = stmt.on_conflict_do_update(
            index_elements=[sync_cursor.c.id],
            set_={"last_sync_at": stmt.excluded.last_sync_at},
        )
        try:
            with self.engine.begin() as conn:
                conn.execute(stmt)
        except SQLAlchemyError as exc:
            raise SyncCursorError(f"Failed to write sync cursor: {exc}") from exc
