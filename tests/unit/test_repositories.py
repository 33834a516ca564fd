"""
Repository tests against an in-memory SQLite database.

Run with: pytest tests/unit/test_repositories.py -v
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.pool import StaticPool

from models.ticket import TicketRecord
from repositories.schema import tickets
from repositories.sync_cursor_repo import SyncCursorRepository
from repositories.ticket_repo import TicketRepository, dedupe_by_ticket_number
from utils.error_handling import ConfigurationError, SyncCursorError

T0 = datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc)


def _record(number, last_update=T0, **fields):
    return TicketRecord(ticket_number=number, last_update=last_update, **fields)


def _stored_row(engine, number):
    with engine.connect() as conn:
        return conn.execute(select(tickets).where(tickets.c.ticket_number == number)).one()


class TestDedupe:
    """In-memory deduplication before the upsert."""

    def test_later_record_wins(self):
        first = _record("T-1", subject="first")
        second = _record("T-1", subject="second")
        assert dedupe_by_ticket_number([first, second]) == [second]

    def test_records_without_number_are_dropped(self):
        assert dedupe_by_ticket_number([_record(None), _record("")]) == []


class TestTicketRepository:
    """Conditional bulk upsert and staleness lookups."""

    def test_first_save_inserts(self, sqlite_engine):
        repo = TicketRepository(sqlite_engine)
        result = repo.save_batch([_record("T-1"), _record("T-2")])
        assert (result.inserted, result.updated) == (2, 0)
        assert result.written == 2

    def test_unchanged_batch_writes_nothing(self, sqlite_engine):
        """Replaying the same batch reports (0, 0)."""
        repo = TicketRepository(sqlite_engine)
        batch = [_record("T-1"), _record("T-2")]
        repo.save_batch(batch)

        result = repo.save_batch(batch)
        assert (result.inserted, result.updated) == (0, 0)

    def test_changed_last_update_updates(self, sqlite_engine):
        repo = TicketRepository(sqlite_engine)
        repo.save_batch([_record("T-1", subject="old"), _record("T-2")])

        result = repo.save_batch(
            [
                _record("T-1", last_update=T0 + timedelta(hours=1), subject="new"),
                _record("T-2"),
                _record("T-3"),
            ]
        )

        assert (result.inserted, result.updated) == (1, 1)
        assert _stored_row(sqlite_engine, "T-1").subject == "new"

    def test_same_last_update_keeps_stored_values(self, sqlite_engine):
        """Only last_update decides whether a row is rewritten."""
        repo = TicketRepository(sqlite_engine)
        repo.save_batch([_record("T-1", subject="kept")])
        repo.save_batch([_record("T-1", subject="ignored")])
        assert _stored_row(sqlite_engine, "T-1").subject == "kept"

    def test_duplicate_keys_upsert_later_values(self, sqlite_engine):
        """Two records for one ticket produce one row with the later values."""
        repo = TicketRepository(sqlite_engine)
        result = repo.save_batch(
            [
                _record("T-1", subject="first"),
                _record("T-1", last_update=T0 + timedelta(minutes=5), subject="second"),
            ]
        )
        assert (result.inserted, result.updated) == (1, 0)
        assert _stored_row(sqlite_engine, "T-1").subject == "second"

    def test_missing_keys_are_dropped(self, sqlite_engine):
        repo = TicketRepository(sqlite_engine)
        result = repo.save_batch([_record(None), _record("T-1")])
        assert (result.inserted, result.updated) == (1, 0)

    def test_empty_batch(self, sqlite_engine):
        result = TicketRepository(sqlite_engine).save_batch([])
        assert (result.inserted, result.updated) == (0, 0)

    def test_get_last_updates_returns_only_requested_keys(self, sqlite_engine):
        repo = TicketRepository(sqlite_engine)
        repo.save_batch([_record("T-1"), _record("T-2", last_update=None)])

        stored = repo.get_last_updates(["T-1", "T-2", "T-9", None])

        assert stored == {"T-1": T0, "T-2": None}

    def test_get_last_updates_with_no_keys(self, sqlite_engine):
        assert TicketRepository(sqlite_engine).get_last_updates([]) == {}

    def test_unsupported_dialect(self):
        engine = MagicMock()
        engine.dialect.name = "mysql"
        with pytest.raises(ConfigurationError):
            TicketRepository(engine).save_batch([_record("T-1")])


class TestSyncCursorRepository:
    """Single-row sync cursor."""

    def test_no_cursor_yet(self, sqlite_engine):
        assert SyncCursorRepository(sqlite_engine).get_last_sync() is None

    def test_set_then_overwrite(self, sqlite_engine):
        repo = SyncCursorRepository(sqlite_engine)
        repo.set_last_sync(T0)
        repo.set_last_sync(T0 + timedelta(hours=1))
        assert repo.get_last_sync() == T0 + timedelta(hours=1)

    def test_storage_failure_is_wrapped(self):
        """A missing table surfaces as SyncCursorError."""
        engine = create_engine("sqlite://", poolclass=StaticPool)
        repo = SyncCursorRepository(engine)
        with pytest.raises(SyncCursorError):
            repo.get_last_sync()
        with pytest.raises(SyncCursorError):
            repo.set_last_sync(T0)
