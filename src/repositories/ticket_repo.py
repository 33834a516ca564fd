"""
Ticket repository: staleness lookups and the conditional bulk upsert.

The upsert is keyed on ``ticket_number`` and only rewrites a stored row when
the incoming ``last_update`` differs, so replaying an unchanged batch writes
nothing and reports ``(0, 0)``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import literal_column, select
from sqlalchemy.dialects import postgresql, sqlite

from models.results import SaveResult
from models.ticket import TicketRecord
from repositories.postgres_repo import PostgresRepository
from repositories.schema import MUTABLE_TICKET_COLUMNS, TICKET_COLUMNS, tickets
from utils.dates import as_utc
from utils.error_handling import ConfigurationError
from utils.logging_config import get_logger

logger = get_logger(__name__)

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def dedupe_by_ticket_number(records: Iterable[TicketRecord]) -> List[TicketRecord]:
    """Keep one record per ticket number; a later occurrence overwrites an earlier one."""
    unique: Dict[str, TicketRecord] = {}
    dropped = 0
    for record in records:
        if not record.ticket_number:
            dropped += 1
            continue
        unique[record.ticket_number] = record

    if dropped:
        logger.warning("Dropped records without a ticket number", extra={"dropped": dropped})
    return list(unique.values())


class TicketRepository(PostgresRepository):
    """Sole writer of the ``tickets`` table for the sync pipeline."""

    def get_last_updates(self, ticket_numbers: Iterable[Optional[str]]) -> Dict[str, Optional[datetime]]:
        """Return stored ``last_update`` for exactly the given ticket numbers."""
        keys = sorted({number for number in ticket_numbers if number})
        if not keys:
            return {}

        stmt = select(tickets.c.ticket_number, tickets.c.last_update).where(
            tickets.c.ticket_number.in_(keys)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).all()
        return {row.ticket_number: as_utc(row.last_update) for row in rows}

    def save_batch(self, records: Sequence[TicketRecord]) -> SaveResult:
        """Deduplicate, upsert in one statement and count inserts vs. real updates."""
        unique = dedupe_by_ticket_number(records)
        if not unique:
            return SaveResult()

        insert = _INSERT_BY_DIALECT.get(self.engine.dialect.name)
        if insert is None:
            raise ConfigurationError(
                f"Upsert not supported for dialect {self.engine.dialect.name!r}"
            )

        rows = [record.model_dump(include=set(TICKET_COLUMNS)) for record in unique]
        stmt = insert(tickets).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=[tickets.c.ticket_number],
            set_={name: stmt.excluded[name] for name in MUTABLE_TICKET_COLUMNS},
            where=tickets.c.last_update.is_distinct_from(stmt.excluded.last_update),
        )

        with self.engine.begin() as conn:
            if self.is_postgres:
                # xmax is 0 only for tuples created by this statement's insert branch.
                returned = conn.execute(
                    stmt.returning(
                        tickets.c.ticket_number,
                        literal_column("(xmax = 0)").label("inserted"),
                    )
                ).all()
                inserted = sum(1 for row in returned if row.inserted)
            else:
                keys = [record.ticket_number for record in unique]
                existing = set(
                    conn.execute(
                        select(tickets.c.ticket_number).where(tickets.c.ticket_number.in_(keys))
                    ).scalars()
                )
                returned = conn.execute(stmt.returning(tickets.c.ticket_number)).all()
                inserted = sum(1 for row in returned if row.ticket_number not in existing)

        result = SaveResult(inserted=inserted, updated=len(returned) - inserted)
        logger.info(
            "Ticket upsert completed",
            extra={
                "records": len(unique),
                "inserted": result.inserted,
                "updated": result.updated,
            },
        )
        return result
