"""PostgreSQL store used for staging writes, upserts and routine calls.

All SQL text is built from validated identifiers; values are bound as
asyncpg parameters or streamed with COPY.
"""

import logging
from collections.abc import Sequence
from typing import Any, Protocol

from intake.database.manager import DatabaseManager
from intake.database.routines import Params, build_routine_call, quote_identifier

logger = logging.getLogger(__name__)


class StagingSink(Protocol):
    """Bulk row writer used by ``StagedBulkWriter``."""

    async def insert_many(
        self, table: str, columns: Sequence[str], rows: Sequence[tuple]
    ) -> int: ...


def build_upsert(
    table: str,
    columns: Sequence[str],
    key_column: str,
    update_columns: Sequence[str],
) -> str:
    """``INSERT ... ON CONFLICT (key) DO UPDATE`` for the given columns."""
    if not columns:
        raise ValueError("Upsert needs at least one column")
    unknown = [c for c in [key_column, *update_columns] if c not in columns]
    if unknown:
        raise ValueError(f"Columns not in insert list: {unknown}")

    cols = ", ".join(quote_identifier(c) for c in columns)
    placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
    key = quote_identifier(key_column)

    if update_columns:
        assignments = ", ".join(
            f"{quote_identifier(c)} = EXCLUDED.{quote_identifier(c)}" for c in update_columns
        )
        conflict = f"ON CONFLICT ({key}) DO UPDATE SET {assignments}"
    else:
        conflict = f"ON CONFLICT ({key}) DO NOTHING"

    return f"INSERT INTO {quote_identifier(table)} ({cols}) VALUES ({placeholders}) {conflict}"


class PostgresStore:
    """Asyncpg-backed implementation of the routine and staging interfaces."""

    def __init__(self, db_manager: DatabaseManager) -> None:
        self._db = db_manager

    async def call_routine(self, name: str, params: Params = None) -> list[dict[str, Any]]:
        """Run a named routine and return its rows as dicts."""
        sql, args = build_routine_call(name, params)
        logger.debug(f"Calling routine: {sql}", extra={"routine": name})

        async with self._db.transaction() as conn:
            records = await conn.fetch(sql, *args)
        return [dict(record) for record in records]

    async def insert_many(
        self, table: str, columns: Sequence[str], rows: Sequence[tuple]
    ) -> int:
        """COPY ``rows`` into ``table`` in one transaction."""
        quote_identifier(table)
        for column in columns:
            quote_identifier(column)

        async with self._db.transaction() as conn:
            await conn.copy_records_to_table(
                table, records=list(rows), columns=list(columns)
            )
        return len(rows)

    async def upsert_many(
        self,
        table: str,
        columns: Sequence[str],
        key_column: str,
        update_columns: Sequence[str],
        rows: Sequence[tuple],
    ) -> int:
        """Insert or update ``rows`` keyed on ``key_column``."""
        sql = build_upsert(table, columns, key_column, update_columns)
        async with self._db.transaction() as conn:
            await conn.executemany(sql, list(rows))
        return len(rows)
