"""
Catalog ingestion services.

Thin per-target facades over staging, reconciliation and direct upserts,
for products and datasheets.
"""

import logging
from collections.abc import Sequence
from typing import Any

from intake.core.config import DEFAULT_CHUNK_SIZE
from intake.core.exceptions import ValidationError
from intake.database.reconcile import ReconciliationExecutor
from intake.database.staging import StagedBulkWriter
from intake.database.store import PostgresStore
from intake.models.dto import ChunkSpec, ReconciliationResult, WriteResult
from intake.models.records import DATASHEETS, PRODUCTS, StagingTarget

logger = logging.getLogger(__name__)


class CatalogService:
    """Bulk create into staging, sync staging → canonical, or upsert directly."""

    def __init__(
        self,
        target: StagingTarget,
        store: PostgresStore,
        writer: StagedBulkWriter | None = None,
        reconciler: ReconciliationExecutor | None = None,
    ) -> None:
        self.target = target
        self._store = store
        self._writer = writer or StagedBulkWriter(store, target)
        self._reconciler = reconciler or ReconciliationExecutor(store)

    async def bulk_create(
        self,
        records: Sequence[Any],
        use_chunks: bool = False,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> WriteResult:
        """Stage ``records``; chunked when ``use_chunks`` and the batch is large."""
        return await self._writer.write(
            records, ChunkSpec(chunk_size=chunk_size, use_chunking=use_chunks)
        )

    async def sync_from_staging(self) -> ReconciliationResult:
        """Merge staged rows into the canonical table and clear staging."""
        return await self._reconciler.reconcile(self.target.merge_routine)

    async def bulk_upsert(
        self, records: Sequence[Any], update_fields: Sequence[str]
    ) -> int:
        """Insert or update canonical rows directly, bypassing staging.

        Raises:
            ValidationError: Unknown update field or malformed record
        """
        columns = self.target.columns
        unknown = [f for f in update_fields if f not in columns]
        if unknown:
            raise ValidationError(
                f"Unknown update fields for {self.target.name}: {unknown}",
                field="update_fields",
                details={"allowed": list(columns)},
            )

        rows = [self._writer.to_row(record, i) for i, record in enumerate(records)]
        if not rows:
            return 0

        count = await self._store.upsert_many(
            self.target.canonical_table,
            columns,
            self.target.key_column,
            [f for f in update_fields if f != self.target.key_column],
            rows,
        )
        logger.info(
            f"Upserted {count} rows into {self.target.canonical_table}",
            extra={"table": self.target.canonical_table, "records": count},
        )
        return count


def product_service(store: PostgresStore) -> CatalogService:
    return CatalogService(PRODUCTS, store)


def datasheet_service(store: PostgresStore) -> CatalogService:
    return CatalogService(DATASHEETS, store)
