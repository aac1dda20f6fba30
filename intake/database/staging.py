"""Staged bulk writes.

Lands client-submitted batches in a staging table, optionally split into
fixed-size chunks. Chunks are written sequentially, each in its own
transaction; there is no atomicity across chunks. A failing chunk stops the
write and ``PartialWriteFailure`` reports what was already committed.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from intake.core.exceptions import PartialWriteFailure, ValidationError
from intake.database.store import StagingSink
from intake.models.dto import ChunkSpec, WriteResult
from intake.models.records import StagingTarget

logger = logging.getLogger(__name__)


def split_into_chunks(batch: Sequence[Any], chunk_spec: ChunkSpec) -> list[Sequence[Any]]:
    """Split ``batch`` per ``chunk_spec``; the last chunk may be smaller."""
    if not batch:
        return []
    if not chunk_spec.use_chunking or len(batch) <= chunk_spec.chunk_size:
        return [batch]
    size = chunk_spec.chunk_size
    return [batch[i : i + size] for i in range(0, len(batch), size)]


class StagedBulkWriter:
    """Write batches of records for one ``StagingTarget`` into staging."""

    def __init__(self, sink: StagingSink, target: StagingTarget) -> None:
        self._sink = sink
        self._target = target

    @property
    def target(self) -> StagingTarget:
        return self._target

    def to_row(self, record: Any, index: int) -> tuple:
        """Shape-check one record and project it onto the staging columns.

        Raises:
            ValidationError: Record is not a mapping or fails its record model
        """
        if not isinstance(record, Mapping):
            raise ValidationError(
                f"Record {index} must be an object, got {type(record).__name__}",
                field=f"records.{index}",
            )
        try:
            model = self._target.record_model.model_validate(record)
        except PydanticValidationError as e:
            problems = [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors(include_url=False)
            ]
            raise ValidationError(
                f"Record {index} is malformed: "
                + "; ".join(f"{p['field']}: {p['message']}" for p in problems),
                field=f"records.{index}",
                details={"violations": problems},
            ) from e

        values = model.model_dump()
        return tuple(values[column] for column in self._target.columns)

    async def write(self, batch: Sequence[Any], chunk_spec: ChunkSpec) -> WriteResult:
        """Write ``batch`` to the staging table.

        Returns:
            WriteResult with chunk and record counts

        Raises:
            PartialWriteFailure: A chunk failed; earlier chunks stay committed
        """
        batch = list(batch)
        chunks = split_into_chunks(batch, chunk_spec)
        result = WriteResult(chunks_total=len(chunks))
        table = self._target.staging_table

        if not chunks:
            logger.info(f"Empty batch for {table}, nothing to stage", extra={"table": table})
            return result

        offset = 0
        for chunk_index, chunk in enumerate(chunks):
            try:
                rows = [self.to_row(record, offset + i) for i, record in enumerate(chunk)]
                await self._sink.insert_many(table, self._target.columns, rows)
            except Exception as e:
                logger.error(
                    f"Staging chunk {chunk_index + 1}/{len(chunks)} for {table} failed: {e}",
                    extra={
                        "table": table,
                        "chunk_index": chunk_index,
                        "chunks_total": len(chunks),
                        "records": result.records_written,
                    },
                )
                raise PartialWriteFailure(result.model_copy(), e) from e

            result.chunks_completed += 1
            result.records_written += len(chunk)
            offset += len(chunk)
            logger.debug(
                f"Staged chunk {chunk_index + 1}/{len(chunks)} ({len(chunk)} records) into {table}",
                extra={"table": table, "chunk_index": chunk_index, "records": len(chunk)},
            )

        logger.info(
            f"Staged {result.records_written} records into {table} "
            f"in {result.chunks_completed} chunks",
            extra={
                "table": table,
                "chunks_total": result.chunks_total,
                "records": result.records_written,
            },
        )
        return result
