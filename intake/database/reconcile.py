"""Reconciliation of staged records into the canonical store.

The merge itself is a server-side routine (insert new, update existing,
clear staging, in one transaction). This module only invokes it and reads
back the affected row count. It never retries: repeating a merge blindly is
the caller's decision.
"""

import logging
import time
from typing import Any

from intake.core.exceptions import ReconciliationError
from intake.database.routines import RoutineCaller
from intake.models.dto import ReconciliationResult

logger = logging.getLogger(__name__)

_COUNT_COLUMNS = ("rows_affected", "affected_rows")


def _affected_rows(rows: list[dict[str, Any]]) -> int:
    if not rows:
        return 0
    first = rows[0]
    for column in _COUNT_COLUMNS:
        value = first.get(column)
        if isinstance(value, int) and not isinstance(value, bool):
            return max(value, 0)
    for value in first.values():
        if isinstance(value, int) and not isinstance(value, bool):
            return max(value, 0)
    return 0


class ReconciliationExecutor:
    def __init__(self, caller: RoutineCaller) -> None:
        self._caller = caller

    async def reconcile(self, routine_name: str) -> ReconciliationResult:
        """Run the merge routine ``routine_name`` with no parameters.

        Raises:
            ReconciliationError: On any failure invoking the routine
        """
        start = time.perf_counter()
        try:
            rows = await self._caller.call_routine(routine_name, None)
        except Exception as e:
            logger.error(
                f"Reconciliation {routine_name} failed: {type(e).__name__}: {e}",
                extra={"routine": routine_name, "exception_type": type(e).__name__},
            )
            raise ReconciliationError(routine_name, e) from e

        result = ReconciliationResult(rows_affected=_affected_rows(rows))
        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info(
            f"Reconciliation {routine_name} affected {result.rows_affected} rows",
            extra={
                "routine": routine_name,
                "rows_affected": result.rows_affected,
                "duration_ms": duration_ms,
            },
        )
        return result
