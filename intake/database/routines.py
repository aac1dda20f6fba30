"""Named server-side routine calls.

Every server-side execution goes through ``build_routine_call``: routine and
parameter names must be plain SQL identifiers, and values are only ever bound
as query parameters.

Example:
    >>> build_routine_call("DebbugProductos")
    ('SELECT * FROM "DebbugProductos"()', [])
    >>> build_routine_call("find_product", {"p_code": "A-1"})
    ('SELECT * FROM "find_product"("p_code" => $1)', ['A-1'])
"""

import re
from collections.abc import Mapping, Sequence
from typing import Any, Optional, Protocol

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")

Params = Optional[Mapping[str, Any] | Sequence[Any]]


class RoutineCaller(Protocol):
    """Anything that can run a named routine and return its rows."""

    async def call_routine(self, name: str, params: Params = None) -> list[dict[str, Any]]: ...


def quote_identifier(name: str) -> str:
    """Validate and double-quote a SQL identifier.

    Raises:
        ValueError: If ``name`` is not a plain identifier
    """
    if not isinstance(name, str) or not _IDENTIFIER_RE.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return f'"{name}"'


def build_routine_call(name: str, params: Params = None) -> tuple[str, list[Any]]:
    """Build ``SELECT * FROM "name"(...)`` with bound arguments.

    Mappings use named notation (``"p" => $1``); sequences are positional.
    """
    routine = quote_identifier(name)

    if params is None:
        return f"SELECT * FROM {routine}()", []

    if isinstance(params, Mapping):
        names = [quote_identifier(key) for key in params]
        placeholders = ", ".join(f"{n} => ${i}" for i, n in enumerate(names, start=1))
        return f"SELECT * FROM {routine}({placeholders})", list(params.values())

    if isinstance(params, (str, bytes)):
        raise TypeError("Routine params must be a mapping or a sequence of values")

    values = list(params)
    placeholders = ", ".join(f"${i}" for i in range(1, len(values) + 1))
    return f"SELECT * FROM {routine}({placeholders})", values


async def call_routine_one(
    caller: RoutineCaller, name: str, params: Params = None
) -> dict[str, Any] | None:
    """Run a routine and return its first row, or None."""
    rows = await caller.call_routine(name, params)
    return rows[0] if rows else None


async def call_routine_list(
    caller: RoutineCaller, name: str, params: Params = None
) -> list[dict[str, Any]]:
    """Run a routine and return all rows (empty list when none)."""
    return list(await caller.call_routine(name, params) or [])
