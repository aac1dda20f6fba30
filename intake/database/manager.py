"""
Asyncpg pool lifecycle for the canonical/staging store.

One pool per process; components borrow connections through
``transaction()`` so every store call runs in its own transaction.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import asyncpg

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Owns the asyncpg pool; ``connect`` once at startup, ``disconnect`` at exit."""

    def __init__(
        self,
        host: str,
        database: str,
        user: str,
        password: str,
        port: int = 5432,
        min_size: int = 2,
        max_size: int = 10,
        timeout: float = 10.0,
        command_timeout: float = 60.0,
    ):
        self._pool_kwargs = dict(
            host=host,
            port=port,
            database=database,
            user=user,
            password=password,
            min_size=min_size,
            max_size=max_size,
            timeout=timeout,
            command_timeout=command_timeout,
        )
        self._pool: Optional[asyncpg.Pool] = None
        self._closed = False

    @property
    def dsn_label(self) -> str:
        """Host/port/database without credentials, for logs."""
        kw = self._pool_kwargs
        return f"{kw['host']}:{kw['port']}/{kw['database']}"

    async def connect(self) -> None:
        if self._pool:
            logger.warning(f"Database pool for {self.dsn_label} already initialized")
            return
        self._pool = await asyncpg.create_pool(**self._pool_kwargs)
        self._closed = False
        logger.info(
            f"Database pool created for {self.dsn_label} "
            f"(min={self._pool_kwargs['min_size']}, max={self._pool_kwargs['max_size']})"
        )

    async def disconnect(self) -> None:
        if not self._pool:
            return
        await self._pool.close()
        self._pool = None
        self._closed = True
        logger.info(f"Database pool for {self.dsn_label} closed")

    async def get_pool(self) -> asyncpg.Pool:
        if self._closed:
            raise RuntimeError("DatabaseManager is closed")
        if not self._pool:
            raise RuntimeError("Database pool not initialized. Call connect() first")
        return self._pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Borrow a pooled connection inside a transaction.

        Commits when the block exits normally, rolls back on any exception.
        """
        pool = await self.get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def health_check(self) -> dict[str, Optional[float]]:
        """Check connectivity and round-trip latency."""
        try:
            start = time.perf_counter()
            async with self.transaction() as conn:
                await conn.fetchval("SELECT 1")
            latency_ms = round((time.perf_counter() - start) * 1000, 2)
            return {"healthy": True, "error": None, "latency_ms": latency_ms}
        except Exception as e:
            logger.error(f"Database health check failed for {self.dsn_label}", exc_info=True)
            return {"healthy": False, "error": str(e), "latency_ms": None}

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, *_):
        await self.disconnect()


def create_database_manager_from_env() -> DatabaseManager:
    """Create DatabaseManager from ``DatabaseSettings``."""
    from intake.core.settings import db_settings

    return DatabaseManager(
        host=db_settings.DB_HOST,
        database=db_settings.DB_NAME,
        user=db_settings.DB_USER,
        password=db_settings.DB_PASSWORD.get_secret_value(),
        port=db_settings.DB_PORT,
        min_size=db_settings.DB_POOL_MIN_SIZE,
        max_size=db_settings.DB_POOL_MAX_SIZE,
        timeout=db_settings.DB_POOL_TIMEOUT,
        command_timeout=db_settings.DB_COMMAND_TIMEOUT,
    )
