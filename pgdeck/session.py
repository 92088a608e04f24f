"""
Database session: the connection descriptor and the pool built from it.

Every component receives a Session explicitly. Nothing in pgdeck keeps a
process-wide connection string.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import asyncpg

from pgdeck.config import DeckSettings
from pgdeck.errors import NotConnected, QueryFailed
from pgdeck.logging_config import get_logger

logger = get_logger(__name__)


class Session:
    """
    Owns an asyncpg pool for one database.

    The pool is created by :meth:`connect` and released by
    :meth:`disconnect`. Anything that calls :meth:`acquire` outside that
    window gets :class:`NotConnected`.
    """

    def __init__(
        self,
        dsn: Optional[str] = None,
        min_size: int = 1,
        max_size: int = 10,
        command_timeout: Optional[float] = None,
    ):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.server_version: Optional[str] = None
        self._pool: Optional[asyncpg.Pool] = None

    @classmethod
    def from_settings(cls, settings: DeckSettings) -> "Session":
        return cls(
            dsn=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
            command_timeout=settings.command_timeout,
        )

    @classmethod
    def from_pool(cls, pool, server_version: Optional[str] = None) -> "Session":
        """Wrap a pool that was created elsewhere."""
        session = cls()
        session._pool = pool
        session.server_version = server_version
        return session

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    @property
    def pool(self):
        if self._pool is None:
            raise NotConnected()
        return self._pool

    async def connect(self, dsn: Optional[str] = None) -> str:
        """
        Create the pool and verify the server answers.

        Returns the server version string reported by ``SELECT version()``.
        An existing pool is closed first.
        """
        if dsn is not None:
            self.dsn = dsn
        if not self.dsn:
            raise NotConnected("No connection string configured")

        if self._pool is not None:
            await self.disconnect()

        try:
            pool = await asyncpg.create_pool(
                dsn=self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.command_timeout,
            )
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.error("Connection failed: %s", e)
            raise QueryFailed(str(e)) from e

        try:
            async with pool.acquire() as conn:
                version = await conn.fetchval("SELECT version()")
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            await pool.close()
            logger.error("Connection test failed: %s", e)
            raise QueryFailed(str(e)) from e

        self._pool = pool
        self.server_version = version
        logger.info("Connected: %s", version)
        return version

    async def test_connection(self) -> str:
        """Run ``SELECT version()`` on the existing pool."""
        async with self.acquire() as conn:
            try:
                return await conn.fetchval("SELECT version()")
            except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
                raise QueryFailed(str(e)) from e

    async def disconnect(self, timeout: float = 10) -> None:
        pool, self._pool = self._pool, None
        self.server_version = None
        if pool is None:
            return
        try:
            await asyncio.wait_for(pool.close(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Pool did not close within %ss, terminating", timeout)
            pool.terminate()
        logger.info("Disconnected")

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """Yield a pooled connection."""
        pool = self.pool
        async with pool.acquire() as conn:
            yield conn
