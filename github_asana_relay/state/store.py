"""Durable per-entity coordinator state backed by SQLite."""

import asyncio
from pathlib import Path

import aiosqlite
import structlog

logger = structlog.get_logger(__name__)


class CoordinatorStateStore:
    """Async store for the last known remote task id of each entity.

    The cached id is only a hint for the resolver, never authoritative, so a
    lost or stale row costs a search and nothing more.
    """

    CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS coordinator_state (
        entity_url TEXT PRIMARY KEY,
        remote_task_id TEXT NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """

    SELECT_STATE_SQL = """
    SELECT remote_task_id FROM coordinator_state WHERE entity_url = ?
    """

    UPSERT_STATE_SQL = """
    INSERT INTO coordinator_state (entity_url, remote_task_id, updated_at)
    VALUES (?, ?, CURRENT_TIMESTAMP)
    ON CONFLICT(entity_url) DO UPDATE SET
    remote_task_id = excluded.remote_task_id, updated_at = CURRENT_TIMESTAMP
    """

    DELETE_STATE_SQL = """
    DELETE FROM coordinator_state WHERE entity_url = ?
    """

    def __init__(self, db_path: str | Path = ".relay/state.db") -> None:
        self.db_path = Path(db_path)
        self._connection: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        async with self._lock:
            if self._connection is not None:
                return
            if str(self.db_path) != ":memory:":
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = await aiosqlite.connect(self.db_path)
            self._connection.row_factory = aiosqlite.Row
            await self._connection.execute(self.CREATE_TABLE_SQL)
            await self._connection.commit()
        logger.debug("Initialized coordinator state store", db_path=str(self.db_path))

    async def close(self) -> None:
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def _get_connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            await self.initialize()
        assert self._connection is not None, "Failed to initialize connection"
        return self._connection

    async def get_remote_task_id(self, entity_url: str) -> str | None:
        """Return the cached remote task id for an entity, if any."""
        conn = await self._get_connection()
        async with conn.execute(self.SELECT_STATE_SQL, (entity_url,)) as cursor:
            row = await cursor.fetchone()
            if row:
                return row["remote_task_id"]
        return None

    async def set_remote_task_id(self, entity_url: str, remote_task_id: str) -> None:
        conn = await self._get_connection()
        async with self._lock:
            await conn.execute(self.UPSERT_STATE_SQL, (entity_url, remote_task_id))
            await conn.commit()
        logger.debug("Stored remote task id", url=entity_url, task_id=remote_task_id)

    async def clear(self, entity_url: str) -> bool:
        """Forget the cached id for an entity; returns whether one was stored."""
        conn = await self._get_connection()
        async with self._lock:
            cursor = await conn.execute(self.DELETE_STATE_SQL, (entity_url,))
            await conn.commit()
        return cursor.rowcount > 0
