"""
Durable key-value storage on SQLite.

KVStore is the only persistence primitive of the bot: user state,
subscriptions, ad config, caches and aiogram FSM data all live in the
single `kv` table created by migrations/001_kv_store.sql.
"""

import os
import json
import time
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

import aiosqlite
from aiogram.fsm.state import State
from aiogram.fsm.storage.base import BaseStorage, StorageKey, StateType

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 1000


async def init_db(db_path: str) -> aiosqlite.Connection:
    """
    Initialize database connection.

    NOTE: This function only creates a connection. Schema creation is done
    by the migrations CLI:
        python -m svitlo.migrate --db-path <path>
    """
    db_dir = os.path.dirname(db_path)
    if db_dir and not os.path.exists(db_dir):
        os.makedirs(db_dir, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    await conn.execute("PRAGMA journal_mode=WAL;")

    # Verify database has been migrated
    try:
        cursor = await conn.execute("SELECT MAX(version) FROM schema_version")
        version = (await cursor.fetchone())[0]
        if version:
            logging.info(f"Database connected at {db_path} (schema version: {version})")
        else:
            logging.warning(f"Database at {db_path} has no migrations applied. Run: python -m svitlo.migrate --db-path {db_path}")
    except aiosqlite.Error:
        logging.warning(f"Database at {db_path} may not be migrated. Run: python -m svitlo.migrate --db-path {db_path}")

    return conn


@dataclass
class ListResult:
    keys: List[str] = field(default_factory=list)
    cursor: Optional[str] = None
    complete: bool = True


class KVStore:
    """
    String map with optional per-key TTL and ordered prefix listing.
    Expired keys read as absent and are removed lazily.
    """

    def __init__(self, conn: aiosqlite.Connection, clock: Optional[Callable[[], float]] = None):
        self.conn = conn
        self._clock = clock or time.time

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def get(self, key: str) -> Optional[str]:
        async with self.conn.execute(
            "SELECT value, expires_at FROM kv WHERE key = ?", (key,)
        ) as cursor:
            row = await cursor.fetchone()
        if not row:
            return None
        value, expires_at = row
        if expires_at is not None and expires_at <= self._now_ms():
            await self.delete(key)
            return None
        return value

    async def get_json(self, key: str) -> Any:
        """Returns the decoded JSON value, or None when absent or not valid JSON."""
        raw = await self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Corrupted JSON value under {key}, treating as absent")
            return None

    async def put(self, key: str, value: str, ttl_seconds: Optional[float] = None) -> None:
        expires_at = None
        if ttl_seconds:
            expires_at = self._now_ms() + int(ttl_seconds * 1000)
        await self.conn.execute(
            "INSERT INTO kv (key, value, expires_at) VALUES (?, ?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, expires_at = excluded.expires_at",
            (key, value, expires_at),
        )
        await self.conn.commit()

    async def put_json(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        await self.put(key, json.dumps(value, ensure_ascii=False), ttl_seconds)

    async def delete(self, key: str) -> None:
        await self.conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        await self.conn.commit()

    async def list(self, prefix: str, cursor: Optional[str] = None, limit: int = DEFAULT_LIST_LIMIT) -> ListResult:
        """
        Lists live keys starting with prefix in key order.
        The returned cursor is the last key of the page; pass it back to continue.
        """
        query = (
            "SELECT key FROM kv WHERE substr(key, 1, ?) = ? "
            "AND (expires_at IS NULL OR expires_at > ?)"
        )
        params: list = [len(prefix), prefix, self._now_ms()]
        if cursor:
            query += " AND key > ?"
            params.append(cursor)
        query += " ORDER BY key LIMIT ?"
        params.append(int(limit) + 1)

        async with self.conn.execute(query, params) as cur:
            rows = await cur.fetchall()

        keys = [row[0] for row in rows[:limit]]
        complete = len(rows) <= limit
        return ListResult(
            keys=keys,
            cursor=None if complete or not keys else keys[-1],
            complete=complete,
        )

    async def purge_expired(self) -> int:
        cursor = await self.conn.execute(
            "DELETE FROM kv WHERE expires_at IS NOT NULL AND expires_at <= ?", (self._now_ms(),)
        )
        await self.conn.commit()
        return cursor.rowcount


class KVStorage(BaseStorage):
    """
    aiogram FSM storage kept in the same KV table (prefix fsm:).
    The store may be attached after the Dispatcher is created.
    """

    def __init__(self, store: Optional[KVStore] = None, ttl_seconds: Optional[float] = None):
        self.store = store
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _key(key: StorageKey, part: str) -> str:
        return f"fsm:{key.bot_id}:{key.chat_id}:{key.user_id}:{key.destiny}:{part}"

    async def set_state(self, key: StorageKey, state: StateType = None) -> None:
        storage_key = self._key(key, "state")
        value = state.state if isinstance(state, State) else state
        if value is None:
            await self.store.delete(storage_key)
        else:
            await self.store.put(storage_key, value, self.ttl_seconds)

    async def get_state(self, key: StorageKey) -> Optional[str]:
        return await self.store.get(self._key(key, "state"))

    async def set_data(self, key: StorageKey, data: Mapping[str, Any]) -> None:
        storage_key = self._key(key, "data")
        if not data:
            await self.store.delete(storage_key)
        else:
            await self.store.put_json(storage_key, dict(data), self.ttl_seconds)

    async def get_data(self, key: StorageKey) -> Dict[str, Any]:
        data = await self.store.get_json(self._key(key, "data"))
        return data if isinstance(data, dict) else {}

    async def close(self) -> None:
        # Connection is owned by the application
        pass
