#!/usr/bin/env python3
"""
Schema migrations for the Svitlo KV database.

Usage:
    python -m svitlo.migrate --db-path ./data/svitlo.db           # Apply pending migrations
    python -m svitlo.migrate --db-path ./data/svitlo.db --status  # Show applied/pending
    python -m svitlo.migrate --db-path ./data/svitlo.db --purge   # Drop expired keys
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Tuple

import aiosqlite

from svitlo.storage import init_db, KVStore

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def list_migrations(directory: Path = MIGRATIONS_DIR) -> List[Tuple[int, Path]]:
    """Migration files sorted by their numeric prefix ("001_kv_store.sql" -> 1)."""
    found = []
    for path in directory.glob("*.sql"):
        prefix = path.stem.split("_", 1)[0]
        if not prefix.isdigit():
            logger.warning(f"Skipping migration with unexpected name: {path.name}")
            continue
        found.append((int(prefix), path))
    return sorted(found)


async def current_version(conn: aiosqlite.Connection) -> int:
    await conn.execute(
        "CREATE TABLE IF NOT EXISTS schema_version ("
        " version INTEGER PRIMARY KEY,"
        " applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,"
        " filename TEXT NOT NULL)"
    )
    async with conn.execute("SELECT MAX(version) FROM schema_version") as cursor:
        row = await cursor.fetchone()
    return row[0] or 0


async def apply_migrations(conn: aiosqlite.Connection, directory: Path = MIGRATIONS_DIR) -> int:
    """
    Applies every migration newer than the recorded schema version.
    Returns the resulting version. A failing script is rolled back and re-raised.
    """
    version = await current_version(conn)
    pending = [(v, p) for v, p in list_migrations(directory) if v > version]
    if not pending:
        logger.info(f"Database is up to date (version {version})")
        return version

    for number, path in pending:
        logger.info(f"Applying migration {number}: {path.name}")
        try:
            await conn.executescript(path.read_text(encoding="utf-8"))
            await conn.execute(
                "INSERT INTO schema_version (version, filename) VALUES (?, ?)",
                (number, path.name),
            )
            await conn.commit()
        except aiosqlite.Error as e:
            logger.error(f"Migration {number} failed: {e}")
            await conn.rollback()
            raise
        version = number

    logger.info(f"Migration complete. New version: {version}")
    return version


async def print_status(conn: aiosqlite.Connection) -> None:
    version = await current_version(conn)
    print(f"Current version: {version}")
    for number, path in list_migrations():
        mark = "applied" if number <= version else "pending"
        print(f"  {number:03d}: {path.name} [{mark}]")


async def run(args) -> int:
    conn = await init_db(args.db_path)
    try:
        if args.status:
            await print_status(conn)
        elif args.purge:
            removed = await KVStore(conn).purge_expired()
            print(f"Removed {removed} expired key(s)")
        else:
            await apply_migrations(conn)
    except aiosqlite.Error:
        return 1
    finally:
        await conn.close()
    return 0


def main():
    logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
    parser = argparse.ArgumentParser(description='Svitlo database migrations')
    parser.add_argument('--db-path', required=True, help='Path to SQLite database')
    parser.add_argument('--status', action='store_true', help='Show migration status')
    parser.add_argument('--purge', action='store_true', help='Delete expired keys')
    args = parser.parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
