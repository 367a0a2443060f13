#!/usr/bin/env python3
"""
One-shot alert pass, meant to be started by an external scheduler.

Usage:
    python -m bezsvitla.cron                      # run one pass over all subscriptions
    python -m bezsvitla.cron --db-path ./data/svitlo.db --max 100
"""

import argparse
import asyncio
import sys

from aiogram import Bot

from svitlo.config import ALERT_MAX_PER_CRON, BOT_TOKENS, DB_PATH, LOG_DIR
from svitlo.logging_config import setup_logging
from svitlo.migrate import apply_migrations
from svitlo.storage import KVStore, init_db
from svitlo.tasks import CronResult, make_notifier, run_cron_alerts

from bezsvitla.data_source import get_data_source

logger = setup_logging("bezsvitla_cron", LOG_DIR)


async def run_once(db_path: str = DB_PATH, max_per_cron=ALERT_MAX_PER_CRON) -> CronResult:
    conn = await init_db(db_path)
    bots = {token: Bot(token=token) for token in BOT_TOKENS}
    try:
        await apply_migrations(conn)
        store = KVStore(conn)
        purged = await store.purge_expired()
        if purged:
            logger.info(f"Purged {purged} expired key(s)")
        return await run_cron_alerts(
            store,
            get_data_source(store=store),
            make_notifier(bots),
            max_per_cron=max_per_cron,
        )
    finally:
        for bot in bots.values():
            await bot.session.close()
        await conn.close()


def main():
    parser = argparse.ArgumentParser(description='Run one alert dispatch pass')
    parser.add_argument('--db-path', default=DB_PATH, help='Path to SQLite database')
    parser.add_argument('--max', type=int, default=ALERT_MAX_PER_CRON, help='Max subscriptions per pass')
    args = parser.parse_args()

    if not BOT_TOKENS:
        logger.error("BOT_TOKENS is not set. Exiting.")
        sys.exit(1)

    result = asyncio.run(run_once(args.db_path, args.max))
    print(f"processed={result.processed} sent={result.sent}")


if __name__ == "__main__":
    main()
