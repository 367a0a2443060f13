"""
Bezsvitla Telegram Bot - outage schedules and alerts for bezsvitla.com.ua queues.
Uses the svitlo library; one Dispatcher serves every configured bot token.

Polling mode (local runs):
    python -m bezsvitla.bot.bot
Webhook mode is served by api.py with the same dispatcher.
"""

import asyncio
import logging
from typing import Dict, Optional

from aiogram import Bot, Dispatcher, types, F
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import BotCommand, CallbackQuery

from svitlo.config import BOT_TOKENS, DB_PATH, LOG_DIR, STATE_TTL_SEC
from svitlo.handlers import (
    AdminState,
    BotContext,
    handle_admin_ad_media,
    handle_admin_ad_text,
    handle_admin_command,
    handle_admin_whitelist_input,
    handle_callback_admin,
    handle_callback_alerts_toggle,
    handle_callback_city,
    handle_callback_delete,
    handle_callback_my,
    handle_callback_queue,
    handle_callback_refresh,
    handle_callback_retry_city_queues,
    handle_callback_save,
    handle_callback_show,
    handle_cancel,
    handle_city_search,
    handle_my,
    handle_start,
)
from svitlo.logging_config import setup_logging
from svitlo.middleware import ChatLoggingMiddleware
from svitlo.migrate import apply_migrations
from svitlo.storage import KVStorage, KVStore, init_db
from svitlo.tasks import alert_checker_task, make_notifier

from bezsvitla.data_source import get_data_source

logger = setup_logging("bezsvitla_bot", LOG_DIR)

# Dispatcher
fsm_storage = KVStorage(ttl_seconds=STATE_TTL_SEC)
dp = Dispatcher(storage=fsm_storage)
dp.update.outer_middleware(ChatLoggingMiddleware())

store: Optional[KVStore] = None
db_conn = None

# One context per bot token: the queue cache is keyed by token
contexts: Dict[str, BotContext] = {}


def get_ctx(bot: Bot) -> BotContext:
    """Get BotContext for the bot that received the update."""
    ctx = contexts.get(bot.token)
    if ctx is None or ctx.store is not store:
        ctx = BotContext(
            store=store,
            data_source=get_data_source(store=store, token=bot.token),
            logger=logger,
        )
        contexts[bot.token] = ctx
    return ctx


# --- Commands (cancel must be first) ---

@dp.message(Command("cancel"))
async def command_cancel_handler(message: types.Message, state: FSMContext, bot: Bot) -> None:
    await handle_cancel(message, state, get_ctx(bot))


@dp.message(Command("start"))
async def command_start_handler(message: types.Message, state: FSMContext, bot: Bot) -> None:
    await handle_start(message, state, bot, get_ctx(bot))


@dp.message(Command("my"))
async def command_my_handler(message: types.Message, bot: Bot) -> None:
    await handle_my(message, bot, get_ctx(bot))


@dp.message(Command("admin"))
async def command_admin_handler(message: types.Message, bot: Bot) -> None:
    await handle_admin_command(message, bot, get_ctx(bot))


# --- Admin input modes ---

@dp.message(AdminState.waiting_for_ad_text, F.text)
async def admin_ad_text_handler(message: types.Message, state: FSMContext, bot: Bot) -> None:
    await handle_admin_ad_text(message, state, bot, get_ctx(bot))


@dp.message(AdminState.waiting_for_ad_media, F.photo | F.video | F.document)
async def admin_ad_media_handler(message: types.Message, state: FSMContext, bot: Bot) -> None:
    await handle_admin_ad_media(message, state, bot, get_ctx(bot))


@dp.message(AdminState.waiting_for_whitelist_add, F.text)
@dp.message(AdminState.waiting_for_whitelist_del, F.text)
async def admin_whitelist_handler(message: types.Message, state: FSMContext, bot: Bot) -> None:
    await handle_admin_whitelist_input(message, state, bot, get_ctx(bot))


# --- Callbacks ---

@dp.callback_query(F.data == "admin")
@dp.callback_query(F.data.startswith("admin|"))
async def callback_admin(callback: CallbackQuery, state: FSMContext, bot: Bot) -> None:
    await handle_callback_admin(callback, state, bot, get_ctx(bot))


@dp.callback_query(F.data.startswith("city|"))
async def callback_city(callback: CallbackQuery, bot: Bot) -> None:
    await handle_callback_city(callback, bot, get_ctx(bot))


@dp.callback_query(F.data == "retry_city_queues")
async def callback_retry_city_queues(callback: CallbackQuery, bot: Bot) -> None:
    await handle_callback_retry_city_queues(callback, bot, get_ctx(bot))


@dp.callback_query(F.data.startswith("queue|"))
async def callback_queue(callback: CallbackQuery, bot: Bot) -> None:
    await handle_callback_queue(callback, bot, get_ctx(bot))


@dp.callback_query(F.data == "refresh")
async def callback_refresh(callback: CallbackQuery, bot: Bot) -> None:
    await handle_callback_refresh(callback, bot, get_ctx(bot))


@dp.callback_query(F.data == "save")
async def callback_save(callback: CallbackQuery, bot: Bot) -> None:
    await handle_callback_save(callback, bot, get_ctx(bot))


@dp.callback_query(F.data == "alerts_toggle")
async def callback_alerts_toggle(callback: CallbackQuery, bot: Bot) -> None:
    await handle_callback_alerts_toggle(callback, bot, get_ctx(bot))


@dp.callback_query(F.data == "my")
async def callback_my(callback: CallbackQuery, bot: Bot) -> None:
    await handle_callback_my(callback, bot, get_ctx(bot))


@dp.callback_query(F.data.startswith("show|"))
async def callback_show(callback: CallbackQuery, bot: Bot) -> None:
    await handle_callback_show(callback, bot, get_ctx(bot))


@dp.callback_query(F.data.startswith("del|"))
async def callback_delete(callback: CallbackQuery, bot: Bot) -> None:
    await handle_callback_delete(callback, bot, get_ctx(bot))


# --- Free text: city search (must be last) ---

@dp.message(F.text)
async def city_search_handler(message: types.Message, bot: Bot) -> None:
    await handle_city_search(message, bot, get_ctx(bot))


# --- Lifecycle ---

async def set_default_commands(bot: Bot):
    """Устанавливает список команд в меню Telegram."""
    commands = [
        BotCommand(command="start", description="Почати роботу"),
        BotCommand(command="my", description="Мої черги"),
        BotCommand(command="cancel", description="Скасувати поточну дію"),
    ]
    try:
        await bot.set_my_commands(commands)
    except Exception as e:
        logger.error(f"Failed to set default commands: {e}")


async def open_store(db_path: str = DB_PATH) -> KVStore:
    """Opens the database, applies migrations and binds the KV store to the dispatcher."""
    global store, db_conn
    db_conn = await init_db(db_path)
    await apply_migrations(db_conn)
    store = KVStore(db_conn)
    fsm_storage.store = store
    contexts.clear()
    return store


async def close_store() -> None:
    global store, db_conn
    if db_conn:
        await db_conn.close()
        logger.info("Database connection closed.")
    store = None
    db_conn = None


def build_bots() -> Dict[str, Bot]:
    return {token: Bot(token=token) for token in BOT_TOKENS}


async def main():
    if not BOT_TOKENS:
        logger.error("BOT_TOKENS is not set. Exiting.")
        return

    try:
        await open_store()
    except Exception as e:
        logger.error(f"Failed to initialize database at {DB_PATH}: {e}", exc_info=True)
        return

    bots = build_bots()
    for bot in bots.values():
        await set_default_commands(bot)
        await bot.delete_webhook(drop_pending_updates=True)

    alert_task = asyncio.create_task(alert_checker_task(
        lambda: store,
        get_data_source(store=store),
        make_notifier(bots),
        logger,
    ))

    logger.info(f"Bot started for {len(bots)} token(s). Beginning polling...")
    try:
        await dp.start_polling(*bots.values())
    finally:
        logger.info("Stopping bot. Cancelling background tasks...")
        alert_task.cancel()
        await close_store()
        for bot in bots.values():
            await bot.session.close()
        logger.info("Bot sessions closed.")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        logger.info("Bot stopped.")
