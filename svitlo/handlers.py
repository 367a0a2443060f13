"""
Bot handlers for the outage schedule bot.
Handlers take a BotContext so provider wiring stays in the bot module.

Every update loads the chat's UserState, works on it and saves it back;
nothing is cached in process memory between updates.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

import aiosqlite
from aiogram import Bot, types
from aiogram.exceptions import TelegramBadRequest
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import CallbackQuery, InlineKeyboardMarkup

from svitlo.ads import (
    ensure_user_registered,
    get_users_count,
    load_ad_config,
    load_whitelist,
    maybe_show_ad,
    media_to_ad_item,
    now_ms,
    prune_expired_ads,
    save_ad_config,
    save_whitelist,
    split_ttl_prefix,
    default_ad_item,
)
from svitlo.clock import LocalClock, local_now
from svitlo.config import UA_TZ_OFFSET_MIN, VERSION, is_admin
from svitlo.data_source import ScheduleDataSource
from svitlo.keyboards import (
    build_admin_keyboard,
    build_ads_menu_keyboard,
    build_back_to_admin_keyboard,
    build_cities_keyboard,
    build_main_queue_keyboard,
    build_queues_keyboard,
    build_retry_queues_keyboard,
    build_saved_list_keyboard,
    build_saved_queue_keyboard,
    build_start_keyboard,
    build_whitelist_keyboard,
)
from svitlo.records import AdConfig, AdItem, SelectedQueue, UserState, load_state, save_state
from svitlo.schedule import compute_status, format_blocks
from svitlo.storage import KVStore
from svitlo.subscriptions import delete_chat_subscriptions, upsert_subscription


@dataclass
class BotContext:
    """
    Configuration context for parametrized bot handlers.
    """
    store: KVStore
    data_source: ScheduleDataSource
    logger: Optional[logging.Logger] = None

    @property
    def log(self) -> logging.Logger:
        return self.logger or logging.getLogger(__name__)


# --- FSM States ---
class AdminState(StatesGroup):
    """Admin input modes: the next message is taken as ad content or a whitelist id"""
    waiting_for_ad_text = State()
    waiting_for_ad_media = State()
    waiting_for_whitelist_add = State()
    waiting_for_whitelist_del = State()


STATE_LOST_TEXT = "⚠️ Стан втрачено. Напиши місто ще раз."
CACHE_NOTE = "\n\n(✅ Показую з кешу, сайт може лагати)"
MIN_QUERY_LENGTH = 2


# ============================================================
# HELPERS
# ============================================================

async def open_state(ctx: BotContext, token: str, chat_id: int) -> UserState:
    """Registers the chat, loads its state and counts the action."""
    await ensure_user_registered(ctx.store, token, chat_id)
    st = await load_state(ctx.store, token, chat_id)
    st.action_counter += 1
    return st


async def safe_edit(message: types.Message, text: str, reply_markup: Optional[InlineKeyboardMarkup] = None, logger: Optional[logging.Logger] = None) -> None:
    """Edits a bot message; Telegram refusals (unchanged text, too old) are logged only."""
    try:
        await message.edit_text(text, reply_markup=reply_markup, disable_web_page_preview=True)
    except TelegramBadRequest as e:
        (logger or logging.getLogger(__name__)).warning(f"Could not edit message: {e}")


def pick(items: List, data: str):
    """Returns items[i] for callback data 'name|i', or None."""
    try:
        index = int(data.split("|", 1)[1])
    except (IndexError, ValueError):
        return None
    if 0 <= index < len(items):
        return items[index]
    return None


async def build_queue_info(selected: SelectedQueue, ctx: BotContext, clock: Optional[LocalClock] = None) -> str:
    """Status card of a queue: current state, next change and both days."""
    header = f"📍 {selected.city_name}\n🔌 {selected.queue_name}"
    result = await ctx.data_source.fetch_schedule(selected.url)
    if not result.ok:
        return f"{header}\n\n❌ Не вдалося завантажити сторінку черги"

    clock = clock or local_now(UA_TZ_OFFSET_MIN)
    today = result.today
    status = compute_status(today, clock.minute_of_day)

    text = f"{header}\n{status.status_line}\n{status.next_line}".rstrip()
    text += f"\n\n📊 СЬОГОДНІ:\n{format_blocks(today)}"
    tomorrow = result.tomorrow
    if tomorrow:
        text += f"\n\n📅 ЗАВТРА:\n{format_blocks(tomorrow)}"
    return text


async def subscribe_selected(ctx: BotContext, token: str, chat_id: int, selected: SelectedQueue) -> None:
    try:
        await upsert_subscription(
            ctx.store, token, chat_id, selected.url,
            city_name=selected.city_name, queue_name=selected.queue_name,
        )
        ctx.log.info(f"Alert subscription saved for {selected.queue_name} ({selected.city_name})")
    except aiosqlite.Error as e:
        ctx.log.error(f"Failed to save subscription: {e}")


async def show_my_queues(message: types.Message, st: UserState, edit: bool = False) -> None:
    if not st.saved:
        text, markup = "📭 У тебе ще немає збережених черг", None
    else:
        text, markup = "⭐ Мої черги:", build_saved_list_keyboard(st.saved)
    if edit:
        await safe_edit(message, text, markup)
    else:
        await message.answer(text, reply_markup=markup)


# ============================================================
# USER COMMANDS
# ============================================================

async def handle_start(message: types.Message, state: FSMContext, bot: Bot, ctx: BotContext) -> None:
    chat_id = message.chat.id
    await state.clear()
    st = await open_state(ctx, bot.token, chat_id)
    try:
        st.cities, st.queues, st.city, st.selected = [], [], None, None

        text = "⚡ ДТЕК • Світло Графік\n\n✍️ Напиши назву міста"
        if is_admin(chat_id):
            text += "\n\n👑 Адмін: /admin"
        await message.answer(text, reply_markup=build_start_keyboard())
        await maybe_show_ad(bot, ctx.store, bot.token, chat_id, st)
    finally:
        await save_state(ctx.store, bot.token, chat_id, st)


async def handle_my(message: types.Message, bot: Bot, ctx: BotContext) -> None:
    chat_id = message.chat.id
    st = await open_state(ctx, bot.token, chat_id)
    try:
        await show_my_queues(message, st)
        await maybe_show_ad(bot, ctx.store, bot.token, chat_id, st)
    finally:
        await save_state(ctx.store, bot.token, chat_id, st)


async def handle_cancel(message: types.Message, state: FSMContext, ctx: BotContext) -> None:
    """Leaves any pending admin input mode."""
    current = await state.get_state()
    await state.clear()
    if current:
        ctx.log.info(f"Cancelled input mode {current}")
    await message.answer("✅ Скасовано.")


async def handle_city_search(message: types.Message, bot: Bot, ctx: BotContext) -> None:
    """Any free text is a city search query."""
    chat_id = message.chat.id
    query = (message.text or "").strip()
    st = await open_state(ctx, bot.token, chat_id)
    try:
        if not query:
            return
        if len(query) < MIN_QUERY_LENGTH:
            await message.answer("✍️ Напиши назву міста (мінімум 2 символи)")
            return

        cities = await ctx.data_source.search_cities(query)
        ctx.log.info(f"City search {query!r}: {len(cities)} result(s)")
        if not cities:
            await message.answer("❌ Місто не знайдено")
            await maybe_show_ad(bot, ctx.store, bot.token, chat_id, st)
            return

        st.cities, st.queues, st.city, st.selected = cities, [], None, None
        await message.answer("📍 Обери місто:", reply_markup=build_cities_keyboard(cities))
        await maybe_show_ad(bot, ctx.store, bot.token, chat_id, st)
    finally:
        await save_state(ctx.store, bot.token, chat_id, st)


# ============================================================
# SELECTION CALLBACKS
# ============================================================

async def _show_queues(callback: CallbackQuery, st: UserState, bot: Bot, ctx: BotContext, failure_text: str) -> None:
    city = st.city
    result = await ctx.data_source.get_queues(city.url)
    if not result.queues:
        await safe_edit(callback.message, failure_text, build_retry_queues_keyboard(), ctx.log)
        return

    st.queues = result.queues
    st.selected = None
    note = CACHE_NOTE if result.from_cache else ""
    await safe_edit(callback.message, f"🔌 Обери чергу:\n\n📍 {city.name}{note}", build_queues_keyboard(result.queues), ctx.log)
    await maybe_show_ad(bot, ctx.store, bot.token, callback.message.chat.id, st)


async def handle_callback_city(callback: CallbackQuery, bot: Bot, ctx: BotContext) -> None:
    await callback.answer()
    chat_id = callback.message.chat.id
    st = await open_state(ctx, bot.token, chat_id)
    try:
        city = pick(st.cities, callback.data)
        if not city:
            await safe_edit(callback.message, STATE_LOST_TEXT, logger=ctx.log)
            return

        st.city, st.queues, st.selected = city, [], None
        await safe_edit(callback.message, f"⏳ Завантажую черги...\n\n📍 {city.name}", logger=ctx.log)
        await _show_queues(
            callback, st, bot, ctx,
            "❌ Не вдалося завантажити черги для цього міста.\nСайт іноді лагає, натисни «Спробувати ще раз».",
        )
    finally:
        await save_state(ctx.store, bot.token, chat_id, st)


async def handle_callback_retry_city_queues(callback: CallbackQuery, bot: Bot, ctx: BotContext) -> None:
    await callback.answer()
    chat_id = callback.message.chat.id
    st = await open_state(ctx, bot.token, chat_id)
    try:
        if not st.city:
            await safe_edit(callback.message, STATE_LOST_TEXT, logger=ctx.log)
            return
        await _show_queues(callback, st, bot, ctx, "❌ Черги не завантажились. Спробуй ще раз.")
    finally:
        await save_state(ctx.store, bot.token, chat_id, st)


async def handle_callback_queue(callback: CallbackQuery, bot: Bot, ctx: BotContext) -> None:
    await callback.answer()
    chat_id = callback.message.chat.id
    st = await open_state(ctx, bot.token, chat_id)
    try:
        queue = pick(st.queues, callback.data)
        if not queue:
            await safe_edit(callback.message, STATE_LOST_TEXT, logger=ctx.log)
            return

        st.selected = SelectedQueue(
            city_name=st.city.name if st.city else "Обране місто",
            queue_name=queue.name,
            url=queue.url,
        )
        text = await build_queue_info(st.selected, ctx)
        await safe_edit(callback.message, text, build_main_queue_keyboard(st.alerts_enabled), ctx.log)
        await maybe_show_ad(bot, ctx.store, bot.token, chat_id, st)

        if st.alerts_enabled:
            await subscribe_selected(ctx, bot.token, chat_id, st.selected)
    finally:
        await save_state(ctx.store, bot.token, chat_id, st)


async def handle_callback_refresh(callback: CallbackQuery, bot: Bot, ctx: BotContext) -> None:
    await callback.answer()
    chat_id = callback.message.chat.id
    st = await open_state(ctx, bot.token, chat_id)
    try:
        if not st.selected:
            await safe_edit(callback.message, "⚠️ Спочатку обери місто та чергу.", logger=ctx.log)
            return
        text = await build_queue_info(st.selected, ctx)
        await safe_edit(callback.message, text, build_main_queue_keyboard(st.alerts_enabled), ctx.log)
        await maybe_show_ad(bot, ctx.store, bot.token, chat_id, st)
    finally:
        await save_state(ctx.store, bot.token, chat_id, st)


async def handle_callback_save(callback: CallbackQuery, bot: Bot, ctx: BotContext) -> None:
    await callback.answer()
    chat_id = callback.message.chat.id
    st = await open_state(ctx, bot.token, chat_id)
    try:
        if not st.selected:
            await callback.message.answer("⚠️ Немає вибраної черги.")
            return
        if any(item.url == st.selected.url for item in st.saved):
            await callback.message.answer("✅ Вже збережено")
        else:
            st.saved.append(st.selected.model_copy())
            await callback.message.answer("⭐ Чергу збережено!")
        await maybe_show_ad(bot, ctx.store, bot.token, chat_id, st)
    finally:
        await save_state(ctx.store, bot.token, chat_id, st)


async def handle_callback_alerts_toggle(callback: CallbackQuery, bot: Bot, ctx: BotContext) -> None:
    await callback.answer()
    chat_id = callback.message.chat.id
    st = await open_state(ctx, bot.token, chat_id)
    try:
        st.alerts_enabled = not st.alerts_enabled
        if st.alerts_enabled:
            if st.selected:
                await subscribe_selected(ctx, bot.token, chat_id, st.selected)
            await callback.message.answer("🔔 Алерти увімкнено.")
        else:
            removed = await delete_chat_subscriptions(ctx.store, bot.token, chat_id)
            ctx.log.info(f"Alerts disabled, removed {removed} subscription(s)")
            await callback.message.answer("🔕 Алерти вимкнено.")

        if st.selected:
            text = await build_queue_info(st.selected, ctx)
            await safe_edit(callback.message, text, build_main_queue_keyboard(st.alerts_enabled), ctx.log)
    finally:
        await save_state(ctx.store, bot.token, chat_id, st)


async def handle_callback_my(callback: CallbackQuery, bot: Bot, ctx: BotContext) -> None:
    await callback.answer()
    chat_id = callback.message.chat.id
    st = await open_state(ctx, bot.token, chat_id)
    try:
        await show_my_queues(callback.message, st, edit=True)
        await maybe_show_ad(bot, ctx.store, bot.token, chat_id, st)
    finally:
        await save_state(ctx.store, bot.token, chat_id, st)


async def handle_callback_show(callback: CallbackQuery, bot: Bot, ctx: BotContext) -> None:
    await callback.answer()
    chat_id = callback.message.chat.id
    st = await open_state(ctx, bot.token, chat_id)
    try:
        item = pick(st.saved, callback.data)
        if not item:
            await callback.message.answer("⚠️ Не знайдено.")
            return

        index = st.saved.index(item)
        st.selected = item.model_copy()
        text = await build_queue_info(st.selected, ctx)
        await callback.message.answer(
            text,
            reply_markup=build_saved_queue_keyboard(index, st.alerts_enabled),
            disable_web_page_preview=True,
        )
        await maybe_show_ad(bot, ctx.store, bot.token, chat_id, st)

        if st.alerts_enabled:
            await subscribe_selected(ctx, bot.token, chat_id, st.selected)
    finally:
        await save_state(ctx.store, bot.token, chat_id, st)


async def handle_callback_delete(callback: CallbackQuery, bot: Bot, ctx: BotContext) -> None:
    """Removes a saved queue from the list (alert subscriptions are untouched)."""
    await callback.answer()
    chat_id = callback.message.chat.id
    st = await open_state(ctx, bot.token, chat_id)
    try:
        item = pick(st.saved, callback.data)
        if item:
            st.saved.remove(item)
            await callback.message.answer("❌ Видалено")
        await maybe_show_ad(bot, ctx.store, bot.token, chat_id, st)
    finally:
        await save_state(ctx.store, bot.token, chat_id, st)


# ============================================================
# ADMIN
# ============================================================

def _format_expiry(expires_at: int) -> str:
    if not expires_at:
        return "∞"
    return datetime.fromtimestamp(expires_at / 1000, timezone.utc).strftime("%Y-%m-%d %H:%M:%SZ")


def _ad_title(item: AdItem) -> str:
    if item.type == "text":
        return item.text[:32].replace("\n", " ")
    return f"{item.type} ({'file' if item.file_id else '?'})"


async def build_admin_text(ctx: BotContext, token: str, st: UserState, config: AdConfig) -> str:
    whitelist = await load_whitelist(ctx.store, token)
    users = await get_users_count(ctx.store, token)
    status = "✅ увімкнена" if config.enabled else "⛔ вимкнена"
    alerts = "✅ увімкнені" if st.alerts_enabled else "⛔ вимкнені"
    return (
        "👑 Адмін-панель\n\n"
        f"🧩 Версія: {VERSION}\n"
        f"📊 Юзерів: {users}\n\n"
        f"📢 Реклама: {status}\n"
        f"🔁 Частота: раз на {config.frequency} дій\n"
        f"🧾 Оголошень (активні): {len(config.items)}\n\n"
        f"🔔 Алерти для тебе: {alerts}\n"
        f"🚫 Whitelist: {len(whitelist)} юзерів"
    )


async def show_admin_menu(message: types.Message, ctx: BotContext, token: str, st: UserState, edit: bool = False) -> None:
    config = prune_expired_ads(await load_ad_config(ctx.store, token))
    text = await build_admin_text(ctx, token, st, config)
    markup = build_admin_keyboard(config.enabled)
    if edit:
        await safe_edit(message, text, markup, ctx.log)
    else:
        await message.answer(text, reply_markup=markup)


async def show_ads_menu(message: types.Message, ctx: BotContext, token: str) -> None:
    config = prune_expired_ads(await load_ad_config(ctx.store, token))
    await save_ad_config(ctx.store, token, config)

    lines = [
        f"{i}. #{item.id} | {item.type} | exp: {_format_expiry(item.expires_at)}\n   {_ad_title(item)}"
        for i, item in enumerate(config.items[:25], start=1)
    ]
    text = (
        "🗂 Реклама: керування\n\n"
        "Додати:\n"
        "• «➕ Текст»: надішли текст (можна з TTL: 7d1h4s Текст)\n"
        "• «➕ Медіа»: надішли фото/відео/док (caption може починатись з TTL)\n\n"
        "Видалити:\n"
        "• натисни «❌» біля потрібного оголошення\n\n"
        "Список (до 25):\n"
        + ("\n".join(lines) if lines else "(порожньо)")
    )
    await safe_edit(message, text, build_ads_menu_keyboard(config.items), ctx.log)


async def show_whitelist_menu(message: types.Message, ctx: BotContext, token: str) -> None:
    whitelist = sorted(await load_whitelist(ctx.store, token))
    listed = "\n".join(f"• {chat_id}" for chat_id in whitelist[:30]) or "(порожньо)"
    text = (
        "🚫 Whitelist (без реклами), глобальний\n\n"
        "Кнопки:\n"
        "• «➕ Додати ID»: надішли ID наступним повідомленням\n"
        "• «➖ Видалити ID»: надішли ID\n\n"
        f"Зараз у списку: {len(whitelist)}\n\n"
        f"{listed}"
    )
    await safe_edit(message, text, build_whitelist_keyboard(), ctx.log)


async def show_stats(message: types.Message, ctx: BotContext, token: str, st: UserState) -> None:
    users = await get_users_count(ctx.store, token)
    whitelist = await load_whitelist(ctx.store, token)
    config = prune_expired_ads(await load_ad_config(ctx.store, token))
    text = (
        "📈 Статистика\n\n"
        f"👥 Юзерів: {users}\n"
        f"⭐ Збережено у тебе: {len(st.saved)}\n"
        f"📢 Оголошень (активні): {len(config.items)}\n"
        f"🚫 Whitelist: {len(whitelist)}\n\n"
        f"⚙️ Дій (у тебе): {st.action_counter}"
    )
    await safe_edit(message, text, build_back_to_admin_keyboard(), ctx.log)


async def handle_admin_command(message: types.Message, bot: Bot, ctx: BotContext) -> None:
    chat_id = message.chat.id
    if not is_admin(chat_id):
        ctx.log.warning("Non-admin tried /admin")
        return
    st = await open_state(ctx, bot.token, chat_id)
    try:
        await show_admin_menu(message, ctx, bot.token, st)
    finally:
        await save_state(ctx.store, bot.token, chat_id, st)


async def handle_callback_admin(callback: CallbackQuery, state: FSMContext, bot: Bot, ctx: BotContext) -> None:
    """Handles 'admin' and 'admin|<action>[|id]' callbacks."""
    await callback.answer()
    chat_id = callback.message.chat.id
    if not is_admin(chat_id):
        return

    token = bot.token
    message = callback.message
    parts = (callback.data or "").split("|")
    action = parts[1] if len(parts) > 1 else ""

    st = await open_state(ctx, token, chat_id)
    try:
        if not action:
            await show_admin_menu(message, ctx, token, st, edit=True)
            return

        if action in ("toggle_ad", "freq_up", "freq_down"):
            config = await load_ad_config(ctx.store, token)
            if action == "toggle_ad":
                config.enabled = not config.enabled
            elif action == "freq_up":
                # "More often" means fewer actions between ads
                config.frequency = max(1, config.frequency - 1)
            else:
                config.frequency = min(50, config.frequency + 1)
            await save_ad_config(ctx.store, token, config)
            ctx.log.info(f"Ad config changed: enabled={config.enabled}, frequency={config.frequency}")
            await show_admin_menu(message, ctx, token, st, edit=True)

        elif action == "ads_menu":
            await show_ads_menu(message, ctx, token)

        elif action == "ad_del":
            ad_id = parts[2] if len(parts) > 2 else ""
            config = prune_expired_ads(await load_ad_config(ctx.store, token))
            items = [item for item in config.items if item.id != ad_id] or [default_ad_item()]
            await save_ad_config(ctx.store, token, config.model_copy(update={"items": items}))
            await show_ads_menu(message, ctx, token)

        elif action == "clear_ads":
            await save_ad_config(ctx.store, token, AdConfig(items=[default_ad_item()]))
            await show_ads_menu(message, ctx, token)

        elif action == "add_ad_text":
            await state.set_state(AdminState.waiting_for_ad_text)
            await safe_edit(message, "✍️ Надішли наступним повідомленням текст реклами.\nМожеш додати TTL на початку: 7d1h4s Текст\n(Або /cancel щоб скасувати)", logger=ctx.log)

        elif action == "add_ad_media":
            await state.set_state(AdminState.waiting_for_ad_media)
            await safe_edit(message, "📎 Надішли фото/відео/документ.\nCaption може починатися з TTL: 7d1h4s Текст\n(Або /cancel щоб скасувати)", logger=ctx.log)

        elif action == "wl_menu":
            await show_whitelist_menu(message, ctx, token)

        elif action == "wl_add":
            await state.set_state(AdminState.waiting_for_whitelist_add)
            await safe_edit(message, "➕ Надішли ID юзера (число) наступним повідомленням.\n(Або /cancel)", logger=ctx.log)

        elif action == "wl_del":
            await state.set_state(AdminState.waiting_for_whitelist_del)
            await safe_edit(message, "➖ Надішли ID юзера для видалення.\n(Або /cancel)", logger=ctx.log)

        elif action == "stats":
            await show_stats(message, ctx, token, st)

        elif action == "close":
            await safe_edit(message, "✅ Закрито.", logger=ctx.log)

        else:
            ctx.log.warning(f"Unknown admin action: {action}")
    finally:
        await save_state(ctx.store, token, chat_id, st)


async def _add_ad_item(ctx: BotContext, token: str, item: AdItem) -> None:
    config = prune_expired_ads(await load_ad_config(ctx.store, token))
    # Newest ad goes first and is the one shown
    await save_ad_config(ctx.store, token, config.model_copy(update={"items": [item] + config.items}))
    ctx.log.info(f"Ad #{item.id} ({item.type}) added, expires_at={item.expires_at}")


async def handle_admin_ad_text(message: types.Message, state: FSMContext, bot: Bot, ctx: BotContext) -> None:
    if not is_admin(message.chat.id):
        await state.clear()
        return
    text = (message.text or "").strip()
    ttl_seconds, rest = split_ttl_prefix(text)
    created_at = now_ms()
    item = AdItem(
        id=str(created_at),
        type="text",
        text=rest or text,
        created_at=created_at,
        expires_at=created_at + ttl_seconds * 1000 if ttl_seconds > 0 else 0,
    )
    await _add_ad_item(ctx, bot.token, item)
    await state.clear()
    await message.answer("✅ Текст реклами додано (глобально).")


async def handle_admin_ad_media(message: types.Message, state: FSMContext, bot: Bot, ctx: BotContext) -> None:
    if not is_admin(message.chat.id):
        await state.clear()
        return
    ttl_seconds, rest = split_ttl_prefix(message.caption or "")
    item = media_to_ad_item(message, rest, ttl_seconds)
    if item is None:
        await message.answer("❌ Не зміг додати рекламу.")
        return
    await _add_ad_item(ctx, bot.token, item)
    await state.clear()
    await message.answer(f"✅ Рекламу додано (глобально) (#{item.id}).")


async def handle_admin_whitelist_input(message: types.Message, state: FSMContext, bot: Bot, ctx: BotContext) -> None:
    if not is_admin(message.chat.id):
        await state.clear()
        return

    raw_id = re.sub(r"[^\d-]", "", message.text or "")
    try:
        target = int(raw_id)
    except ValueError:
        await message.answer("⚠️ Надішли тільки числовий ID.")
        return

    mode = await state.get_state()
    whitelist = await load_whitelist(ctx.store, bot.token)
    if mode == AdminState.waiting_for_whitelist_add.state:
        whitelist.add(target)
        reply = f"✅ Додано в whitelist (глобально): {target}"
    else:
        whitelist.discard(target)
        reply = f"🗑 Видалено з whitelist (глобально): {target}"
    await save_whitelist(ctx.store, bot.token, whitelist)
    await state.clear()
    ctx.log.info(reply)
    await message.answer(reply)
