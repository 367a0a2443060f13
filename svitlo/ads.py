"""
Ads, the ad-exempt whitelist and registered user accounting.

Ad config and whitelist are global per bot token. Ad items may carry an
expiry set from a TTL prefix typed by the admin ("7d1h Текст").
"""

import re
import time
import logging
from typing import Optional, Set, Tuple

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError
from aiogram.types import Message

from svitlo.config import USERS_COUNT_CACHE_SEC, is_admin
from svitlo.keyboards import build_ad_keyboard
from svitlo.records import AdConfig, AdItem, UserState, Whitelist, load_record, dump_record
from svitlo.storage import KVStore

logger = logging.getLogger(__name__)

DEFAULT_AD_TEXT = "📢 Тут може бути твоя реклама. Натисни «Стати спонсором» 👇"
FALLBACK_AD_TEXT = "📢 Реклама"

DURATION_UNITS = {"w": 7 * 24 * 3600, "d": 24 * 3600, "h": 3600, "m": 60, "s": 1}
DURATION_PART = re.compile(r"(\d+)([wdhms])")


def now_ms() -> int:
    return int(time.time() * 1000)


def ads_key(token: str) -> str:
    return f"cfg:ads:{token}"


def whitelist_key(token: str) -> str:
    return f"cfg:wl:{token}"


def default_ad_item() -> AdItem:
    return AdItem(id="default", type="text", text=DEFAULT_AD_TEXT, created_at=now_ms(), expires_at=0)


# --- TTL prefix ---

def parse_duration_to_sec(value) -> int:
    """
    Parses compact durations like '7d1h4s' or '2w'. Returns 0 when the
    string does not start with a digit or contains no unit.
    """
    if not value:
        return 0
    s = re.sub(r"\s+", "", str(value).strip().lower())
    if not s[:1].isdigit():
        return 0
    return sum(int(n) * DURATION_UNITS[unit] for n, unit in DURATION_PART.findall(s))


def split_ttl_prefix(text) -> Tuple[int, str]:
    """Splits an optional leading TTL token off the text: '1d Hello' -> (86400, 'Hello')."""
    t = str(text or "").strip()
    parts = t.split(None, 1)
    first = parts[0] if parts else ""
    ttl = parse_duration_to_sec(first)
    if ttl > 0:
        return ttl, t[len(first):].strip()
    return 0, t


# --- Ad config ---

def prune_expired_ads(config: AdConfig, now: Optional[int] = None) -> AdConfig:
    """Drops expired items; an emptied list gets the default ad back."""
    now = now_ms() if now is None else now
    items = [item for item in config.items if item.expires_at == 0 or item.expires_at > now]
    if not items:
        items = [default_ad_item()]
    return config.model_copy(update={"items": items})


async def load_ad_config(store: KVStore, token: str) -> AdConfig:
    raw = await store.get(ads_key(token))
    config = load_record(AdConfig, raw) if raw is not None else None
    if config is None:
        config = AdConfig()
    if not config.items:
        config = config.model_copy(update={"items": [default_ad_item()]})
    return config


async def save_ad_config(store: KVStore, token: str, config: AdConfig) -> None:
    await store.put(ads_key(token), dump_record(config))


# --- Whitelist ---

async def load_whitelist(store: KVStore, token: str) -> Set[int]:
    raw = await store.get(whitelist_key(token))
    whitelist = load_record(Whitelist, raw) if raw is not None else None
    return set(whitelist.chat_ids) if whitelist else set()


async def save_whitelist(store: KVStore, token: str, chat_ids: Set[int]) -> None:
    await store.put(whitelist_key(token), dump_record(Whitelist(chat_ids=sorted(chat_ids))))


# --- Users ---

async def ensure_user_registered(store: KVStore, token: str, chat_id) -> bool:
    """Marks the chat as a known user. Returns True if it was new."""
    key = f"user:{token}:{chat_id}"
    if await store.get(key):
        return False
    await store.put(key, "1")
    await store.delete(f"cache:users_count:{token}")
    return True


async def get_users_count(store: KVStore, token: str) -> int:
    cache_key = f"cache:users_count:{token}"
    cached = await store.get_json(cache_key)
    if isinstance(cached, dict) and isinstance(cached.get("count"), int):
        return cached["count"]

    count = 0
    cursor = None
    while True:
        page = await store.list(f"user:{token}:", cursor=cursor)
        count += len(page.keys)
        if page.complete or not page.cursor:
            break
        cursor = page.cursor

    await store.put_json(cache_key, {"count": count, "ts": now_ms()}, USERS_COUNT_CACHE_SEC)
    return count


# --- Delivery ---

def media_to_ad_item(message: Message, text: str, ttl_seconds: int) -> Optional[AdItem]:
    """Builds an ad item from a photo/video/document message, None for anything else."""
    created_at = now_ms()
    fields = dict(
        id=str(created_at),
        text=text or "",
        created_at=created_at,
        expires_at=created_at + ttl_seconds * 1000 if ttl_seconds > 0 else 0,
    )
    if message.photo:
        # Largest size is last
        return AdItem(type="photo", file_id=message.photo[-1].file_id, **fields)
    if message.video:
        return AdItem(type="video", file_id=message.video.file_id, **fields)
    if message.document:
        return AdItem(type="document", file_id=message.document.file_id, **fields)
    return None


async def send_ad_item(bot: Bot, chat_id: int, item: AdItem) -> None:
    markup = build_ad_keyboard()
    caption = item.text or FALLBACK_AD_TEXT
    if item.type == "photo" and item.file_id:
        await bot.send_photo(chat_id, item.file_id, caption=caption, reply_markup=markup)
    elif item.type == "video" and item.file_id:
        await bot.send_video(chat_id, item.file_id, caption=caption, reply_markup=markup)
    elif item.type == "document" and item.file_id:
        await bot.send_document(chat_id, item.file_id, caption=caption, reply_markup=markup)
    else:
        await bot.send_message(chat_id, caption, reply_markup=markup)


async def maybe_show_ad(bot: Bot, store: KVStore, token: str, chat_id: int, state: UserState) -> bool:
    """
    Counts an ad-eligible action and sends the newest ad every `frequency` actions.
    Admin and whitelisted chats never see ads. Returns True when an ad was sent.
    """
    if is_admin(chat_id):
        return False
    if chat_id in await load_whitelist(store, token):
        return False

    config = prune_expired_ads(await load_ad_config(store, token))
    if not config.enabled:
        return False

    state.ad_counter += 1
    if state.ad_counter % (config.frequency or 3) != 0:
        return False

    try:
        await send_ad_item(bot, chat_id, config.items[0])
    except TelegramAPIError as e:
        logger.error(f"Failed to send ad: {e}")
        return False
    return True
