"""
Subscription store accessor.

One record per (bot token, chat id, queue url) under
    sub:{token}:{chat_id}:{sha1(url)}
"""

import hashlib
import logging
import time
from typing import AsyncIterator, List, Optional

from svitlo.config import ALERT_MIN_BEFORE, STATE_TTL_SEC
from svitlo.records import Subscription, load_record, dump_record
from svitlo.storage import KVStore

logger = logging.getLogger(__name__)

SUB_PREFIX = "sub:"
# Upper bound on keys collected by a single listing pass
LIST_SAFETY_CAP = 50_000


def url_hash(url: str) -> str:
    return hashlib.sha1(url.encode("utf-8")).hexdigest()


def sub_key(token: str, chat_id, url: str) -> str:
    return f"{SUB_PREFIX}{token}:{chat_id}:{url_hash(url)}"


def chat_prefix(token: str, chat_id) -> str:
    return f"{SUB_PREFIX}{token}:{chat_id}:"


async def iter_keys(store: KVStore, prefix: str, cap: int = LIST_SAFETY_CAP) -> AsyncIterator[str]:
    """Yields keys under prefix page by page, stopping after cap keys."""
    cursor = None
    seen = 0
    while True:
        page = await store.list(prefix, cursor=cursor)
        for key in page.keys:
            if seen >= cap:
                logger.warning(f"Key listing for {prefix!r} stopped at safety cap {cap}")
                return
            seen += 1
            yield key
        if page.complete or not page.cursor:
            return
        cursor = page.cursor


async def list_subscription_keys(store: KVStore, prefix: str = SUB_PREFIX, cap: int = LIST_SAFETY_CAP) -> List[str]:
    return [key async for key in iter_keys(store, prefix, cap)]


async def get_subscription(store: KVStore, key: str) -> Optional[Subscription]:
    raw = await store.get(key)
    if raw is None:
        return None
    record = load_record(Subscription, raw)
    if record is None:
        logger.warning(f"Malformed subscription record {key}")
    return record


async def save_subscription(store: KVStore, record: Subscription) -> None:
    await store.put(sub_key(record.token, record.chat_id, record.url), dump_record(record), STATE_TTL_SEC)


async def upsert_subscription(
    store: KVStore,
    token: str,
    chat_id: int,
    url: str,
    city_name: str = "",
    queue_name: str = "",
    minutes_before: int = ALERT_MIN_BEFORE,
) -> Subscription:
    """
    Creates or overwrites the subscription for a queue.
    The notification watermark of an existing record is preserved.
    """
    previous = await get_subscription(store, sub_key(token, chat_id, url))
    record = Subscription(
        token=token,
        chat_id=chat_id,
        url=url,
        city_name=city_name,
        queue_name=queue_name,
        minutes_before=minutes_before,
        enabled=True,
        last_notified_event_utc_ms=previous.last_notified_event_utc_ms if previous else 0,
        updated_at=int(time.time() * 1000),
    )
    await save_subscription(store, record)
    return record


async def delete_subscription(store: KVStore, token: str, chat_id, url: str) -> None:
    await store.delete(sub_key(token, chat_id, url))


async def delete_chat_subscriptions(store: KVStore, token: str, chat_id) -> int:
    """Removes every subscription of a chat. Returns the number of deleted keys."""
    keys = await list_subscription_keys(store, chat_prefix(token, chat_id))
    for key in keys:
        await store.delete(key)
    return len(keys)
