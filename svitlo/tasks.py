"""
Alert dispatching for subscribed chats.

Every cron tick walks all subscriptions, finds the next power state change
of each queue and sends a single alert when "now" falls inside the firing
window that opens minutes_before ahead of that change. The per-record
watermark (last_notified_event_utc_ms) turns repeated ticks into one
delivery per event.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional

import pytz
from aiogram import Bot
from aiogram.exceptions import TelegramAPIError

from svitlo.clock import LocalClock, MS_PER_MINUTE, local_now, minute_to_utc_ms, format_utc_ms
from svitlo.config import (
    ALERT_MIN_BEFORE,
    ALERT_WINDOW_MIN,
    ALERT_MAX_PER_CRON,
    CRON_INTERVAL_SECONDS,
    UA_TZ_OFFSET_MIN,
)
from svitlo.data_source import ScheduleDataSource, ScheduleFetchResult
from svitlo.logging_config import chat_logging
from svitlo.records import Subscription
from svitlo.schedule import PowerState, ScheduleBlock, compute_status
from svitlo.storage import KVStore
from svitlo.subscriptions import get_subscription, list_subscription_keys, save_subscription

logger = logging.getLogger(__name__)

# send(token, chat_id, text) -> delivered
Notifier = Callable[[str, int, str], Awaitable[bool]]

CHANGE_WORDS = {
    PowerState.ON: "увімкнення",
    PowerState.OFF: "вимкнення",
}


@dataclass
class NotificationDecision:
    should_send: bool
    message: str = ""
    updated_record: Optional[Subscription] = None
    event_utc_ms: Optional[int] = None
    reason: str = ""


@dataclass
class CronResult:
    processed: int = 0
    sent: int = 0


def build_alert_message(record: Subscription, minutes_before: int, change_type, event_utc_ms: int, offset_minutes: int) -> str:
    what = CHANGE_WORDS.get(change_type, "зміна")
    at = format_utc_ms(event_utc_ms, offset_minutes)[-5:]
    return (
        f"🔔 АЛЕРТ: через {minutes_before} хв\n\n"
        f"📍 {record.city_name}\n"
        f"🔌 {record.queue_name}\n\n"
        f"⏰ {what} о {at}"
    )


def evaluate_subscription_for_notification(
    record: Subscription,
    clock: LocalClock,
    blocks: List[ScheduleBlock],
    window_minutes=ALERT_WINDOW_MIN,
    default_minutes_before=ALERT_MIN_BEFORE,
) -> NotificationDecision:
    """
    Decides whether the record should be alerted right now.

    Pure: the input record is never mutated. When should_send is True the
    decision carries a copy of the record with the watermark set to the
    event instant; the caller persists it after the send attempt.
    """
    if not record.enabled:
        return NotificationDecision(False, updated_record=record, reason="disabled")
    if not blocks:
        return NotificationDecision(False, updated_record=record, reason="no blocks")

    status = compute_status(blocks, clock.minute_of_day)
    if status.next_change_minute is None:
        return NotificationDecision(False, updated_record=record, reason="no next change")

    event_utc_ms = minute_to_utc_ms(clock, status.next_change_minute)
    minutes_before = record.minutes_before or default_minutes_before
    alert_utc_ms = event_utc_ms - minutes_before * MS_PER_MINUTE
    window_ms = window_minutes * MS_PER_MINUTE

    if record.last_notified_event_utc_ms and record.last_notified_event_utc_ms >= event_utc_ms:
        return NotificationDecision(False, updated_record=record, event_utc_ms=event_utc_ms, reason="already notified")

    if not (alert_utc_ms <= clock.now_utc_ms < alert_utc_ms + window_ms):
        return NotificationDecision(False, updated_record=record, event_utc_ms=event_utc_ms, reason="outside window")

    updated = record.model_copy(update={
        "last_notified_event_utc_ms": event_utc_ms,
        "updated_at": int(time.time() * 1000),
    })
    return NotificationDecision(
        should_send=True,
        message=build_alert_message(record, minutes_before, status.next_change_type, event_utc_ms, clock.offset_minutes),
        updated_record=updated,
        event_utc_ms=event_utc_ms,
    )


async def process_one_subscription(
    store: KVStore,
    record: Subscription,
    clock: LocalClock,
    fetch: Callable[[str], Awaitable[ScheduleFetchResult]],
    send: Notifier,
) -> bool:
    """Evaluates, sends and persists one record. Returns True when an alert went out."""
    if not record.enabled:
        return False

    result = await fetch(record.url)
    if not result.ok or not result.blocks:
        logger.debug(f"No schedule for {record.url}, skipping")
        return False

    decision = evaluate_subscription_for_notification(record, clock, result.today)
    if not decision.should_send:
        logger.debug(f"Alert skipped: {decision.reason}")
        return False

    logger.info(f"Sending alert for {record.queue_name} ({record.city_name}), event at {format_utc_ms(decision.event_utc_ms, clock.offset_minutes)}")
    delivered = await send(record.token, record.chat_id, decision.message)
    if not delivered:
        logger.warning("Alert delivery failed, not retried for this event")

    # One attempt per event, delivered or not
    await save_subscription(store, decision.updated_record)
    return delivered


async def run_cron_alerts(
    store: KVStore,
    data_source: ScheduleDataSource,
    send: Notifier,
    clock: Optional[LocalClock] = None,
    max_per_cron=ALERT_MAX_PER_CRON,
) -> CronResult:
    """
    One dispatcher pass over every subscription.

    Each distinct queue URL is fetched at most once per pass. A failure on one
    record is logged and the pass continues with the next one.
    """
    keys = await list_subscription_keys(store)
    result = CronResult()
    if not keys:
        return result

    clock = clock or local_now(UA_TZ_OFFSET_MIN)
    fetched: Dict[str, ScheduleFetchResult] = {}

    async def fetch_once(url: str) -> ScheduleFetchResult:
        if url not in fetched:
            fetched[url] = await data_source.fetch_schedule(url)
        return fetched[url]

    for key in keys:
        if result.processed >= max_per_cron:
            logger.info(f"Alert pass stopped at limit of {max_per_cron} records")
            break

        record = await get_subscription(store, key)
        if record is None:
            continue
        result.processed += 1

        with chat_logging(record.chat_id):
            try:
                if await process_one_subscription(store, record, clock, fetch_once, send):
                    result.sent += 1
            except Exception as e:
                logger.error(f"Error processing subscription {key}: {e}", exc_info=True)

    logger.info(f"Alert pass done: processed={result.processed}, sent={result.sent}, urls={len(fetched)}")
    return result


def make_notifier(bots: Dict[str, Bot]) -> Notifier:
    """Builds a send() sink that routes by bot token and reports delivery."""

    async def send(token: str, chat_id: int, text: str) -> bool:
        bot = bots.get(token)
        if bot is None:
            logger.warning("No bot instance for subscription token, dropping alert")
            return False
        try:
            await bot.send_message(chat_id, text, disable_web_page_preview=True)
            return True
        except TelegramAPIError as e:
            logger.error(f"Failed to send alert to {chat_id}: {e}")
            return False

    return send


async def alert_checker_task(
    store_getter: Callable[[], Optional[KVStore]],
    data_source: ScheduleDataSource,
    send: Notifier,
    logger: logging.Logger,
    interval_seconds=CRON_INTERVAL_SECONDS,
):
    """
    Background loop for polling mode: runs one dispatcher pass every interval.

    Args:
        store_getter: Callable that returns the current KV store
        data_source: Provider used to load queue pages
        send: Notification sink
        logger: Logger instance for this provider
    """
    logger.info("Alert checker started.")
    while True:
        await asyncio.sleep(interval_seconds)
        store = store_getter()
        if store is None:
            logger.error("KV store is not available. Skipping alert cycle.")
            continue

        now = datetime.now(pytz.FixedOffset(UA_TZ_OFFSET_MIN))
        logger.debug(f"Alert check cycle at {now.strftime('%H:%M:%S')}")
        try:
            await run_cron_alerts(store, data_source, send)
        except Exception as e:
            logger.error(f"Error in alert_checker_task loop: {e}", exc_info=True)
