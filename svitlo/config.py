"""
Runtime configuration for the Svitlo bot.
All values come from environment variables with documented defaults.
"""

import os
import json
import logging
from typing import List

VERSION = "svitlo-kv-cron-1.1.0"


def env_num(name: str, default: float) -> float:
    """Reads a numeric env var, falls back to default on empty or garbage values."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logging.warning(f"Invalid numeric value for {name}={raw!r}, using default {default}")
        return default
    if value != value or value in (float("inf"), float("-inf")):
        return default
    return int(value) if value.is_integer() else value


def parse_tokens(raw) -> List[str]:
    """
    Parses BOT_TOKENS: either a comma separated string or a JSON array.
    """
    if not raw:
        return []
    if isinstance(raw, (list, tuple)):
        return [str(x) for x in raw]
    s = str(raw).strip()
    if s.startswith("[") and s.endswith("]"):
        try:
            arr = json.loads(s)
        except ValueError:
            return []
        return [str(x) for x in arr] if isinstance(arr, list) else []
    return [x.strip() for x in s.split(",") if x.strip()]


# --- Bot identity ---
BOT_TOKENS = parse_tokens(os.getenv("BOT_TOKENS", ""))
ADMIN_ID = os.getenv("ADMIN_ID", "")
SPONSOR_LINK = os.getenv("SPONSOR_LINK", "")
AD_INFO_LINK = os.getenv("AD_INFO_LINK") or SPONSOR_LINK

# --- Clock ---
# Fixed local offset from UTC in minutes (Kyiv winter time by default)
UA_TZ_OFFSET_MIN = env_num("UA_TZ_OFFSET_MIN", 120)

# --- Alerts ---
ALERT_MIN_BEFORE = env_num("ALERT_MIN_BEFORE", 20)
# Must be >= cron period so every alert instant is hit at least once
ALERT_WINDOW_MIN = env_num("ALERT_WINDOW_MIN", 6)
ALERT_MAX_PER_CRON = env_num("ALERT_MAX_PER_CRON", 300)
CRON_INTERVAL_SECONDS = env_num("CRON_INTERVAL_SECONDS", 5 * 60)
CRON_SECRET = os.getenv("CRON_SECRET", "")

# --- Fetching ---
FETCH_TIMEOUT_MS = env_num("FETCH_TIMEOUT_MS", 12000)
FETCH_RETRY_COUNT = env_num("FETCH_RETRY_COUNT", 3)
FETCH_RETRY_DELAY_MS = env_num("FETCH_RETRY_DELAY_MS", 600)

# --- Storage TTLs ---
STATE_TTL_SEC = env_num("STATE_TTL_SEC", 60 * 60 * 24 * 45)
USERS_COUNT_CACHE_SEC = env_num("USERS_COUNT_CACHE_SEC", 300)
CITY_QUEUES_CACHE_TTL_SEC = env_num("CITY_QUEUES_CACHE_TTL_SEC", 60 * 60 * 24 * 3)

# --- Paths ---
DB_PATH = os.getenv("DB_PATH", os.path.join(os.path.dirname(__file__), "..", "data", "svitlo.db"))
LOG_DIR = os.getenv("LOG_DIR")
WEBHOOK_BASE_URL = os.getenv("WEBHOOK_BASE_URL", "")


def is_admin(chat_id) -> bool:
    """Single fixed admin identity."""
    return bool(ADMIN_ID) and str(chat_id) == str(ADMIN_ID)
