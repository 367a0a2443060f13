"""
HTTP fetch with explicit timeout and fixed-delay retry.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from svitlo.config import FETCH_TIMEOUT_MS, FETCH_RETRY_COUNT, FETCH_RETRY_DELAY_MS

logger = logging.getLogger(__name__)

BASE_URL = "https://bezsvitla.com.ua"

HTML_HEADERS = {
    "User-Agent": "Mozilla/5.0",
    "Accept-Language": "uk-UA,uk;q=0.9",
}

JSON_HEADERS = {
    "Accept": "application/json",
    "X-Requested-With": "XMLHttpRequest",
    "User-Agent": "Mozilla/5.0",
    "Referer": f"{BASE_URL}/",
}


class FetchError(Exception):
    """All attempts to load a resource failed."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


async def _fetch(
    url: str,
    as_json: bool,
    headers: Optional[Dict[str, str]],
    params: Optional[Dict[str, str]],
    timeout_ms,
    retries,
    retry_delay_ms,
) -> Any:
    attempts = max(1, int(retries))
    delay = max(0, retry_delay_ms) / 1000
    timeout = aiohttp.ClientTimeout(total=timeout_ms / 1000)
    last_error = "fetch failed"

    async with aiohttp.ClientSession(timeout=timeout) as session:
        for attempt in range(1, attempts + 1):
            try:
                async with session.get(url, headers=headers, params=params, allow_redirects=True) as response:
                    if 200 <= response.status < 300:
                        if as_json:
                            return await response.json(content_type=None)
                        return await response.text()
                    last_error = f"HTTP {response.status}"
            except asyncio.TimeoutError:
                last_error = "timeout"
            except (aiohttp.ClientError, ValueError) as e:
                last_error = f"{type(e).__name__}: {e}"

            logger.warning(f"Fetch attempt {attempt}/{attempts} for {url} failed: {last_error}")
            if attempt < attempts:
                await asyncio.sleep(delay)

    raise FetchError(url, last_error)


async def fetch_text(
    url: str,
    timeout_ms=FETCH_TIMEOUT_MS,
    retries=FETCH_RETRY_COUNT,
    retry_delay_ms=FETCH_RETRY_DELAY_MS,
    headers: Optional[Dict[str, str]] = None,
) -> str:
    """
    GET url and return the body as text. Non-2xx responses, timeouts and
    connection errors are retried; raises FetchError when all attempts fail.
    """
    return await _fetch(url, False, headers or HTML_HEADERS, None, timeout_ms, retries, retry_delay_ms)


async def fetch_json(
    url: str,
    params: Optional[Dict[str, str]] = None,
    timeout_ms=FETCH_TIMEOUT_MS,
    retries=FETCH_RETRY_COUNT,
    retry_delay_ms=FETCH_RETRY_DELAY_MS,
    headers: Optional[Dict[str, str]] = None,
) -> Any:
    """Same as fetch_text but decodes a JSON body (a non-JSON body counts as a failed attempt)."""
    return await _fetch(url, True, headers or JSON_HEADERS, params, timeout_ms, retries, retry_delay_ms)
