from typing import List, Optional
from urllib.parse import quote
import logging
import os
import time

from svitlo.config import CITY_QUEUES_CACHE_TTL_SEC
from svitlo.data_source import ScheduleDataSource, ScheduleFetchResult, QueuesResult
from svitlo.records import City, Queue
from svitlo.storage import KVStore
from svitlo.subscriptions import url_hash
from bezsvitla.fetcher import BASE_URL, FetchError, fetch_json, fetch_text
from bezsvitla.parser.schedule_parser import (
    DEFAULT_CLASSIFIER,
    StateClassifier,
    parse_queues_from_city_html,
    parse_schedule_html,
)


logger = logging.getLogger(__name__)

SEARCH_URL = f"{BASE_URL}/search-locality"
MAX_CITIES = 8


class BezsvitlaDataSource(ScheduleDataSource):
    """
    Implementation of ScheduleDataSource backed by bezsvitla.com.ua pages.

    Queue lists of a city are cached in the KV store (per bot token) and the
    cache is also used as a fallback when the site is down.
    """

    def __init__(
        self,
        store: Optional[KVStore] = None,
        token: str = "",
        classifier: StateClassifier = DEFAULT_CLASSIFIER,
        retry_delay_ms: Optional[float] = None,
    ):
        self.store = store
        self.token = token
        self.classifier = classifier
        self.fetch_options = {} if retry_delay_ms is None else {"retry_delay_ms": retry_delay_ms}

    async def fetch_schedule(self, url: str) -> ScheduleFetchResult:
        logger.info(f"Fetching schedule page {url}")
        try:
            html = await fetch_text(url, **self.fetch_options)
        except FetchError as e:
            logger.error(f"Schedule fetch failed: {e}")
            return ScheduleFetchResult(ok=False, error=e.reason)
        return ScheduleFetchResult(ok=True, blocks=parse_schedule_html(html, self.classifier))

    async def search_cities(self, query: str) -> List[City]:
        url = f"{SEARCH_URL}?q={quote(query)}"
        try:
            data = await fetch_json(url, **self.fetch_options)
        except FetchError as e:
            logger.error(f"City search failed: {e}")
            return []
        if not isinstance(data, list):
            return []

        cities = []
        for item in data:
            if isinstance(item, dict) and item.get("name") and item.get("url"):
                cities.append(City(name=str(item["name"]), url=str(item["url"])))
        return cities[:MAX_CITIES]

    def _cache_key(self, city_url: str) -> str:
        return f"cache:city_queues:{self.token}:{url_hash(city_url)}"

    async def _cached_queues(self, city_url: str) -> List[Queue]:
        if self.store is None:
            return []
        cached = await self.store.get_json(self._cache_key(city_url))
        if not isinstance(cached, dict) or not isinstance(cached.get("queues"), list):
            return []
        queues = []
        for item in cached["queues"]:
            if isinstance(item, dict) and item.get("name") and item.get("url"):
                queues.append(Queue(name=item["name"], url=item["url"]))
        return queues

    async def get_queues(self, city_url: str) -> QueuesResult:
        cached = await self._cached_queues(city_url)
        if cached:
            return QueuesResult(queues=cached, from_cache=True)

        try:
            html = await fetch_text(city_url, **self.fetch_options)
        except FetchError as e:
            logger.error(f"City page fetch failed: {e}")
            return QueuesResult()

        queues = parse_queues_from_city_html(html)
        if queues and self.store is not None:
            await self.store.put_json(
                self._cache_key(city_url),
                {"queues": [q.model_dump() for q in queues], "ts": int(time.time() * 1000)},
                CITY_QUEUES_CACHE_TTL_SEC,
            )
        logger.info(f"Found {len(queues)} queue(s) on {city_url}")
        return QueuesResult(queues=queues)


def get_data_source(store: Optional[KVStore] = None, token: str = "") -> ScheduleDataSource:
    """Factory to get the configured schedule data source."""
    source_type = os.getenv("DATA_SOURCE_TYPE", "BEZSVITLA").upper()

    if source_type == "BEZSVITLA":
        return BezsvitlaDataSource(store=store, token=token)
    # Add other types here

    return BezsvitlaDataSource(store=store, token=token)
