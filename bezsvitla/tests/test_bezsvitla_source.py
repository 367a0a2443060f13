"""
Tests for the bezsvitla.com.ua data source and HTTP fetcher
"""
import asyncio
import re

import pytest
from aioresponses import aioresponses

from bezsvitla.data_source import SEARCH_URL, BezsvitlaDataSource, get_data_source
from bezsvitla.fetcher import FetchError, fetch_json, fetch_text
from svitlo.schedule import PowerState

QUEUE_URL = "https://bezsvitla.com.ua/dnipro/cherha-1-1"
CITY_URL = "https://bezsvitla.com.ua/dnipro"
SEARCH_PATTERN = re.compile(r"^https://bezsvitla\.com\.ua/search-locality\?q=.*$")


@pytest.mark.unit
class TestFetcher:

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        with aioresponses() as m:
            m.get(QUEUE_URL, status=502)
            m.get(QUEUE_URL, exception=asyncio.TimeoutError())
            m.get(QUEUE_URL, status=200, body="<html>ok</html>")
            assert await fetch_text(QUEUE_URL, retries=3, retry_delay_ms=0) == "<html>ok</html>"

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self):
        with aioresponses() as m:
            m.get(QUEUE_URL, status=503, repeat=True)
            with pytest.raises(FetchError) as exc_info:
                await fetch_text(QUEUE_URL, retries=2, retry_delay_ms=0)
        assert exc_info.value.reason == "HTTP 503"
        assert exc_info.value.url == QUEUE_URL

    @pytest.mark.asyncio
    async def test_timeout_reason(self):
        with aioresponses() as m:
            m.get(QUEUE_URL, exception=asyncio.TimeoutError(), repeat=True)
            with pytest.raises(FetchError) as exc_info:
                await fetch_text(QUEUE_URL, retries=1, retry_delay_ms=0)
        assert exc_info.value.reason == "timeout"

    @pytest.mark.asyncio
    async def test_json_body_regardless_of_content_type(self):
        with aioresponses() as m:
            m.get(SEARCH_PATTERN, status=200, body='[{"name": "Дніпро"}]', content_type="text/html")
            data = await fetch_json(f"{SEARCH_URL}?q=x", retries=1, retry_delay_ms=0)
        assert data == [{"name": "Дніпро"}]

    @pytest.mark.asyncio
    async def test_invalid_json_is_a_failed_attempt(self):
        with aioresponses() as m:
            m.get(SEARCH_PATTERN, status=200, body="<html>captcha</html>", repeat=True)
            with pytest.raises(FetchError):
                await fetch_json(f"{SEARCH_URL}?q=x", retries=2, retry_delay_ms=0)


@pytest.mark.unit
class TestFetchSchedule:

    @pytest.mark.asyncio
    async def test_parses_page(self, load_fixture):
        source = BezsvitlaDataSource(retry_delay_ms=0)
        with aioresponses() as m:
            m.get(QUEUE_URL, status=200, body=load_fixture("structured.html"))
            result = await source.fetch_schedule(QUEUE_URL)
        assert result.ok
        assert len(result.today) == 6
        assert len(result.tomorrow) == 3
        assert result.today[0].state is PowerState.ON

    @pytest.mark.asyncio
    async def test_failure_is_reported_not_raised(self):
        source = BezsvitlaDataSource(retry_delay_ms=0)
        with aioresponses() as m:
            m.get(QUEUE_URL, status=500, repeat=True)
            result = await source.fetch_schedule(QUEUE_URL)
        assert not result.ok
        assert result.error == "HTTP 500"
        assert result.blocks == []


@pytest.mark.unit
class TestSearchCities:

    @pytest.mark.asyncio
    async def test_filters_and_caps_results(self):
        payload = [{"name": f"Місто {i}", "url": f"{CITY_URL}-{i}"} for i in range(10)]
        payload.insert(0, {"name": "Без посилання"})
        payload.insert(1, "garbage")
        source = BezsvitlaDataSource(retry_delay_ms=0)
        with aioresponses() as m:
            m.get(SEARCH_PATTERN, status=200, payload=payload)
            cities = await source.search_cities("Місто")
        assert len(cities) == 8
        assert cities[0].name == "Місто 0"

    @pytest.mark.asyncio
    async def test_query_is_url_encoded(self):
        source = BezsvitlaDataSource(retry_delay_ms=0)
        with aioresponses() as m:
            m.get(SEARCH_PATTERN, status=200, payload=[])
            await source.search_cities("Кривий Ріг")
            (method, url), _ = next(iter(m.requests.items()))
        assert method == "GET"
        assert url.query["q"] == "Кривий Ріг"
        assert " " not in str(url)

    @pytest.mark.asyncio
    async def test_non_list_payload(self):
        source = BezsvitlaDataSource(retry_delay_ms=0)
        with aioresponses() as m:
            m.get(SEARCH_PATTERN, status=200, payload={"error": "rate limited"})
            assert await source.search_cities("Дніпро") == []

    @pytest.mark.asyncio
    async def test_site_down(self):
        source = BezsvitlaDataSource(retry_delay_ms=0)
        with aioresponses() as m:
            m.get(SEARCH_PATTERN, status=503, repeat=True)
            assert await source.search_cities("Дніпро") == []


@pytest.mark.db
class TestGetQueues:

    @pytest.mark.asyncio
    async def test_fetches_then_serves_from_cache(self, store, load_fixture):
        source = BezsvitlaDataSource(store=store, token="111:TEST", retry_delay_ms=0)
        with aioresponses() as m:
            m.get(CITY_URL, status=200, body=load_fixture("city.html"))
            first = await source.get_queues(CITY_URL)
            # Second call must not hit the network (no more mocked responses)
            second = await source.get_queues(CITY_URL)
        assert not first.from_cache
        assert second.from_cache
        assert [q.name for q in second.queues] == ["Черга 1.1", "Черга 1.2", "Черга 2.1"]

    @pytest.mark.asyncio
    async def test_cache_is_per_token(self, store, load_fixture):
        first = BezsvitlaDataSource(store=store, token="111:TEST", retry_delay_ms=0)
        other = BezsvitlaDataSource(store=store, token="222:OTHER", retry_delay_ms=0)
        with aioresponses() as m:
            m.get(CITY_URL, status=200, body=load_fixture("city.html"), repeat=True)
            await first.get_queues(CITY_URL)
            result = await other.get_queues(CITY_URL)
        assert not result.from_cache
        assert len(result.queues) == 3

    @pytest.mark.asyncio
    async def test_failure_without_cache(self, store):
        source = BezsvitlaDataSource(store=store, token="111:TEST", retry_delay_ms=0)
        with aioresponses() as m:
            m.get(CITY_URL, status=502, repeat=True)
            result = await source.get_queues(CITY_URL)
        assert result.queues == []
        assert not result.from_cache

    @pytest.mark.asyncio
    async def test_page_without_queues_is_not_cached(self, store):
        source = BezsvitlaDataSource(store=store, token="111:TEST", retry_delay_ms=0)
        with aioresponses() as m:
            m.get(CITY_URL, status=200, body="<html></html>", repeat=True)
            assert (await source.get_queues(CITY_URL)).queues == []
            assert (await source.get_queues(CITY_URL)).from_cache is False

    @pytest.mark.asyncio
    async def test_without_store(self, load_fixture):
        source = BezsvitlaDataSource(retry_delay_ms=0)
        with aioresponses() as m:
            m.get(CITY_URL, status=200, body=load_fixture("city.html"))
            result = await source.get_queues(CITY_URL)
        assert len(result.queues) == 3


@pytest.mark.unit
def test_factory_defaults_to_bezsvitla(monkeypatch):
    monkeypatch.delenv("DATA_SOURCE_TYPE", raising=False)
    source = get_data_source(token="111:TEST")
    assert isinstance(source, BezsvitlaDataSource)
    assert source.token == "111:TEST"
