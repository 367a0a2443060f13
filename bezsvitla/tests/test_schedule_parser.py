"""
Tests for bezsvitla.parser.schedule_parser
"""
import pytest

from bezsvitla.parser.schedule_parser import (
    RawRange,
    StateClassifier,
    dedupe_near,
    extract_structured,
    parse_queues_from_city_html,
    parse_schedule_html,
)
from svitlo.schedule import PowerState, split_days


def summary(blocks):
    return [(b.start, b.end, b.state) for b in blocks]


@pytest.mark.parser
class TestStructuredPage:

    def test_today_and_tomorrow(self, load_fixture):
        blocks = parse_schedule_html(load_fixture("structured.html"))
        days = split_days(blocks)
        assert len(days) == 2
        assert summary(days[0]) == [
            ("00:00", "04:00", PowerState.ON),
            ("04:00", "08:00", PowerState.OFF),
            ("08:00", "12:00", PowerState.ON),
            ("12:00", "16:00", PowerState.OFF),
            ("16:00", "20:00", PowerState.ON),
            ("20:00", "24:00", PowerState.OFF),
        ]
        assert summary(days[1]) == [
            ("02:00", "06:00", PowerState.OFF),
            ("06:00", "22:00", PowerState.ON),
            ("22:00", "02:00", PowerState.OFF),
        ]

    def test_midnight_crossing_is_normalized(self, load_fixture):
        last = parse_schedule_html(load_fixture("structured.html"))[-1]
        assert (last.start_minute, last.end_minute) == (1320, 1560)

    def test_end_of_day_label(self, load_fixture):
        blocks = parse_schedule_html(load_fixture("structured.html"))
        assert blocks[5].end_minute == 1440

    def test_item_with_several_ranges_is_ignored(self, load_fixture):
        blocks = parse_schedule_html(load_fixture("structured.html"))
        assert ("09:30", "10:15") not in [(b.start, b.end) for b in blocks]
        assert len(blocks) == 9


@pytest.mark.parser
class TestClassifier:

    def test_marker_outside_item_within_window(self):
        html = '<span class="icon-off"></span><ul><li>10:00 – 12:00</li></ul>'
        assert summary(parse_schedule_html(html)) == [("10:00", "12:00", PowerState.OFF)]

    def test_marker_outside_window_is_unknown(self):
        html = '<span class="icon-off"></span>' + " " * 400 + "<ul><li>10:00 – 12:00</li></ul>"
        assert parse_schedule_html(html)[0].state is PowerState.UNKNOWN

    def test_marker_inside_item_beats_closer_outside_marker(self):
        html = '<i class="icon-on"></i><li>10:00 – 12:00 <b class="icon-off"></b></li>'
        assert parse_schedule_html(html)[0].state is PowerState.OFF

    def test_custom_markers(self):
        classifier = StateClassifier(positive=("is-light",), negative=("is-dark",))
        html = '<li class="is-dark">01:00-03:00</li><li class="is-light">03:00-05:00</li>'
        ranges = extract_structured(html, classifier)
        assert [r.state for r in ranges] == [PowerState.OFF, PowerState.ON]


@pytest.mark.parser
class TestLooseFallback:

    def test_newer_layout_without_list_items(self, load_fixture):
        blocks = parse_schedule_html(load_fixture("newer_layout.html"))
        assert summary(blocks) == [
            ("06:00", "09:30", PowerState.UNKNOWN),
            ("09:30", "13:00", PowerState.UNKNOWN),
            ("13:00", "16:30", PowerState.UNKNOWN),
        ]

    def test_no_ranges(self):
        assert parse_schedule_html("<html><body>Графік ще не опубліковано</body></html>") == []

    def test_invalid_times_are_dropped(self):
        blocks = parse_schedule_html("<p>25:00-26:00</p><p>10:00-10:75</p><p>10:00-11:00</p>")
        assert summary(blocks) == [("10:00", "11:00", PowerState.UNKNOWN)]

    def test_past_midnight_start_is_dropped(self):
        assert parse_schedule_html("<p>24:30-01:00</p>") == []
        assert parse_schedule_html("<p>24:00-01:00</p>") == []

    def test_end_of_day_only_as_end(self):
        blocks = parse_schedule_html("<p>22:00-24:00</p><p>23:00-24:30</p>")
        assert [(b.start_minute, b.end_minute) for b in blocks] == [(1320, 1440)]

    def test_repeats_chained_by_distance_collapse(self):
        filler = "x" * 230
        html = filler.join(["<span>10:00-12:00</span>"] * 3)
        assert summary(parse_schedule_html(html)) == [("10:00", "12:00", PowerState.UNKNOWN)]

    def test_structured_items_are_not_deduplicated(self):
        html = '<li class="icon-off">10:00-12:00</li><li class="icon-off">10:00-12:00</li>'
        assert len(parse_schedule_html(html)) == 2


@pytest.mark.parser
class TestDedupe:

    def test_chain_compares_with_previous_match(self):
        ranges = [RawRange("10:00", "12:00", PowerState.UNKNOWN, pos) for pos in (0, 250, 500)]
        assert [r.position for r in dedupe_near(ranges)] == [0]

    def test_close_duplicates_collapse(self):
        ranges = [
            RawRange("10:00", "12:00", PowerState.ON, 100),
            RawRange("10:00", "12:00", PowerState.ON, 250),
        ]
        assert len(dedupe_near(ranges)) == 1

    def test_distant_duplicates_are_kept(self):
        ranges = [
            RawRange("10:00", "12:00", PowerState.ON, 100),
            RawRange("10:00", "12:00", PowerState.ON, 900),
        ]
        assert len(dedupe_near(ranges)) == 2

    def test_different_state_is_kept(self):
        ranges = [
            RawRange("10:00", "12:00", PowerState.ON, 100),
            RawRange("10:00", "12:00", PowerState.OFF, 120),
        ]
        assert len(dedupe_near(ranges)) == 2


@pytest.mark.parser
class TestCityPage:

    def test_queues(self, load_fixture):
        queues = parse_queues_from_city_html(load_fixture("city.html"))
        assert [(q.name, q.url) for q in queues] == [
            ("Черга 1.1", "https://bezsvitla.com.ua/dnipro/cherha-1-1"),
            ("Черга 1.2", "https://bezsvitla.com.ua/dnipro/cherha-1-2/"),
            ("Черга 2.1", "https://bezsvitla.com.ua/dnipro/cherha-2-1"),
        ]

    def test_page_without_queues(self):
        assert parse_queues_from_city_html('<a href="/kyiv">Київ</a>') == []
